#!/usr/bin/env python3
"""
Health checks для Agent Sentinel.

Проверяет:
- Подключение к Redis и запись/чтение
- Сохранённое состояние очереди заявок (config, счётчик заявок)
- Сохранённое состояние реестра (meta, число отчётов)

Использование:
    python scripts/health_check.py
"""

import json
import os
import sys
from pathlib import Path

# Добавить корень проекта в path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
import redis

load_dotenv()


def check_redis(r):
    """Проверка Redis"""
    print("🔍 Checking Redis...")

    try:
        if not r.ping():
            print("  ❌ Redis ping failed")
            return False
        print("  ✅ Connection OK")

        r.set("sentinel:health_check", "ok", ex=10)
        if r.get("sentinel:health_check") != b"ok":
            print("  ❌ Read/write failed")
            return False
        r.delete("sentinel:health_check")
        print("  ✅ Read/Write OK")

        info = r.info("persistence")
        aof_enabled = info.get("aof_enabled", 0)
        print(f"  ✅ AOF persistence: {'enabled' if aof_enabled else 'disabled'}")
        return True

    except Exception as e:
        print(f"  ❌ Redis check failed: {e}")
        return False


def check_requests(r):
    """Проверка сохранённой очереди заявок"""
    print("🔍 Checking request queue state...")

    raw = r.get("sentinel:requests:config")
    if raw is None:
        print("  ⚠️  No persisted queue yet (backend never started)")
        return True

    config = json.loads(raw)
    count = config["request_count"]
    print(f"  ✅ Owner: {config['owner']}, auditor: {config['auditor']}")
    print(f"  ✅ Requests: {count}, paused: {config['paused']}")

    keys = [f"sentinel:requests:requests:{i}" for i in range(1, count + 1)]
    docs = r.mget(keys) if keys else []
    missing = [k for k, doc in zip(keys, docs) if doc is None]
    if missing:
        print(f"  ❌ Missing request documents: {missing[:5]}")
        return False

    outstanding = sum(
        d["payment"] for d in map(json.loads, docs)
        if d["status"] in ("pending", "in_progress")
    )
    print(f"  ✅ Refundable deposits: {outstanding}")
    return True


def check_registry(r):
    """Проверка сохранённого реестра"""
    print("🔍 Checking registry state...")

    raw = r.get("sentinel:registry:meta")
    if raw is None:
        print("  ⚠️  No persisted registry yet")
        return True

    meta = json.loads(raw)
    count = meta["report_count"]
    keys = [f"sentinel:registry:reports:{i}" for i in range(1, count + 1)]
    present = sum(1 for doc in r.mget(keys) if doc) if keys else 0
    if present != count:
        print(f"  ❌ Reports: {present}/{count} present")
        return False
    print(f"  ✅ Reports: {count}, owner: {meta['owner']}")
    return True


def main():
    print("=" * 60)
    print("🏥 HEALTH CHECK: Agent Sentinel")
    print("=" * 60)
    print()

    url = os.getenv("SENTINEL_REDIS_URL", "redis://localhost:6379")
    r = redis.from_url(url)

    results = [("Redis", check_redis(r))]
    print()
    if results[0][1]:
        results.append(("Requests", check_requests(r)))
        print()
        results.append(("Registry", check_registry(r)))
        print()

    print("=" * 60)
    print("📊 RESULTS:")
    print("=" * 60)

    all_passed = True
    for name, passed in results:
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  {name}: {status}")
        if not passed:
            all_passed = False

    print()
    if all_passed:
        print("🎉 All health checks passed! System is ready.")
        return 0
    else:
        print("⚠️  Some health checks failed. Fix issues before proceeding.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
