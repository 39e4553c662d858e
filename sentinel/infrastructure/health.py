"""
Health checks для всех компонентов.
"""

import asyncio
import inspect
import logging
import time
from typing import Dict

from sentinel.infrastructure.retry import retry_async

logger = logging.getLogger(__name__)


@retry_async(max_attempts=3, base_delay=0.2)
async def _ping(redis_client) -> None:
    ping_method = getattr(redis_client, "ping", None)
    if ping_method is None:
        raise AttributeError("Redis client has no 'ping' method")

    if asyncio.iscoroutinefunction(ping_method) or inspect.iscoroutinefunction(ping_method):
        await ping_method()
    else:
        ping_method()


async def check_redis(redis_client) -> Dict:
    """
    Проверка Redis.
    Поддерживает и sync, и async клиентов; ping повторяется до 3 раз.
    """
    start_time = time.time()
    try:
        await _ping(redis_client)
        latency_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }


async def check_custody(requests) -> Dict:
    """
    Платёжеспособность очереди: баланс хранения против суммы депозитов,
    которые ещё могут быть возвращены (PENDING + IN_PROGRESS).

    После вывода средств владельцем баланс может оказаться меньше —
    тогда возвраты будут падать с TransferFailed.
    """
    try:
        balance = await requests.get_balance()
        outstanding = await requests.outstanding_payments()
    except Exception as e:
        logger.error(f"Custody health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

    result = {
        "status": "healthy" if balance >= outstanding else "insolvent",
        "balance": balance,
        "outstanding": outstanding,
    }
    if balance < outstanding:
        logger.warning(f"Custody balance {balance} below outstanding deposits {outstanding}")
    return result


async def full_health_check(components: Dict) -> Dict:
    """Полная проверка всех компонентов"""
    results = {}

    if "redis" in components:
        results["redis"] = await check_redis(components["redis"])

    if "requests" in components:
        results["custody"] = await check_custody(components["requests"])

    all_healthy = all(
        r.get("status") == "healthy"
        for r in results.values()
    )

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "components": results,
        "timestamp": time.time()
    }
