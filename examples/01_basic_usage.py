#!/usr/bin/env python3
"""
01. Базовое использование Agent Sentinel

Демонстрирует:
- Инициализацию SentinelService (всё в памяти, управляемые часы)
- Заявку с депозитом → отчёт в реестре → завершение заявки
- Заявку без реакции аудитора → возврат после окна
- Опасный вывод средств при открытых заявках

Требования:
- Ничего внешнего: Redis не нужен

Использование:
    python examples/01_basic_usage.py
"""

import asyncio
import sys
from pathlib import Path

# Корень проекта в path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Загрузить переменные окружения
load_dotenv()

from sentinel import SentinelService, TransferFailed, WEI_PER_XRP
from sentinel.core.payments import InMemoryPaymentGateway
from sentinel.infrastructure.clock import ManualClock

OWNER = "0xowner"
ALICE = "0xalice"
TARGET = "0xc0ffee"


async def main():
    """Основной пример использования"""

    print("=" * 60)
    print("  AGENT SENTINEL - Basic Usage Example")
    print("=" * 60)
    print()

    # ═══════════════════════════════════════════════════════════
    # 1. ИНИЦИАЛИЗАЦИЯ
    # ═══════════════════════════════════════════════════════════

    clock = ManualClock()
    gateway = InMemoryPaymentGateway()
    gateway.mint(ALICE, 100 * WEI_PER_XRP)

    service = SentinelService({"owner_address": OWNER}, gateway=gateway, clock=clock)
    await service.initialize()

    config = await service.requests.get_config()
    fee = config["minimum_fee"]
    print("✓ Sentinel initialized")
    print(f"  Owner/auditor: {config['owner']}")
    print(f"  Minimum fee:   {fee / WEI_PER_XRP:g} XRP")
    print(f"  Refund window: {config['refund_timeout'] // 86400} days")
    print()

    # ═══════════════════════════════════════════════════════════
    # 2. ЗАЯВКА → ОТЧЁТ → ЗАВЕРШЕНИЕ
    # ═══════════════════════════════════════════════════════════

    request_id = await service.requests.submit_request(ALICE, TARGET, fee)
    print(f"📝 Alice submitted request #{request_id}")

    await service.requests.start_work(OWNER, request_id)
    report_id = await service.registry.submit_audit(
        OWNER, TARGET, 87, "ipfs://QmExampleReport", high=1, low=4
    )
    await service.requests.complete_work(OWNER, request_id, report_id)

    request = await service.requests.get_request(request_id)
    print(f"🏁 Request #{request_id}: {request.status.value}, report #{request.report_id}")
    print()

    # ═══════════════════════════════════════════════════════════
    # 3. ВОЗВРАТ ПОСЛЕ ОКНА
    # ═══════════════════════════════════════════════════════════

    second = await service.requests.submit_request(ALICE, TARGET, fee)
    clock.advance(config["refund_timeout"])
    amount = await service.requests.refund_request(ALICE, second)
    print(f"💸 Request #{second} refunded: {amount / WEI_PER_XRP:g} XRP")
    print(f"   Pending now: {await service.requests.list_pending()}")
    print()

    # ═══════════════════════════════════════════════════════════
    # 4. ВЫВОД ПРИ ОТКРЫТОЙ ЗАЯВКЕ
    # ═══════════════════════════════════════════════════════════

    third = await service.requests.submit_request(ALICE, TARGET, fee)
    withdrawn = await service.requests.withdraw_funds(OWNER, OWNER)
    print(f"🏦 Owner withdrew {withdrawn / WEI_PER_XRP:g} XRP")
    health = await service.health()
    print(f"   Custody: {health['components']['custody']['status']}")

    clock.advance(config["refund_timeout"])
    try:
        await service.requests.refund_request(ALICE, third)
    except TransferFailed as e:
        print(f"   ❌ Refund of #{third} failed: {e}")
    print()

    print("📜 Events:")
    for event in service.events.recent(limit=20):
        print(f"   {event.source}.{event.name} {event.args}")

    await service.close()


if __name__ == "__main__":
    asyncio.run(main())
