"""
Pytest configuration and fixtures.

Использование:
    pytest tests/ -v
"""

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Загрузить .env файл
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Корень проекта в path (пакеты sentinel, backend, cli)
sys.path.insert(0, str(Path(__file__).parent.parent))

from sentinel.core.events import EventLog
from sentinel.core.payments import InMemoryPaymentGateway
from sentinel.core.registry import SentinelRegistry
from sentinel.core.requests import SentinelRequests
from sentinel.core.store import InMemoryStateStore
from sentinel.core.types import SECONDS_PER_DAY
from sentinel.infrastructure.clock import ManualClock


# ═══════════════════════════════════════════════════════
# IDENTITIES & POLICY
# ═══════════════════════════════════════════════════════

OWNER = "0xowner"
AUDITOR = "0xauditor"
ALICE = "0xalice"
BOB = "0xbob"
MALLORY = "0xmallory"
TARGET = "0xtarget"
OTHER_TARGET = "0xother"

MIN_FEE = 5
SEVEN_DAYS = 7 * SECONDS_PER_DAY
START_BALANCE = 1_000


# ═══════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════

@pytest.fixture
def clock():
    """Управляемые часы."""
    return ManualClock(1_700_000_000)


@pytest.fixture
def gateway():
    """Платёжный шлюз с начальными балансами заказчиков."""
    gw = InMemoryPaymentGateway()
    for identity in (ALICE, BOB, MALLORY):
        gw.mint(identity, START_BALANCE)
    return gw


@pytest.fixture
def store():
    return InMemoryStateStore(namespace="requests")


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
async def queue(gateway, clock, store, events):
    """Очередь заявок: комиссия 5, окно возврата 7 дней."""
    q = SentinelRequests(
        OWNER,
        AUDITOR,
        gateway=gateway,
        store=store,
        events=events,
        clock=clock,
        minimum_fee=MIN_FEE,
        refund_timeout=SEVEN_DAYS,
    )
    await q.load()
    return q


@pytest.fixture
async def registry(clock, events):
    """Реестр с одним допущенным аудитором."""
    reg = SentinelRegistry(OWNER, clock=clock, events=events, cooldown=60)
    await reg.load()
    await reg.register_auditor(OWNER, AUDITOR, "Agent Sentinel")
    return reg


# ═══════════════════════════════════════════════════════
# MARKERS
# ═══════════════════════════════════════════════════════

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires Redis)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow"
    )
