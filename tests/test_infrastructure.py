"""
Unit tests для infrastructure компонентов.
"""

import pytest

from sentinel.core.events import Event, EventLog
from sentinel.infrastructure.clock import ManualClock, SystemClock
from sentinel.infrastructure.health import check_custody, check_redis, full_health_check
from sentinel.infrastructure.retry import retry_async

from tests.conftest import ALICE, MIN_FEE, OWNER, TARGET


class DummyRedis:
    """Простой mock Redis клиента для health-check'ов."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0

    async def ping(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("redis down")
        return True


class SyncRedis:
    def ping(self):
        return True


# ═══════════════════════════════════════════════════════
# RETRY
# ═══════════════════════════════════════════════════════

class TestRetry:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        calls = []

        @retry_async(max_attempts=3, base_delay=0, jitter=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("boom")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        @retry_async(max_attempts=2, base_delay=0, jitter=0)
        async def broken():
            calls.append(1)
            raise ConnectionError("boom")

        with pytest.raises(ConnectionError):
            await broken()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_other_exceptions_are_not_retried(self):
        calls = []

        @retry_async(max_attempts=5, base_delay=0, exceptions=(ConnectionError,))
        async def wrong():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await wrong()
        assert len(calls) == 1

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            retry_async(max_attempts=0)


# ═══════════════════════════════════════════════════════
# CLOCK
# ═══════════════════════════════════════════════════════

def test_manual_clock():
    clock = ManualClock(100)
    assert clock() == 100
    assert clock.advance(50) == 150
    assert clock() == 150
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_system_clock_is_integer():
    assert isinstance(SystemClock()(), int)


# ═══════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════

class TestEventLog:

    @pytest.mark.asyncio
    async def test_recent_filters_and_limits(self):
        log = EventLog(max_size=3)
        await log.publish([Event("A", {"i": i}) for i in range(4)])
        await log.publish([Event("B")])

        assert len(log) == 3
        assert [e.args.get("i") for e in log.recent()] == [2, 3, None]
        assert [e.name for e in log.recent(limit=1)] == ["B"]
        assert len(log.recent(name="A")) == 2

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_publish(self):
        log = EventLog()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        async def collect(event):
            received.append(event.name)

        log.subscribe(broken)
        log.subscribe(collect)
        await log.publish([Event("A"), Event("B")])

        assert received == ["A", "B"]
        assert len(log) == 2


# ═══════════════════════════════════════════════════════
# HEALTH
# ═══════════════════════════════════════════════════════

class TestHealth:

    @pytest.mark.asyncio
    async def test_check_redis_async_client(self):
        result = await check_redis(DummyRedis())
        assert result["status"] == "healthy"
        assert "latency_ms" in result

    @pytest.mark.asyncio
    async def test_check_redis_sync_client(self):
        result = await check_redis(SyncRedis())
        assert result["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_check_redis_retries_transient_failure(self):
        client = DummyRedis(failures=1)
        result = await check_redis(client)
        assert result["status"] == "healthy"
        assert client.calls == 2

    @pytest.mark.asyncio
    async def test_check_redis_unhealthy(self):
        result = await check_redis(DummyRedis(failures=10))
        assert result["status"] == "unhealthy"
        assert "redis down" in result["error"]

    @pytest.mark.asyncio
    async def test_custody_healthy_then_insolvent(self, queue):
        await queue.submit_request(ALICE, TARGET, MIN_FEE)
        result = await check_custody(queue)
        assert result == {"status": "healthy", "balance": MIN_FEE, "outstanding": MIN_FEE}

        await queue.withdraw_funds(OWNER, OWNER)
        result = await check_custody(queue)
        assert result["status"] == "insolvent"
        assert result["balance"] == 0
        assert result["outstanding"] == MIN_FEE

    @pytest.mark.asyncio
    async def test_full_health_check(self, queue):
        report = await full_health_check({"redis": DummyRedis(), "requests": queue})
        assert report["status"] == "healthy"
        assert set(report["components"]) == {"redis", "custody"}

        report = await full_health_check({"redis": DummyRedis(failures=10)})
        assert report["status"] == "unhealthy"
