"""
E2E‑тесты HTTP API (FastAPI) поверх backend.main.app.

Глобальный backend.main.sentinel подменяется сервисом в памяти
с управляемыми часами, без Redis и без lifespan.
"""

import pytest
from httpx import ASGITransport, AsyncClient

import backend.main as main_mod
from backend.config import get_settings
from backend.main import app
from sentinel.core.payments import InMemoryPaymentGateway
from sentinel.infrastructure.clock import ManualClock
from sentinel.service import SentinelService

from tests.conftest import ALICE, AUDITOR, MALLORY, MIN_FEE, OWNER, SEVEN_DAYS, TARGET


@pytest.fixture
def api_clock():
    return ManualClock(1_700_000_000)


@pytest.fixture
async def service(monkeypatch, api_clock):
    gateway = InMemoryPaymentGateway({ALICE: 1_000})
    service = SentinelService(
        {
            "owner_address": OWNER,
            "auditor_address": AUDITOR,
            "min_audit_fee": MIN_FEE,
            "refund_timeout_seconds": SEVEN_DAYS,
        },
        gateway=gateway,
        clock=api_clock,
    )
    await service.initialize()
    monkeypatch.setattr(main_mod, "sentinel", service)
    return service


@pytest.fixture
async def client(service):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def as_(identity: str) -> dict:
    return {"X-Caller": identity}


# ═══════════════════════════════════════════════════════
# HEALTH
# ═══════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_health_ok(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["owner"] == OWNER
    assert data["auditor"] == AUDITOR
    assert data["components"]["custody"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_not_initialized(monkeypatch):
    monkeypatch.setattr(main_mod, "sentinel", None)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        assert (await ac.get("/health")).json()["status"] == "starting"
        assert (await ac.get("/requests/pending")).status_code == 503


# ═══════════════════════════════════════════════════════
# REQUEST LIFECYCLE
# ═══════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_submit_audit_complete_flow(client):
    response = await client.post(
        "/requests", json={"target_address": TARGET, "deposit_amount": 5}, headers=as_(ALICE)
    )
    assert response.status_code == 200
    assert response.json() == {"request_id": 1}
    assert (await client.get("/requests/pending")).json() == {"request_ids": [1]}

    response = await client.post(
        "/registry/audits",
        json={"target_address": TARGET, "score": 87, "report_uri": "ipfs://QmReport", "high": 2},
        headers=as_(AUDITOR),
    )
    assert response.json() == {"report_id": 1}

    response = await client.post("/requests/1/complete", json={"report_id": 1}, headers=as_(AUDITOR))
    assert response.status_code == 200

    data = (await client.get("/requests/1")).json()
    assert data["status"] == "completed"
    assert data["report_id"] == 1
    assert data["payment"] == 5

    response = await client.post("/requests/1/complete", json={"report_id": 2}, headers=as_(AUDITOR))
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidState"

    assert (await client.get("/requests/pending")).json() == {"request_ids": []}
    assert (await client.get("/requests/by-requester/" + ALICE)).json() == {"request_ids": [1]}


@pytest.mark.asyncio
async def test_refund_flow(client, api_clock):
    await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 5}, headers=as_(ALICE))

    response = await client.post("/requests/1/refund", headers=as_(ALICE))
    assert response.status_code == 425
    assert response.json()["error"] == "TimeoutNotReached"

    api_clock.advance(SEVEN_DAYS)
    response = await client.post("/requests/1/refund", headers=as_(MALLORY))
    assert response.status_code == 403

    response = await client.post("/requests/1/refund", headers=as_(ALICE))
    assert response.json() == {"request_id": 1, "amount": 5}
    assert (await client.get(f"/accounts/{ALICE}/balance")).json()["balance"] == 1_000


@pytest.mark.asyncio
async def test_error_mapping(client):
    response = await client.post(
        "/requests", json={"target_address": TARGET, "deposit_amount": 4}, headers=as_(ALICE)
    )
    assert response.status_code == 402
    assert response.json() == {
        "error": "InsufficientPayment",
        "message": "deposit 4 below minimum fee 5",
    }

    assert (await client.get("/requests/1")).status_code == 404
    assert (await client.post("/requests/1/start", headers=as_(ALICE))).status_code == 403


@pytest.mark.asyncio
async def test_caller_header_required(client):
    response = await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 5})
    assert response.status_code == 422


# ═══════════════════════════════════════════════════════
# ADMIN
# ═══════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_admin_policy(client):
    response = await client.put("/admin/minimum-fee", json={"amount": 1}, headers=as_(ALICE))
    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"

    assert (await client.put("/admin/minimum-fee", json={"amount": 1}, headers=as_(OWNER))).status_code == 200
    assert (await client.post("/admin/fee-exemptions", json={"identity": TARGET}, headers=as_(OWNER))).status_code == 200
    assert (await client.post("/admin/pause", headers=as_(OWNER))).status_code == 200

    response = await client.post(
        "/requests", json={"target_address": TARGET, "deposit_amount": 0}, headers=as_(ALICE)
    )
    assert response.status_code == 423

    await client.post("/admin/unpause", headers=as_(OWNER))
    config = (await client.get("/requests/config")).json()
    assert config["minimum_fee"] == 1
    assert config["paused"] is False


@pytest.mark.asyncio
async def test_withdraw(client):
    response = await client.post("/admin/withdraw", json={"identity": OWNER}, headers=as_(OWNER))
    assert response.status_code == 409
    assert response.json()["error"] == "NoBalance"

    await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 5}, headers=as_(ALICE))
    response = await client.post("/admin/withdraw", json={"identity": OWNER}, headers=as_(OWNER))
    assert response.json() == {"to": OWNER, "amount": 5}

    balance = (await client.get("/requests/balance")).json()
    assert balance == {"balance": 0, "outstanding": 5}
    assert (await client.get("/health")).json()["status"] == "degraded"


# ═══════════════════════════════════════════════════════
# REGISTRY / ACCOUNTS / EVENTS
# ═══════════════════════════════════════════════════════

@pytest.mark.asyncio
async def test_registry_endpoints(client):
    auditors = (await client.get("/registry/auditors")).json()
    assert [a["identity"] for a in auditors] == [AUDITOR]

    await client.post(
        "/registry/audits",
        json={"target_address": TARGET, "score": 70, "report_uri": "ipfs://a"},
        headers=as_(AUDITOR),
    )
    response = await client.post(
        "/registry/audits",
        json={"target_address": TARGET, "score": 71, "report_uri": "ipfs://b"},
        headers=as_(AUDITOR),
    )
    assert response.status_code == 429

    latest = (await client.get(f"/registry/targets/{TARGET}/latest")).json()
    assert latest["score"] == 70
    assert latest["disclaimer"]
    assert (await client.get(f"/registry/targets/{TARGET}/audits")).json() == {"report_ids": [1]}

    stats = (await client.get("/registry/stats")).json()
    assert stats["audit_count"] == 1
    assert stats["audited_contracts_count"] == 1


@pytest.mark.asyncio
async def test_faucet_disabled_by_default(client, monkeypatch):
    monkeypatch.setenv("SENTINEL_FAUCET_ENABLED", "false")
    get_settings.cache_clear()
    try:
        response = await client.post(f"/accounts/{MALLORY}/mint", json={"amount": 10})
        assert response.status_code == 403
    finally:
        get_settings.cache_clear()


@pytest.mark.asyncio
async def test_faucet_enabled(client, monkeypatch):
    monkeypatch.setenv("SENTINEL_FAUCET_ENABLED", "true")
    get_settings.cache_clear()
    try:
        response = await client.post(f"/accounts/{MALLORY}/mint", json={"amount": 10})
        assert response.json() == {"identity": MALLORY, "balance": 10}
    finally:
        get_settings.cache_clear()


@pytest.mark.asyncio
async def test_events_feed(client):
    await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 5}, headers=as_(ALICE))
    await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 1}, headers=as_(ALICE))

    events = (await client.get("/events", params={"name": "AuditRequested"})).json()["events"]
    assert len(events) == 1
    assert events[0]["source"] == "SentinelRequests"
    assert events[0]["args"]["request_id"] == 1


@pytest.mark.asyncio
async def test_metrics_exposed(client):
    await client.post("/requests", json={"target_address": TARGET, "deposit_amount": 5}, headers=as_(ALICE))
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "sentinel_requests_submitted_total" in response.text
