"""Тесты реестра отчётов SentinelRegistry."""

import pytest

from sentinel.core.errors import (
    CooldownActive,
    InvalidInput,
    NotFound,
    OwnershipRenounceDisabled,
    Unauthorized,
)
from sentinel.core.registry import DISCLAIMER, MAX_ISSUES, SentinelRegistry
from sentinel.core.store import InMemoryStateStore

from tests.conftest import ALICE, AUDITOR, BOB, OTHER_TARGET, OWNER, TARGET


class TestAuditors:

    @pytest.mark.asyncio
    async def test_registered_auditor_is_active(self, registry, clock):
        assert await registry.is_auditor(AUDITOR) is True
        info = await registry.get_auditor(AUDITOR)
        assert info.name == "Agent Sentinel"
        assert info.registered_at == clock.now
        assert await registry.is_auditor(ALICE) is False

    @pytest.mark.asyncio
    async def test_only_owner_manages_auditors(self, registry):
        with pytest.raises(Unauthorized):
            await registry.register_auditor(AUDITOR, ALICE, "Alice")
        with pytest.raises(Unauthorized):
            await registry.revoke_auditor(ALICE, AUDITOR)

    @pytest.mark.asyncio
    async def test_register_requires_identity_and_name(self, registry):
        with pytest.raises(InvalidInput):
            await registry.register_auditor(OWNER, "", "Nobody")
        with pytest.raises(InvalidInput):
            await registry.register_auditor(OWNER, ALICE, "   ")
        with pytest.raises(InvalidInput):
            await registry.register_auditor(OWNER, ALICE, 42)
        with pytest.raises(InvalidInput):
            await registry.register_auditor(OWNER, ALICE, None)

    @pytest.mark.asyncio
    async def test_revoked_auditor_cannot_submit(self, registry, events):
        report_id = await registry.submit_audit(AUDITOR, TARGET, 80, "ipfs://a")
        await registry.revoke_auditor(OWNER, AUDITOR)

        assert await registry.is_auditor(AUDITOR) is False
        with pytest.raises(Unauthorized):
            await registry.submit_audit(AUDITOR, OTHER_TARGET, 80, "ipfs://b")
        # Отчёт остаётся в реестре
        assert (await registry.get_audit(report_id)).auditor == AUDITOR
        assert events.recent(name="AuditorRevoked")[0].args["auditor"] == AUDITOR

        with pytest.raises(NotFound):
            await registry.revoke_auditor(OWNER, AUDITOR)

    @pytest.mark.asyncio
    async def test_reregistration_keeps_history(self, registry, clock):
        registered_at = (await registry.get_auditor(AUDITOR)).registered_at
        await registry.submit_audit(AUDITOR, TARGET, 80, "ipfs://a")
        await registry.revoke_auditor(OWNER, AUDITOR)
        clock.advance(100)

        await registry.register_auditor(OWNER, AUDITOR, "Sentinel v2")

        info = await registry.get_auditor(AUDITOR)
        assert info.active is True
        assert info.name == "Sentinel v2"
        assert info.registered_at == registered_at
        assert info.report_ids == [1]

    @pytest.mark.asyncio
    async def test_list_auditors(self, registry, clock):
        clock.advance(1)
        await registry.register_auditor(OWNER, BOB, "Bob")
        assert [a.identity for a in await registry.list_auditors()] == [AUDITOR, BOB]


class TestReports:

    @pytest.mark.asyncio
    async def test_ids_are_sequential(self, registry, clock):
        first = await registry.submit_audit(AUDITOR, TARGET, 87, "ipfs://one", critical=1, low=3)
        second = await registry.submit_audit(AUDITOR, OTHER_TARGET, 95, "ipfs://two")
        clock.advance(60)
        third = await registry.submit_audit(AUDITOR, TARGET, 90, "ipfs://three")

        assert (first, second, third) == (1, 2, 3)
        report = await registry.get_audit(1)
        assert report.score == 87
        assert report.critical == 1
        assert report.low == 3
        assert report.total_issues == 4
        assert await registry.get_audits_for_target(TARGET) == [1, 3]
        assert (await registry.get_latest_audit(TARGET)).id == 3
        assert (await registry.get_auditor(AUDITOR)).report_ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_record_aliases(self, registry):
        report_id = await registry.create_record(AUDITOR, TARGET, 50, "ipfs://x")
        assert (await registry.get_record(report_id)).report_uri == "ipfs://x"

    @pytest.mark.asyncio
    async def test_only_auditors_submit(self, registry):
        with pytest.raises(Unauthorized):
            await registry.submit_audit(OWNER, TARGET, 50, "ipfs://x")
        assert await registry.get_audit_count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score,counts", [
        (-1, {}),
        (101, {}),
        (50, {"critical": -1}),
        (50, {"low": MAX_ISSUES + 1}),
        (50, {"high": MAX_ISSUES, "medium": 1}),
        (True, {}),
    ])
    async def test_validation(self, registry, score, counts):
        with pytest.raises(InvalidInput):
            await registry.submit_audit(AUDITOR, TARGET, score, "ipfs://x", **counts)
        assert await registry.get_audit_count() == 0

    @pytest.mark.asyncio
    async def test_boundaries_accepted(self, registry):
        await registry.submit_audit(AUDITOR, TARGET, 0, "ipfs://zero")
        await registry.submit_audit(AUDITOR, OTHER_TARGET, 100, "ipfs://max", low=MAX_ISSUES)
        assert await registry.get_audit_count() == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target,uri", [
        ("", "ipfs://x"), (TARGET, ""), (TARGET, "  "), (TARGET, None), (TARGET, b"ipfs://x"),
    ])
    async def test_empty_fields_rejected(self, registry, target, uri):
        with pytest.raises(InvalidInput):
            await registry.submit_audit(AUDITOR, target, 50, uri)

    @pytest.mark.asyncio
    async def test_cooldown_per_target(self, registry, clock):
        await registry.submit_audit(AUDITOR, TARGET, 50, "ipfs://a")

        clock.advance(59)
        with pytest.raises(CooldownActive):
            await registry.submit_audit(AUDITOR, TARGET, 60, "ipfs://b")
        # Другая цель не ограничена
        await registry.submit_audit(AUDITOR, OTHER_TARGET, 60, "ipfs://c")

        clock.advance(1)
        assert await registry.submit_audit(AUDITOR, TARGET, 60, "ipfs://b") == 3

    @pytest.mark.asyncio
    async def test_contracts_count_counts_reports(self, registry, clock):
        await registry.submit_audit(AUDITOR, TARGET, 50, "ipfs://a")
        clock.advance(60)
        await registry.submit_audit(AUDITOR, TARGET, 70, "ipfs://b")

        assert await registry.get_audited_contracts_count() == 2
        assert await registry.get_audit_count() == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("report_id", [0, 1, -3])
    async def test_unknown_report(self, registry, report_id):
        with pytest.raises(NotFound):
            await registry.get_audit(report_id)

    @pytest.mark.asyncio
    async def test_latest_for_unaudited_target(self, registry):
        assert await registry.get_audits_for_target(TARGET) == []
        with pytest.raises(NotFound):
            await registry.get_latest_audit(TARGET)

    @pytest.mark.asyncio
    async def test_submit_event(self, registry, events):
        await registry.submit_audit(AUDITOR, TARGET, 42, "ipfs://a")
        [event] = events.recent(name="AuditSubmitted")
        assert event.source == "SentinelRegistry"
        assert event.args == {
            "report_id": 1,
            "target_address": TARGET,
            "auditor": AUDITOR,
            "score": 42,
        }

    @pytest.mark.asyncio
    async def test_disclaimer(self, registry):
        assert registry.disclaimer() == DISCLAIMER


class TestOwnershipAndPersistence:

    @pytest.mark.asyncio
    async def test_renounce_disabled(self, registry):
        with pytest.raises(OwnershipRenounceDisabled):
            await registry.renounce_ownership(OWNER)
        assert registry.owner == OWNER

    @pytest.mark.asyncio
    async def test_transfer_ownership(self, registry):
        await registry.transfer_ownership(OWNER, BOB)
        with pytest.raises(Unauthorized):
            await registry.register_auditor(OWNER, ALICE, "Alice")
        await registry.register_auditor(BOB, ALICE, "Alice")

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, clock):
        store = InMemoryStateStore(namespace="registry")
        registry = SentinelRegistry(OWNER, store=store, clock=clock)
        await registry.load()
        await registry.register_auditor(OWNER, AUDITOR, "Sentinel")
        await registry.submit_audit(AUDITOR, TARGET, 77, "ipfs://a", high=2)
        await registry.submit_audit(AUDITOR, OTHER_TARGET, 88, "ipfs://b")

        restarted = SentinelRegistry(BOB, store=store, clock=clock)
        await restarted.load()

        assert restarted.owner == OWNER
        assert await restarted.get_audit_count() == 2
        assert (await restarted.get_audit(1)).high == 2
        assert await restarted.get_audits_for_target(OTHER_TARGET) == [2]
        assert (await restarted.get_auditor(AUDITOR)).report_ids == [1, 2]
        # Кулдаун восстановлен из временных меток
        with pytest.raises(CooldownActive):
            await restarted.submit_audit(AUDITOR, TARGET, 10, "ipfs://c")
