"""
SentinelRegistry — реестр отчётов об аудите (только добавление).

- id отчётов выдаются последовательно с 1 и не переиспользуются
- отчёт неизменяем после записи
- публиковать могут только активные аудиторы, список ведёт владелец
- между двумя отчётами по одной цели — пауза (cooldown)

Очередь заявок в реестр не обращается: аудитор пишет отчёт сюда
и отдельно передаёт полученный id в complete_work.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .errors import (
    CooldownActive,
    InvalidInput,
    InvalidState,
    NotFound,
    OwnershipRenounceDisabled,
    SentinelError,
    Unauthorized,
)
from .events import Event, EventLog
from .models import AuditorInfo, AuditReport
from .store import InMemoryStateStore, StateStore
from .types import Identity, is_null_identity
from sentinel.infrastructure.clock import SystemClock
from sentinel.infrastructure.metrics import operations_rejected, reports_submitted

logger = logging.getLogger(__name__)

COMPONENT = "SentinelRegistry"

MAX_SCORE = 100
MAX_ISSUES = 1000
DEFAULT_COOLDOWN = 60  # секунды между отчётами по одной цели

DISCLAIMER = (
    "Automated audit report. Scores and findings are produced off-chain and "
    "recorded as submitted; they are not a guarantee of security. "
    "Always review the full report before relying on it."
)


class SentinelRegistry:
    """
    Реестр отчётов.

    Каждая операция сначала целиком валидируется, затем документы
    пишутся в хранилище и только после этого применяются в памяти —
    неудачная запись не оставляет частичного состояния.
    """

    def __init__(
        self,
        owner: Identity,
        *,
        store: Optional[StateStore] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
        cooldown: int = DEFAULT_COOLDOWN,
    ):
        if is_null_identity(owner):
            raise InvalidInput("owner is required")
        if cooldown < 0:
            raise InvalidInput("cooldown must be non-negative")
        self.owner = owner
        self.cooldown = cooldown
        self.store = store if store is not None else InMemoryStateStore(namespace="registry")
        self.events = events if events is not None else EventLog()
        self._clock = clock if clock is not None else SystemClock()

        self._reports: List[AuditReport] = []  # id = индекс + 1
        self._auditors: Dict[Identity, AuditorInfo] = {}
        self._by_target: Dict[Identity, List[int]] = {}
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Загрузить реестр из хранилища (или сохранить пустой)."""
        async with self._lock:
            meta = await self.store.read("meta")
            if meta is None:
                await self.store.write({"meta": self._meta()})
                return

            self.owner = meta["owner"]
            count = int(meta["report_count"])
            keys = [f"reports:{i}" for i in range(1, count + 1)]
            docs = await self.store.read_many(keys)
            self._reports = [AuditReport.from_dict(docs[k]) for k in keys if k in docs]
            if len(self._reports) != count:
                raise InvalidState(f"persisted registry has {len(self._reports)} of {count} reports")

            self._by_target = {}
            for report in self._reports:
                self._by_target.setdefault(report.target_address, []).append(report.id)

            auditor_keys = await self.store.keys("auditors:")
            auditor_docs = await self.store.read_many(auditor_keys)
            self._auditors = {
                doc["identity"]: AuditorInfo.from_dict(doc) for doc in auditor_docs.values()
            }
            logger.info(f"{COMPONENT}: loaded {count} reports, {len(self._auditors)} auditors")

    # ==================== Аудиторы ====================

    async def register_auditor(self, caller: Identity, auditor: Identity, name: str) -> None:
        """Допустить аудитора (или переименовать и вернуть допуск)."""
        async with self._guard("register_auditor"):
            self._only_owner(caller)
            if is_null_identity(auditor):
                raise InvalidInput("auditor is required")
            if not isinstance(name, str) or not name.strip():
                raise InvalidInput("auditor name is required")

            existing = self._auditors.get(auditor)
            info = AuditorInfo(
                identity=auditor,
                name=name.strip(),
                active=True,
                registered_at=existing.registered_at if existing else self._clock(),
                report_ids=list(existing.report_ids) if existing else [],
            )
            await self.store.write({f"auditors:{auditor}": info.to_dict()})
            self._auditors[auditor] = info

        await self._publish("AuditorRegistered", {"auditor": auditor, "name": info.name})

    async def revoke_auditor(self, caller: Identity, auditor: Identity) -> None:
        """Отозвать допуск. Уже записанные отчёты остаются."""
        async with self._guard("revoke_auditor"):
            self._only_owner(caller)
            info = self._auditors.get(auditor)
            if info is None or not info.active:
                raise NotFound(f"auditor {auditor} is not registered")

            revoked = AuditorInfo(
                identity=info.identity,
                name=info.name,
                active=False,
                registered_at=info.registered_at,
                report_ids=list(info.report_ids),
            )
            await self.store.write({f"auditors:{auditor}": revoked.to_dict()})
            self._auditors[auditor] = revoked

        await self._publish("AuditorRevoked", {"auditor": auditor, "name": info.name})

    async def is_auditor(self, identity: Identity) -> bool:
        info = self._auditors.get(identity)
        return bool(info and info.active)

    async def get_auditor(self, identity: Identity) -> AuditorInfo:
        info = self._auditors.get(identity)
        if info is None:
            raise NotFound(f"auditor {identity} is not registered")
        return info

    async def list_auditors(self) -> List[AuditorInfo]:
        return sorted(self._auditors.values(), key=lambda a: a.registered_at)

    # ==================== Отчёты ====================

    async def submit_audit(
        self,
        caller: Identity,
        target_address: Identity,
        score: int,
        report_uri: str,
        critical: int = 0,
        high: int = 0,
        medium: int = 0,
        low: int = 0,
    ) -> int:
        """
        Записать отчёт. Возвращает новый id (с 1, по возрастанию).

        Оценка и находки считаются вне системы и записываются как есть.
        """
        async with self._guard("submit_audit"):
            info = self._auditors.get(caller)
            if info is None or not info.active:
                raise Unauthorized("caller is not an active auditor")
            if is_null_identity(target_address):
                raise InvalidInput("target address is required")
            if not isinstance(report_uri, str) or not report_uri.strip():
                raise InvalidInput("report uri is required")
            self._validate_findings(score, critical, high, medium, low)

            now = self._clock()
            last_ids = self._by_target.get(target_address)
            if last_ids:
                last = self._reports[last_ids[-1] - 1]
                if now < last.timestamp + self.cooldown:
                    raise CooldownActive(
                        f"target {target_address} was audited at {last.timestamp}, "
                        f"next report allowed at {last.timestamp + self.cooldown}"
                    )

            report = AuditReport(
                id=len(self._reports) + 1,
                target_address=target_address,
                auditor=caller,
                score=score,
                report_uri=report_uri.strip(),
                critical=critical,
                high=high,
                medium=medium,
                low=low,
                timestamp=now,
            )
            updated = AuditorInfo(
                identity=info.identity,
                name=info.name,
                active=info.active,
                registered_at=info.registered_at,
                report_ids=list(info.report_ids) + [report.id],
            )
            await self.store.write({
                f"reports:{report.id}": report.to_dict(),
                f"auditors:{caller}": updated.to_dict(),
                "meta": self._meta(report_count=report.id),
            })

            self._reports.append(report)
            self._by_target.setdefault(target_address, []).append(report.id)
            self._auditors[caller] = updated

        logger.info(f"Report {report.id} for {target_address} by {caller} (score {score})")
        reports_submitted.inc()
        await self._publish("AuditSubmitted", {
            "report_id": report.id,
            "target_address": target_address,
            "auditor": caller,
            "score": score,
        })
        return report.id

    # Интерфейс хранилища, на который опирается внешний мир
    create_record = submit_audit

    async def get_audit(self, report_id: int) -> AuditReport:
        if (
            not isinstance(report_id, int)
            or isinstance(report_id, bool)
            or not 1 <= report_id <= len(self._reports)
        ):
            raise NotFound(f"report {report_id} not found")
        return self._reports[report_id - 1]

    get_record = get_audit

    async def get_audits_for_target(self, target_address: Identity) -> List[int]:
        return list(self._by_target.get(target_address, []))

    async def get_latest_audit(self, target_address: Identity) -> AuditReport:
        ids = self._by_target.get(target_address)
        if not ids:
            raise NotFound(f"no reports for {target_address}")
        return self._reports[ids[-1] - 1]

    async def get_audit_count(self) -> int:
        return len(self._reports)

    async def get_audited_contracts_count(self) -> int:
        """
        Количество ОТЧЁТОВ, а не уникальных целей.

        Название вводит в заблуждение, но поведение сохранено буквально:
        две проверки одного контракта дают 2.
        """
        return len(self._reports)

    def disclaimer(self) -> str:
        return DISCLAIMER

    # ==================== Владение ====================

    async def transfer_ownership(self, caller: Identity, new_owner: Identity) -> None:
        async with self._guard("transfer_ownership"):
            self._only_owner(caller)
            if is_null_identity(new_owner):
                raise InvalidInput("new owner is required")
            previous = self.owner
            await self.store.write({"meta": self._meta(owner=new_owner)})
            self.owner = new_owner
        await self._publish("OwnershipTransferred", {"previous": previous, "owner": new_owner})

    async def renounce_ownership(self, caller: Identity) -> None:
        async with self._guard("renounce_ownership"):
            self._only_owner(caller)
            raise OwnershipRenounceDisabled("renouncing ownership is disabled")

    # ==================== Внутреннее ====================

    def _guard(self, name: str):
        return _RegistryOperation(self, name)

    def _only_owner(self, caller: Identity) -> None:
        if caller != self.owner:
            raise Unauthorized("caller is not the owner")

    @staticmethod
    def _validate_findings(score: int, *counts: int) -> None:
        values = (score,) + counts
        if any(not isinstance(v, int) or isinstance(v, bool) for v in values):
            raise InvalidInput("score and issue counts must be integers")
        if not 0 <= score <= MAX_SCORE:
            raise InvalidInput(f"score must be between 0 and {MAX_SCORE}")
        if any(c < 0 for c in counts):
            raise InvalidInput("issue counts must be non-negative")
        if sum(counts) > MAX_ISSUES:
            raise InvalidInput(f"total issue count exceeds {MAX_ISSUES}")

    def _meta(self, report_count: Optional[int] = None, owner: Optional[Identity] = None) -> Dict[str, Any]:
        return {
            "owner": owner or self.owner,
            "report_count": len(self._reports) if report_count is None else report_count,
            "cooldown": self.cooldown,
        }

    async def _publish(self, name: str, args: Dict[str, Any]) -> None:
        await self.events.publish([
            Event(name=name, args=args, timestamp=self._clock(), source=COMPONENT)
        ])


class _RegistryOperation:
    """Сериализует операции реестра и считает отклонённые."""

    def __init__(self, registry: SentinelRegistry, name: str):
        self.registry = registry
        self.name = name

    async def __aenter__(self):
        await self.registry._lock.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.registry._lock.release()
        if exc is not None and isinstance(exc, SentinelError):
            operations_rejected.labels(component=COMPONENT, error=exc_type.__name__).inc()
            logger.info(f"{self.name} rejected: {exc_type.__name__}: {exc}")
        return False
