"""
Модели данных реестра и очереди заявок.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from .types import Identity, RequestStatus


@dataclass
class AuditRequest:
    """Заявка на аудит — одна на каждый депозит."""

    id: int
    requester: Identity
    target_address: Identity
    payment: int
    status: RequestStatus = RequestStatus.PENDING
    requested_at: int = 0
    completed_at: int = 0  # 0 пока не completed
    report_id: int = 0  # 0 пока не completed

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "id": self.id,
            "requester": self.requester,
            "target_address": self.target_address,
            "payment": self.payment,
            "status": self.status.value,
            "requested_at": self.requested_at,
            "completed_at": self.completed_at,
            "report_id": self.report_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRequest":
        return cls(
            id=int(data["id"]),
            requester=data["requester"],
            target_address=data["target_address"],
            payment=int(data["payment"]),
            status=RequestStatus(data["status"]),
            requested_at=int(data.get("requested_at", 0)),
            completed_at=int(data.get("completed_at", 0)),
            report_id=int(data.get("report_id", 0)),
        )


@dataclass(frozen=True)
class AuditReport:
    """Отчёт об аудите в реестре. Неизменяем после записи."""

    id: int
    target_address: Identity
    auditor: Identity
    score: int  # 0-100, считается вне системы
    report_uri: str  # IPFS CID или URI, хранится как есть
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    timestamp: int = 0

    @property
    def total_issues(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target_address": self.target_address,
            "auditor": self.auditor,
            "score": self.score,
            "report_uri": self.report_uri,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditReport":
        return cls(
            id=int(data["id"]),
            target_address=data["target_address"],
            auditor=data["auditor"],
            score=int(data["score"]),
            report_uri=data["report_uri"],
            critical=int(data.get("critical", 0)),
            high=int(data.get("high", 0)),
            medium=int(data.get("medium", 0)),
            low=int(data.get("low", 0)),
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class AuditorInfo:
    """Аудитор в реестре: допуск и отображаемое имя."""

    identity: Identity
    name: str
    active: bool = True
    registered_at: int = 0
    report_ids: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "name": self.name,
            "active": self.active,
            "registered_at": self.registered_at,
            "report_ids": list(self.report_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditorInfo":
        return cls(
            identity=data["identity"],
            name=data.get("name", ""),
            active=bool(data.get("active", True)),
            registered_at=int(data.get("registered_at", 0)),
            report_ids=[int(x) for x in data.get("report_ids", [])],
        )
