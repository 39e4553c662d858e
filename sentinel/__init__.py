"""
Agent Sentinel — реестр отчётов об аудите и очередь заявок с эскроу.

Основные компоненты:
- SentinelRequests: очередь заявок (жизненный цикл, депозиты, возвраты)
- SentinelRegistry: реестр отчётов (только добавление)
- SentinelService: фасад, связывающий оба компонента
- InMemoryPaymentGateway: расчётный слой в памяти
- RedisStateStore / InMemoryStateStore: хранилища состояния
"""

from sentinel.core.errors import (
    CooldownActive,
    InsufficientPayment,
    InvalidInput,
    InvalidState,
    NoBalance,
    NotFound,
    OwnershipRenounceDisabled,
    Paused,
    ReentrantCall,
    SentinelError,
    StateOutOfSync,
    TimeoutNotReached,
    TransferFailed,
    Unauthorized,
)
from sentinel.core.events import Event, EventLog
from sentinel.core.models import AuditorInfo, AuditReport, AuditRequest
from sentinel.core.payments import InMemoryPaymentGateway, PaymentGateway
from sentinel.core.registry import SentinelRegistry
from sentinel.core.requests import SentinelRequests
from sentinel.core.store import InMemoryStateStore, RedisStateStore, StateStore
from sentinel.core.types import WEI_PER_XRP, ZERO_ADDRESS, RequestStatus
from sentinel.service import SentinelService

__version__ = "1.1.0"

__all__ = [
    # Основные классы
    "SentinelService",
    "SentinelRequests",
    "SentinelRegistry",
    "InMemoryPaymentGateway",
    "PaymentGateway",
    "InMemoryStateStore",
    "RedisStateStore",
    "StateStore",
    "EventLog",

    # Модели данных
    "AuditRequest",
    "AuditReport",
    "AuditorInfo",
    "Event",
    "RequestStatus",

    # Ошибки
    "SentinelError",
    "InvalidInput",
    "InsufficientPayment",
    "NotFound",
    "InvalidState",
    "Unauthorized",
    "TimeoutNotReached",
    "TransferFailed",
    "NoBalance",
    "ReentrantCall",
    "Paused",
    "CooldownActive",
    "OwnershipRenounceDisabled",
    "StateOutOfSync",

    # Константы
    "WEI_PER_XRP",
    "ZERO_ADDRESS",

    # Версия
    "__version__",
]
