"""Общие перечисления и типы для Agent Sentinel."""

from enum import Enum

# Идентичность (адрес): просто строка, например "0xe5dB...ea37"
Identity = str

ZERO_ADDRESS: Identity = "0x0000000000000000000000000000000000000000"

# 1 XRP = 10**18 wei (EVM sidechain)
WEI_PER_XRP = 10 ** 18

SECONDS_PER_DAY = 24 * 3600


class RequestStatus(Enum):
    """Статус заявки на аудит."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETED, RequestStatus.REFUNDED)


# Разрешённые переходы: pending → in_progress → completed, pending → completed,
# pending → refunded. Из терминальных статусов переходов нет.
TRANSITIONS = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,
        RequestStatus.REFUNDED,
    }),
    RequestStatus.IN_PROGRESS: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.REFUNDED: frozenset(),
}


def is_null_identity(identity) -> bool:
    """Пустой адрес или нулевой адрес считаются отсутствующими."""
    if not identity or not isinstance(identity, str):
        return True
    return identity.strip().lower() == ZERO_ADDRESS


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in TRANSITIONS[current]
