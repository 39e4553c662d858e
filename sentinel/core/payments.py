"""
Платёжный шлюз — модель расчётного слоя хост-среды.

Очередь заявок держит депозиты на своём адресе хранения и двигает их
только через шлюз. In-memory реализация ведёт балансы сама и умеет
вызывать хуки получателей (аналог receive() у контракта), чтобы
тестировать отказ получателя и повторный вход.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Protocol

from .errors import InvalidInput, TransferFailed
from .types import Identity, is_null_identity

logger = logging.getLogger(__name__)

ReceiverHook = Callable[[Identity, int], Awaitable[None]]


class PaymentGateway(Protocol):
    """Интерфейс расчётного слоя."""

    async def balance_of(self, identity: Identity) -> int:
        ...

    async def transfer(self, sender: Identity, recipient: Identity, amount: int) -> None:
        ...


class InMemoryPaymentGateway:
    """Балансы в памяти процесса."""

    def __init__(self, balances: Optional[Dict[Identity, int]] = None):
        self._balances: Dict[Identity, int] = dict(balances or {})
        self._receivers: Dict[Identity, ReceiverHook] = {}

    async def balance_of(self, identity: Identity) -> int:
        return self._balances.get(identity, 0)

    def mint(self, identity: Identity, amount: int) -> int:
        """Начислить средства (faucet для dev/тестов)."""
        if is_null_identity(identity):
            raise InvalidInput("identity is required")
        if amount < 0:
            raise InvalidInput("amount must be non-negative")
        self._balances[identity] = self._balances.get(identity, 0) + amount
        return self._balances[identity]

    def register_receiver(self, identity: Identity, hook: Optional[ReceiverHook]) -> None:
        """Хук вызывается при каждом входящем переводе на identity."""
        if hook is None:
            self._receivers.pop(identity, None)
        else:
            self._receivers[identity] = hook

    async def transfer(self, sender: Identity, recipient: Identity, amount: int) -> None:
        """
        Перевести amount от sender к recipient.

        Либо перевод проходит целиком, либо балансы не меняются
        и выбрасывается TransferFailed.
        """
        if is_null_identity(recipient):
            raise TransferFailed("recipient is the null identity")
        if amount < 0:
            raise InvalidInput("amount must be non-negative")

        available = self._balances.get(sender, 0)
        if available < amount:
            logger.warning(
                f"Transfer {sender} -> {recipient} rejected: "
                f"balance {available} < {amount}"
            )
            raise TransferFailed(
                f"insufficient balance on {sender}: {available} < {amount}"
            )

        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        hook = self._receivers.get(recipient)
        if hook is None:
            return
        try:
            await hook(sender, amount)
        except Exception as e:
            # Получатель отказался, откатываем движение средств
            self._balances[recipient] -= amount
            self._balances[sender] += amount
            logger.warning(f"Receiver {recipient} rejected transfer of {amount}: {e}")
            raise TransferFailed(f"receiver {recipient} rejected transfer: {e}") from e
