"""
SentinelRequests — очередь заявок на аудит с эскроу депозитов.

Жизненный цикл заявки:
- PENDING → IN_PROGRESS → COMPLETED
- PENDING → COMPLETED (аудитор может завершить без start_work)
- PENDING → REFUNDED (после окна возврата, по запросу заказчика или владельца)

Принципы:
1. Одна изменяющая операция за раз (asyncio.Lock), без чередования
2. Операция либо коммитится целиком, либо откатывается целиком (журнал)
3. Повторный вход из того же потока управления отклоняется (ContextVar)
4. report_id принимается от аудитора как есть, реестр не опрашивается

Использование:
    queue = SentinelRequests(owner="0xowner", gateway=gateway)
    await queue.load()

    request_id = await queue.submit_request("0xalice", "0xtarget", 5 * WEI_PER_XRP)
    await queue.complete_work("0xowner", request_id, report_id=42)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Set

from .errors import (
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
    Unauthorized,
)
from .events import Event, EventLog
from .models import AuditRequest
from .payments import PaymentGateway
from .store import InMemoryStateStore, StateStore
from .types import (
    SECONDS_PER_DAY,
    WEI_PER_XRP,
    Identity,
    RequestStatus,
    can_transition,
    is_null_identity,
)
from sentinel.infrastructure.clock import SystemClock
from sentinel.infrastructure.metrics import (
    escrow_balance,
    operations_rejected,
    refunded_amount,
    request_transitions,
    requests_submitted,
)

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_FEE = 5 * WEI_PER_XRP
DEFAULT_REFUND_TIMEOUT = 7 * SECONDS_PER_DAY
DEFAULT_CUSTODY_ADDRESS = "sentinel-requests"

COMPONENT = "SentinelRequests"


# ═══════════════════════════════════════════════════════════
# СОСТОЯНИЕ
# ═══════════════════════════════════════════════════════════

@dataclass
class QueueState:
    """Скалярная конфигурация и счётчики очереди."""
    owner: Identity
    auditor: Identity
    minimum_fee: int = DEFAULT_MINIMUM_FEE
    refund_timeout: int = DEFAULT_REFUND_TIMEOUT
    paused: bool = False
    request_count: int = 0
    total_fees_collected: int = 0  # информативный счётчик, не инвариант хранения

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "auditor": self.auditor,
            "minimum_fee": self.minimum_fee,
            "refund_timeout": self.refund_timeout,
            "paused": self.paused,
            "request_count": self.request_count,
            "total_fees_collected": self.total_fees_collected,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueState":
        return cls(
            owner=data["owner"],
            auditor=data["auditor"],
            minimum_fee=int(data["minimum_fee"]),
            refund_timeout=int(data["refund_timeout"]),
            paused=bool(data.get("paused", False)),
            request_count=int(data.get("request_count", 0)),
            total_fees_collected=int(data.get("total_fees_collected", 0)),
        )


@dataclass
class _Journal:
    """Всё, что нужно для отката одной операции."""
    state: QueueState  # снимок до операции
    originals: Dict[int, Optional[AuditRequest]] = field(default_factory=dict)  # None = создана в операции
    new_exemptions: Set[Identity] = field(default_factory=set)
    compensations: List[Callable[[], Awaitable[None]]] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    flushed: bool = False


# ═══════════════════════════════════════════════════════════
# SENTINEL REQUESTS
# ═══════════════════════════════════════════════════════════

class SentinelRequests:
    """
    Очередь заявок на аудит.

    Единственный владелец записей AuditRequest, счётчиков и баланса хранения.
    Средства лежат на `custody_address` в платёжном шлюзе.

    Args:
        owner: Владелец (администратор)
        auditor: Единственный аудитор (по умолчанию — владелец)
        gateway: Платёжный шлюз
        store: Хранилище состояния (по умолчанию — в памяти)
        events: Журнал событий
        clock: Источник времени, unix-секунды
    """

    def __init__(
        self,
        owner: Identity,
        auditor: Optional[Identity] = None,
        *,
        gateway: PaymentGateway,
        store: Optional[StateStore] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
        custody_address: Identity = DEFAULT_CUSTODY_ADDRESS,
        minimum_fee: int = DEFAULT_MINIMUM_FEE,
        refund_timeout: int = DEFAULT_REFUND_TIMEOUT,
    ):
        if is_null_identity(owner):
            raise InvalidInput("owner is required")
        auditor = owner if auditor is None else auditor
        if is_null_identity(auditor):
            raise InvalidInput("auditor is required")
        if is_null_identity(custody_address):
            raise InvalidInput("custody address is required")
        self._check_amount(minimum_fee, "minimum fee")
        self._check_amount(refund_timeout, "refund timeout")

        self.custody_address = custody_address
        self.gateway = gateway
        self.store = store if store is not None else InMemoryStateStore(namespace="requests")
        self.events = events if events is not None else EventLog()
        self._clock = clock if clock is not None else SystemClock()

        self._state = QueueState(
            owner=owner,
            auditor=auditor,
            minimum_fee=minimum_fee,
            refund_timeout=refund_timeout,
        )
        self._requests: List[AuditRequest] = []  # id = индекс + 1
        self._by_requester: Dict[Identity, List[int]] = {}
        self._fee_exempt: Set[Identity] = set()

        self._lock = asyncio.Lock()
        self._active: ContextVar[Optional[str]] = ContextVar(
            f"sentinel_requests_active_{id(self)}", default=None
        )
        self._journal: Optional[_Journal] = None
        self._unsynced: Optional[Dict[str, Any]] = None  # откат, не принятый хранилищем

    # ==================== Загрузка ====================

    async def load(self) -> None:
        """
        Загрузить состояние из хранилища.

        Если состояния нет — сохранить начальную конфигурацию.
        Сохранённое состояние имеет приоритет над аргументами конструктора.
        """
        async with self._lock:
            await self._resync("load")
            config = await self.store.read("config")
            if config is None:
                await self.store.write({
                    "config": self._state.to_dict(),
                    "exemptions": [],
                })
                logger.info(f"{COMPONENT}: fresh state initialized (owner {self._state.owner})")
                return

            state = QueueState.from_dict(config)
            keys = [f"requests:{i}" for i in range(1, state.request_count + 1)]
            docs = await self.store.read_many(keys)
            missing = [k for k in keys if k not in docs]
            if missing:
                raise InvalidState(f"persisted state is missing {missing[0]}")

            self._state = state
            self._requests = [AuditRequest.from_dict(docs[k]) for k in keys]
            self._by_requester = {}
            for request in self._requests:
                self._by_requester.setdefault(request.requester, []).append(request.id)
            self._fee_exempt = set(await self.store.read("exemptions") or [])

            logger.info(
                f"{COMPONENT}: loaded {state.request_count} requests, "
                f"{len(self._fee_exempt)} fee exemptions"
            )

    # ==================== Операции заказчика ====================

    async def submit_request(
        self, caller: Identity, target_address: Identity, deposit_amount: int
    ) -> int:
        """
        Создать заявку и перевести депозит в хранение очереди.

        Депозит и запись создаются атомарно: если запись не удалось
        сохранить, депозит возвращается.
        """
        async with self._operation("submit_request") as journal:
            if self._state.paused:
                raise Paused("request submission is paused")
            if is_null_identity(caller):
                raise InvalidInput("caller is required")
            if is_null_identity(target_address):
                raise InvalidInput("target address is required")
            self._check_amount(deposit_amount, "deposit amount")
            if (
                target_address not in self._fee_exempt
                and deposit_amount < self._state.minimum_fee
            ):
                raise InsufficientPayment(
                    f"deposit {deposit_amount} below minimum fee {self._state.minimum_fee}"
                )

            if deposit_amount > 0:
                await self.gateway.transfer(caller, self.custody_address, deposit_amount)
                journal.compensations.append(
                    lambda: self.gateway.transfer(self.custody_address, caller, deposit_amount)
                )

            request_id = self._state.request_count + 1
            request = AuditRequest(
                id=request_id,
                requester=caller,
                target_address=target_address,
                payment=deposit_amount,
                status=RequestStatus.PENDING,
                requested_at=self._clock(),
            )
            journal.originals[request_id] = None
            self._requests.append(request)
            self._by_requester.setdefault(caller, []).append(request_id)
            self._state.request_count = request_id
            self._state.total_fees_collected += deposit_amount

            self._emit("AuditRequested", {
                "request_id": request_id,
                "requester": caller,
                "target_address": target_address,
                "deposit_amount": deposit_amount,
            })

        logger.info(
            f"Request {request_id} submitted by {caller} for {target_address} "
            f"(deposit {deposit_amount})"
        )
        requests_submitted.inc()
        request_transitions.labels(status=RequestStatus.PENDING.value).inc()
        await self._update_balance_gauge()
        return request_id

    async def refund_request(self, caller: Identity, request_id: int) -> int:
        """
        Вернуть депозит по заявке, которую аудитор так и не взял в работу.

        Проверки по порядку: существование, статус PENDING, окно возврата,
        роль (заказчик или владелец). Перевод и смена статуса атомарны:
        при неудачном переводе заявка остаётся PENDING.

        Returns:
            Возвращённая сумма
        """
        async with self._operation("refund_request") as journal:
            request = self._require(request_id)
            self._check_transition(request, RequestStatus.REFUNDED)

            now = self._clock()
            eligible_at = request.requested_at + self._state.refund_timeout
            if now < eligible_at:
                raise TimeoutNotReached(
                    f"request {request_id} refundable at {eligible_at}, now {now}"
                )
            if caller != request.requester and caller != self._state.owner:
                raise Unauthorized("only the requester or the owner can refund")

            amount = request.payment
            self._stage(request)
            request.status = RequestStatus.REFUNDED
            request.payment = 0

            if amount > 0:
                self._state.total_fees_collected -= amount
                # Сначала фиксируем состояние, затем платим (checks-effects-interactions)
                await self._flush(journal)
                await self.gateway.transfer(self.custody_address, request.requester, amount)

            self._emit("AuditRefunded", {
                "request_id": request_id,
                "requester": request.requester,
                "amount": amount,
            })

        logger.info(f"Request {request_id} refunded ({amount}) by {caller}")
        request_transitions.labels(status=RequestStatus.REFUNDED.value).inc()
        refunded_amount.inc(amount)
        await self._update_balance_gauge()
        return amount

    # ==================== Операции аудитора ====================

    async def start_work(self, caller: Identity, request_id: int) -> None:
        """Аудитор берёт заявку в работу."""
        async with self._operation("start_work"):
            self._only_auditor(caller)
            request = self._require(request_id)
            self._check_transition(request, RequestStatus.IN_PROGRESS)

            self._stage(request)
            request.status = RequestStatus.IN_PROGRESS
            self._emit("AuditStarted", {"request_id": request_id})

        logger.info(f"Request {request_id} in progress")
        request_transitions.labels(status=RequestStatus.IN_PROGRESS.value).inc()

    async def complete_work(self, caller: Identity, request_id: int, report_id: int) -> None:
        """
        Аудитор завершает заявку, указывая id отчёта в реестре.

        report_id — непрозрачный токен: существование отчёта в реестре
        не проверяется. Средства остаются в хранении очереди.
        """
        async with self._operation("complete_work"):
            self._only_auditor(caller)
            request = self._require(request_id)
            self._check_transition(request, RequestStatus.COMPLETED)
            if not isinstance(report_id, int) or isinstance(report_id, bool) or report_id <= 0:
                raise InvalidInput("report id must be a positive integer")

            self._stage(request)
            request.status = RequestStatus.COMPLETED
            request.completed_at = self._clock()
            request.report_id = report_id
            self._emit("AuditCompleted", {"request_id": request_id, "report_id": report_id})

        logger.info(f"Request {request_id} completed with report {report_id}")
        request_transitions.labels(status=RequestStatus.COMPLETED.value).inc()

    # ==================== Администрирование ====================

    async def set_minimum_fee(self, caller: Identity, amount: int) -> None:
        async with self._operation("set_minimum_fee"):
            self._only_owner(caller)
            self._check_amount(amount, "minimum fee")
            self._state.minimum_fee = amount
            self._emit("MinimumFeeUpdated", {"amount": amount})

    async def set_refund_timeout(self, caller: Identity, duration: int) -> None:
        async with self._operation("set_refund_timeout"):
            self._only_owner(caller)
            self._check_amount(duration, "refund timeout")
            self._state.refund_timeout = duration
            self._emit("RefundTimeoutUpdated", {"duration": duration})

    async def set_auditor(self, caller: Identity, auditor: Identity) -> None:
        """Заменить единственного аудитора. Незавершённые заявки переходят к новому."""
        async with self._operation("set_auditor"):
            self._only_owner(caller)
            if is_null_identity(auditor):
                raise InvalidInput("auditor is required")
            previous = self._state.auditor
            self._state.auditor = auditor
            self._emit("AuditorUpdated", {"previous": previous, "auditor": auditor})
        logger.info(f"Auditor changed: {previous} -> {auditor}")

    async def grant_fee_exemption(self, caller: Identity, target_address: Identity) -> None:
        """Освободить цель от минимальной комиссии (идемпотентно)."""
        async with self._operation("grant_fee_exemption") as journal:
            self._only_owner(caller)
            if is_null_identity(target_address):
                raise InvalidInput("target address is required")
            if target_address not in self._fee_exempt:
                self._fee_exempt.add(target_address)
                journal.new_exemptions.add(target_address)
            self._emit("FeeExemptionGranted", {"target_address": target_address})

    async def withdraw_funds(self, caller: Identity, to: Identity) -> int:
        """
        Вывести ВЕСЬ фактический баланс хранения на адрес `to`.

        Не связано с учётом по заявкам: вывод при наличии PENDING/IN_PROGRESS
        заявок может сделать последующие возвраты невозможными (TransferFailed).

        Returns:
            Выведенная сумма
        """
        async with self._operation("withdraw_funds"):
            self._only_owner(caller)
            if is_null_identity(to):
                raise InvalidInput("recipient is required")
            balance = await self.gateway.balance_of(self.custody_address)
            if balance <= 0:
                raise NoBalance("nothing to withdraw")

            outstanding = self._outstanding_payments()
            if outstanding > 0:
                logger.warning(
                    f"Withdrawing {balance} while {outstanding} is still refundable "
                    f"to open requests"
                )
            await self.gateway.transfer(self.custody_address, to, balance)
            self._emit("FundsWithdrawn", {"to": to, "amount": balance})

        logger.info(f"Funds withdrawn: {balance} -> {to}")
        await self._update_balance_gauge()
        return balance

    async def pause(self, caller: Identity) -> None:
        """Приостановить приём новых заявок. Возвраты продолжают работать."""
        async with self._operation("pause"):
            self._only_owner(caller)
            if self._state.paused:
                raise InvalidState("already paused")
            self._state.paused = True
            self._emit("Paused", {"account": caller})

    async def unpause(self, caller: Identity) -> None:
        async with self._operation("unpause"):
            self._only_owner(caller)
            if not self._state.paused:
                raise InvalidState("not paused")
            self._state.paused = False
            self._emit("Unpaused", {"account": caller})

    async def transfer_ownership(self, caller: Identity, new_owner: Identity) -> None:
        async with self._operation("transfer_ownership"):
            self._only_owner(caller)
            if is_null_identity(new_owner):
                raise InvalidInput("new owner is required")
            previous = self._state.owner
            self._state.owner = new_owner
            self._emit("OwnershipTransferred", {"previous": previous, "owner": new_owner})
        logger.info(f"{COMPONENT} ownership transferred: {previous} -> {new_owner}")

    async def renounce_ownership(self, caller: Identity) -> None:
        """Отказ от владения отключён: очередь не может остаться без владельца."""
        async with self._operation("renounce_ownership"):
            self._only_owner(caller)
            raise OwnershipRenounceDisabled("renouncing ownership is disabled")

    # ==================== Чтение ====================

    async def get_request(self, request_id: int) -> AuditRequest:
        """Копия заявки; NotFound вне диапазона [1, request_count]."""
        async with self._reading():
            return replace(self._require(request_id))

    def _iter_pending(self) -> Iterator[int]:
        """
        Ленивый обход всех id от 1 до текущего счётчика с фильтром PENDING.
        Только под блокировкой, через list_pending().

        Каждый вызов пересчитывает последовательность заново (без кэша),
        O(request_count) — предел масштабируемости при большом числе заявок.
        """
        for index in range(self._state.request_count):
            request = self._requests[index]
            if request.status == RequestStatus.PENDING:
                yield request.id

    async def list_pending(self) -> List[int]:
        async with self._reading():
            return list(self._iter_pending())

    async def list_by_requester(self, requester: Identity) -> List[int]:
        async with self._reading():
            return list(self._by_requester.get(requester, []))

    async def get_balance(self) -> int:
        """Фактический баланс хранения (не счётчик total_fees_collected)."""
        async with self._reading():
            return await self.gateway.balance_of(self.custody_address)

    async def get_request_count(self) -> int:
        async with self._reading():
            return self._state.request_count

    async def is_fee_exempt(self, target_address: Identity) -> bool:
        async with self._reading():
            return target_address in self._fee_exempt

    async def get_config(self) -> Dict[str, Any]:
        async with self._reading():
            config = self._state.to_dict()
            config["custody_address"] = self.custody_address
            return config

    async def outstanding_payments(self) -> int:
        """Сумма payment по заявкам PENDING и IN_PROGRESS."""
        async with self._reading():
            return self._outstanding_payments()

    # ==================== Внутреннее ====================

    @asynccontextmanager
    async def _operation(self, name: str):
        """
        Одна атомарная изменяющая операция.

        Повторный вход из того же потока управления отклоняется,
        остальные вызовы ждут освобождения блокировки.
        """
        active = self._active.get()
        if active is not None:
            operations_rejected.labels(component=COMPONENT, error="ReentrantCall").inc()
            raise ReentrantCall(f"{name} rejected: {active} is still in progress")

        token = self._active.set(name)
        try:
            async with self._lock:
                await self._resync(name)
                journal = _Journal(state=replace(self._state))
                self._journal = journal
                try:
                    yield journal
                    if not journal.flushed:
                        await self._flush(journal)
                except BaseException as e:
                    await self._rollback(journal)
                    if isinstance(e, SentinelError):
                        operations_rejected.labels(
                            component=COMPONENT, error=type(e).__name__
                        ).inc()
                        logger.info(f"{name} rejected: {type(e).__name__}: {e}")
                    raise
                finally:
                    self._journal = None
                committed = journal.events
        finally:
            self._active.reset(token)

        await self.events.publish(committed)

    @asynccontextmanager
    async def _reading(self):
        # Чтение изнутри активной операции видит её промежуточное состояние
        if self._active.get() is not None:
            yield
            return
        async with self._lock:
            yield

    async def _flush(self, journal: _Journal) -> None:
        """Записать затронутые документы одной транзакцией хранилища."""
        docs: Dict[str, Any] = {"config": self._state.to_dict()}
        for request_id in journal.originals:
            docs[f"requests:{request_id}"] = self._requests[request_id - 1].to_dict()
        if journal.new_exemptions:
            docs["exemptions"] = sorted(self._fee_exempt)
        await self.store.write(docs)
        journal.flushed = True

    async def _rollback(self, journal: _Journal) -> None:
        """
        Вернуть состояние к снимку журнала и выполнить компенсации.

        Если перезапись хранилища не удалась, память (совпадающая с леджером)
        остаётся верной, а несохранённые документы запоминаются: следующая
        операция или load() сначала допишут их. Ошибка компенсации или
        перезаписи поднимается как StateOutOfSync.
        """
        failure: Optional[Exception] = None
        for compensate in reversed(journal.compensations):
            try:
                await compensate()
            except Exception as e:
                logger.error(f"{COMPONENT}: compensation failed during rollback: {e}")
                failure = failure or e

        for request_id in sorted(journal.originals, reverse=True):
            original = journal.originals[request_id]
            if original is None:
                created = self._requests.pop()
                ids = self._by_requester[created.requester]
                ids.pop()
                if not ids:
                    del self._by_requester[created.requester]
            else:
                self._requests[request_id - 1] = original

        self._state = journal.state
        self._fee_exempt -= journal.new_exemptions

        if journal.flushed:
            docs: Dict[str, Any] = {"config": self._state.to_dict()}
            for request_id, original in journal.originals.items():
                if original is not None:
                    docs[f"requests:{request_id}"] = original.to_dict()
            if journal.new_exemptions:
                docs["exemptions"] = sorted(self._fee_exempt)
            try:
                await self.store.write(docs)
            except Exception as e:
                logger.error(f"{COMPONENT}: failed to persist rollback: {e}")
                self._unsynced = docs
                failure = failure or e

        if failure is not None:
            raise StateOutOfSync(
                f"rollback incomplete: {type(failure).__name__}: {failure}"
            ) from failure

    async def _resync(self, name: str) -> None:
        """Дописать откат, который хранилище не приняло раньше."""
        if self._unsynced is None:
            return
        try:
            await self.store.write(self._unsynced)
        except Exception as e:
            operations_rejected.labels(component=COMPONENT, error="StateOutOfSync").inc()
            raise StateOutOfSync(
                f"{name} rejected: store still rejects the pending rollback ({e})"
            ) from e
        self._unsynced = None
        logger.info(f"{COMPONENT}: pending rollback persisted")

    def _stage(self, request: AuditRequest) -> None:
        """Запомнить оригинал записи перед первым изменением в операции."""
        if request.id not in self._journal.originals:
            self._journal.originals[request.id] = replace(request)

    def _emit(self, name: str, args: Dict[str, Any]) -> None:
        self._journal.events.append(
            Event(name=name, args=args, timestamp=self._clock(), source=COMPONENT)
        )

    def _require(self, request_id: int) -> AuditRequest:
        if (
            not isinstance(request_id, int)
            or isinstance(request_id, bool)
            or request_id < 1
            or request_id > self._state.request_count
        ):
            raise NotFound(f"request {request_id} not found")
        return self._requests[request_id - 1]

    def _check_transition(self, request: AuditRequest, target: RequestStatus) -> None:
        if not can_transition(request.status, target):
            raise InvalidState(
                f"request {request.id} is {request.status.value}, "
                f"cannot become {target.value}"
            )

    def _only_owner(self, caller: Identity) -> None:
        if caller != self._state.owner:
            raise Unauthorized("caller is not the owner")

    def _only_auditor(self, caller: Identity) -> None:
        if caller != self._state.auditor:
            raise Unauthorized("caller is not the auditor")

    def _outstanding_payments(self) -> int:
        return sum(
            r.payment for r in self._requests
            if r.status in (RequestStatus.PENDING, RequestStatus.IN_PROGRESS)
        )

    @staticmethod
    def _check_amount(value: int, what: str) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidInput(f"{what} must be a non-negative integer")

    async def _update_balance_gauge(self) -> None:
        escrow_balance.set(await self.get_balance())
