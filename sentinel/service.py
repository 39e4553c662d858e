"""
SentinelService — главный фасад Agent Sentinel.

Объединяет:
- SentinelRegistry: реестр отчётов
- SentinelRequests: очередь заявок с эскроу
- PaymentGateway: расчётный слой
- EventLog: общий журнал событий обоих компонентов
"""

import logging
from typing import Any, Dict, Optional

from sentinel.core.events import EventLog
from sentinel.core.payments import InMemoryPaymentGateway, PaymentGateway
from sentinel.core.registry import DEFAULT_COOLDOWN, SentinelRegistry
from sentinel.core.requests import (
    DEFAULT_CUSTODY_ADDRESS,
    DEFAULT_MINIMUM_FEE,
    DEFAULT_REFUND_TIMEOUT,
    SentinelRequests,
)
from sentinel.core.store import RedisStateStore, StateStore, create_store
from sentinel.infrastructure.clock import SystemClock
from sentinel.infrastructure.health import full_health_check

logger = logging.getLogger(__name__)


class SentinelService:
    """
    Реестр + очередь заявок с общими часами и журналом событий.

    Example:
        ```python
        service = SentinelService({"owner_address": "0xowner"})
        await service.initialize()

        request_id = await service.requests.submit_request("0xalice", "0xtarget", fee)
        report_id = await service.registry.submit_audit("0xowner", "0xtarget", 87, "ipfs://...")
        await service.requests.complete_work("0xowner", request_id, report_id)

        await service.close()
        ```
    """

    DEFAULT_CONFIG = {
        "redis_url": "",  # пусто: состояние в памяти процесса
        "owner_address": None,
        "auditor_address": None,  # по умолчанию владелец
        "auditor_name": "Agent Sentinel",
        "custody_address": DEFAULT_CUSTODY_ADDRESS,
        "min_audit_fee": DEFAULT_MINIMUM_FEE,
        "refund_timeout_seconds": DEFAULT_REFUND_TIMEOUT,
        "registry_cooldown_seconds": DEFAULT_COOLDOWN,
        "event_log_size": 1000,
    }

    def __init__(
        self,
        config: Optional[Dict] = None,
        gateway: Optional[PaymentGateway] = None,
        clock=None,
        registry_store: Optional[StateStore] = None,
        requests_store: Optional[StateStore] = None,
    ):
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.owner = self.config["owner_address"]
        self.auditor = self.config["auditor_address"] or self.owner

        self.clock = clock if clock is not None else SystemClock()
        self.gateway = gateway if gateway is not None else InMemoryPaymentGateway()
        self.events = EventLog(max_size=self.config["event_log_size"])

        redis_url = self.config["redis_url"]
        if registry_store is None:
            registry_store = create_store(redis_url, "registry")
        if requests_store is None:
            requests_store = create_store(redis_url, "requests")
        self.registry_store = registry_store
        self.requests_store = requests_store

        self.registry = SentinelRegistry(
            self.owner,
            store=self.registry_store,
            events=self.events,
            clock=self.clock,
            cooldown=self.config["registry_cooldown_seconds"],
        )
        self.requests = SentinelRequests(
            self.owner,
            self.auditor,
            gateway=self.gateway,
            store=self.requests_store,
            events=self.events,
            clock=self.clock,
            custody_address=self.config["custody_address"],
            minimum_fee=self.config["min_audit_fee"],
            refund_timeout=self.config["refund_timeout_seconds"],
        )
        self._initialized = False

    async def initialize(self) -> None:
        """Подключить хранилища и загрузить состояние."""
        await self.registry_store.connect()
        await self.requests_store.connect()
        await self.registry.load()
        await self.requests.load()

        # Сохранённая конфигурация очереди важнее переданной
        effective = await self.requests.get_config()
        for role in ("owner", "auditor"):
            configured = getattr(self, role)
            if configured != effective[role]:
                logger.warning(
                    f"Configured {role} {configured} ignored: persisted state uses {effective[role]}"
                )
                setattr(self, role, effective[role])

        # Аудитор очереди должен уметь публиковать отчёты в реестр
        if not await self.registry.is_auditor(self.auditor) and self.registry.owner == self.owner:
            await self.registry.register_auditor(self.owner, self.auditor, self.config["auditor_name"])

        self._initialized = True
        logger.info(f"Sentinel initialized: owner {self.owner}, auditor {self.auditor}")

    async def close(self) -> None:
        await self.registry_store.close()
        await self.requests_store.close()
        self._initialized = False
        logger.info("Sentinel stopped")

    async def health(self) -> Dict[str, Any]:
        components: Dict[str, Any] = {"requests": self.requests}
        if isinstance(self.requests_store, RedisStateStore) and self.requests_store.client:
            components["redis"] = self.requests_store.client
        return await full_health_check(components)

    async def get_stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "request_count": await self.requests.get_request_count(),
            "pending_count": len(await self.requests.list_pending()),
            "balance": await self.requests.get_balance(),
            "outstanding": await self.requests.outstanding_payments(),
            "report_count": await self.registry.get_audit_count(),
        }
