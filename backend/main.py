"""
FastAPI backend для Agent Sentinel.

Единственный event loop — все async операции здесь.
Идентичность вызывающего передаётся заголовком X-Caller.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.models import ErrorResponse
from backend.routers import accounts, admin, health, registry, requests
from sentinel.core.errors import SentinelError
from sentinel.service import SentinelService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Глобальный сервис (singleton)
sentinel: Optional[SentinelService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle: startup и shutdown."""
    global sentinel

    # === STARTUP ===
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    if not settings.owner_address:
        raise ValueError(
            "SENTINEL_OWNER_ADDRESS environment variable is required. "
            "Set it in .env file or environment."
        )
    if settings.faucet_enabled:
        logger.warning("⚠️  Faucet is enabled: anyone can mint balances. Dev only!")

    config = {
        "redis_url": settings.redis_url,
        "owner_address": settings.owner_address,
        "auditor_address": settings.auditor_address or None,
        "auditor_name": settings.auditor_name,
        "custody_address": settings.custody_address,
        "min_audit_fee": settings.min_audit_fee,
        "refund_timeout_seconds": settings.refund_timeout_seconds,
        "registry_cooldown_seconds": settings.registry_cooldown_seconds,
        "event_log_size": settings.event_log_size,
    }

    sentinel = SentinelService(config)
    await sentinel.initialize()

    logger.info(f"🚀 Sentinel started: owner {sentinel.owner}, auditor {sentinel.auditor}")
    logger.info(f"📦 Storage: {'redis' if settings.redis_url else 'memory'}")

    yield

    # === SHUTDOWN ===
    if sentinel:
        await sentinel.close()
    logger.info("Sentinel stopped")


async def sentinel_error_handler(request: Request, exc: SentinelError) -> JSONResponse:
    """Каждая ошибка — отдельное имя и HTTP статус."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=type(exc).__name__, message=exc.message).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SentinelError, sentinel_error_handler)


app = FastAPI(
    title="Agent Sentinel API",
    version="1.1.0",
    description="Audit report registry and payment-escrow request queue",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# ==================== Подключение роутеров ====================

app.include_router(health.router)
app.include_router(requests.router)
app.include_router(admin.router)
app.include_router(registry.router)
app.include_router(accounts.router)


# ==================== Run ====================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
