"""Accounts and events router."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from backend.config import get_settings
from backend.dependencies import get_sentinel_from_main
from backend.models import AccountBalanceResponse, EventsResponse, MintBody
from sentinel.core.payments import InMemoryPaymentGateway
from sentinel.service import SentinelService

router = APIRouter(tags=["accounts"])


@router.get("/accounts/{identity}/balance", response_model=AccountBalanceResponse)
async def get_account_balance(
    identity: str,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    return {"identity": identity, "balance": await sentinel.gateway.balance_of(identity)}


@router.post("/accounts/{identity}/mint", response_model=AccountBalanceResponse)
async def mint(
    identity: str,
    body: MintBody,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    """Пополнить баланс (только dev, SENTINEL_FAUCET_ENABLED=true)."""
    if not get_settings().faucet_enabled:
        raise HTTPException(403, "Faucet is disabled")
    if not isinstance(sentinel.gateway, InMemoryPaymentGateway):
        raise HTTPException(400, "Faucet requires the in-memory payment gateway")
    balance = sentinel.gateway.mint(identity, body.amount)
    return {"identity": identity, "balance": balance}


@router.get("/events", response_model=EventsResponse)
async def get_events(
    limit: int = 50,
    name: Optional[str] = None,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    """Последние события реестра и очереди (старые первыми)."""
    return {"events": [e.to_dict() for e in sentinel.events.recent(limit, name=name)]}
