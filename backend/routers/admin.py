"""Admin router: owner-only policy of the request queue."""

from fastapi import APIRouter, Depends

from backend.dependencies import get_caller, get_sentinel_from_main
from backend.models import (
    AmountBody,
    DurationBody,
    IdentityBody,
    StatusResponse,
    WithdrawResponse,
)
from sentinel.service import SentinelService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put("/minimum-fee", response_model=StatusResponse)
async def set_minimum_fee(
    body: AmountBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.set_minimum_fee(caller, body.amount)
    return {"status": "ok"}


@router.put("/refund-timeout", response_model=StatusResponse)
async def set_refund_timeout(
    body: DurationBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.set_refund_timeout(caller, body.duration)
    return {"status": "ok"}


@router.put("/auditor", response_model=StatusResponse)
async def set_auditor(
    body: IdentityBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.set_auditor(caller, body.identity)
    return {"status": "ok"}


@router.post("/fee-exemptions", response_model=StatusResponse)
async def grant_fee_exemption(
    body: IdentityBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.grant_fee_exemption(caller, body.identity)
    return {"status": "ok"}


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw_funds(
    body: IdentityBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    """Вывести весь баланс хранения. Может сделать возвраты невозможными!"""
    amount = await sentinel.requests.withdraw_funds(caller, body.identity)
    return {"to": body.identity, "amount": amount}


@router.post("/pause", response_model=StatusResponse)
async def pause(
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.pause(caller)
    return {"status": "ok"}


@router.post("/unpause", response_model=StatusResponse)
async def unpause(
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.unpause(caller)
    return {"status": "ok"}


@router.put("/owner", response_model=StatusResponse)
async def transfer_ownership(
    body: IdentityBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.transfer_ownership(caller, body.identity)
    return {"status": "ok"}
