"""Request queue router."""

from fastapi import APIRouter, Depends

from backend.dependencies import get_caller, get_sentinel_from_main
from backend.models import (
    AuditRequestModel,
    BalanceResponse,
    CompleteWorkBody,
    QueueConfigResponse,
    RefundResponse,
    RequestIdsResponse,
    StatusResponse,
    SubmitRequestBody,
    SubmitRequestResponse,
)
from sentinel.service import SentinelService

router = APIRouter(prefix="/requests", tags=["requests"])


@router.post("", response_model=SubmitRequestResponse)
async def submit_request(
    body: SubmitRequestBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    """Создать заявку; депозит списывается с баланса вызывающего."""
    request_id = await sentinel.requests.submit_request(
        caller, body.target_address, body.deposit_amount
    )
    return {"request_id": request_id}


@router.get("/pending", response_model=RequestIdsResponse)
async def list_pending(sentinel: SentinelService = Depends(get_sentinel_from_main)):
    """Заявки в статусе pending, по возрастанию id."""
    return {"request_ids": await sentinel.requests.list_pending()}


@router.get("/by-requester/{identity}", response_model=RequestIdsResponse)
async def list_by_requester(
    identity: str,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    return {"request_ids": await sentinel.requests.list_by_requester(identity)}


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(sentinel: SentinelService = Depends(get_sentinel_from_main)):
    """Фактический баланс хранения и сумма возвращаемых депозитов."""
    return {
        "balance": await sentinel.requests.get_balance(),
        "outstanding": await sentinel.requests.outstanding_payments(),
    }


@router.get("/config", response_model=QueueConfigResponse)
async def get_config(sentinel: SentinelService = Depends(get_sentinel_from_main)):
    return await sentinel.requests.get_config()


@router.get("/{request_id}", response_model=AuditRequestModel)
async def get_request(
    request_id: int,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    request = await sentinel.requests.get_request(request_id)
    return request.to_dict()


@router.post("/{request_id}/start", response_model=StatusResponse)
async def start_work(
    request_id: int,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.requests.start_work(caller, request_id)
    return {"status": "ok"}


@router.post("/{request_id}/complete", response_model=StatusResponse)
async def complete_work(
    request_id: int,
    body: CompleteWorkBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    """report_id не проверяется по реестру."""
    await sentinel.requests.complete_work(caller, request_id, body.report_id)
    return {"status": "ok"}


@router.post("/{request_id}/refund", response_model=RefundResponse)
async def refund_request(
    request_id: int,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    amount = await sentinel.requests.refund_request(caller, request_id)
    return {"request_id": request_id, "amount": amount}
