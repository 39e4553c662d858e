"""Registry router: auditors and audit reports."""

from typing import List

from fastapi import APIRouter, Depends

from backend.dependencies import get_caller, get_sentinel_from_main
from backend.models import (
    AuditorModel,
    AuditReportModel,
    RegisterAuditorBody,
    RegistryStatsResponse,
    ReportIdsResponse,
    StatusResponse,
    SubmitAuditBody,
    SubmitAuditResponse,
)
from sentinel.service import SentinelService

router = APIRouter(prefix="/registry", tags=["registry"])


def _report_payload(report, disclaimer: str) -> dict:
    payload = report.to_dict()
    payload["disclaimer"] = disclaimer
    return payload


@router.get("/stats", response_model=RegistryStatsResponse)
async def get_stats(sentinel: SentinelService = Depends(get_sentinel_from_main)):
    registry = sentinel.registry
    return {
        "audit_count": await registry.get_audit_count(),
        "audited_contracts_count": await registry.get_audited_contracts_count(),
        "disclaimer": registry.disclaimer(),
    }


@router.get("/auditors", response_model=List[AuditorModel])
async def list_auditors(sentinel: SentinelService = Depends(get_sentinel_from_main)):
    return [a.to_dict() for a in await sentinel.registry.list_auditors()]


@router.post("/auditors", response_model=StatusResponse)
async def register_auditor(
    body: RegisterAuditorBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.registry.register_auditor(caller, body.identity, body.name)
    return {"status": "ok"}


@router.delete("/auditors/{identity}", response_model=StatusResponse)
async def revoke_auditor(
    identity: str,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    await sentinel.registry.revoke_auditor(caller, identity)
    return {"status": "ok"}


@router.post("/audits", response_model=SubmitAuditResponse)
async def submit_audit(
    body: SubmitAuditBody,
    caller: str = Depends(get_caller),
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    report_id = await sentinel.registry.submit_audit(
        caller,
        body.target_address,
        body.score,
        body.report_uri,
        critical=body.critical,
        high=body.high,
        medium=body.medium,
        low=body.low,
    )
    return {"report_id": report_id}


@router.get("/audits/{report_id}", response_model=AuditReportModel)
async def get_audit(
    report_id: int,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    report = await sentinel.registry.get_audit(report_id)
    return _report_payload(report, sentinel.registry.disclaimer())


@router.get("/targets/{target_address}/audits", response_model=ReportIdsResponse)
async def get_audits_for_target(
    target_address: str,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    return {"report_ids": await sentinel.registry.get_audits_for_target(target_address)}


@router.get("/targets/{target_address}/latest", response_model=AuditReportModel)
async def get_latest_audit(
    target_address: str,
    sentinel: SentinelService = Depends(get_sentinel_from_main),
):
    report = await sentinel.registry.get_latest_audit(target_address)
    return _report_payload(report, sentinel.registry.disclaimer())
