"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════
# Request Queue Models
# ═══════════════════════════════════════════════════════

class SubmitRequestBody(BaseModel):
    """Body for creating an audit request."""
    target_address: str = Field(..., description="Contract/resource to be audited")
    deposit_amount: int = Field(..., ge=0, description="Deposit moved into escrow (wei)")


class SubmitRequestResponse(BaseModel):
    request_id: int = Field(..., description="Sequential id of the new request")


class CompleteWorkBody(BaseModel):
    report_id: int = Field(..., description="Registry report id, accepted as an opaque token")


class AuditRequestModel(BaseModel):
    """Single audit request."""
    id: int
    requester: str
    target_address: str
    payment: int = Field(..., description="Amount held in escrow (0 after refund)")
    status: str = Field(..., description="pending | in_progress | completed | refunded")
    requested_at: int
    completed_at: int = Field(0, description="0 until completed")
    report_id: int = Field(0, description="0 until completed")


class RefundResponse(BaseModel):
    request_id: int
    amount: int = Field(..., description="Amount returned to the requester")


class RequestIdsResponse(BaseModel):
    request_ids: List[int] = Field(default_factory=list, description="Ascending request ids")


class BalanceResponse(BaseModel):
    balance: int = Field(..., description="Actual custody balance (wei)")
    outstanding: int = Field(..., description="Sum of refundable deposits (pending + in_progress)")


class QueueConfigResponse(BaseModel):
    owner: str
    auditor: str
    minimum_fee: int
    refund_timeout: int
    paused: bool
    request_count: int
    total_fees_collected: int
    custody_address: str


# ═══════════════════════════════════════════════════════
# Admin Models
# ═══════════════════════════════════════════════════════

class AmountBody(BaseModel):
    amount: int = Field(..., description="Minimum fee (wei)")


class DurationBody(BaseModel):
    duration: int = Field(..., description="Refund timeout window (seconds)")


class IdentityBody(BaseModel):
    identity: str = Field(..., description="Account identity (address)")


class WithdrawResponse(BaseModel):
    to: str
    amount: int


class StatusResponse(BaseModel):
    status: str = Field("ok", description="Status of the operation")


# ═══════════════════════════════════════════════════════
# Registry Models
# ═══════════════════════════════════════════════════════

class RegisterAuditorBody(BaseModel):
    identity: str
    name: str


class AuditorModel(BaseModel):
    identity: str
    name: str
    active: bool
    registered_at: int
    report_ids: List[int] = Field(default_factory=list)


class SubmitAuditBody(BaseModel):
    """Audit report produced off-system."""
    target_address: str
    score: int = Field(..., description="Score 0-100")
    report_uri: str = Field(..., description="IPFS CID or URI of the full report")
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class SubmitAuditResponse(BaseModel):
    report_id: int


class ReportIdsResponse(BaseModel):
    report_ids: List[int] = Field(default_factory=list, description="Ascending report ids")


class AuditReportModel(BaseModel):
    id: int
    target_address: str
    auditor: str
    score: int
    report_uri: str
    critical: int
    high: int
    medium: int
    low: int
    timestamp: int
    disclaimer: str = ""


class RegistryStatsResponse(BaseModel):
    audit_count: int
    audited_contracts_count: int = Field(..., description="Total reports (not unique targets)")
    disclaimer: str


# ═══════════════════════════════════════════════════════
# Accounts / Events / Health Models
# ═══════════════════════════════════════════════════════

class AccountBalanceResponse(BaseModel):
    identity: str
    balance: int


class MintBody(BaseModel):
    amount: int = Field(..., ge=0)


class EventModel(BaseModel):
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    source: str


class EventsResponse(BaseModel):
    events: List[EventModel]


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error name (InvalidState, NotFound, ...)")
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    owner: Optional[str] = Field(None, description="Owner identity")
    auditor: Optional[str] = Field(None, description="Auditor identity")
    components: Dict[str, Any] = Field(default_factory=dict)
