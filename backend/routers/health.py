"""Health and metrics router."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from backend.models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    from backend.main import sentinel
    if sentinel is None:
        return {"status": "starting"}

    report = await sentinel.health()
    config = await sentinel.requests.get_config()
    return {
        "status": "ok" if report["status"] == "healthy" else "degraded",
        "owner": config["owner"],
        "auditor": config["auditor"],
        "components": report["components"],
    }


@router.get("/metrics")
async def metrics():
    """Prometheus exposition."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
