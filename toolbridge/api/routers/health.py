"""Health check API router."""

from fastapi import APIRouter

from toolbridge.api.models import HealthResponse
from toolbridge.infra.metrics import get_metrics_response

router = APIRouter()

SERVICE_NAME = "toolbridge"
SERVICE_VERSION = "1.0.0"


@router.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check():
    """Liveness check; does not touch the metadata provider or executor."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
