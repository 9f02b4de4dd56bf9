"""
Health API endpoint for service status.

Provides:
    GET /health - Service status, storage backend and connectivity
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

import structlog

from services.api.state import AppState, get_app_state

logger = structlog.get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health endpoint."""

    status: str = "unknown"
    storage: str = "unknown"
    storage_backend: str
    write_strategy: str
    uptime_seconds: int = 0
    timestamp: str

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "storage": "connected",
                "storage_backend": "postgres",
                "write_strategy": "min_interval",
                "uptime_seconds": 15780,
                "timestamp": "2025-01-26T12:34:57+00:00",
            }
        }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Get service health status",
    description="Reports whether the storage backend answers.",
)
async def get_health(state: AppState = Depends(get_app_state)) -> HealthResponse:
    """
    Get service health status.

    Returns:
        HealthResponse: Service and storage status.
    """
    now = state.clock()
    storage_ok = await state.storage.ping()

    if not storage_ok:
        logger.warning("health_storage_unreachable")

    return HealthResponse(
        status="healthy" if storage_ok else "degraded",
        storage="connected" if storage_ok else "disconnected",
        storage_backend=state.config.service.storage_backend.value,
        write_strategy=state.storage.write_strategy.value,
        uptime_seconds=int((now - state.start_time).total_seconds()),
        timestamp=now.isoformat(),
    )
