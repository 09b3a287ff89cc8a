"""
Health API endpoint for system status.

Provides:
    GET /api/health - Storage reachability, telemetry freshness, monitor
                      timers, and uptime
"""

from typing import Optional

import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from safetrack.models.timestamps import to_iso_string, utc_now
from safetrack.storage.kv import StorageError

logger = structlog.get_logger(__name__)

router = APIRouter()


class TelemetryHealthModel(BaseModel):
    """Model for telemetry status."""

    status: str = "unknown"
    last_update: Optional[str] = None
    last_error: Optional[str] = None
    devices: int = 0


class HealthResponse(BaseModel):
    """Response model for health endpoint."""

    status: str = "unknown"
    storage: str = "unknown"
    storage_backend: str = "unknown"
    telemetry: TelemetryHealthModel
    monitor_running: bool = False
    uptime_seconds: int = 0
    timestamp: str

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "storage": "ok",
                "storage_backend": "file",
                "telemetry": {
                    "status": "fresh",
                    "last_update": "2024-05-01T12:30:05.000Z",
                    "last_error": None,
                    "devices": 12,
                },
                "monitor_running": True,
                "uptime_seconds": 3600,
                "timestamp": "2024-05-01T12:30:06.000Z",
            }
        }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Get system health",
    description="Reports storage reachability and telemetry freshness.",
)
async def get_health() -> HealthResponse:
    """
    Get system health status.

    Status is "healthy" when storage is reachable and telemetry is fresh,
    "degraded" when either is not, and "starting" before startup completes.

    Returns:
        HealthResponse: Health summary.
    """
    from services.dashboard.app import app_state

    now = utc_now()
    components = app_state.components

    if components is None:
        return HealthResponse(
            status="starting",
            telemetry=TelemetryHealthModel(),
            timestamp=to_iso_string(now),
        )

    try:
        components.kv.keys()
        storage_status = "ok"
    except StorageError as e:
        logger.warning("health_storage_check_failed", error=str(e))
        storage_status = "unavailable"

    monitor = components.monitor
    if monitor.is_fresh():
        telemetry_status = "fresh"
    elif monitor.last_update is None:
        telemetry_status = "no_data"
    else:
        telemetry_status = "stale"

    healthy = storage_status == "ok" and telemetry_status == "fresh"

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        storage=storage_status,
        storage_backend=components.config.storage.backend.value,
        telemetry=TelemetryHealthModel(
            status=telemetry_status,
            last_update=to_iso_string(monitor.last_update) if monitor.last_update else None,
            last_error=components.telemetry.last_error,
            devices=len(monitor.readings),
        ),
        monitor_running=monitor.timers_running,
        uptime_seconds=int((now - app_state.start_time).total_seconds()),
        timestamp=to_iso_string(now),
    )
