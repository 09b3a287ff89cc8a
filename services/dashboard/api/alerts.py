"""
Alerts API endpoints.

Provides:
    GET    /api/alerts                - Active or archived alerts with filters
    GET    /api/alerts/stats          - Storage statistics
    GET    /api/alerts/export         - Download an export document
    POST   /api/alerts/import         - Replace collections from an export document
    POST   /api/alerts/cleanup        - Archive alerts older than N days
    DELETE /api/alerts                - Clear the active or archived collection
    DELETE /api/alerts/{alert_id}     - Delete one active alert
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Body, HTTPException, Query, Response, status
from pydantic import BaseModel

from safetrack.models.alerts import AlertRecord, AlertStatus, CleanupResult

logger = structlog.get_logger(__name__)

router = APIRouter()


class AlertScope(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class AlertsResponse(BaseModel):
    """Response model for alert listings."""

    alerts: List[Dict[str, Any]]
    total: int

    class Config:
        json_schema_extra = {
            "example": {
                "alerts": [
                    {
                        "id": "band-7-2024-05-01T12:30:00.000Z",
                        "deviceId": "band-7",
                        "timestamp": "2024-05-01T12:30:00.000Z",
                        "location": "Warehouse B",
                        "latitude": 12.97,
                        "longitude": 77.59,
                        "status": "PANIC",
                        "heartbeat": 104,
                        "coordinates": "12.97, 77.59",
                        "emailSent": False,
                        "severity": "HIGH",
                    }
                ],
                "total": 1,
            }
        }


class MutationResponse(BaseModel):
    success: bool


def _serialize(alerts: List[AlertRecord]) -> AlertsResponse:
    return AlertsResponse(alerts=[a.to_dict() for a in alerts], total=len(alerts))


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    summary="List alerts",
    description="Active alerts (newest first) or the archive, with optional filters.",
)
async def list_alerts(
    scope: AlertScope = Query(AlertScope.ACTIVE, description="'active' or 'archived'"),
    device_id: Optional[str] = Query(None, description="Exact device id"),
    status_filter: Optional[AlertStatus] = Query(
        None, alias="status", description="PANIC or FALL"
    ),
    start: Optional[datetime] = Query(None, description="Inclusive lower timestamp bound"),
    end: Optional[datetime] = Query(None, description="Inclusive upper timestamp bound"),
) -> AlertsResponse:
    """
    List alerts.

    Date filters apply to the active collection only, matching the store's
    date-range query.
    """
    from services.dashboard.api.deps import get_components

    store = get_components().store

    if scope == AlertScope.ARCHIVED:
        alerts = store.list_archived()
    elif start is not None or end is not None:
        alerts = store.list_by_date_range(
            start or datetime.min,
            end or datetime.max,
        )
    else:
        alerts = store.list_active()

    if device_id:
        alerts = [a for a in alerts if a.device_id == device_id]
    if status_filter is not None:
        alerts = [a for a in alerts if a.status == status_filter]

    return _serialize(alerts)


@router.get("/alerts/stats", summary="Alert storage statistics")
async def get_stats() -> Dict[str, Any]:
    from services.dashboard.api.deps import get_components

    return get_components().store.stats().to_dict()


@router.get(
    "/alerts/export",
    summary="Export alerts",
    description="Download active (and optionally archived) alerts as JSON.",
)
async def export_alerts(
    include_archived: bool = Query(True, description="Include the archive"),
) -> Response:
    from services.dashboard.api.deps import get_components

    components = get_components()
    store = components.store
    filename = store.export_filename(components.config.dashboard.export_prefix)

    logger.info("alerts_exported", include_archived=include_archived, filename=filename)

    return Response(
        content=store.export_snapshot(include_archived=include_archived),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/alerts/import",
    response_model=MutationResponse,
    summary="Import alerts",
    description="Replace collections from an export document. Malformed documents change nothing.",
)
async def import_alerts(document: Any = Body(...)) -> MutationResponse:
    from services.dashboard.api.deps import get_components

    if not get_components().store.import_snapshot(document):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid alert export document",
        )
    return MutationResponse(success=True)


@router.post(
    "/alerts/cleanup",
    response_model=CleanupResult,
    summary="Archive old alerts",
)
async def cleanup_alerts(
    days: Optional[int] = Query(None, ge=0, description="Days to keep (default from config)"),
) -> CleanupResult:
    from services.dashboard.api.deps import get_components

    components = get_components()
    days_to_keep = days if days is not None else components.config.alerts.cleanup_days
    result = components.store.cleanup_older_than(days_to_keep)

    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.error,
        )
    return result


@router.delete("/alerts", response_model=MutationResponse, summary="Clear a collection")
async def clear_alerts(
    scope: AlertScope = Query(AlertScope.ACTIVE, description="'active' or 'archived'"),
) -> MutationResponse:
    from services.dashboard.api.deps import get_components

    store = get_components().store
    cleared = store.clear_archived() if scope == AlertScope.ARCHIVED else store.clear_active()
    if not cleared:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to clear {scope.value} alerts",
        )
    return MutationResponse(success=True)


@router.delete(
    "/alerts/{alert_id:path}",
    response_model=MutationResponse,
    summary="Delete an active alert",
)
async def delete_alert(alert_id: str) -> MutationResponse:
    from services.dashboard.api.deps import get_components

    if not get_components().store.delete(alert_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert not found: {alert_id}",
        )
    return MutationResponse(success=True)
