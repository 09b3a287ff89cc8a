"""
Devices API endpoints.

Provides:
    GET  /api/devices               - Readings from the last successful poll
    GET  /api/devices/history       - Cached reading history
    GET  /api/devices/summary       - Headline counts
    POST /api/devices/refresh       - Force a poll now
    POST /api/devices/auto-refresh  - Start or stop the polling timers
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Query
from pydantic import BaseModel

from safetrack.monitor import DeviceSummary

logger = structlog.get_logger(__name__)

router = APIRouter()


class DevicesResponse(BaseModel):
    """Response model for device readings."""

    devices: List[Dict[str, Any]]
    total: int
    last_update: Optional[datetime] = None
    fresh: bool = False
    last_error: Optional[str] = None


class RefreshResponse(BaseModel):
    new_alerts: int
    devices: int
    last_update: Optional[datetime] = None


class AutoRefreshRequest(BaseModel):
    enabled: bool


class AutoRefreshResponse(BaseModel):
    enabled: bool


@router.get("/devices", response_model=DevicesResponse, summary="Current device readings")
async def get_devices(
    device_id: Optional[str] = Query(None, description="Exact device id"),
) -> DevicesResponse:
    from services.dashboard.api.deps import get_components

    components = get_components()
    monitor = components.monitor

    readings = monitor.readings
    if device_id:
        readings = [r for r in readings if r.id == device_id]

    return DevicesResponse(
        devices=[r.model_dump(mode="json") for r in readings],
        total=len(readings),
        last_update=monitor.last_update,
        fresh=monitor.is_fresh(),
        last_error=components.telemetry.last_error,
    )


@router.get("/devices/history", response_model=DevicesResponse, summary="Reading history")
async def get_history(
    device_id: Optional[str] = Query(None, description="Exact device id"),
) -> DevicesResponse:
    from services.dashboard.api.deps import get_components

    components = get_components()
    history = components.telemetry.load_history()
    if device_id:
        history = [r for r in history if r.id == device_id]

    return DevicesResponse(
        devices=[r.model_dump(mode="json") for r in history],
        total=len(history),
        last_update=components.monitor.last_update,
        fresh=components.monitor.is_fresh(),
    )


@router.get("/devices/summary", response_model=DeviceSummary, summary="Headline counts")
async def get_summary() -> DeviceSummary:
    from services.dashboard.api.deps import get_components

    return get_components().monitor.summary()


@router.post("/devices/refresh", response_model=RefreshResponse, summary="Poll now")
async def refresh_devices() -> RefreshResponse:
    from services.dashboard.api.deps import get_components

    monitor = get_components().monitor
    new_alerts = await monitor.poll_once(force_refresh=True)

    logger.info("manual_refresh", new_alerts=len(new_alerts), devices=len(monitor.readings))

    return RefreshResponse(
        new_alerts=len(new_alerts),
        devices=len(monitor.readings),
        last_update=monitor.last_update,
    )


@router.post(
    "/devices/auto-refresh",
    response_model=AutoRefreshResponse,
    summary="Toggle the polling timers",
)
async def set_auto_refresh(request: AutoRefreshRequest) -> AutoRefreshResponse:
    from services.dashboard.api.deps import get_components

    monitor = get_components().monitor
    await monitor.set_auto_refresh(request.enabled)
    return AutoRefreshResponse(enabled=monitor.timers_running)
