"""
Notifications API endpoints.

Provides:
    POST /api/notifications/pending     - Email every alert not yet emailed
    POST /api/notifications/{alert_id}  - Email one active alert
"""

import structlog
from fastapi import APIRouter, HTTPException, status

from safetrack.detection.dispatcher import BulkDeliveryResult, DeliveryResult

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/notifications/pending",
    response_model=BulkDeliveryResult,
    summary="Send all pending notifications",
    description="Sends sequentially with a short pause; failures are counted, not retried.",
)
async def send_pending() -> BulkDeliveryResult:
    from services.dashboard.api.deps import get_components

    return await get_components().dispatcher.send_pending()


@router.post(
    "/notifications/{alert_id:path}",
    response_model=DeliveryResult,
    summary="Send one notification",
)
async def send_one(alert_id: str) -> DeliveryResult:
    from services.dashboard.api.deps import get_components

    result = await get_components().dispatcher.send_alert_by_id(alert_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert not found: {alert_id}",
        )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to send email: {result.error}",
        )
    return result
