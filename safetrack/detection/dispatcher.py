"""
Notification dispatcher for alert emails.

This module provides the NotificationDispatcher class which delivers alert
notifications through a channel and records successful deliveries in the
alert store.

Key Features:
    - Single-alert delivery with the error returned to the caller
    - Sequential bulk delivery of pending alerts with a fixed pause
    - ``emailSent`` is set only after the channel confirms delivery
    - No retries; a failed alert stays pending for the next attempt

Example:
    >>> dispatcher = NotificationDispatcher(store, EmailJSChannel(...))
    >>> result = await dispatcher.send_alert(alert)
    >>> if not result.success:
    ...     print(result.error)
"""

import asyncio
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field

from safetrack.config.models import NotificationChannelType, NotificationConfig
from safetrack.detection.channels.base import NotificationChannel, NotificationError
from safetrack.detection.store import AlertStore
from safetrack.models.alerts import AlertRecord

logger = structlog.get_logger(__name__)


DEFAULT_SEND_DELAY_SECONDS = 0.5


class DeliveryResult(BaseModel):
    """
    Outcome of one notification attempt.

    Attributes:
        alert_id: Alert the notification was for.
        success: Whether the channel delivered it.
        error: Failure reason when not delivered.
        recorded: Whether ``emailSent`` was persisted after delivery.
    """

    model_config = {"frozen": True}

    alert_id: str = Field(...)
    success: bool = Field(...)
    error: Optional[str] = Field(default=None)
    recorded: bool = Field(default=False)


class BulkDeliveryResult(BaseModel):
    """
    Outcome of ``send_pending``.

    Attributes:
        attempted: Pending alerts found.
        succeeded: Notifications delivered.
        failed: Notifications that failed.
        results: Per-alert results in send order.
    """

    model_config = {"frozen": True}

    attempted: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    results: List[DeliveryResult] = Field(default_factory=list)


class NotificationDispatcher:
    """
    Sends alert notifications and marks delivered alerts.

    Attributes:
        store: Alert store updated after successful delivery.
        channel: Delivery channel.
        send_delay_seconds: Pause between sends in bulk delivery.

    Example:
        >>> dispatcher = NotificationDispatcher(store, ConsoleChannel())
        >>> bulk = await dispatcher.send_pending()
        >>> bulk.succeeded, bulk.failed
        (3, 0)
    """

    def __init__(
        self,
        store: AlertStore,
        channel: NotificationChannel,
        send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS,
    ) -> None:
        self.store = store
        self.channel = channel
        self.send_delay_seconds = send_delay_seconds

        logger.info(
            "notification_dispatcher_initialized",
            channel=getattr(channel, "name", type(channel).__name__),
            send_delay_seconds=send_delay_seconds,
        )

    async def send_alert(self, alert: AlertRecord) -> DeliveryResult:
        """
        Deliver one notification and record it.

        Args:
            alert: Alert to notify about.

        Returns:
            DeliveryResult: Success flag, or the channel's error message.
        """
        try:
            await self.channel.send(alert)
        except NotificationError as e:
            logger.error("alert_notification_failed", alert_id=alert.id, error=str(e))
            return DeliveryResult(alert_id=alert.id, success=False, error=str(e))

        recorded = self.store.mark_email_sent(alert.id)
        if not recorded:
            logger.warning("alert_notification_not_recorded", alert_id=alert.id)

        return DeliveryResult(alert_id=alert.id, success=True, recorded=recorded)

    async def send_alert_by_id(self, alert_id: str) -> Optional[DeliveryResult]:
        """
        Deliver a notification for an active alert looked up by id.

        Returns:
            Optional[DeliveryResult]: None if no active alert has that id.
        """
        alert = self.store.get(alert_id)
        if alert is None:
            return None
        return await self.send_alert(alert)

    async def send_pending(self) -> BulkDeliveryResult:
        """
        Deliver notifications for every active alert not yet emailed.

        Alerts are sent one at a time with ``send_delay_seconds`` between
        them. A failure is counted and the loop continues.

        Returns:
            BulkDeliveryResult: Counts and per-alert results.
        """
        pending = [a for a in self.store.list_active() if not a.email_sent]
        if not pending:
            logger.info("no_pending_notifications")
            return BulkDeliveryResult()

        logger.info("bulk_notification_started", pending=len(pending))

        results: List[DeliveryResult] = []
        for index, alert in enumerate(pending):
            if index > 0 and self.send_delay_seconds > 0:
                await asyncio.sleep(self.send_delay_seconds)
            results.append(await self.send_alert(alert))

        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded

        logger.info(
            "bulk_notification_complete",
            attempted=len(pending),
            succeeded=succeeded,
            failed=failed,
        )

        return BulkDeliveryResult(
            attempted=len(pending),
            succeeded=succeeded,
            failed=failed,
            results=results,
        )

    async def close(self) -> None:
        await self.channel.close()


def create_notification_channel(config: NotificationConfig) -> NotificationChannel:
    """
    Factory function to create the configured notification channel.

    Falls back to the console channel when email is selected but the EmailJS
    identity fields are incomplete.

    Args:
        config: Notification configuration.

    Returns:
        NotificationChannel: Channel instance.
    """
    from safetrack.detection.channels.console import ConsoleChannel
    from safetrack.detection.channels.email import EmailJSChannel

    if config.channel == NotificationChannelType.EMAIL:
        if config.is_email_configured:
            return EmailJSChannel(
                service_id=config.service_id,
                template_id=config.template_id,
                public_key=config.public_key,
                recipient=config.recipient,
                private_key=config.private_key,
                api_url=config.api_url,
                timeout_seconds=config.timeout_seconds,
            )
        logger.warning(
            "email_channel_not_configured",
            fallback="console",
        )

    return ConsoleChannel(recipient=config.recipient or None)


def create_notification_dispatcher(
    store: AlertStore,
    config: NotificationConfig,
) -> NotificationDispatcher:
    """
    Factory function to create a NotificationDispatcher from config.

    Example:
        >>> dispatcher = create_notification_dispatcher(store, config.notifications)
    """
    return NotificationDispatcher(
        store,
        create_notification_channel(config),
        send_delay_seconds=config.send_delay_seconds,
    )
