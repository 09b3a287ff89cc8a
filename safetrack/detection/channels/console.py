"""
Console notification channel.

Logs rendered alert notifications instead of delivering them. Used in
development and whenever EmailJS credentials are not configured.

Example:
    >>> channel = ConsoleChannel(recipient="ops@example.com")
    >>> await channel.send(alert)
"""

from typing import List, Optional

import structlog

from safetrack.detection.channels.email import (
    alert_priority_label,
    alert_type_label,
    render_subject,
)
from safetrack.models.alerts import AlertRecord

logger = structlog.get_logger(__name__)


class ConsoleChannel:
    """
    Channel that writes notifications to the log.

    Attributes:
        recipient: Address shown in the log entry.
        sent: Ids of alerts "delivered" so far.
    """

    name = "console"

    def __init__(self, recipient: Optional[str] = None) -> None:
        self.recipient = recipient or "console"
        self.sent: List[str] = []

    async def send(self, alert: AlertRecord) -> None:
        self.sent.append(alert.id)
        logger.warning(
            "alert_notification",
            channel=self.name,
            recipient=self.recipient,
            subject=render_subject(alert),
            alert_type=alert_type_label(alert),
            priority=alert_priority_label(alert),
            alert_id=alert.id,
            device_id=alert.device_id,
            location=alert.location,
            heartbeat=alert.heartbeat,
            coordinates=alert.coordinates,
            timestamp=alert.timestamp,
        )

    async def close(self) -> None:
        return None
