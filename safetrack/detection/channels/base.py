"""
Notification channel protocol and errors.
"""

from typing import Protocol, runtime_checkable

from safetrack.models.alerts import AlertRecord


class NotificationError(Exception):
    """Raised when a channel fails to deliver a notification."""

    pass


@runtime_checkable
class NotificationChannel(Protocol):
    """
    Protocol for alert notification channels.

    ``send`` returns on successful delivery and raises NotificationError
    otherwise.
    """

    name: str

    async def send(self, alert: AlertRecord) -> None:
        """Deliver a notification for the alert."""
        ...

    async def close(self) -> None:
        """Release channel resources."""
        ...
