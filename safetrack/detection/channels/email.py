"""
EmailJS email channel.

Sends alert notifications through the EmailJS REST API. The EmailJS template
receives the rendered subject and bodies as template parameters, so the
message layout lives here rather than in the EmailJS dashboard.

API:
    POST https://api.emailjs.com/api/v1.0/email/send
    {
        "service_id": "...",
        "template_id": "...",
        "user_id": "<public key>",
        "accessToken": "<private key, optional>",
        "template_params": {...}
    }

    Delivery succeeded only when the response status is 200.

Example:
    >>> channel = EmailJSChannel(
    ...     service_id="service_9pp32yv",
    ...     template_id="template_iqb5ops",
    ...     public_key="...",
    ...     recipient="ops@example.com",
    ... )
    >>> await channel.send(alert)
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import aiohttp
import structlog

from safetrack.detection.channels.base import NotificationError
from safetrack.models.alerts import AlertRecord, AlertStatus
from safetrack.models.timestamps import to_iso_string, utc_now

logger = structlog.get_logger(__name__)


EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"


def render_subject(alert: AlertRecord) -> str:
    return (
        f"🚨 CRITICAL ALERT: {alert.status.value} Detected - Device {alert.device_id}"
    )


def alert_type_label(alert: AlertRecord) -> str:
    return "🚨 PANIC ALERT" if alert.status == AlertStatus.PANIC else "⚠️ FALL ALERT"


def alert_priority_label(alert: AlertRecord) -> str:
    return "HIGH" if alert.status == AlertStatus.PANIC else "MEDIUM"


def render_html(alert: AlertRecord, generated_at: str) -> str:
    """
    Render the HTML email body.

    Args:
        alert: Alert to describe.
        generated_at: Generation time shown in the footer.

    Returns:
        str: Inline-styled HTML fragment.
    """
    rows = [
        ("Device ID", alert.device_id),
        (
            "Status",
            '<span style="background-color: #dc2626; color: white; padding: 4px 8px; '
            f'border-radius: 4px; font-weight: bold;">{alert.status.value}</span>',
        ),
        ("Location", alert.location),
        (
            "Heartbeat",
            '<span style="color: #dc2626; font-weight: bold; font-size: 18px;">'
            f"{alert.heartbeat} BPM</span>"
            '<span style="color: #7f1d1d; margin-left: 10px;">(Critical: &gt;90 BPM)</span>',
        ),
        ("Coordinates", alert.coordinates),
        ("Timestamp", alert.timestamp),
    ]
    table_rows = "".join(
        '<tr style="border-bottom: 1px solid #e5e7eb;">'
        f'<td style="padding: 10px 0; font-weight: bold; color: #374151;">{label}:</td>'
        f'<td style="padding: 10px 0; color: #1f2937;">{value}</td>'
        "</tr>"
        for label, value in rows
    )

    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; '
        "padding: 20px; border: 2px solid #dc2626; border-radius: 8px; "
        'background-color: #fef2f2;">'
        '<div style="text-align: center; margin-bottom: 20px;">'
        '<h1 style="color: #dc2626; margin: 0; font-size: 24px;">🚨 CRITICAL SAFETY ALERT</h1>'
        '<p style="color: #7f1d1d; margin: 5px 0; font-size: 16px;">'
        "SafeTrack Security Band System</p>"
        "</div>"
        '<div style="background-color: white; padding: 20px; border-radius: 6px; margin: 20px 0;">'
        '<h2 style="color: #dc2626; margin-top: 0;">Alert Details</h2>'
        f'<table style="width: 100%; border-collapse: collapse;">{table_rows}</table>'
        "</div>"
        '<div style="background-color: #fef3c7; padding: 15px; border-radius: 6px; '
        'border-left: 4px solid #f59e0b;">'
        '<h3 style="color: #92400e; margin-top: 0;">Immediate Action Required</h3>'
        '<p style="color: #78350f; margin: 0;">This is a critical safety alert requiring '
        "immediate attention. Please verify the status of the individual and dispatch "
        "emergency services if necessary.</p>"
        "</div>"
        '<div style="text-align: center; margin-top: 20px; padding-top: 20px; '
        'border-top: 1px solid #e5e7eb;">'
        '<p style="color: #6b7280; font-size: 12px; margin: 0;">'
        "This alert was generated automatically by the SafeTrack Security Band System<br>"
        f"Generated at: {generated_at}</p>"
        "</div>"
        "</div>"
    )


def render_text(alert: AlertRecord, generated_at: str) -> str:
    """Render the plain-text email body."""
    return "\n".join(
        [
            "CRITICAL SAFETY ALERT - SafeTrack Security Band System",
            "",
            "Alert Details:",
            f"- Device ID: {alert.device_id}",
            f"- Status: {alert.status.value}",
            f"- Location: {alert.location}",
            f"- Heartbeat: {alert.heartbeat} BPM (Critical: >90 BPM)",
            f"- Coordinates: {alert.coordinates}",
            f"- Timestamp: {alert.timestamp}",
            "",
            "IMMEDIATE ACTION REQUIRED",
            "This is a critical safety alert requiring immediate attention. Please verify "
            "the status of the individual and dispatch emergency services if necessary.",
            "",
            f"Generated at: {generated_at}",
        ]
    )


def build_template_params(
    alert: AlertRecord,
    recipient: str,
    generated_at: str,
) -> Dict[str, Any]:
    """
    Build the EmailJS template parameters for an alert.

    Args:
        alert: Alert to notify about.
        recipient: Destination address.
        generated_at: Generation time for the message footer.

    Returns:
        Dict[str, Any]: Template parameters.
    """
    return {
        "to_email": recipient,
        "subject": render_subject(alert),
        "device_id": alert.device_id,
        "status": alert.status.value,
        "location": alert.location,
        "heartbeat": alert.heartbeat,
        "coordinates": alert.coordinates,
        "timestamp": alert.timestamp,
        "html_content": render_html(alert, generated_at),
        "text_content": render_text(alert, generated_at),
        "alert_type": alert_type_label(alert),
        "priority": alert_priority_label(alert),
    }


class EmailJSChannel:
    """
    Notification channel posting to the EmailJS REST API.

    Attributes:
        service_id: EmailJS service id.
        template_id: EmailJS template id.
        public_key: EmailJS public key (sent as ``user_id``).
        recipient: Address receiving alert emails.
        api_url: Send endpoint.
        timeout_seconds: Request timeout.
    """

    name = "email"

    def __init__(
        self,
        service_id: str,
        template_id: str,
        public_key: str,
        recipient: str,
        private_key: Optional[str] = None,
        api_url: str = EMAILJS_SEND_URL,
        timeout_seconds: int = 10,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.recipient = recipient
        self.private_key = private_key
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None
        self._clock = clock or utc_now

        logger.info(
            "email_channel_initialized",
            service_id=service_id,
            template_id=template_id,
            recipient=recipient,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this channel created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def build_payload(self, alert: AlertRecord) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": build_template_params(
                alert, self.recipient, to_iso_string(self._clock())
            ),
        }
        if self.private_key:
            payload["accessToken"] = self.private_key
        return payload

    async def send(self, alert: AlertRecord) -> None:
        """
        Send one alert email.

        Args:
            alert: Alert to notify about.

        Raises:
            NotificationError: On a non-200 response, timeout, or transport error.
        """
        session = await self._ensure_session()
        payload = self.build_payload(alert)

        try:
            async with session.post(self.api_url, json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(
                        "email_send_rejected",
                        alert_id=alert.id,
                        status=response.status,
                        error=body,
                    )
                    raise NotificationError(
                        f"EmailJS error: {response.status} {body}".strip()
                    )

        except aiohttp.ClientError as e:
            logger.error("email_send_failed", alert_id=alert.id, error=str(e))
            raise NotificationError(f"EmailJS request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(
                "email_send_timeout",
                alert_id=alert.id,
                timeout=self.timeout_seconds,
            )
            raise NotificationError(
                f"EmailJS request timeout after {self.timeout_seconds}s"
            ) from e

        logger.info(
            "email_sent",
            alert_id=alert.id,
            device_id=alert.device_id,
            recipient=self.recipient,
        )
