"""
Timestamp helpers shared by the models.

Telemetry and alert timestamps travel as ISO-8601 strings. These helpers
render UTC datetimes the way browsers do (millisecond precision with a "Z"
suffix) and parse incoming strings leniently.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso_string(value: datetime) -> str:
    """
    Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are treated as UTC.

    Example:
        >>> to_iso_string(datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        '2024-05-01T12:30:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into an aware datetime.

    Args:
        value: Timestamp string; a trailing "Z" and naive values are UTC.

    Returns:
        Optional[datetime]: Parsed datetime, or None if unparseable.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch for an aware datetime."""
    return int(value.timestamp() * 1000)
