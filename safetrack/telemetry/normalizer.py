"""
Telemetry payload normalization.

The telemetry endpoint returns either one device object or an array of them,
with loosely typed fields: numbers may arrive as strings, status flags as
``"true"``, and the id under ``id`` or ``deviceId``. This module turns each
raw item into a DeviceReading or a named failure. Parsing never raises.

Rules:
    - id: ``id`` then ``deviceId``, stringified; empty or "unknown" rejected
    - timestamp: passed through, defaults to the current time
    - location: defaults to ""
    - latitude/longitude/heartbeat: missing or falsy values become 0
    - panicstatus/fallstatus: True or the string "true"
    - a reading without location and with both coordinates at 0 is rejected

Example:
    >>> result = parse_device_reading({"deviceId": 7, "heartbeat": "101", "location": "Dock"})
    >>> result.reading.id, result.reading.heartbeat
    ('7', 101)
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field

from safetrack.models.device import DeviceReading
from safetrack.models.timestamps import to_iso_string, utc_now


class ParseFailureReason(str, Enum):
    """Why a raw telemetry item was rejected."""

    NOT_AN_OBJECT = "not_an_object"
    MISSING_ID = "missing_id"
    UNKNOWN_ID = "unknown_id"
    NO_POSITION = "no_position"
    INVALID_NUMBER = "invalid_number"


class ParseFailure(BaseModel):
    model_config = {"frozen": True}

    reason: ParseFailureReason = Field(...)
    detail: str = Field(default="")


class ParseResult(BaseModel):
    """Either a parsed reading or a failure."""

    model_config = {"frozen": True}

    reading: Optional[DeviceReading] = Field(default=None)
    failure: Optional[ParseFailure] = Field(default=None)

    @property
    def ok(self) -> bool:
        return self.reading is not None


def _fail(reason: ParseFailureReason, detail: str = "") -> ParseResult:
    return ParseResult(failure=ParseFailure(reason=reason, detail=detail))


def _to_number(value: Any) -> float:
    """Coerce a loosely typed number; falsy values are 0. Raises ValueError."""
    if not value:
        return 0.0
    if isinstance(value, bool):
        return 1.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        number = float(text) if text else 0.0
    else:
        raise ValueError(f"not a number: {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _to_flag(value: Any) -> bool:
    return value is True or value == "true"


def _to_text(value: Any) -> str:
    """Stringify an id or label; whole floats drop the ".0". Raises ValueError."""
    if value is None or value is False:
        return ""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"not a finite number: {value!r}")
        if value == int(value):
            return str(int(value))
    return str(value)


def parse_device_reading(raw: Any, now: Optional[datetime] = None) -> ParseResult:
    """
    Parse one raw telemetry item.

    Args:
        raw: Decoded JSON value for one device.
        now: Time used when the item has no timestamp.

    Returns:
        ParseResult: The reading, or a failure with its reason.
    """
    if not isinstance(raw, dict):
        return _fail(ParseFailureReason.NOT_AN_OBJECT, type(raw).__name__)

    try:
        device_id = _to_text(raw.get("id") or raw.get("deviceId") or "")
    except ValueError as e:
        return _fail(ParseFailureReason.INVALID_NUMBER, str(e))
    if not device_id:
        return _fail(ParseFailureReason.MISSING_ID)
    if device_id == "unknown":
        return _fail(ParseFailureReason.UNKNOWN_ID)

    try:
        latitude = _to_number(raw.get("latitude"))
        longitude = _to_number(raw.get("longitude"))
        heartbeat = int(round(_to_number(raw.get("heartbeat"))))
        location = _to_text(raw.get("location") or "")
    except ValueError as e:
        return _fail(ParseFailureReason.INVALID_NUMBER, str(e))

    if not location and latitude == 0 and longitude == 0:
        return _fail(ParseFailureReason.NO_POSITION, device_id)

    timestamp = raw.get("timestamp") or to_iso_string(now or utc_now())

    return ParseResult(
        reading=DeviceReading(
            id=device_id,
            timestamp=str(timestamp),
            location=location,
            latitude=latitude,
            longitude=longitude,
            panicstatus=_to_flag(raw.get("panicstatus")),
            fallstatus=_to_flag(raw.get("fallstatus")),
            heartbeat=heartbeat,
        )
    )


def parse_payload(
    payload: Any,
    now: Optional[datetime] = None,
) -> Tuple[List[DeviceReading], List[ParseFailure]]:
    """
    Parse a whole telemetry response.

    Args:
        payload: Decoded JSON body, an object or an array of objects.
        now: Time used for items without a timestamp.

    Returns:
        Tuple of accepted readings and rejected-item failures.
    """
    if payload is None:
        return [], []

    items = payload if isinstance(payload, list) else [payload]
    now = now or utc_now()

    readings: List[DeviceReading] = []
    failures: List[ParseFailure] = []
    for item in items:
        result = parse_device_reading(item, now=now)
        if result.reading is not None:
            readings.append(result.reading)
        elif result.failure is not None:
            failures.append(result.failure)

    return readings, failures
