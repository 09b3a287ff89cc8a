"""
Alert data models for the alert monitor.

This module defines alert-related structures including the durable alert
record, its status and severity classifications, storage statistics, and the
result types returned by store maintenance operations.

Models:
    AlertStatus: Emergency condition (PANIC, FALL)
    AlertSeverity: Heart-rate derived severity (LOW, MEDIUM, HIGH, CRITICAL)
    AlertRecord: Durable alert created from a qualifying reading
    StorageStats: Aggregates over active and archived alerts
    CleanupResult: Outcome of an age-based cleanup
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from safetrack.models.device import DeviceReading
from safetrack.models.timestamps import parse_timestamp


class AlertStatus(str, Enum):
    """
    Emergency condition reported by the device.

    Attributes:
        PANIC: Panic button pressed. Wins when both flags are raised.
        FALL: Fall detected.
    """

    PANIC = "PANIC"
    FALL = "FALL"

    @classmethod
    def from_reading(cls, reading: DeviceReading) -> "AlertStatus":
        """Classify a reading, preferring PANIC when both flags are set."""
        return cls.PANIC if reading.panicstatus else cls.FALL


class AlertSeverity(str, Enum):
    """
    Severity levels derived from heart rate.

    Attributes:
        LOW: 90 BPM or below.
        MEDIUM: Above 90 BPM.
        HIGH: Above 100 BPM.
        CRITICAL: Above 120 BPM.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_heartbeat(cls, heartbeat: float) -> "AlertSeverity":
        """
        Classify a heart rate.

        Args:
            heartbeat: Heart rate in BPM.

        Returns:
            AlertSeverity: Matching severity band.

        Example:
            >>> AlertSeverity.from_heartbeat(121)
            <AlertSeverity.CRITICAL: 'CRITICAL'>
        """
        if heartbeat > 120:
            return cls.CRITICAL
        if heartbeat > 100:
            return cls.HIGH
        if heartbeat > 90:
            return cls.MEDIUM
        return cls.LOW


def format_coordinate(value: float) -> str:
    """Render a coordinate without a trailing ``.0`` for whole numbers."""
    if value == int(value):
        return str(int(value))
    return repr(value)


class AlertRecord(BaseModel):
    """
    Durable alert record.

    The id is the composite ``{deviceId}-{timestamp}`` so that submitting the
    same device reading twice is idempotent. Field names are serialized in
    camelCase (``deviceId``, ``emailSent``) to keep the persisted layout and
    export documents stable.

    Attributes:
        id: Composite dedup key.
        device_id: Device that reported the condition.
        timestamp: ISO-8601 time from the reading.
        location: Free-text location.
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        status: PANIC or FALL.
        heartbeat: Heart rate (BPM) at the time of the reading.
        coordinates: Display string ``"{lat}, {lon}"``.
        email_sent: Whether a notification was delivered.
        archived: True once moved to the archive; absent while active.
        severity: Assigned once when the store accepts the record.

    Example:
        >>> alert = AlertRecord.from_reading(reading)
        >>> alert.id
        'band-7-2024-05-01T12:30:00.000Z'
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str = Field(..., min_length=1, description="Composite dedup key")
    device_id: str = Field(..., alias="deviceId", min_length=1)
    timestamp: str = Field(..., description="ISO-8601 reading time")
    location: str = Field(default="")
    latitude: float = Field(...)
    longitude: float = Field(...)
    status: AlertStatus = Field(...)
    heartbeat: int = Field(...)
    coordinates: str = Field(...)
    email_sent: bool = Field(default=False, alias="emailSent")
    archived: Optional[bool] = Field(default=None)
    severity: Optional[AlertSeverity] = Field(default=None)

    @staticmethod
    def build_id(device_id: str, timestamp: str) -> str:
        """Build the composite dedup key."""
        return f"{device_id}-{timestamp}"

    @classmethod
    def from_reading(cls, reading: DeviceReading) -> "AlertRecord":
        """
        Build an alert candidate from a device reading.

        Severity is left unset; the store assigns it on submission.

        Args:
            reading: The qualifying device reading.

        Returns:
            AlertRecord: New candidate with ``email_sent=False``.
        """
        return cls(
            id=cls.build_id(reading.id, reading.timestamp),
            device_id=reading.id,
            timestamp=reading.timestamp,
            location=reading.location,
            latitude=reading.latitude,
            longitude=reading.longitude,
            status=AlertStatus.from_reading(reading),
            heartbeat=reading.heartbeat,
            coordinates=(
                f"{format_coordinate(reading.latitude)}, "
                f"{format_coordinate(reading.longitude)}"
            ),
            email_sent=False,
        )

    @property
    def parsed_timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)

    @property
    def is_archived(self) -> bool:
        return bool(self.archived)

    def with_severity(self) -> "AlertRecord":
        """Return a copy classified from its heart rate."""
        return self.model_copy(
            update={"severity": AlertSeverity.from_heartbeat(self.heartbeat)}
        )

    def mark_archived(self) -> "AlertRecord":
        return self.model_copy(update={"archived": True})

    def mark_email_sent(self) -> "AlertRecord":
        return self.model_copy(update={"email_sent": True})

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StorageStats(BaseModel):
    """
    Aggregates over the active and archived collections.

    Attributes:
        total_alerts: Active plus archived count.
        panic_alerts: Records with status PANIC.
        fall_alerts: Records with status FALL.
        emails_sent: Records with a delivered notification.
        archived_alerts: Archived count.
        oldest_alert: Smallest timestamp (ISO sort), if any.
        newest_alert: Largest timestamp (ISO sort), if any.
        storage_size: UTF-8 bytes of the two stored blobs.
        dropped_alerts: Archived records permanently dropped by the archive cap.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    total_alerts: int = Field(default=0, alias="totalAlerts")
    panic_alerts: int = Field(default=0, alias="panicAlerts")
    fall_alerts: int = Field(default=0, alias="fallAlerts")
    emails_sent: int = Field(default=0, alias="emailsSent")
    archived_alerts: int = Field(default=0, alias="archivedAlerts")
    oldest_alert: Optional[str] = Field(default=None, alias="oldestAlert")
    newest_alert: Optional[str] = Field(default=None, alias="newestAlert")
    storage_size: int = Field(default=0, alias="storageSize")
    dropped_alerts: int = Field(default=0, alias="droppedAlerts")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CleanupResult(BaseModel):
    """
    Outcome of ``AlertStore.cleanup_older_than``.

    A zero ``moved`` with no error means nothing was old enough; a set
    ``error`` means the cleanup failed and nothing should be assumed moved.

    Attributes:
        moved: Number of alerts moved to the archive.
        error: Failure reason, if the cleanup failed.
    """

    model_config = {"frozen": True}

    moved: int = Field(default=0, ge=0)
    error: Optional[str] = Field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None
