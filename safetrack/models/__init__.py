"""
Data models for the alert monitor.

Modules:
    device: DeviceReading, DeviceCache
    alerts: AlertRecord, AlertStatus, AlertSeverity, StorageStats, CleanupResult
    timestamps: ISO-8601 helpers
"""

from safetrack.models.alerts import (
    AlertRecord,
    AlertSeverity,
    AlertStatus,
    CleanupResult,
    StorageStats,
)
from safetrack.models.device import DeviceCache, DeviceReading
from safetrack.models.timestamps import (
    epoch_ms,
    parse_timestamp,
    to_iso_string,
    utc_now,
)

__all__ = [
    # Device
    "DeviceReading",
    "DeviceCache",
    # Alerts
    "AlertRecord",
    "AlertSeverity",
    "AlertStatus",
    "CleanupResult",
    "StorageStats",
    # Timestamps
    "epoch_ms",
    "parse_timestamp",
    "to_iso_string",
    "utc_now",
]
