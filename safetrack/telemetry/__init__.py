"""
Device telemetry fetching and parsing.

Components:
    normalizer: Total parser from raw JSON items to DeviceReading
    client: TelemetryClient with device and history caches
"""

from safetrack.telemetry.client import (
    DEVICE_CACHE_KEY,
    HISTORY_KEY,
    TelemetryClient,
    TelemetryFetchError,
    create_telemetry_client,
)
from safetrack.telemetry.normalizer import (
    ParseFailure,
    ParseFailureReason,
    ParseResult,
    parse_device_reading,
    parse_payload,
)

__all__ = [
    # Client
    "TelemetryClient",
    "TelemetryFetchError",
    "create_telemetry_client",
    "DEVICE_CACHE_KEY",
    "HISTORY_KEY",
    # Normalizer
    "ParseFailure",
    "ParseFailureReason",
    "ParseResult",
    "parse_device_reading",
    "parse_payload",
]
