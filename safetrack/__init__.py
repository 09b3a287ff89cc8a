"""
SafeTrack Alert Monitor.

A safety-monitoring service that polls wearable device telemetry, raises
alerts for panic or fall conditions with an elevated heart rate, and keeps
those alerts in a capacity-bounded key-value store.

This package provides:
- Data models for device readings and alert records
- Key-value storage backends (memory, file, Redis)
- Alert store, detector, and notification dispatcher
- Telemetry client with read-through cache and per-device history
- Polling monitor and service runner
"""

__version__ = "0.1.0"
