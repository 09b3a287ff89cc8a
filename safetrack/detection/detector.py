"""
Alert detector for device readings.

This module provides the AlertDetector class which scans each poll's readings
and turns qualifying ones into stored alerts.

A reading qualifies when a status flag is raised (panic or fall) AND the
heart rate is strictly above HEARTBEAT_ALERT_THRESHOLD. A flag without an
elevated heart rate never produces an alert.

Example:
    >>> detector = AlertDetector(store)
    >>> new_alerts = detector.process(readings)
    >>> for alert in new_alerts:
    ...     print(alert.id, alert.severity)
"""

from enum import Enum
from typing import Iterable, List, Optional, Set

import structlog
from pydantic import BaseModel, Field

from safetrack.detection.store import AlertStore
from safetrack.models.alerts import AlertRecord, AlertStatus
from safetrack.models.device import DeviceReading

logger = structlog.get_logger(__name__)


# Strict lower bound: 90 BPM does not alert, 91 does.
HEARTBEAT_ALERT_THRESHOLD = 90


class SkipReason(str, Enum):
    """Why a reading did not produce a new alert."""

    NO_STATUS_FLAG = "no_status_flag"
    HEARTBEAT_NORMAL = "heartbeat_normal"
    ALREADY_ACTIVE = "already_active"
    REJECTED_BY_STORE = "rejected_by_store"


class DetectionResult(BaseModel):
    """
    Per-reading detection decision.

    Attributes:
        triggered: Whether the reading meets the alert condition.
        alert_id: Composite id the alert has (or would have).
        status: PANIC or FALL when a flag is raised.
        skip_reason: Set when no new alert results.
    """

    model_config = {"frozen": True}

    triggered: bool = Field(...)
    alert_id: str = Field(...)
    status: Optional[AlertStatus] = Field(default=None)
    skip_reason: Optional[SkipReason] = Field(default=None)


class AlertDetector:
    """
    Converts qualifying readings into alerts in the store.

    Attributes:
        store: Alert store that receives new alerts.
        heartbeat_threshold: Heart rate that must be exceeded.

    Example:
        >>> detector = AlertDetector(store)
        >>> detector.evaluate(reading).triggered
        True
    """

    def __init__(
        self,
        store: AlertStore,
        heartbeat_threshold: int = HEARTBEAT_ALERT_THRESHOLD,
    ) -> None:
        self.store = store
        self.heartbeat_threshold = heartbeat_threshold

    def is_critical(self, reading: DeviceReading) -> bool:
        return reading.has_emergency_flag and reading.heartbeat > self.heartbeat_threshold

    def evaluate(
        self,
        reading: DeviceReading,
        active_ids: Optional[Set[str]] = None,
    ) -> DetectionResult:
        """
        Decide whether a reading should become a new alert.

        Args:
            reading: Device reading to check.
            active_ids: Ids already in the active collection. Loaded from the
                store when omitted.

        Returns:
            DetectionResult: Decision with a skip reason when not new.
        """
        alert_id = AlertRecord.build_id(reading.id, reading.timestamp)

        if not reading.has_emergency_flag:
            return DetectionResult(
                triggered=False,
                alert_id=alert_id,
                skip_reason=SkipReason.NO_STATUS_FLAG,
            )

        status = AlertStatus.from_reading(reading)

        if reading.heartbeat <= self.heartbeat_threshold:
            return DetectionResult(
                triggered=False,
                alert_id=alert_id,
                status=status,
                skip_reason=SkipReason.HEARTBEAT_NORMAL,
            )

        if active_ids is None:
            active_ids = {a.id for a in self.store.list_active()}

        if alert_id in active_ids:
            return DetectionResult(
                triggered=True,
                alert_id=alert_id,
                status=status,
                skip_reason=SkipReason.ALREADY_ACTIVE,
            )

        return DetectionResult(triggered=True, alert_id=alert_id, status=status)

    def build_alert(self, reading: DeviceReading) -> AlertRecord:
        return AlertRecord.from_reading(reading)

    def process(self, readings: Iterable[DeviceReading]) -> List[AlertRecord]:
        """
        Scan a poll's readings and submit new alerts.

        Args:
            readings: Readings from the latest fetch.

        Returns:
            List[AlertRecord]: Alerts the store accepted, with severity set.

        Example:
            >>> new_alerts = detector.process(readings)
            >>> len(new_alerts)
            1
        """
        active_ids = {a.id for a in self.store.list_active()}
        accepted: List[AlertRecord] = []

        for reading in readings:
            result = self.evaluate(reading, active_ids)
            if not result.triggered or result.skip_reason is not None:
                continue

            candidate = self.build_alert(reading)
            if not self.store.submit(candidate):
                logger.debug(
                    "alert_candidate_rejected",
                    alert_id=candidate.id,
                    reason=SkipReason.REJECTED_BY_STORE.value,
                )
                continue

            active_ids.add(candidate.id)
            accepted.append(candidate.with_severity())

            logger.warning(
                "critical_alert_detected",
                alert_id=candidate.id,
                device_id=reading.id,
                status=result.status.value if result.status else None,
                heartbeat=reading.heartbeat,
            )

        return accepted


def create_detector(
    store: AlertStore,
    heartbeat_threshold: int = HEARTBEAT_ALERT_THRESHOLD,
) -> AlertDetector:
    """Factory function to create an AlertDetector."""
    return AlertDetector(store, heartbeat_threshold=heartbeat_threshold)
