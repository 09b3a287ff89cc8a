"""
Polling monitor.

Runs the two periodic timers behind the live dashboard:

    poll timer (5 s):       fetch telemetry and run detection
    freshness timer (2 s):  force a refresh when the last successful update
                            is older than the staleness threshold (10 s)

Both timers start and stop together. Poll cycles are serialized with an
asyncio.Lock, so a freshness-triggered refresh waits for an in-flight poll
instead of overlapping it. A failed fetch keeps the last good readings and
leaves ``last_update`` unchanged, which makes the freshness timer retry.

Example:
    >>> monitor = PollingMonitor(client, detector)
    >>> await monitor.start()
    >>> ...
    >>> await monitor.stop()
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

import structlog
from pydantic import BaseModel, Field

from safetrack.detection.detector import AlertDetector
from safetrack.models.alerts import AlertRecord
from safetrack.models.device import DeviceReading
from safetrack.models.timestamps import utc_now
from safetrack.telemetry.client import TelemetryClient, TelemetryFetchError

logger = structlog.get_logger(__name__)


DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_FRESHNESS_INTERVAL_SECONDS = 2.0
DEFAULT_STALE_AFTER_SECONDS = 10.0

AlertCallback = Callable[[List[AlertRecord]], Awaitable[None]]


class DeviceSummary(BaseModel):
    """
    Headline counts for the dashboard.

    Attributes:
        total_devices: Devices in the latest poll.
        active_alerts: Devices with a panic or fall flag raised.
        fall_alerts: Devices with the fall flag raised.
        avg_heartbeat: Mean heart rate, rounded; 0 with no devices.
        unique_historical_devices: Distinct devices in history.
        last_update: Time of the last successful update.
    """

    model_config = {"frozen": True}

    total_devices: int = Field(default=0)
    active_alerts: int = Field(default=0)
    fall_alerts: int = Field(default=0)
    avg_heartbeat: int = Field(default=0)
    unique_historical_devices: int = Field(default=0)
    last_update: Optional[datetime] = Field(default=None)


def summarize_readings(
    readings: List[DeviceReading],
    history: List[DeviceReading],
    last_update: Optional[datetime] = None,
) -> DeviceSummary:
    """Compute dashboard counts from current readings and history."""
    avg = 0
    if readings:
        avg = int(round(sum(r.heartbeat for r in readings) / len(readings)))
    return DeviceSummary(
        total_devices=len(readings),
        active_alerts=sum(1 for r in readings if r.has_emergency_flag),
        fall_alerts=sum(1 for r in readings if r.fallstatus),
        avg_heartbeat=avg,
        unique_historical_devices=len({r.id for r in history}),
        last_update=last_update,
    )


class PollingMonitor:
    """
    Periodic telemetry poller feeding the alert detector.

    Attributes:
        client: Telemetry client.
        detector: Alert detector run on every successful poll.
        poll_interval: Seconds between polls.
        freshness_interval: Seconds between freshness checks.
        stale_after: Age in seconds after which data is stale.
        readings: Readings from the last successful poll.
        last_update: Time of the last successful poll.
    """

    def __init__(
        self,
        client: TelemetryClient,
        detector: AlertDetector,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        freshness_interval: float = DEFAULT_FRESHNESS_INTERVAL_SECONDS,
        stale_after: float = DEFAULT_STALE_AFTER_SECONDS,
        on_alerts: Optional[AlertCallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
        offload_detection: bool = False,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            client: Telemetry client.
            detector: Alert detector.
            poll_interval: Poll timer period in seconds.
            freshness_interval: Freshness timer period in seconds.
            stale_after: Staleness threshold in seconds.
            on_alerts: Awaited with each non-empty batch of new alerts.
            clock: Returns the current aware datetime.
            offload_detection: Run detection in a worker thread. Used when
                the store sits on a network backend whose calls block.
        """
        self.client = client
        self.detector = detector
        self.poll_interval = poll_interval
        self.freshness_interval = freshness_interval
        self.stale_after = stale_after
        self.on_alerts = on_alerts
        self._clock = clock or utc_now
        self.offload_detection = offload_detection

        self.readings: List[DeviceReading] = []
        self.last_update: Optional[datetime] = None

        self._lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None
        self._freshness_task: Optional[asyncio.Task] = None

    @property
    def timers_running(self) -> bool:
        return self._poll_task is not None and self._freshness_task is not None

    async def poll_once(self, force_refresh: bool = False) -> List[AlertRecord]:
        """
        Run one poll cycle: fetch, then detect.

        Args:
            force_refresh: Bypass the telemetry cache.

        Returns:
            List[AlertRecord]: Alerts created by this cycle.
        """
        async with self._lock:
            readings = await self._fetch(force_refresh)
            if readings is None:
                return []

            self.readings = readings
            self.last_update = self._clock()

            if self.offload_detection:
                new_alerts = await asyncio.to_thread(self.detector.process, readings)
            else:
                new_alerts = self.detector.process(readings)

        if new_alerts:
            logger.warning("new_critical_alerts", count=len(new_alerts))
            if self.on_alerts is not None:
                await self.on_alerts(new_alerts)

        return new_alerts

    async def _fetch(self, force_refresh: bool) -> Optional[List[DeviceReading]]:
        if not force_refresh:
            cached = self.client.load_cache()
            if cached is not None:
                return list(cached.data)

        try:
            return await self.client.refresh()
        except TelemetryFetchError as e:
            logger.error(
                "poll_fetch_failed",
                error=str(e),
                kept_readings=len(self.readings),
            )
            return None

    def is_fresh(self) -> bool:
        if self.last_update is None:
            return False
        return self._clock() - self.last_update <= timedelta(seconds=self.stale_after)

    async def check_freshness(self) -> bool:
        """
        Force a refresh if the data is stale.

        Returns:
            bool: True if a refresh was triggered.
        """
        if self.is_fresh():
            return False
        logger.info(
            "data_stale_refreshing",
            last_update=self.last_update.isoformat() if self.last_update else None,
        )
        await self.poll_once(force_refresh=True)
        return True

    def clear(self) -> None:
        """Forget the last readings so the next poll starts from scratch."""
        self.readings = []
        self.last_update = None

    def summary(self) -> DeviceSummary:
        return summarize_readings(self.readings, self.client.load_history(), self.last_update)

    # =========================================================================
    # TIMERS
    # =========================================================================

    async def _poll_loop(self) -> None:
        try:
            while True:
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error("poll_cycle_error", error=str(e))
                await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.debug("poll_loop_cancelled")
            raise

    async def _freshness_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.freshness_interval)
                try:
                    await self.check_freshness()
                except Exception as e:
                    logger.error("freshness_check_error", error=str(e))
        except asyncio.CancelledError:
            logger.debug("freshness_loop_cancelled")
            raise

    async def start(self) -> None:
        """Start both timers. No-op if already running."""
        if self.timers_running:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._freshness_task = asyncio.create_task(self._freshness_loop())
        logger.info(
            "monitor_started",
            poll_interval=self.poll_interval,
            freshness_interval=self.freshness_interval,
            stale_after=self.stale_after,
        )

    async def stop(self) -> None:
        """Cancel both timers and wait for them to finish."""
        tasks = [t for t in (self._poll_task, self._freshness_task) if t is not None]
        self._poll_task = None
        self._freshness_task = None
        if not tasks:
            return

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("monitor_stopped")

    async def set_auto_refresh(self, enabled: bool) -> None:
        if enabled:
            await self.start()
        else:
            await self.stop()
