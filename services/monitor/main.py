"""
Monitor Service entry point.

This service is responsible for:
- Polling the telemetry endpoint every poll interval
- Forcing a refresh when data goes stale
- Submitting critical readings to the alert store
- Sending alert emails as they are raised when auto-send is enabled

Usage:
    python -m services.monitor.main

Environment Variables:
    SAFETRACK_TELEMETRY_URL: Device telemetry endpoint
    SAFETRACK_STORAGE_BACKEND: memory, file, or redis
    REDIS_URL: Redis connection URL (default: redis://localhost:6379)
    LOG_LEVEL: Logging level (default: INFO)
    CONFIG_PATH: Path to config directory (default: config)
"""

import asyncio
import os
import sys

import structlog

from safetrack.services import ServiceRunner, setup_logging

logger = structlog.get_logger(__name__)


class MonitorService(ServiceRunner):
    """
    Headless polling service.

    Runs the polling monitor's timers until shutdown, then tears both down
    together.
    """

    @property
    def service_name(self) -> str:
        """Return service name."""
        return "monitor"

    async def _initialize(self) -> None:
        """Run one forced poll so alerts are current before the timers start."""
        if self.components is None:
            raise RuntimeError("Components not initialized")

        new_alerts = await self.components.monitor.poll_once(force_refresh=True)
        self.logger.info(
            "initial_poll_complete",
            devices=len(self.components.monitor.readings),
            new_alerts=len(new_alerts),
        )

    async def _run(self) -> None:
        """Start the timers and wait for shutdown."""
        if self.components is None:
            raise RuntimeError("Components not initialized")

        await self.components.monitor.start()
        await self.shutdown_event.wait()

    async def _cleanup(self) -> None:
        """Stop the timers and log final store counts."""
        if self.components is None:
            return
        await self.components.monitor.stop()
        stats = self.components.store.stats()
        self.logger.info(
            "final_store_stats",
            active_alerts=stats.total_alerts,
            archived_alerts=stats.archived_alerts,
            dropped_alerts=stats.dropped_alerts,
        )


async def main() -> None:
    """Main entry point."""
    # Set up initial logging
    setup_logging()

    config_path = os.getenv("CONFIG_PATH", "config")

    logger.info(
        "monitor_service_starting",
        version="0.1.0",
        config_path=config_path,
    )

    service = MonitorService(config_path=config_path)

    try:
        await service.run()
    except Exception as e:
        logger.error("service_failed", error=str(e))
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
