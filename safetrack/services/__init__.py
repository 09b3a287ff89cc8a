"""
Shared runtime for the service entry points.

Components:
    setup_logging: structlog configuration over stdlib logging
    Components / create_components: Wires the store, detector, telemetry
        client, dispatcher, session, and monitor from configuration
    ServiceRunner: Base class for long-running services

Example:
    >>> class MyService(ServiceRunner):
    ...     service_name = "my-service"
    ...     async def _initialize(self) -> None: ...
    ...     async def _run(self) -> None: ...
    ...     async def _cleanup(self) -> None: ...
    >>> asyncio.run(MyService().run())
"""

from __future__ import annotations

import asyncio
import logging
import signal
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog

from safetrack.config import AppConfig, LogFormat, LoggingConfig, load_config
from safetrack.config.models import StorageBackend
from safetrack.detection.detector import AlertDetector
from safetrack.detection.dispatcher import (
    NotificationDispatcher,
    create_notification_dispatcher,
)
from safetrack.detection.store import AlertStore
from safetrack.monitor import PollingMonitor
from safetrack.session import SessionState
from safetrack.storage.kv import KeyValueStore, create_kv_store
from safetrack.telemetry.client import TelemetryClient, create_telemetry_client

logger = structlog.get_logger(__name__)


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structured logging.

    Args:
        config: Logging settings; defaults to JSON at INFO.
    """
    config = config or LoggingConfig()

    renderer = (
        structlog.processors.JSONRenderer()
        if config.format == LogFormat.JSON
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, config.level.value),
        force=True,
    )

    # Reduce noise from HTTP access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class Components:
    """
    The wired core objects of one process.

    Attributes:
        config: Application configuration.
        kv: Key-value store shared by every component.
        store: Alert store.
        detector: Alert detector.
        telemetry: Telemetry client.
        dispatcher: Notification dispatcher.
        session: Session state.
        monitor: Polling monitor.
    """

    def __init__(
        self,
        config: AppConfig,
        kv: KeyValueStore,
        store: AlertStore,
        detector: AlertDetector,
        telemetry: TelemetryClient,
        dispatcher: NotificationDispatcher,
        session: SessionState,
        monitor: PollingMonitor,
    ) -> None:
        self.config = config
        self.kv = kv
        self.store = store
        self.detector = detector
        self.telemetry = telemetry
        self.dispatcher = dispatcher
        self.session = session
        self.monitor = monitor

    async def close(self) -> None:
        """Stop timers and release network and storage resources."""
        await self.monitor.stop()
        await self.telemetry.close()
        await self.dispatcher.close()

        disconnect = getattr(self.kv, "disconnect", None)
        if callable(disconnect):
            disconnect()


def create_components(
    config: AppConfig,
    kv: Optional[KeyValueStore] = None,
    telemetry: Optional[TelemetryClient] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> Components:
    """
    Build every core component from configuration.

    Args:
        config: Application configuration.
        kv: Key-value store; created from ``config.storage`` when omitted.
        telemetry: Telemetry client override.
        dispatcher: Notification dispatcher override.

    Returns:
        Components: Wired components; timers are not started.

    Raises:
        StorageUnavailable: If the configured backend cannot connect.
    """
    kv = kv if kv is not None else create_kv_store(config.storage)

    store = AlertStore(
        kv,
        max_active=config.alerts.max_active_alerts,
        max_archived=config.alerts.max_archived_alerts,
    )
    detector = AlertDetector(store, heartbeat_threshold=config.alerts.heartbeat_threshold)
    telemetry = telemetry or create_telemetry_client(config.telemetry, kv)
    dispatcher = dispatcher or create_notification_dispatcher(store, config.notifications)

    on_alerts = None
    if config.notifications.auto_send:

        async def on_alerts(alerts):  # type: ignore[no-redef]
            for alert in alerts:
                await dispatcher.send_alert(alert)

    monitor = PollingMonitor(
        telemetry,
        detector,
        poll_interval=config.monitor.poll_interval_seconds,
        freshness_interval=config.monitor.freshness_interval_seconds,
        stale_after=config.monitor.stale_after_seconds,
        on_alerts=on_alerts,
        offload_detection=config.storage.backend == StorageBackend.REDIS,
    )

    return Components(
        config=config,
        kv=kv,
        store=store,
        detector=detector,
        telemetry=telemetry,
        dispatcher=dispatcher,
        session=SessionState(kv),
        monitor=monitor,
    )


class ServiceRunner(ABC):
    """
    Base class for long-running services.

    ``run`` loads configuration, configures logging, builds the components,
    installs signal handlers, then calls ``_initialize``, ``_run`` and
    ``_cleanup``. ``_run`` should return once ``shutdown_event`` is set.

    Attributes:
        config_path: Configuration directory.
        config: Loaded configuration.
        components: Wired core components.
        shutdown_event: Set on SIGINT/SIGTERM or ``request_shutdown``.
        logger: Logger bound with the service name.
    """

    def __init__(self, config_path: Path | str = "config") -> None:
        self.config_path = config_path
        self.config: Optional[AppConfig] = None
        self.components: Optional[Components] = None
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(__name__).bind(service=self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Name used in logs."""
        ...

    @abstractmethod
    async def _initialize(self) -> None:
        """Service-specific setup after components are built."""
        ...

    @abstractmethod
    async def _run(self) -> None:
        """Main service loop."""
        ...

    async def _cleanup(self) -> None:
        """Service-specific cleanup before components are closed."""
        return None

    def request_shutdown(self) -> None:
        self.logger.info("shutdown_requested")
        self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                pass

    async def run(self) -> None:
        """
        Run the service until shutdown.

        Raises:
            ConfigLoadError: If configuration is invalid.
            StorageUnavailable: If the storage backend cannot connect.
        """
        self.config = load_config(self.config_path)
        setup_logging(self.config.logging)

        self.components = create_components(self.config)
        self._install_signal_handlers()

        self.logger.info(
            "service_starting",
            storage_backend=self.config.storage.backend.value,
            telemetry_endpoint=self.config.telemetry.endpoint,
        )

        try:
            await self._initialize()
            await self._run()
        finally:
            try:
                await self._cleanup()
            finally:
                await self.components.close()
                self.logger.info("service_stopped")
