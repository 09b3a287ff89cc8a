"""
FastAPI application for the SafeTrack dashboard.

This module creates and configures the FastAPI application with:
- CORS configuration for cross-origin requests
- Router registration for the JSON API
- Lifespan events that build the core components and run the polling monitor
- The Plotly Dash operator UI mounted at /ui

The dashboard runs on port 8050 by default and provides:
- REST API: /api/alerts, /api/devices, /api/notifications, /api/session, /api/health
- Operator UI: /ui/
"""

import asyncio
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from safetrack.config import AppConfig, load_config
from safetrack.models.timestamps import utc_now
from safetrack.services import Components, create_components

logger = structlog.get_logger(__name__)


class AppState:
    """
    Application state container.

    Holds the core components built during startup (or injected by tests)
    and the event loop the UI thread submits coroutines to.
    """

    def __init__(self) -> None:
        self.components: Optional[Components] = None
        self.owns_components: bool = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.start_time: datetime = utc_now()


# Global application state
app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Manage application lifespan events.

    Builds the components from configuration unless they were injected,
    starts the polling monitor when enabled, and tears everything down on
    shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control flow returns to the application.
    """
    logger.info("dashboard_starting")

    if app_state.components is None:
        config: AppConfig = getattr(app.state, "config", None) or load_config(
            os.getenv("CONFIG_PATH", "config")
        )
        app_state.components = create_components(config)
        app_state.owns_components = True

    components = app_state.components
    app_state.loop = asyncio.get_running_loop()
    app_state.start_time = utc_now()

    if components.config.dashboard.run_monitor and components.config.monitor.auto_refresh:
        await components.monitor.start()

    logger.info(
        "dashboard_ready",
        storage_backend=components.config.storage.backend.value,
        monitor_running=components.monitor.timers_running,
    )

    yield

    logger.info("dashboard_shutting_down")

    await components.monitor.stop()
    if app_state.owns_components:
        await components.close()
        app_state.components = None
        app_state.owns_components = False
    app_state.loop = None

    logger.info("dashboard_shutdown_complete")


def create_app(
    config: Optional[AppConfig] = None,
    mount_ui: Optional[bool] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration used at startup; loaded from CONFIG_PATH when
            omitted.
        mount_ui: Mount the Dash UI at /ui (defaults to the config setting).

    Returns:
        FastAPI: Configured FastAPI application instance.

    Example:
        >>> app = create_app()
        >>> import uvicorn
        >>> uvicorn.run(app, host="0.0.0.0", port=8050)
    """
    app = FastAPI(
        title="SafeTrack Dashboard",
        description="Safety band monitoring: live devices, critical alerts, and notifications",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from services.dashboard.api.alerts import router as alerts_router
    from services.dashboard.api.deps import require_auth
    from services.dashboard.api.devices import router as devices_router
    from services.dashboard.api.health import router as health_router
    from services.dashboard.api.notifications import router as notifications_router
    from services.dashboard.api.session import router as session_router

    protected = [Depends(require_auth)]
    app.include_router(alerts_router, prefix="/api", tags=["Alerts"], dependencies=protected)
    app.include_router(devices_router, prefix="/api", tags=["Devices"], dependencies=protected)
    app.include_router(
        notifications_router,
        prefix="/api",
        tags=["Notifications"],
        dependencies=protected,
    )
    app.include_router(session_router, prefix="/api", tags=["Session"])
    app.include_router(health_router, prefix="/api", tags=["Health"])

    if mount_ui is None:
        mount_ui = config.dashboard.mount_ui if config is not None else True

    if mount_ui:
        from fastapi.middleware.wsgi import WSGIMiddleware

        from services.dashboard.ui import create_dash_app

        dash_app = create_dash_app(
            refresh_ms=config.dashboard.refresh_ms if config is not None else 5000,
            auto_refresh=config.monitor.auto_refresh if config is not None else True,
        )
        app.mount("/ui", WSGIMiddleware(dash_app.server))

        @app.get("/", include_in_schema=False)
        async def serve_index() -> RedirectResponse:
            """Redirect to the operator UI."""
            return RedirectResponse(url="/ui/")

    logger.info("fastapi_app_created", mount_ui=mount_ui)

    return app
