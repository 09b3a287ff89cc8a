"""
Dashboard service entry point.

This module initializes and runs the SafeTrack dashboard using Uvicorn.

The dashboard:
- Runs on 0.0.0.0:8050 by default
- Provides the REST API for alerts, devices, notifications, and session
- Serves the Plotly Dash operator UI at /ui

Usage:
    python -m services.dashboard.main

    Or with uvicorn directly:
    uvicorn services.dashboard.main:app --host 0.0.0.0 --port 8050

Environment Variables:
    CONFIG_PATH: Path to config directory (default: config)
    LOG_LEVEL: Logging level (default: INFO)
    DASHBOARD_PORT: Port to run the dashboard on (overrides config)
    DASHBOARD_HOST: Host to bind to (overrides config)
"""

import os
import sys

import structlog
import uvicorn

from safetrack.config import load_config
from safetrack.services import setup_logging
from services.dashboard.app import create_app

config = load_config(os.getenv("CONFIG_PATH", "config"))
setup_logging(config.logging)

# Export the app for uvicorn direct usage
app = create_app(config)


def main() -> None:
    """
    Main entry point for the dashboard service.

    Starts the Uvicorn server with the FastAPI application.
    """
    logger = structlog.get_logger(__name__)
    logger.info(
        "dashboard_service_starting",
        version="0.1.0",
        python_version=sys.version,
    )

    # Environment wins over the config file
    host = os.getenv("DASHBOARD_HOST", config.dashboard.host)
    port = int(os.getenv("DASHBOARD_PORT", str(config.dashboard.port)))

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=config.logging.level.value.lower(),
        reload=False,
        workers=1,
        access_log=False,
    )


if __name__ == "__main__":
    main()
