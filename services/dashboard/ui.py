"""
Plotly Dash operator UI for the SafeTrack dashboard.

The Dash app is mounted inside the FastAPI application at /ui, so both share
the components in services.dashboard.app.app_state.
"""

import dash_bootstrap_components as dbc
import structlog
from dash import Dash

from services.dashboard.callbacks.updates import register_callbacks
from services.dashboard.layouts.main import create_main_layout

logger = structlog.get_logger(__name__)

UI_PATH_PREFIX = "/ui/"


def create_dash_app(refresh_ms: int = 5000, auto_refresh: bool = True) -> Dash:
    """
    Create the Dash application.

    Args:
        refresh_ms: Interval between UI refreshes in milliseconds.
        auto_refresh: Initial state of the auto-refresh switch.

    Returns:
        Dash: Configured Dash app; serve ``dash_app.server`` under /ui.
    """
    dash_app = Dash(
        __name__,
        requests_pathname_prefix=UI_PATH_PREFIX,
        routes_pathname_prefix="/",
        external_stylesheets=[dbc.themes.DARKLY, dbc.icons.FONT_AWESOME],
        title="SafeTrack Monitor",
        suppress_callback_exceptions=True,
    )
    dash_app.layout = create_main_layout(refresh_ms=refresh_ms, auto_refresh=auto_refresh)
    register_callbacks(dash_app)

    logger.info("dash_app_created", refresh_ms=refresh_ms, prefix=UI_PATH_PREFIX)
    return dash_app
