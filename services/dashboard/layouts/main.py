"""
Main dashboard layout for the SafeTrack operator UI.

This module defines the main layout structure with:
- Header with title, refresh, auto-refresh toggle, and export
- Sign-in panel shown until the session is authenticated
- Overview cards and the critical alerts panel
- Heartbeat chart and device map
- Device table

Note:
    All data is fetched via callbacks, not computed here.
"""

from dash import html, dcc
import dash_bootstrap_components as dbc

from services.dashboard.components.summary_cards import create_summary_panel
from services.dashboard.components.alert_list import create_alerts_panel
from services.dashboard.components.device_table import create_device_table_panel
from services.dashboard.components.heartbeat_chart import create_heartbeat_chart_container
from services.dashboard.components.device_map import create_device_map_container


def create_header(auto_refresh: bool = True) -> html.Div:
    """
    Create the dashboard header with title and controls.

    Returns:
        html.Div: Header component.
    """
    return html.Div(
        className="dashboard-header",
        children=[
            dbc.Row([
                # Title
                dbc.Col([
                    html.H1("SAFETRACK MONITOR", className="header-title"),
                ], width=4),

                # Data controls
                dbc.Col([
                    dbc.ButtonGroup([
                        dbc.Button("Refresh", id="btn-refresh", color="primary", size="sm"),
                        dbc.Button("Export", id="btn-export", color="secondary", outline=True, size="sm"),
                        dbc.Button("Sign out", id="btn-logout", color="secondary", outline=True, size="sm"),
                    ]),
                    dcc.Download(id="export-download"),
                ], width=4, className="text-center"),

                dbc.Col([
                    dbc.Switch(
                        id="auto-refresh-switch",
                        label="Auto-refresh",
                        value=auto_refresh,
                    ),
                ], width=2),

                # Last update timestamp
                dbc.Col([
                    html.Span(
                        id="last-update-timestamp",
                        className="last-update",
                        children="Last update: --:--:--",
                    ),
                ], width=2, className="text-end"),
            ]),
        ],
    )


def create_login_panel() -> html.Div:
    return html.Div(
        id="login-panel",
        children=[
            html.Div(
                className="panel-container mx-auto mt-5",
                style={"maxWidth": "420px"},
                children=[
                    html.Div("Sign in", className="panel-title"),
                    dbc.Input(id="login-email", type="email", placeholder="Email", className="mb-2"),
                    dbc.Input(
                        id="login-password",
                        type="password",
                        placeholder="Password",
                        className="mb-2",
                    ),
                    dbc.Button("Sign in", id="btn-login", color="primary", className="w-100"),
                    html.Div(id="login-message", className="small text-danger mt-2"),
                ],
            ),
        ],
    )


def create_main_layout(refresh_ms: int = 5000, auto_refresh: bool = True) -> html.Div:
    """
    Create the main dashboard layout with all panels.

    The layout is organized as:
    - Row 1: Overview (left), Critical Alerts (right)
    - Row 2: Heartbeat chart (left), Device map (right)
    - Row 3: Device table (full width)

    Args:
        refresh_ms: Interval between UI refreshes.
        auto_refresh: Initial state of the auto-refresh switch.

    Returns:
        html.Div: Complete main layout component.
    """
    return html.Div([
        dcc.Interval(id="interval-refresh", interval=refresh_ms, n_intervals=0),
        dcc.Store(id="action-counter", data=0),

        create_login_panel(),

        html.Div(
            id="dashboard-content",
            style={"display": "none"},
            children=[
                # Header
                create_header(auto_refresh),

                # Main content container
                dbc.Container(
                    fluid=True,
                    className="px-4",
                    children=[
                        # Row 1: Overview and Critical Alerts
                        dbc.Row([
                            dbc.Col([
                                create_summary_panel(),
                            ], lg=6, md=12),
                            dbc.Col([
                                create_alerts_panel(),
                            ], lg=6, md=12),
                        ], className="mb-3"),

                        # Row 2: Heartbeat chart and map
                        dbc.Row([
                            dbc.Col([
                                create_heartbeat_chart_container(),
                            ], lg=7, md=12),
                            dbc.Col([
                                create_device_map_container(),
                            ], lg=5, md=12),
                        ], className="mb-3"),

                        # Row 3: Device table
                        dbc.Row([
                            dbc.Col([
                                create_device_table_panel(),
                            ], width=12),
                        ], className="mb-3"),
                    ],
                ),
            ],
        ),
    ])
