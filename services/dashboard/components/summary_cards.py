"""
Summary cards for the SafeTrack dashboard.

Displays device counts, alert counts, average heartbeat, and the data
freshness indicator at the top of the page.

Note:
    All values are READ from the monitor summary - never computed here.
"""

from datetime import datetime
from typing import List, Optional

from dash import html
import dash_bootstrap_components as dbc

from safetrack.monitor import DeviceSummary


SUMMARY_METRICS = [
    ("devices", "Devices"),
    ("active-alerts", "Active Alerts"),
    ("fall-alerts", "Falls"),
    ("avg-heartbeat", "Avg Heartbeat"),
    ("history-devices", "Tracked Devices"),
]


def create_summary_card(title: str, metric_id: str, unit: str = "") -> html.Div:
    """
    Create a summary card.

    Args:
        title: Display title.
        metric_id: Suffix for the callback ids.
        unit: Unit label shown after the value.

    Returns:
        html.Div: Card component.
    """
    return html.Div(
        className="metric-card",
        children=[
            html.Div(title, className="metric-title"),
            html.Div(
                id=f"summary-value-{metric_id}",
                className="metric-value",
                children="--",
            ),
            html.Span(unit, className="metric-unit"),
        ],
    )


def create_summary_panel() -> html.Div:
    cards = [
        dbc.Col(
            create_summary_card(title, metric_id, "BPM" if metric_id == "avg-heartbeat" else ""),
            className="mb-2",
        )
        for metric_id, title in SUMMARY_METRICS
    ]
    return html.Div(
        className="panel-container",
        children=[
            html.Div(
                className="panel-title d-flex justify-content-between align-items-center",
                children=[
                    html.Span("Overview"),
                    html.Span(id="data-freshness-indicator", children=render_freshness(False, None)),
                ],
            ),
            dbc.Row(cards),
        ],
    )


def render_summary_values(summary: DeviceSummary) -> List[str]:
    """
    Format summary values in SUMMARY_METRICS order.

    Returns:
        List[str]: Display strings.
    """
    return [
        str(summary.total_devices),
        str(summary.active_alerts),
        str(summary.fall_alerts),
        str(summary.avg_heartbeat) if summary.total_devices else "--",
        str(summary.unique_historical_devices),
    ]


def render_freshness(fresh: bool, last_update: Optional[datetime]) -> dbc.Badge:
    if last_update is None:
        return dbc.Badge("No data", color="secondary")
    label = last_update.strftime("%H:%M:%S")
    if fresh:
        return dbc.Badge(f"Live · {label}", color="success")
    return dbc.Badge(f"Stale · {label}", color="warning")
