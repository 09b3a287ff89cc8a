"""
Critical alerts panel component for the SafeTrack dashboard.

This module provides components for displaying active PANIC/FALL alerts
with severity colors, notification state, and per-alert actions.

Note:
    Alert data is READ from the alert store - detection happens elsewhere.
"""

from datetime import datetime
from typing import Dict, List, Optional

from dash import html
import dash_bootstrap_components as dbc

from safetrack.models.alerts import AlertRecord, AlertSeverity, AlertStatus
from safetrack.models.timestamps import utc_now


SEVERITY_COLORS: Dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "danger",
    AlertSeverity.HIGH: "warning",
    AlertSeverity.MEDIUM: "info",
    AlertSeverity.LOW: "secondary",
}


def format_age(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Format how long ago an alert's reading was taken.

    Args:
        timestamp: Parsed reading time, or None.
        now: Reference time (defaults to UTC now).

    Returns:
        str: Human-readable age, or "unknown".
    """
    if timestamp is None:
        return "unknown"

    total_seconds = max(int(((now or utc_now()) - timestamp).total_seconds()), 0)

    if total_seconds < 60:
        return f"{total_seconds}s ago"
    elif total_seconds < 3600:
        return f"{total_seconds // 60}m ago"
    elif total_seconds < 86400:
        return f"{total_seconds // 3600}h {(total_seconds % 3600) // 60}m ago"
    else:
        return f"{total_seconds // 86400}d ago"


def get_status_badge(status: AlertStatus) -> dbc.Badge:
    return dbc.Badge(
        status.value,
        color="danger" if status == AlertStatus.PANIC else "warning",
        className="me-2",
    )


def get_severity_badge(severity: Optional[AlertSeverity]) -> Optional[dbc.Badge]:
    if severity is None:
        return None
    return dbc.Badge(
        severity.value,
        color=SEVERITY_COLORS.get(severity, "secondary"),
        pill=True,
        className="me-2",
    )


def create_alert_card(alert: AlertRecord, now: Optional[datetime] = None) -> html.Div:
    """
    Create an alert card component.

    Args:
        alert: Alert to display.
        now: Reference time for the age label.

    Returns:
        html.Div: Alert card with a "send email" action when not yet emailed.
    """
    if alert.email_sent:
        email_part = dbc.Badge("Email sent", color="success", className="ms-2")
    else:
        email_part = dbc.Button(
            "Send email",
            id={"type": "send-alert-email", "index": alert.id},
            color="danger",
            outline=True,
            size="sm",
            className="ms-2",
        )

    return html.Div(
        className=f"alert-card alert-{alert.status.value.lower()}",
        children=[
            dbc.Row([
                dbc.Col([
                    get_status_badge(alert.status),
                    get_severity_badge(alert.severity),
                    html.Strong(f"Device {alert.device_id}"),
                ], width=7),
                dbc.Col([
                    html.Span(
                        format_age(alert.parsed_timestamp, now),
                        className="text-muted",
                    ),
                    email_part,
                ], width=5, className="text-end"),
            ]),
            dbc.Row([
                dbc.Col([
                    html.Small(
                        [
                            html.Span(alert.location or "Unknown location", className="text-info"),
                            html.Span(" | ", className="text-muted"),
                            html.Span(f"{alert.heartbeat} BPM", className="text-danger"),
                            html.Span(" | ", className="text-muted"),
                            html.Span(alert.coordinates, className="text-muted"),
                        ],
                        className="mt-1 d-block",
                    ),
                ], width=12),
            ]),
        ],
    )


def create_alerts_panel() -> html.Div:
    """
    Create the complete critical alerts panel.

    Returns:
        html.Div: Panel with count badge, bulk actions, and the list container.
    """
    return html.Div(
        className="panel-container",
        children=[
            html.Div(
                className="panel-title d-flex justify-content-between align-items-center",
                children=[
                    html.Span("Critical Alerts"),
                    html.Span(
                        id="alerts-count-badge",
                        className="badge bg-secondary",
                        children="0",
                    ),
                ],
            ),
            dbc.ButtonGroup(
                [
                    dbc.Button("Send pending emails", id="btn-send-pending", color="danger", size="sm"),
                    dbc.Button("Archive old alerts", id="btn-cleanup", color="secondary", size="sm"),
                ],
                className="mb-2",
            ),
            html.Div(id="alerts-action-message", className="small text-muted mb-2"),
            html.Div(
                id="alerts-list-container",
                style={"maxHeight": "400px", "overflowY": "auto"},
                children=[render_no_alerts_message()],
            ),
        ],
    )


def render_no_alerts_message() -> html.Div:
    return html.Div(
        className="no-data-message",
        children=[
            html.I(className="fas fa-check-circle fa-2x mb-3", style={"color": "#28a745"}),
            html.Div("No critical alerts"),
        ],
    )


def render_alerts_list(
    alerts: List[AlertRecord],
    now: Optional[datetime] = None,
) -> List[html.Div]:
    """
    Render alert cards in storage order (newest submissions first).

    Args:
        alerts: Active alerts.
        now: Reference time for age labels.

    Returns:
        List[html.Div]: Alert cards, or the empty-state message.
    """
    if not alerts:
        return [render_no_alerts_message()]
    return [create_alert_card(alert, now) for alert in alerts]


def get_status_counts(alerts: List[AlertRecord]) -> Dict[str, int]:
    """
    Count alerts by status and notification state.

    Returns:
        dict: PANIC, FALL, pending (not emailed), and total counts.
    """
    counts = {"PANIC": 0, "FALL": 0, "pending": 0, "total": 0}
    for alert in alerts:
        counts[alert.status.value] += 1
        counts["total"] += 1
        if not alert.email_sent:
            counts["pending"] += 1
    return counts
