"""
Heartbeat time series chart component for the SafeTrack dashboard.

This module provides the heartbeat chart with:
- One line per device, averaged over 30-minute buckets
- Red/orange lines for devices currently in PANIC/FALL
- A dashed line at the alert threshold (90 BPM)

Note:
    History is READ from the telemetry cache - never generated here.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from dash import dcc, html
import plotly.graph_objects as go

from safetrack.detection.detector import HEARTBEAT_ALERT_THRESHOLD
from safetrack.models.device import DeviceReading


BUCKET_MINUTES = 30

# Chart colors
CHART_COLORS = {
    "panic": "#dc2626",
    "fall": "#ea580c",
    "threshold": "#ffc107",
    "grid": "#303030",
    "text": "#adb5bd",
    "background": "#212529",
}

DEVICE_PALETTE = [
    "#2563eb",
    "#dc2626",
    "#059669",
    "#d97706",
    "#7c3aed",
    "#0891b2",
    "#ea580c",
    "#65a30d",
    "#be185d",
    "#374151",
]

def create_heartbeat_chart_container() -> html.Div:
    return html.Div(
        className="panel-container",
        children=[
            html.Div("Heartbeat Monitor", className="panel-title"),
            dcc.Loading(
                id="heartbeat-chart-loading",
                type="circle",
                children=[
                    dcc.Graph(
                        id="heartbeat-chart",
                        className="chart-container",
                        config={"displaylogo": False},
                        figure=create_empty_heartbeat_chart(),
                    ),
                ],
            ),
        ],
    )


def _base_layout(fig: go.Figure) -> None:
    fig.update_layout(
        template="plotly_dark",
        paper_bgcolor=CHART_COLORS["background"],
        plot_bgcolor=CHART_COLORS["background"],
        margin=dict(l=50, r=30, t=30, b=50),
        height=300,
        xaxis=dict(title="Time", gridcolor=CHART_COLORS["grid"], showgrid=True),
        yaxis=dict(title="Heartbeat (BPM)", gridcolor=CHART_COLORS["grid"], showgrid=True),
        showlegend=True,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )


def create_empty_heartbeat_chart() -> go.Figure:
    fig = go.Figure()
    _base_layout(fig)
    fig.update_layout(
        annotations=[
            dict(
                text="No data available",
                xref="paper",
                yref="paper",
                x=0.5,
                y=0.5,
                showarrow=False,
                font=dict(size=14, color=CHART_COLORS["text"]),
            ),
        ],
    )
    return fig


def bucket_start(value: datetime, minutes: int = BUCKET_MINUTES) -> datetime:
    """Floor a timestamp to the start of its bucket."""
    return value.replace(
        minute=(value.minute // minutes) * minutes,
        second=0,
        microsecond=0,
    )


def device_colors(current: List[DeviceReading]) -> Dict[str, str]:
    """
    Assign a line color per device.

    Devices currently in PANIC are red, FALL orange, others take the
    palette color at their position in the reading list.
    """
    colors: Dict[str, str] = {}
    for index, reading in enumerate(current):
        if reading.panicstatus:
            colors[reading.id] = CHART_COLORS["panic"]
        elif reading.fallstatus:
            colors[reading.id] = CHART_COLORS["fall"]
        else:
            colors[reading.id] = DEVICE_PALETTE[index % len(DEVICE_PALETTE)]
    return colors


def bucket_readings(
    readings: List[DeviceReading],
    minutes: int = BUCKET_MINUTES,
) -> Dict[str, Dict[datetime, float]]:
    """
    Average heartbeats per device per time bucket.

    Readings with an unparseable timestamp or a zero heartbeat are skipped,
    and a reading repeated across history and the latest poll counts once.

    Args:
        readings: History and current readings, in any order.
        minutes: Bucket width.

    Returns:
        dict: device id -> {bucket start -> mean heartbeat}.
    """
    samples: Dict[str, Dict[datetime, List[int]]] = defaultdict(lambda: defaultdict(list))
    seen: Set[Tuple[str, str]] = set()

    for reading in readings:
        parsed = reading.parsed_timestamp
        if not reading.heartbeat or parsed is None:
            continue
        key = (reading.id, reading.timestamp)
        if key in seen:
            continue
        seen.add(key)
        samples[reading.id][bucket_start(parsed, minutes)].append(reading.heartbeat)

    return {
        device_id: {
            bucket: sum(values) / len(values)
            for bucket, values in buckets.items()
        }
        for device_id, buckets in samples.items()
    }


def average_heartbeat(readings: List[DeviceReading]) -> Optional[float]:
    values = [r.heartbeat for r in readings if r.heartbeat]
    if not values:
        return None
    return sum(values) / len(values)


def create_heartbeat_chart(
    history: List[DeviceReading],
    current: List[DeviceReading],
    threshold: int = HEARTBEAT_ALERT_THRESHOLD,
) -> go.Figure:
    """
    Create the heartbeat chart.

    Args:
        history: Readings from the history cache.
        current: Readings from the latest poll (for colors and the average).
        threshold: Alert threshold line.

    Returns:
        go.Figure: Configured chart figure.
    """
    series = bucket_readings(list(history) + list(current))
    if not series:
        return create_empty_heartbeat_chart()

    colors = device_colors(current)
    fig = go.Figure()

    for index, device_id in enumerate(sorted(series)):
        buckets = sorted(series[device_id].items())
        fig.add_trace(
            go.Scatter(
                x=[bucket.strftime("%H:%M") for bucket, _ in buckets],
                y=[round(value, 1) for _, value in buckets],
                name=f"Device {device_id}",
                line=dict(
                    color=colors.get(device_id, DEVICE_PALETTE[index % len(DEVICE_PALETTE)]),
                    width=2,
                ),
                mode="lines+markers",
                hovertemplate=f"Device {device_id}<br>%{{x}}<br>%{{y}} BPM<extra></extra>",
            )
        )

    fig.add_hline(
        y=threshold,
        line=dict(color=CHART_COLORS["threshold"], width=1, dash="dash"),
        annotation_text=f"Alert > {threshold} BPM",
        annotation_position="top left",
    )

    _base_layout(fig)

    avg = average_heartbeat(current)
    if avg is not None:
        fig.update_layout(title=dict(text=f"Average: {avg:.0f} BPM", x=0.01, font=dict(size=13)))

    # HH:MM labels sort lexically within a day
    fig.update_xaxes(type="category", categoryorder="category ascending")
    return fig
