"""
Device map component for the SafeTrack dashboard.

Plots the latest position of each device on an OpenStreetMap base layer,
colored by status.
"""

from typing import List

from dash import dcc, html
import plotly.graph_objects as go

from safetrack.models.device import DeviceReading


STATUS_COLORS = {
    "PANIC": "#dc2626",
    "FALL": "#ea580c",
    "Normal": "#16a34a",
}

# Used when no device has a position
DEFAULT_CENTER = {"lat": 20.5937, "lon": 78.9629}
DEFAULT_ZOOM = 4


def reading_status(reading: DeviceReading) -> str:
    if reading.panicstatus:
        return "PANIC"
    if reading.fallstatus:
        return "FALL"
    return "Normal"


def create_device_map_container() -> html.Div:
    return html.Div(
        className="panel-container",
        children=[
            html.Div("Device Locations", className="panel-title"),
            dcc.Graph(
                id="device-map",
                config={"displaylogo": False},
                figure=create_device_map([]),
            ),
        ],
    )


def create_device_map(readings: List[DeviceReading]) -> go.Figure:
    """
    Create the device map.

    Devices at (0, 0) have no position and are left off the map.

    Args:
        readings: Latest readings.

    Returns:
        go.Figure: Map figure with one trace per status.
    """
    positioned = [r for r in readings if r.latitude != 0 or r.longitude != 0]
    fig = go.Figure()

    for status, color in STATUS_COLORS.items():
        group = [r for r in positioned if reading_status(r) == status]
        if not group:
            continue
        fig.add_trace(
            go.Scattermapbox(
                lat=[r.latitude for r in group],
                lon=[r.longitude for r in group],
                mode="markers",
                marker=dict(size=14 if status != "Normal" else 10, color=color),
                name=status,
                text=[
                    f"Device {r.id}<br>{r.location or 'Unknown'}<br>{r.heartbeat} BPM"
                    for r in group
                ],
                hoverinfo="text",
            )
        )

    if positioned:
        center = {
            "lat": sum(r.latitude for r in positioned) / len(positioned),
            "lon": sum(r.longitude for r in positioned) / len(positioned),
        }
        zoom = 10
    else:
        center = DEFAULT_CENTER
        zoom = DEFAULT_ZOOM

    fig.update_layout(
        mapbox=dict(style="open-street-map", center=center, zoom=zoom),
        margin=dict(l=0, r=0, t=0, b=0),
        height=350,
        showlegend=True,
        legend=dict(orientation="h", yanchor="bottom", y=0.01, xanchor="left", x=0.01),
    )
    return fig
