"""
Device table component for the SafeTrack dashboard.

Shows the latest reading per device with search, status and location
filters, sorting, and paging. Filtering is done by plain functions so the
callbacks stay thin.
"""

from typing import List, Optional

from dash import dcc, html
import dash_bootstrap_components as dbc

from safetrack.detection.detector import HEARTBEAT_ALERT_THRESHOLD
from safetrack.models.device import DeviceReading


PAGE_SIZE = 10

STATUS_FILTERS = [
    {"label": "All statuses", "value": "all"},
    {"label": "Alerts", "value": "alerts"},
    {"label": "Panic", "value": "panic"},
    {"label": "Fall", "value": "fall"},
    {"label": "Normal", "value": "normal"},
]

SORT_FIELDS = ["id", "timestamp", "location", "heartbeat"]


def filter_readings(
    readings: List[DeviceReading],
    search: str = "",
    status: str = "all",
    location: str = "all",
) -> List[DeviceReading]:
    """
    Filter readings for the table.

    Args:
        readings: Readings to filter.
        search: Case-insensitive substring of id or location.
        status: One of all, alerts, panic, fall, normal.
        location: Exact location, or "all".

    Returns:
        List[DeviceReading]: Matching readings.
    """
    needle = (search or "").lower()
    result = []
    for r in readings:
        if needle and needle not in r.id.lower() and needle not in r.location.lower():
            continue
        if status == "panic" and not r.panicstatus:
            continue
        if status == "fall" and not r.fallstatus:
            continue
        if status == "normal" and r.has_emergency_flag:
            continue
        if status == "alerts" and not r.has_emergency_flag:
            continue
        if location not in (None, "", "all") and r.location != location:
            continue
        result.append(r)
    return result


def sort_readings(
    readings: List[DeviceReading],
    field: str = "timestamp",
    descending: bool = True,
) -> List[DeviceReading]:
    if field not in SORT_FIELDS:
        field = "timestamp"

    def key(r: DeviceReading):
        value = getattr(r, field)
        return value.lower() if isinstance(value, str) else value

    return sorted(readings, key=key, reverse=descending)


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    return max((total + page_size - 1) // page_size, 1)


def get_status_badge(reading: DeviceReading) -> dbc.Badge:
    if reading.panicstatus:
        return dbc.Badge("PANIC", color="danger")
    if reading.fallstatus:
        return dbc.Badge("FALL", color="warning")
    return dbc.Badge("Normal", color="success")


def create_device_table_panel() -> html.Div:
    """
    Create the device table panel with its filter controls.

    Returns:
        html.Div: Panel container.
    """
    return html.Div(
        className="panel-container",
        children=[
            html.Div("Devices", className="panel-title"),
            dbc.Row([
                dbc.Col([
                    dbc.Input(id="device-search", placeholder="Search id or location", debounce=True),
                ], md=4),
                dbc.Col([
                    dcc.Dropdown(
                        id="device-status-filter",
                        options=STATUS_FILTERS,
                        value="all",
                        clearable=False,
                    ),
                ], md=3),
                dbc.Col([
                    dcc.Dropdown(
                        id="device-location-filter",
                        options=[{"label": "All locations", "value": "all"}],
                        value="all",
                        clearable=False,
                    ),
                ], md=3),
                dbc.Col([
                    dcc.Dropdown(
                        id="device-sort-field",
                        options=[{"label": f"Sort: {f}", "value": f} for f in SORT_FIELDS],
                        value="timestamp",
                        clearable=False,
                    ),
                    dbc.Switch(id="device-sort-desc", label="Descending", value=True),
                ], md=2),
            ], className="mb-2"),
            html.Div(id="device-table-container"),
            dbc.Pagination(id="device-table-pagination", max_value=1, active_page=1, size="sm"),
        ],
    )


def render_device_table(
    readings: List[DeviceReading],
    page: Optional[int] = 1,
    page_size: int = PAGE_SIZE,
) -> html.Div:
    """
    Render one page of the device table.

    Args:
        readings: Filtered and sorted readings.
        page: 1-based page number.
        page_size: Rows per page.

    Returns:
        html.Div: Table, or an empty-state message.
    """
    if not readings:
        return html.Div("No devices match the current filters", className="no-data-message")

    page = min(max(page or 1, 1), page_count(len(readings), page_size))
    start = (page - 1) * page_size
    rows = [
        html.Tr([
            html.Td(r.id),
            html.Td(get_status_badge(r)),
            html.Td(r.location or "-"),
            html.Td(f"{r.heartbeat} BPM", className="text-danger" if r.heartbeat > HEARTBEAT_ALERT_THRESHOLD else None),
            html.Td(f"{r.latitude:.5f}, {r.longitude:.5f}"),
            html.Td(r.timestamp),
        ])
        for r in readings[start:start + page_size]
    ]

    return dbc.Table(
        [
            html.Thead(html.Tr([
                html.Th("Device"),
                html.Th("Status"),
                html.Th("Location"),
                html.Th("Heartbeat"),
                html.Th("Coordinates"),
                html.Th("Timestamp"),
            ])),
            html.Tbody(rows),
        ],
        striped=True,
        hover=True,
        size="sm",
        className="mb-2",
    )
