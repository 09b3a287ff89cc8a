"""
Reusable dashboard components.

Contains cards, charts, and tables for the SafeTrack operator UI.

Components:
    - summary_cards: Headline device and alert counts with freshness
    - alert_list: Critical alerts panel with email actions
    - device_table: Filterable, paged device table
    - heartbeat_chart: Heartbeat time series chart
    - device_map: Device location map

"""

from services.dashboard.components.summary_cards import (
    create_summary_panel,
    render_summary_values,
    render_freshness,
)
from services.dashboard.components.alert_list import (
    create_alerts_panel,
    create_alert_card,
    render_alerts_list,
)
from services.dashboard.components.device_table import (
    create_device_table_panel,
    filter_readings,
    render_device_table,
)
from services.dashboard.components.heartbeat_chart import (
    create_heartbeat_chart_container,
    create_heartbeat_chart,
)
from services.dashboard.components.device_map import (
    create_device_map_container,
    create_device_map,
)

__all__ = [
    "create_summary_panel",
    "render_summary_values",
    "render_freshness",
    "create_alerts_panel",
    "create_alert_card",
    "render_alerts_list",
    "create_device_table_panel",
    "filter_readings",
    "render_device_table",
    "create_heartbeat_chart_container",
    "create_heartbeat_chart",
    "create_device_map_container",
    "create_device_map",
]
