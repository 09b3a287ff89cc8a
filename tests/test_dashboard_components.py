"""Tests for the dashboard view helpers."""

from datetime import timedelta

from services.dashboard.components.alert_list import format_age, get_status_counts
from services.dashboard.components.device_map import create_device_map
from services.dashboard.components.device_table import (
    filter_readings,
    page_count,
    sort_readings,
)
from services.dashboard.components.heartbeat_chart import (
    CHART_COLORS,
    DEVICE_PALETTE,
    bucket_readings,
    create_heartbeat_chart,
    device_colors,
)
from safetrack.models.timestamps import to_iso_string

from tests.conftest import FIXED_NOW


class TestDeviceTable:
    """Test table filtering, sorting and paging."""

    def test_filters(self, make_reading):
        """Test search, status and location filters combine."""
        readings = [
            make_reading(id="band-1", location="Dock", panicstatus=True),
            make_reading(id="band-2", location="Yard", fallstatus=True),
            make_reading(id="band-3", location="Dock"),
        ]

        assert [r.id for r in filter_readings(readings, search="DOCK")] == ["band-1", "band-3"]
        assert [r.id for r in filter_readings(readings, status="alerts")] == ["band-1", "band-2"]
        assert [r.id for r in filter_readings(readings, status="normal")] == ["band-3"]
        assert [r.id for r in filter_readings(readings, status="fall")] == ["band-2"]
        assert [r.id for r in filter_readings(readings, status="panic", location="Yard")] == []

    def test_sort(self, make_reading):
        """Test sorting by heartbeat and the fallback field."""
        readings = [
            make_reading(id="band-1", heartbeat=70),
            make_reading(id="band-2", heartbeat=120),
        ]

        assert [r.id for r in sort_readings(readings, "heartbeat")] == ["band-2", "band-1"]
        assert [r.id for r in sort_readings(readings, "heartbeat", descending=False)] == [
            "band-1",
            "band-2",
        ]
        assert len(sort_readings(readings, "bogus")) == 2

    def test_page_count(self):
        """Test an empty table still has one page."""
        assert page_count(0) == 1
        assert page_count(10) == 1
        assert page_count(11) == 2


class TestHeartbeatChart:
    """Test heartbeat bucketing and colors."""

    def test_bucket_average_and_dedup(self, make_reading):
        """Test readings in one bucket are averaged once each."""
        first = make_reading(heartbeat=80)
        second = make_reading(heartbeat=100, timestamp=to_iso_string(FIXED_NOW + timedelta(minutes=10)))
        skipped = make_reading(heartbeat=0, timestamp=to_iso_string(FIXED_NOW + timedelta(minutes=5)))

        series = bucket_readings([first, second, first, skipped])

        assert series == {"band-1": {FIXED_NOW: 90.0}}

    def test_device_colors(self, make_reading):
        """Test status colors override the palette."""
        colors = device_colors(
            [
                make_reading(id="band-1", panicstatus=True),
                make_reading(id="band-2", fallstatus=True),
                make_reading(id="band-3"),
            ]
        )

        assert colors["band-1"] == CHART_COLORS["panic"]
        assert colors["band-2"] == CHART_COLORS["fall"]
        assert colors["band-3"] == DEVICE_PALETTE[2]

    def test_chart_has_one_trace_per_device(self, make_reading):
        """Test the figure draws each device."""
        fig = create_heartbeat_chart(
            [make_reading(id="band-1")], [make_reading(id="band-2", heartbeat=100)]
        )
        assert len(fig.data) == 2


class TestAlertsAndMap:
    """Test alert list helpers and the map."""

    def test_format_age(self):
        """Test the age buckets."""
        assert format_age(None) == "unknown"
        assert format_age(FIXED_NOW - timedelta(seconds=30), FIXED_NOW) == "30s ago"
        assert format_age(FIXED_NOW - timedelta(minutes=5), FIXED_NOW) == "5m ago"
        assert format_age(FIXED_NOW - timedelta(hours=2, minutes=3), FIXED_NOW) == "2h 3m ago"
        assert format_age(FIXED_NOW - timedelta(days=3), FIXED_NOW) == "3d ago"

    def test_status_counts(self, make_alert):
        """Test counts by status and email state."""
        alerts = [
            make_alert(id="band-1"),
            make_alert(id="band-2", panicstatus=False, fallstatus=True),
        ]
        alerts[0] = alerts[0].mark_email_sent()

        assert get_status_counts(alerts) == {"PANIC": 1, "FALL": 1, "pending": 1, "total": 2}

    def test_map_skips_unpositioned_devices(self, make_reading):
        """Test devices at (0, 0) are left off the map."""
        fig = create_device_map(
            [
                make_reading(id="band-1"),
                make_reading(id="band-2", latitude=0, longitude=0),
            ]
        )
        plotted = sum(len(trace.lat or ()) for trace in fig.data)
        assert plotted == 1
