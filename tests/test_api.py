"""Tests for the dashboard JSON API."""

from typing import List

import pytest
from fastapi.testclient import TestClient

from safetrack.config.models import (
    AppConfig,
    DashboardConfig,
    NotificationChannelType,
    NotificationConfig,
)
from safetrack.models.device import DeviceReading
from safetrack.services import create_components
from safetrack.storage.kv import InMemoryKeyValueStore
from services.dashboard.app import app_state, create_app


class FakeTelemetry:
    """Telemetry client stand-in returning a fixed poll."""

    def __init__(self) -> None:
        self.readings: List[DeviceReading] = []
        self.last_error = None

    def load_cache(self):
        return None

    def load_history(self) -> List[DeviceReading]:
        return list(self.readings)

    def clear_caches(self) -> None:
        pass

    async def refresh(self) -> List[DeviceReading]:
        return list(self.readings)

    async def close(self) -> None:
        pass


@pytest.fixture
def telemetry() -> FakeTelemetry:
    return FakeTelemetry()


@pytest.fixture
def components(telemetry):
    config = AppConfig(
        dashboard=DashboardConfig(run_monitor=False, mount_ui=False),
        notifications=NotificationConfig(
            channel=NotificationChannelType.CONSOLE, send_delay_seconds=0
        ),
    )
    app_state.components = create_components(
        config, kv=InMemoryKeyValueStore(), telemetry=telemetry
    )
    yield app_state.components
    app_state.components = None


@pytest.fixture
def client(components):
    with TestClient(create_app(mount_ui=False)) as test_client:
        yield test_client


@pytest.fixture
def signed_in(client):
    response = client.post(
        "/api/session/login", json={"email": "ops@example.com", "password": "secret"}
    )
    assert response.status_code == 200
    return client


class TestSession:
    """Test the session endpoints."""

    def test_protected_routes_need_login(self, client):
        """Test data routes return 401 before sign-in."""
        assert client.get("/api/alerts").status_code == 401
        assert client.get("/api/devices").status_code == 401
        assert client.post("/api/notifications/pending").status_code == 401

    def test_login_and_logout(self, client):
        """Test signing in then out flips the session state."""
        response = client.post(
            "/api/session/login", json={"email": "ops@example.com", "password": "x"}
        )
        assert response.json()["authenticated"] is True
        assert client.get("/api/alerts").status_code == 200

        response = client.post("/api/session/logout")
        assert response.json()["authenticated"] is False
        assert client.get("/api/alerts").status_code == 401

    def test_blank_credentials(self, client):
        """Test blank credentials are rejected."""
        response = client.post("/api/session/login", json={"email": "", "password": "x"})
        assert response.status_code == 401

    def test_theme(self, client):
        """Test the theme defaults to system and can be changed."""
        assert client.get("/api/session").json()["theme"] == "system"
        response = client.put("/api/session/theme", json={"theme": "dark"})
        assert response.json()["theme"] == "dark"


class TestAlerts:
    """Test the alert endpoints."""

    def test_list_and_filter(self, signed_in, components, make_alert):
        """Test listing active alerts with a status filter."""
        components.store.submit(make_alert(id="band-1"))
        components.store.submit(
            make_alert(id="band-2", panicstatus=False, fallstatus=True)
        )

        body = signed_in.get("/api/alerts").json()
        assert body["total"] == 2
        assert {a["deviceId"] for a in body["alerts"]} == {"band-1", "band-2"}

        body = signed_in.get("/api/alerts", params={"status": "FALL"}).json()
        assert [a["deviceId"] for a in body["alerts"]] == ["band-2"]

    def test_stats(self, signed_in, components, make_alert):
        """Test statistics reflect the store."""
        components.store.submit(make_alert())
        stats = signed_in.get("/api/alerts/stats").json()
        assert stats["totalAlerts"] == 1
        assert stats["panicAlerts"] == 1

    def test_export_then_import(self, signed_in, components, make_alert):
        """Test an exported document restores the collections."""
        alert = make_alert()
        components.store.submit(alert)

        response = signed_in.get("/api/alerts/export")
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        document = response.json()

        components.store.clear_active()
        assert signed_in.post("/api/alerts/import", json=document).status_code == 200
        assert components.store.get(alert.id) is not None

    def test_import_rejects_garbage(self, signed_in):
        """Test a malformed document is a 400."""
        response = signed_in.post("/api/alerts/import", json=["not", "a", "document"])
        assert response.status_code == 400

    def test_cleanup_archives_old_alerts(self, signed_in, components, make_alert):
        """Test alerts older than the window move to the archive."""
        components.store.submit(make_alert())

        response = signed_in.post("/api/alerts/cleanup", params={"days": 30})

        assert response.json()["moved"] == 1
        assert components.store.list_active() == []
        assert len(components.store.list_archived()) == 1

    def test_delete(self, signed_in, components, make_alert):
        """Test deleting an alert, then deleting it again."""
        alert = make_alert()
        components.store.submit(alert)

        assert signed_in.delete(f"/api/alerts/{alert.id}").status_code == 200
        assert signed_in.delete(f"/api/alerts/{alert.id}").status_code == 404

    def test_clear_archived(self, signed_in, components, make_alert):
        """Test clearing the archive."""
        components.store.archive([make_alert()])

        assert signed_in.delete("/api/alerts", params={"scope": "archived"}).status_code == 200
        assert components.store.list_archived() == []


class TestDevicesAndNotifications:
    """Test polling and notification endpoints."""

    def test_refresh_detects_alerts(self, signed_in, telemetry, make_reading):
        """Test a manual refresh polls and reports new alerts."""
        telemetry.readings = [
            make_reading(id="band-1", panicstatus=True, heartbeat=120),
            make_reading(id="band-2"),
        ]

        body = signed_in.post("/api/devices/refresh").json()
        assert body["new_alerts"] == 1
        assert body["devices"] == 2

        devices = signed_in.get("/api/devices").json()
        assert devices["total"] == 2
        assert devices["fresh"] is True

        summary = signed_in.get("/api/devices/summary").json()
        assert summary["active_alerts"] == 1

    def test_send_pending(self, signed_in, components, make_alert):
        """Test pending alerts are sent through the console channel."""
        components.store.submit(make_alert(id="band-1"))
        components.store.submit(make_alert(id="band-2"))

        body = signed_in.post("/api/notifications/pending").json()

        assert body["succeeded"] == 2
        assert all(a.email_sent for a in components.store.list_active())

    def test_send_unknown_alert(self, signed_in):
        """Test emailing a missing alert is a 404."""
        assert signed_in.post("/api/notifications/missing").status_code == 404

    def test_auto_refresh_toggle(self, signed_in, components):
        """Test the timers can be switched on and off."""
        assert signed_in.post("/api/devices/auto-refresh", json={"enabled": True}).json() == {
            "enabled": True
        }
        assert signed_in.post("/api/devices/auto-refresh", json={"enabled": False}).json() == {
            "enabled": False
        }


class TestHealth:
    """Test the health endpoint."""

    def test_health_without_data(self, client):
        """Test health is degraded until telemetry arrives."""
        body = client.get("/api/health").json()
        assert body["status"] == "degraded"
        assert body["storage"] == "ok"
        assert body["telemetry"]["status"] == "no_data"
