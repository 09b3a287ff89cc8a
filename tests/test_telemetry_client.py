"""Tests for the telemetry client and its caches."""

import asyncio
import json
from datetime import timedelta
from typing import Any, List, Optional

import aiohttp

from safetrack.config.models import TelemetryConfig
from safetrack.models.timestamps import to_iso_string
from safetrack.telemetry import (
    DEVICE_CACHE_KEY,
    HISTORY_KEY,
    TelemetryClient,
    create_telemetry_client,
)

from tests.conftest import FIXED_NOW


class FakeResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc) -> None:
        return None


class FakeSession:
    """Serves queued responses (or raises queued errors) for GET."""

    def __init__(self) -> None:
        self.queue: List[Any] = []
        self.calls = 0
        self.closed = False

    def respond(self, payload: Any, status: int = 200) -> None:
        body = payload if isinstance(payload, str) else json.dumps(payload)
        self.queue.append(FakeResponse(status, body))

    def fail(self, error: Exception) -> None:
        self.queue.append(error)

    def get(self, url, headers=None):
        self.calls += 1
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def device(device_id: str = "band-1", timestamp: Optional[str] = None, **fields) -> dict:
    item = {
        "id": device_id,
        "timestamp": timestamp or to_iso_string(FIXED_NOW),
        "location": "Dock",
        "latitude": 12.9,
        "longitude": 77.5,
        "panicstatus": False,
        "fallstatus": False,
        "heartbeat": 80,
    }
    item.update(fields)
    return item


def make_client(kv, clock, session, **kwargs) -> TelemetryClient:
    return TelemetryClient("https://telemetry.test/devices", kv, session=session, clock=clock, **kwargs)


class TestFetch:
    """Test fetching and caching."""

    async def test_fetch_parses_and_caches(self, kv, clock):
        """Test a successful fetch fills both caches."""
        session = FakeSession()
        session.respond([device("band-1"), device("band-2")])
        client = make_client(kv, clock, session)

        readings = await client.fetch_devices()

        assert [r.id for r in readings] == ["band-1", "band-2"]
        cache = json.loads(kv.get(DEVICE_CACHE_KEY))
        assert set(cache) == {"data", "timestamp", "lastUpdate"}
        assert cache["lastUpdate"] == "2024-06-01T12:00:00.000Z"
        assert len(json.loads(kv.get(HISTORY_KEY))) == 2
        assert client.last_error is None
        assert client.last_success_at == FIXED_NOW

    async def test_fresh_cache_skips_request(self, kv, clock):
        """Test a second call within the TTL is served from cache."""
        session = FakeSession()
        session.respond([device()])
        client = make_client(kv, clock, session)

        await client.fetch_devices()
        clock.advance(seconds=2)
        readings = await client.fetch_devices()

        assert session.calls == 1
        assert [r.id for r in readings] == ["band-1"]

    async def test_expired_cache_refetches(self, kv, clock):
        """Test the cache is ignored once older than the TTL."""
        session = FakeSession()
        session.respond([device()])
        session.respond([device("band-2")])
        client = make_client(kv, clock, session)

        await client.fetch_devices()
        clock.advance(seconds=4)
        readings = await client.fetch_devices()

        assert session.calls == 2
        assert [r.id for r in readings] == ["band-2"]

    async def test_force_refresh_bypasses_cache(self, kv, clock):
        """Test force_refresh always hits the endpoint."""
        session = FakeSession()
        session.respond([device()])
        session.respond([device()])
        client = make_client(kv, clock, session)

        await client.fetch_devices()
        await client.fetch_devices(force_refresh=True)

        assert session.calls == 2

    async def test_single_object_payload(self, kv, clock):
        """Test an object body is accepted as one device."""
        session = FakeSession()
        session.respond(device("band-9"))
        readings = await make_client(kv, clock, session).fetch_devices()
        assert [r.id for r in readings] == ["band-9"]


class TestFailures:
    """Test failure handling."""

    async def test_http_error_returns_empty(self, kv, clock):
        """Test a non-2xx status yields [] and records the error."""
        session = FakeSession()
        session.respond("Internal Server Error", status=500)
        client = make_client(kv, clock, session)

        assert await client.fetch_devices() == []
        assert "500" in client.last_error

    async def test_timeout_returns_empty(self, kv, clock):
        """Test a timeout yields []."""
        session = FakeSession()
        session.fail(asyncio.TimeoutError())
        client = make_client(kv, clock, session)

        assert await client.fetch_devices() == []
        assert "timeout" in client.last_error

    async def test_transport_error_returns_empty(self, kv, clock):
        """Test connection errors yield []."""
        session = FakeSession()
        session.fail(aiohttp.ClientError("connection refused"))
        client = make_client(kv, clock, session)

        assert await client.fetch_devices() == []
        assert "connection refused" in client.last_error

    async def test_invalid_json_returns_empty(self, kv, clock):
        """Test an undecodable body yields []."""
        session = FakeSession()
        session.respond("<html>oops</html>")
        assert await make_client(kv, clock, session).fetch_devices() == []

    async def test_error_cleared_on_success(self, kv, clock):
        """Test last_error resets after a good fetch."""
        session = FakeSession()
        session.respond("bad", status=502)
        session.respond([device()])
        client = make_client(kv, clock, session)

        await client.fetch_devices()
        await client.fetch_devices(force_refresh=True)

        assert client.last_error is None

    async def test_corrupt_cache_is_discarded(self, kv, clock):
        """Test an unreadable cache entry is removed and refetched."""
        kv.set(DEVICE_CACHE_KEY, "{oops")
        session = FakeSession()
        session.respond([device()])
        client = make_client(kv, clock, session)

        assert client.load_cache() is None
        assert kv.get(DEVICE_CACHE_KEY) is None


class TestHistory:
    """Test the per-device history cache."""

    async def test_history_deduplicates(self, kv, clock):
        """Test the same id and timestamp is stored once."""
        session = FakeSession()
        session.respond([device()])
        session.respond([device()])
        client = make_client(kv, clock, session)

        await client.fetch_devices(force_refresh=True)
        await client.fetch_devices(force_refresh=True)

        assert len(client.load_history()) == 1

    async def test_history_keeps_newest_per_device(self, kv, clock):
        """Test each device keeps only its newest readings."""
        session = FakeSession()
        for i in range(5):
            ts = to_iso_string(FIXED_NOW + timedelta(minutes=i))
            session.respond([device("band-1", ts), device("band-2", ts)])
        client = make_client(kv, clock, session, history_limit=3)

        for _ in range(5):
            await client.fetch_devices(force_refresh=True)

        history = client.load_history()
        band_1 = sorted(r.timestamp for r in history if r.id == "band-1")
        assert len(band_1) == 3
        assert band_1[0] == to_iso_string(FIXED_NOW + timedelta(minutes=2))
        assert len([r for r in history if r.id == "band-2"]) == 3

    async def test_clear_caches(self, kv, clock):
        """Test both caches are removed."""
        session = FakeSession()
        session.respond([device()])
        client = make_client(kv, clock, session)
        await client.fetch_devices()

        client.clear_caches()

        assert kv.get(DEVICE_CACHE_KEY) is None
        assert kv.get(HISTORY_KEY) is None
        assert client.load_history() == []


class TestFactory:
    """Test construction from configuration."""

    async def test_create_from_config(self, kv):
        """Test config values are applied."""
        config = TelemetryConfig(endpoint="https://telemetry.test/x", cache_ttl_ms=1000, history_limit=5)
        client = create_telemetry_client(config, kv)

        assert client.endpoint == "https://telemetry.test/x"
        assert client.cache_ttl_ms == 1000
        assert client.history_limit == 5
        await client.close()

    async def test_injected_session_is_not_closed(self, kv, clock):
        """Test close leaves a caller-owned session open."""
        session = FakeSession()
        await make_client(kv, clock, session).close()
        assert session.closed is False
