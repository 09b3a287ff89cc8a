"""Shared fixtures for the SafeTrack test suite."""

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from safetrack.detection.store import AlertStore
from safetrack.models.alerts import AlertRecord
from safetrack.models.device import DeviceReading
from safetrack.models.timestamps import to_iso_string
from safetrack.storage.kv import InMemoryKeyValueStore

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv, clock) -> AlertStore:
    return AlertStore(kv, max_active=1000, max_archived=5000, clock=clock)


@pytest.fixture
def make_reading() -> Callable[..., DeviceReading]:
    """Factory for readings; defaults to a normal reading at FIXED_NOW."""

    def _make(**overrides) -> DeviceReading:
        fields = {
            "id": "band-1",
            "timestamp": to_iso_string(FIXED_NOW),
            "location": "Warehouse B",
            "latitude": 12.97,
            "longitude": 77.59,
            "panicstatus": False,
            "fallstatus": False,
            "heartbeat": 80,
        }
        fields.update(overrides)
        return DeviceReading(**fields)

    return _make


@pytest.fixture
def make_alert(make_reading) -> Callable[..., AlertRecord]:
    """Factory for alert candidates; defaults to a PANIC alert."""

    def _make(age: timedelta = timedelta(0), **overrides) -> AlertRecord:
        overrides.setdefault("panicstatus", True)
        overrides.setdefault("heartbeat", 95)
        overrides.setdefault("timestamp", to_iso_string(FIXED_NOW - age))
        return AlertRecord.from_reading(make_reading(**overrides))

    return _make
