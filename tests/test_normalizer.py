"""Tests for telemetry payload normalization."""

import json

import pytest

from safetrack.telemetry.normalizer import (
    ParseFailureReason,
    parse_device_reading,
    parse_payload,
)

from tests.conftest import FIXED_NOW


class TestParseDeviceReading:
    """Test parsing a single raw item."""

    def test_full_item(self):
        """Test a well-formed item parses field for field."""
        result = parse_device_reading(
            {
                "id": "band-7",
                "timestamp": "2024-05-01T12:30:00.000Z",
                "location": "Dock 3",
                "latitude": 12.97,
                "longitude": 77.59,
                "panicstatus": True,
                "fallstatus": False,
                "heartbeat": 104,
            }
        )

        assert result.ok
        reading = result.reading
        assert reading.id == "band-7"
        assert reading.timestamp == "2024-05-01T12:30:00.000Z"
        assert reading.panicstatus is True
        assert reading.fallstatus is False
        assert reading.heartbeat == 104

    def test_loose_types(self):
        """Test string numbers, string flags and the deviceId fallback."""
        result = parse_device_reading(
            {
                "deviceId": 7,
                "location": "Dock",
                "latitude": "12.5",
                "heartbeat": "98.6",
                "fallstatus": "true",
                "panicstatus": "yes",
            },
            now=FIXED_NOW,
        )

        reading = result.reading
        assert reading.id == "7"
        assert reading.latitude == 12.5
        assert reading.longitude == 0
        assert reading.heartbeat == 99
        assert reading.fallstatus is True
        assert reading.panicstatus is False
        assert reading.timestamp == "2024-06-01T12:00:00.000Z"

    def test_missing_fields_default(self):
        """Test absent numerics and strings take defaults."""
        result = parse_device_reading({"id": "band-1", "latitude": 1.5}, now=FIXED_NOW)
        assert result.reading.location == ""
        assert result.reading.heartbeat == 0

    @pytest.mark.parametrize(
        "raw,reason",
        [
            ("band-1", ParseFailureReason.NOT_AN_OBJECT),
            ([{"id": "band-1"}], ParseFailureReason.NOT_AN_OBJECT),
            ({"location": "Dock"}, ParseFailureReason.MISSING_ID),
            ({"id": "", "location": "Dock"}, ParseFailureReason.MISSING_ID),
            ({"id": "unknown", "location": "Dock"}, ParseFailureReason.UNKNOWN_ID),
            ({"id": "band-1"}, ParseFailureReason.NO_POSITION),
            ({"id": "band-1", "latitude": 0, "longitude": 0}, ParseFailureReason.NO_POSITION),
            ({"id": "band-1", "location": "Dock", "heartbeat": "fast"}, ParseFailureReason.INVALID_NUMBER),
            ({"id": "band-1", "location": "Dock", "heartbeat": "NaN"}, ParseFailureReason.INVALID_NUMBER),
            ({"id": "band-1", "location": "Dock", "latitude": {"x": 1}}, ParseFailureReason.INVALID_NUMBER),
            ({"id": float("nan"), "location": "Dock"}, ParseFailureReason.INVALID_NUMBER),
            ({"deviceId": float("inf"), "location": "Dock"}, ParseFailureReason.INVALID_NUMBER),
            ({"id": "band-1", "location": float("inf")}, ParseFailureReason.INVALID_NUMBER),
        ],
    )
    def test_failures(self, raw, reason):
        """Test rejected items report why."""
        result = parse_device_reading(raw, now=FIXED_NOW)
        assert not result.ok
        assert result.failure.reason == reason


class TestParsePayload:
    """Test parsing whole responses."""

    def test_single_object_is_wrapped(self):
        """Test an object body is treated as a one-item array."""
        readings, failures = parse_payload({"id": "band-1", "location": "Dock"}, now=FIXED_NOW)
        assert [r.id for r in readings] == ["band-1"]
        assert failures == []

    def test_mixed_array(self):
        """Test good items survive next to bad ones."""
        readings, failures = parse_payload(
            [
                {"id": "band-1", "location": "Dock"},
                {"id": "unknown", "location": "Dock"},
                None,
                {"id": "band-2", "latitude": 1, "longitude": 2},
            ],
            now=FIXED_NOW,
        )

        assert [r.id for r in readings] == ["band-1", "band-2"]
        assert [f.reason for f in failures] == [
            ParseFailureReason.UNKNOWN_ID,
            ParseFailureReason.NOT_AN_OBJECT,
        ]

    def test_none_payload(self):
        """Test an empty body yields nothing."""
        assert parse_payload(None) == ([], [])

    def test_non_finite_values_do_not_sink_the_batch(self):
        """Test NaN and Infinity from the decoder reject only their own items."""
        payload = json.loads(
            '[{"id": "band-1", "location": Infinity},'
            ' {"id": NaN, "location": "Dock"},'
            ' {"id": "band-2", "location": "Dock"}]'
        )

        readings, failures = parse_payload(payload, now=FIXED_NOW)

        assert [r.id for r in readings] == ["band-2"]
        assert [f.reason for f in failures] == [
            ParseFailureReason.INVALID_NUMBER,
            ParseFailureReason.INVALID_NUMBER,
        ]
