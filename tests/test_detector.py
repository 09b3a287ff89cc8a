"""Tests for the alert detector."""

from datetime import timedelta

from safetrack.detection.detector import AlertDetector, SkipReason, create_detector
from safetrack.models.alerts import AlertSeverity, AlertStatus
from safetrack.models.timestamps import to_iso_string

from tests.conftest import FIXED_NOW


class TestEvaluate:
    """Test the per-reading decision."""

    def test_normal_reading_is_skipped(self, store, make_reading):
        """Test a reading without flags never alerts."""
        result = AlertDetector(store).evaluate(make_reading(heartbeat=150))
        assert result.triggered is False
        assert result.skip_reason == SkipReason.NO_STATUS_FLAG

    def test_threshold_is_strict(self, store, make_reading):
        """Test 90 BPM does not alert and 91 does."""
        detector = AlertDetector(store)

        at_threshold = detector.evaluate(make_reading(panicstatus=True, heartbeat=90))
        above = detector.evaluate(make_reading(panicstatus=True, heartbeat=91))

        assert at_threshold.triggered is False
        assert at_threshold.skip_reason == SkipReason.HEARTBEAT_NORMAL
        assert above.triggered is True
        assert above.skip_reason is None

    def test_panic_wins_over_fall(self, store, make_reading):
        """Test both flags classify as PANIC."""
        result = AlertDetector(store).evaluate(
            make_reading(panicstatus=True, fallstatus=True, heartbeat=100)
        )
        assert result.status == AlertStatus.PANIC

    def test_fall_only(self, store, make_reading):
        """Test the fall flag alone classifies as FALL."""
        result = AlertDetector(store).evaluate(make_reading(fallstatus=True, heartbeat=100))
        assert result.status == AlertStatus.FALL

    def test_already_active(self, store, make_reading, make_alert):
        """Test a reading whose alert exists is reported as already active."""
        store.submit(make_alert(panicstatus=True, heartbeat=95))
        result = AlertDetector(store).evaluate(make_reading(panicstatus=True, heartbeat=95))
        assert result.triggered is True
        assert result.skip_reason == SkipReason.ALREADY_ACTIVE

    def test_custom_threshold(self, store, make_reading):
        """Test the threshold is configurable."""
        detector = create_detector(store, heartbeat_threshold=120)
        assert detector.is_critical(make_reading(panicstatus=True, heartbeat=110)) is False
        assert detector.is_critical(make_reading(panicstatus=True, heartbeat=121)) is True


class TestProcess:
    """Test scanning a poll's readings."""

    def test_process_submits_new_alerts(self, store, make_reading):
        """Test only critical readings become alerts."""
        readings = [
            make_reading(id="band-1", panicstatus=True, heartbeat=121),
            make_reading(id="band-2", fallstatus=True, heartbeat=95),
            make_reading(id="band-3", heartbeat=130),
            make_reading(id="band-4", fallstatus=True, heartbeat=85),
        ]

        accepted = AlertDetector(store).process(readings)

        assert [a.device_id for a in accepted] == ["band-1", "band-2"]
        assert accepted[0].severity == AlertSeverity.CRITICAL
        assert accepted[1].severity == AlertSeverity.MEDIUM
        assert len(store.list_active()) == 2

    def test_process_is_idempotent(self, store, make_reading):
        """Test re-processing the same poll adds nothing."""
        readings = [make_reading(panicstatus=True, heartbeat=100)]
        detector = AlertDetector(store)

        assert len(detector.process(readings)) == 1
        assert detector.process(readings) == []
        assert len(store.list_active()) == 1

    def test_new_timestamp_raises_new_alert(self, store, make_reading):
        """Test the same device reporting again later is a new alert."""
        detector = AlertDetector(store)
        later = to_iso_string(FIXED_NOW + timedelta(seconds=5))

        detector.process([make_reading(panicstatus=True, heartbeat=100)])
        accepted = detector.process([make_reading(panicstatus=True, heartbeat=100, timestamp=later)])

        assert len(accepted) == 1
        assert len(store.list_active()) == 2

    def test_duplicates_within_one_poll(self, store, make_reading):
        """Test a reading repeated in one payload is stored once."""
        reading = make_reading(panicstatus=True, heartbeat=100)
        assert len(AlertDetector(store).process([reading, reading])) == 1
