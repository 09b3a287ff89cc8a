"""
Alert store backed by a key-value medium.

This module provides the AlertStore class, the sole authority over durable
alert state. Active and archived alerts are each persisted as one JSON array
under a fixed key; every operation reads the whole collection, changes it,
and writes the whole collection back.

Key Features:
    - Idempotent submission keyed on ``{deviceId}-{timestamp}``
    - Severity classification at submission time
    - Active-cap overflow moved to the archive, archive-cap overflow dropped
      (and counted)
    - Age-based cleanup, export/import snapshots, and storage statistics

Failure handling:
    Storage errors never propagate. Reads degrade to empty collections and
    writes return False (or a CleanupResult carrying the error). Nothing is
    retried.

Concurrency:
    There is no locking. Two processes sharing the medium may interleave
    read-modify-write cycles and the later write wins for the whole
    collection. Callers must not assume atomicity across separate calls.

Example:
    >>> store = AlertStore(InMemoryKeyValueStore())
    >>> store.submit(AlertRecord.from_reading(reading))
    True
    >>> store.stats().total_alerts
    1
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import structlog
from pydantic import ValidationError

from safetrack.models.alerts import AlertRecord, AlertStatus, CleanupResult, StorageStats
from safetrack.models.timestamps import to_iso_string, utc_now
from safetrack.storage.kv import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)


# Persisted keys
ACTIVE_ALERTS_KEY = "safetrack_critical_alerts"
ARCHIVED_ALERTS_KEY = "safetrack_archived_alerts"
ARCHIVE_DROPPED_KEY = "safetrack_archive_dropped"

# Default caps
DEFAULT_MAX_ACTIVE_ALERTS = 1000
DEFAULT_MAX_ARCHIVED_ALERTS = 5000
DEFAULT_CLEANUP_DAYS = 30


def _dump_collection(records: Sequence[AlertRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], separators=(",", ":"))


class AlertStore:
    """
    Owns the active and archived alert collections.

    Attributes:
        kv: Key-value medium holding the collections.
        max_active: Active collection cap.
        max_archived: Archive collection cap.

    Example:
        >>> store = AlertStore(kv, max_active=1000, max_archived=5000)
        >>> store.submit(alert)
        True
        >>> store.submit(alert)  # same id
        False
    """

    def __init__(
        self,
        kv: KeyValueStore,
        max_active: int = DEFAULT_MAX_ACTIVE_ALERTS,
        max_archived: int = DEFAULT_MAX_ARCHIVED_ALERTS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the alert store.

        Args:
            kv: Key-value medium.
            max_active: Active cap; overflow is archived.
            max_archived: Archive cap; overflow is dropped.
            clock: Returns the current aware datetime (defaults to UTC now).
        """
        if max_active < 1 or max_archived < 1:
            raise ValueError("alert caps must be positive")

        self.kv = kv
        self.max_active = max_active
        self.max_archived = max_archived
        self._clock = clock or utc_now

        logger.debug(
            "alert_store_initialized",
            max_active=max_active,
            max_archived=max_archived,
        )

    # =========================================================================
    # LOW-LEVEL READ/WRITE
    # =========================================================================

    def _read_raw(self, key: str) -> str:
        try:
            return self.kv.get(key) or ""
        except StorageError as e:
            logger.error("alert_collection_read_failed", key=key, error=str(e))
            return ""

    def _read_collection(self, key: str) -> List[AlertRecord]:
        raw = self._read_raw(key)
        if not raw:
            return []

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("alert_collection_corrupt", key=key, error=str(e))
            return []

        if not isinstance(data, list):
            logger.error(
                "alert_collection_corrupt",
                key=key,
                error=f"expected list, got {type(data).__name__}",
            )
            return []

        records: List[AlertRecord] = []
        skipped = 0
        for item in data:
            try:
                records.append(AlertRecord.model_validate(item))
            except ValidationError:
                skipped += 1

        if skipped:
            logger.warning("alert_records_skipped", key=key, skipped=skipped)

        return records

    def _write_collection(self, key: str, records: Sequence[AlertRecord]) -> None:
        """Persist a collection. Raises StorageError."""
        self.kv.set(key, _dump_collection(records))

    def _snapshot_archive(self) -> Optional[Tuple[Optional[str], Optional[str]]]:
        """
        Capture the raw archive and drop counter before a two-key write.

        Returns:
            The (archive, dropped) blobs, or None if they could not be read.
        """
        try:
            return self.kv.get(ARCHIVED_ALERTS_KEY), self.kv.get(ARCHIVE_DROPPED_KEY)
        except StorageError as e:
            logger.error("alert_archive_snapshot_failed", error=str(e))
            return None

    def _restore_archive(self, snapshot: Tuple[Optional[str], Optional[str]]) -> None:
        """Put back a snapshot after the active write failed, keeping ids unique."""
        for key, value in zip((ARCHIVED_ALERTS_KEY, ARCHIVE_DROPPED_KEY), snapshot):
            try:
                if value is None:
                    self.kv.remove(key)
                else:
                    self.kv.set(key, value)
            except StorageError as e:
                logger.error("alert_archive_restore_failed", key=key, error=str(e))
                return
        logger.warning("alert_archive_restored")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_active(self) -> List[AlertRecord]:
        """
        Get the active collection, newest submissions first.

        Returns:
            List[AlertRecord]: Active alerts; empty if absent or unreadable.
        """
        return self._read_collection(ACTIVE_ALERTS_KEY)

    def list_archived(self) -> List[AlertRecord]:
        """
        Get the archive collection, most recently archived first.

        Returns:
            List[AlertRecord]: Archived alerts; empty if absent or unreadable.
        """
        return self._read_collection(ARCHIVED_ALERTS_KEY)

    def get(self, alert_id: str) -> Optional[AlertRecord]:
        """Find an active alert by id."""
        for alert in self.list_active():
            if alert.id == alert_id:
                return alert
        return None

    def list_by_device(self, device_id: str) -> List[AlertRecord]:
        return [a for a in self.list_active() if a.device_id == device_id]

    def list_by_status(self, status: AlertStatus) -> List[AlertRecord]:
        return [a for a in self.list_active() if a.status == status]

    def list_by_date_range(self, start: datetime, end: datetime) -> List[AlertRecord]:
        """
        Get active alerts whose timestamp falls within [start, end].

        Alerts with unparseable timestamps never match. Naive bounds are UTC.

        Args:
            start: Inclusive lower bound.
            end: Inclusive upper bound.

        Returns:
            List[AlertRecord]: Matching active alerts.
        """
        start = _as_aware(start)
        end = _as_aware(end)
        matched = []
        for alert in self.list_active():
            ts = alert.parsed_timestamp
            if ts is not None and start <= ts <= end:
                matched.append(alert)
        return matched

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def submit(self, candidate: AlertRecord) -> bool:
        """
        Store a new alert.

        Rejects the candidate if an alert with the same id already exists in
        the active or archived collection. Otherwise classifies severity,
        prepends it to the active collection, and moves any overflow beyond
        the active cap (the oldest entries, at the tail) to the archive
        before persisting the trimmed list.

        Args:
            candidate: Alert to store.

        Returns:
            bool: True if stored, False on duplicate or storage failure.

        Example:
            >>> store.submit(alert)
            True
        """
        active = self.list_active()

        if any(existing.id == candidate.id for existing in active) or any(
            existing.id == candidate.id for existing in self.list_archived()
        ):
            logger.info("alert_duplicate_rejected", alert_id=candidate.id)
            return False

        alert = candidate.with_severity()
        updated = [alert] + active
        archive_snapshot = None

        if len(updated) > self.max_active:
            overflow = updated[self.max_active:]
            archive_snapshot = self._snapshot_archive()
            if not self.archive(overflow):
                logger.error(
                    "alert_save_failed",
                    alert_id=alert.id,
                    error="overflow could not be archived",
                )
                return False
            updated = updated[: self.max_active]

        try:
            self._write_collection(ACTIVE_ALERTS_KEY, updated)
        except StorageError as e:
            logger.error("alert_save_failed", alert_id=alert.id, error=str(e))
            if archive_snapshot is not None:
                self._restore_archive(archive_snapshot)
            return False

        logger.info(
            "alert_saved",
            alert_id=alert.id,
            device_id=alert.device_id,
            status=alert.status.value,
            severity=alert.severity.value if alert.severity else None,
        )
        return True

    def archive(self, records: Sequence[AlertRecord]) -> bool:
        """
        Prepend records to the archive.

        Records are flagged ``archived=True``. If the archive then exceeds its
        cap, the oldest entries are dropped permanently and the drop is
        counted. The active collection is not touched; callers remove the
        records from it themselves.

        Args:
            records: Alerts to archive.

        Returns:
            bool: True if the archive was written.
        """
        if not records:
            return True

        existing = self.list_archived()
        combined = [r.mark_archived() for r in records] + existing
        kept = combined[: self.max_archived]
        dropped = len(combined) - len(kept)

        try:
            self._write_collection(ARCHIVED_ALERTS_KEY, kept)
        except StorageError as e:
            logger.error("alert_archive_failed", count=len(records), error=str(e))
            return False

        if dropped:
            self._record_dropped(dropped)
            logger.warning(
                "archived_alerts_dropped",
                dropped=dropped,
                max_archived=self.max_archived,
            )

        logger.info("alerts_archived", count=len(records))
        return True

    def delete(self, alert_id: str) -> bool:
        """
        Remove one alert from the active collection.

        Args:
            alert_id: Exact alert id.

        Returns:
            bool: True if an alert was removed, False if absent or on failure.
        """
        alerts = self.list_active()
        remaining = [a for a in alerts if a.id != alert_id]
        if len(remaining) == len(alerts):
            logger.warning("alert_not_found_for_delete", alert_id=alert_id)
            return False

        try:
            self._write_collection(ACTIVE_ALERTS_KEY, remaining)
        except StorageError as e:
            logger.error("alert_delete_failed", alert_id=alert_id, error=str(e))
            return False

        logger.info("alert_deleted", alert_id=alert_id)
        return True

    def clear_active(self) -> bool:
        return self._remove_key(ACTIVE_ALERTS_KEY)

    def clear_archived(self) -> bool:
        return self._remove_key(ARCHIVED_ALERTS_KEY)

    def _remove_key(self, key: str) -> bool:
        try:
            self.kv.remove(key)
        except StorageError as e:
            logger.error("alert_collection_clear_failed", key=key, error=str(e))
            return False
        logger.info("alert_collection_cleared", key=key)
        return True

    def cleanup_older_than(self, days_to_keep: int = DEFAULT_CLEANUP_DAYS) -> CleanupResult:
        """
        Archive active alerts older than ``days_to_keep`` days.

        Alerts with unparseable timestamps are kept active.

        Args:
            days_to_keep: Age threshold in days.

        Returns:
            CleanupResult: ``moved`` count, or ``error`` if the cleanup failed.

        Example:
            >>> result = store.cleanup_older_than(30)
            >>> result.ok, result.moved
            (True, 4)
        """
        cutoff = self._clock() - timedelta(days=days_to_keep)
        to_keep: List[AlertRecord] = []
        to_archive: List[AlertRecord] = []

        for alert in self.list_active():
            ts = alert.parsed_timestamp
            if ts is not None and ts < cutoff:
                to_archive.append(alert)
            else:
                to_keep.append(alert)

        if not to_archive:
            return CleanupResult(moved=0)

        archive_snapshot = self._snapshot_archive()
        if not self.archive(to_archive):
            return CleanupResult(moved=0, error="failed to write archive")

        try:
            self._write_collection(ACTIVE_ALERTS_KEY, to_keep)
        except StorageError as e:
            logger.error("alert_cleanup_failed", error=str(e))
            if archive_snapshot is not None:
                self._restore_archive(archive_snapshot)
            return CleanupResult(moved=0, error=f"failed to write active alerts: {e}")

        logger.info(
            "alerts_cleaned_up",
            moved=len(to_archive),
            days_to_keep=days_to_keep,
        )
        return CleanupResult(moved=len(to_archive))

    def mark_email_sent(self, alert_id: str) -> bool:
        """
        Flag an active alert as notified.

        Idempotent; the archive is not searched.

        Args:
            alert_id: Exact alert id.

        Returns:
            bool: True if the alert is (now) flagged, False if not found or on failure.
        """
        alerts = self.list_active()
        for index, alert in enumerate(alerts):
            if alert.id == alert_id:
                break
        else:
            logger.warning("alert_not_found_for_email_mark", alert_id=alert_id)
            return False

        if alert.email_sent:
            return True

        alerts[index] = alert.mark_email_sent()
        try:
            self._write_collection(ACTIVE_ALERTS_KEY, alerts)
        except StorageError as e:
            logger.error("alert_email_mark_failed", alert_id=alert_id, error=str(e))
            return False

        logger.info("alert_email_marked", alert_id=alert_id)
        return True

    # =========================================================================
    # DROPPED COUNTER
    # =========================================================================

    def dropped_count(self) -> int:
        """Total archived alerts permanently dropped by the archive cap."""
        raw = self._read_raw(ARCHIVE_DROPPED_KEY)
        try:
            return max(int(raw), 0) if raw else 0
        except ValueError:
            return 0

    def _record_dropped(self, count: int) -> None:
        try:
            self.kv.set(ARCHIVE_DROPPED_KEY, str(self.dropped_count() + count))
        except StorageError as e:
            logger.error("archive_drop_count_failed", dropped=count, error=str(e))

    # =========================================================================
    # EXPORT / IMPORT / STATS
    # =========================================================================

    def export_snapshot(self, include_archived: bool = False) -> str:
        """
        Serialize the collections to a pretty-printed JSON document.

        Args:
            include_archived: Include the archive (otherwise an empty list).

        Returns:
            str: ``{exportDate, activeAlerts, archivedAlerts, stats}`` as JSON.
        """
        document = {
            "exportDate": to_iso_string(self._clock()),
            "activeAlerts": [a.to_dict() for a in self.list_active()],
            "archivedAlerts": (
                [a.to_dict() for a in self.list_archived()] if include_archived else []
            ),
            "stats": self.stats().to_dict(),
        }
        return json.dumps(document, indent=2)

    def export_filename(self, prefix: str = "safetrack-alerts") -> str:
        """File name for a download: ``<prefix>-<YYYY-MM-DD>.json``."""
        return f"{prefix}-{self._clock().date().isoformat()}.json"

    def import_snapshot(self, document: Union[str, bytes, Mapping[str, Any]]) -> bool:
        """
        Replace collections from an export document.

        ``activeAlerts`` and ``archivedAlerts`` each replace their collection
        wholesale when present and list-typed. Every record is validated
        before anything is written; a malformed document leaves storage
        untouched.

        Args:
            document: JSON text or an already-parsed mapping.

        Returns:
            bool: True if at least one collection was replaced.
        """
        if isinstance(document, (str, bytes)):
            try:
                document = json.loads(document)
            except ValueError as e:
                logger.error("alert_import_failed", error=f"invalid JSON: {e}")
                return False

        if not isinstance(document, Mapping):
            logger.error("alert_import_failed", error="document is not an object")
            return False

        collections: Dict[str, List[AlertRecord]] = {}
        for field, key in (
            ("activeAlerts", ACTIVE_ALERTS_KEY),
            ("archivedAlerts", ARCHIVED_ALERTS_KEY),
        ):
            items = document.get(field)
            if not isinstance(items, list):
                continue
            try:
                collections[key] = [AlertRecord.model_validate(item) for item in items]
            except ValidationError as e:
                logger.error(
                    "alert_import_failed",
                    error=f"invalid record in {field}",
                    detail=str(e),
                )
                return False

        if not collections:
            logger.error("alert_import_failed", error="no alert collections in document")
            return False

        try:
            for key, records in collections.items():
                self._write_collection(key, records)
        except StorageError as e:
            logger.error("alert_import_failed", error=str(e))
            return False

        logger.info(
            "alerts_imported",
            active=len(collections.get(ACTIVE_ALERTS_KEY, [])),
            archived=len(collections.get(ARCHIVED_ALERTS_KEY, [])),
        )
        return True

    def stats(self) -> StorageStats:
        """
        Aggregate counts over active and archived alerts.

        Returns:
            StorageStats: Counts, timestamp range, and stored byte size.
        """
        active = self.list_active()
        archived = self.list_archived()
        all_alerts = active + archived
        timestamps = sorted(a.timestamp for a in all_alerts)

        storage_size = len(
            (self._read_raw(ACTIVE_ALERTS_KEY) + self._read_raw(ARCHIVED_ALERTS_KEY)).encode(
                "utf-8"
            )
        )

        return StorageStats(
            total_alerts=len(all_alerts),
            panic_alerts=sum(1 for a in all_alerts if a.status == AlertStatus.PANIC),
            fall_alerts=sum(1 for a in all_alerts if a.status == AlertStatus.FALL),
            emails_sent=sum(1 for a in all_alerts if a.email_sent),
            archived_alerts=len(archived),
            oldest_alert=timestamps[0] if timestamps else None,
            newest_alert=timestamps[-1] if timestamps else None,
            storage_size=storage_size,
            dropped_alerts=self.dropped_count(),
        )


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_alert_store(
    kv: KeyValueStore,
    max_active: int = DEFAULT_MAX_ACTIVE_ALERTS,
    max_archived: int = DEFAULT_MAX_ARCHIVED_ALERTS,
) -> AlertStore:
    """
    Factory function to create an AlertStore.

    Args:
        kv: Key-value medium.
        max_active: Active cap.
        max_archived: Archive cap.

    Returns:
        AlertStore: A new store instance.
    """
    return AlertStore(kv, max_active=max_active, max_archived=max_archived)
