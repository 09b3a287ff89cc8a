"""
Alert detection, storage, and notification.

Components:
    store: AlertStore owning the active and archived collections
    detector: AlertDetector turning readings into alerts
    dispatcher: NotificationDispatcher delivering alert emails
    channels/: Notification channels (email, console)

Example:
    >>> from safetrack.detection import AlertDetector, AlertStore
    >>> from safetrack.storage import InMemoryKeyValueStore
    >>>
    >>> store = AlertStore(InMemoryKeyValueStore())
    >>> detector = AlertDetector(store)
    >>> new_alerts = detector.process(readings)
"""

from safetrack.detection.detector import (
    HEARTBEAT_ALERT_THRESHOLD,
    AlertDetector,
    DetectionResult,
    SkipReason,
    create_detector,
)
from safetrack.detection.dispatcher import (
    BulkDeliveryResult,
    DeliveryResult,
    NotificationDispatcher,
    create_notification_channel,
    create_notification_dispatcher,
)
from safetrack.detection.store import (
    ACTIVE_ALERTS_KEY,
    ARCHIVE_DROPPED_KEY,
    ARCHIVED_ALERTS_KEY,
    AlertStore,
    create_alert_store,
)

__all__ = [
    # Store
    "AlertStore",
    "create_alert_store",
    "ACTIVE_ALERTS_KEY",
    "ARCHIVED_ALERTS_KEY",
    "ARCHIVE_DROPPED_KEY",
    # Detector
    "AlertDetector",
    "DetectionResult",
    "SkipReason",
    "HEARTBEAT_ALERT_THRESHOLD",
    "create_detector",
    # Dispatcher
    "NotificationDispatcher",
    "DeliveryResult",
    "BulkDeliveryResult",
    "create_notification_channel",
    "create_notification_dispatcher",
]
