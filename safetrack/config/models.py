"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
the YAML configuration file. The models provide sensible defaults so the
service can start with an empty or missing configuration file.

Configuration file:
    - config/safetrack.yaml: Telemetry, alert store, storage, notification,
      monitor, dashboard, and logging settings

Example:
    >>> from safetrack.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.alerts.max_active_alerts
    1000
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Key-value storage backend options."""

    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class NotificationChannelType(str, Enum):
    """Notification channel options."""

    EMAIL = "email"
    CONSOLE = "console"


# =============================================================================
# TELEMETRY CONFIGURATION
# =============================================================================


DEFAULT_TELEMETRY_ENDPOINT = (
    "https://ti02feperh.execute-api.us-east-1.amazonaws.com/defalut2/get_Function_IOT_Core"
)


class TelemetryConfig(BaseModel):
    """Remote telemetry endpoint and cache settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    endpoint: str = Field(
        default=DEFAULT_TELEMETRY_ENDPOINT,
        description="URL of the device telemetry endpoint (GET)",
        min_length=1,
    )
    timeout_seconds: int = Field(
        default=10,
        description="Request timeout; the request is aborted after this",
        ge=1,
        le=120,
    )
    cache_ttl_ms: int = Field(
        default=3000,
        description="Lifetime of the read-through device cache",
        ge=0,
    )
    history_limit: int = Field(
        default=100,
        description="Readings kept per device in the history",
        ge=1,
    )


# =============================================================================
# ALERT CONFIGURATION
# =============================================================================


class AlertStoreConfig(BaseModel):
    """Alert store caps and detector threshold."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_active_alerts: int = Field(
        default=1000,
        description="Active alerts kept before overflow is archived",
        ge=1,
    )
    max_archived_alerts: int = Field(
        default=5000,
        description="Archived alerts kept before the oldest are dropped",
        ge=1,
    )
    cleanup_days: int = Field(
        default=30,
        description="Default age (days) for cleanup",
        ge=0,
    )
    heartbeat_threshold: int = Field(
        default=90,
        description="Heart rate (BPM) that must be strictly exceeded to alert",
        ge=0,
    )

    @model_validator(mode="after")
    def validate_caps(self) -> "AlertStoreConfig":
        """Archive cap must not be smaller than the active cap."""
        if self.max_archived_alerts < self.max_active_alerts:
            raise ValueError(
                "max_archived_alerts must be greater than or equal to max_active_alerts"
            )
        return self


# =============================================================================
# STORAGE CONFIGURATION
# =============================================================================


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
        le=15,
    )
    socket_timeout: int = Field(
        default=5,
        description="Socket timeout in seconds",
        ge=1,
    )
    key_prefix: str = Field(
        default="",
        description="Prefix prepended to every key",
    )


class StorageConfig(BaseModel):
    """Key-value storage settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    backend: StorageBackend = Field(
        default=StorageBackend.FILE,
        description="Which key-value backend to use",
    )
    data_dir: str = Field(
        default=".safetrack",
        description="Directory for the file backend",
    )
    quota_bytes: Optional[int] = Field(
        default=5 * 1024 * 1024,
        description="Capacity of the memory/file backends (None for unbounded)",
        ge=1,
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection (redis backend only)",
    )


# =============================================================================
# NOTIFICATION CONFIGURATION
# =============================================================================


class NotificationConfig(BaseModel):
    """Email notification settings (EmailJS REST API)."""

    model_config = {"frozen": True, "extra": "forbid"}

    channel: NotificationChannelType = Field(
        default=NotificationChannelType.EMAIL,
        description="Channel used to deliver alert notifications",
    )
    api_url: str = Field(
        default="https://api.emailjs.com/api/v1.0/email/send",
        description="EmailJS send endpoint",
    )
    service_id: str = Field(default="", description="EmailJS service id")
    template_id: str = Field(default="", description="EmailJS template id")
    public_key: str = Field(default="", description="EmailJS public key (user_id)")
    private_key: Optional[str] = Field(
        default=None,
        description="EmailJS private key (accessToken), if strict mode is on",
    )
    recipient: str = Field(default="", description="Address receiving alert emails")
    send_delay_seconds: float = Field(
        default=0.5,
        description="Pause between sends during bulk delivery",
        ge=0,
    )
    timeout_seconds: int = Field(
        default=10,
        description="Send request timeout",
        ge=1,
    )
    auto_send: bool = Field(
        default=False,
        description="Send a notification as soon as an alert is detected",
    )

    @property
    def is_email_configured(self) -> bool:
        """Check whether every EmailJS identity field is set."""
        return all([self.service_id, self.template_id, self.public_key, self.recipient])


# =============================================================================
# MONITOR / DASHBOARD CONFIGURATION
# =============================================================================


class MonitorConfig(BaseModel):
    """Polling timer settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    poll_interval_seconds: float = Field(default=5.0, gt=0)
    freshness_interval_seconds: float = Field(default=2.0, gt=0)
    stale_after_seconds: float = Field(default=10.0, gt=0)
    auto_refresh: bool = Field(default=True)


class DashboardConfig(BaseModel):
    """Dashboard service settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8050, ge=1, le=65535)
    run_monitor: bool = Field(
        default=True,
        description="Run the polling monitor inside the dashboard process",
    )
    mount_ui: bool = Field(
        default=True,
        description="Mount the Dash UI under /ui",
    )
    refresh_ms: int = Field(default=5000, ge=500)
    export_prefix: str = Field(default="safetrack-alerts", min_length=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(default=LogFormat.JSON)
    level: LogLevel = Field(default=LogLevel.INFO)


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Root application configuration.

    Attributes:
        telemetry: Telemetry endpoint and cache settings.
        alerts: Alert store caps and detection threshold.
        storage: Key-value storage backend.
        notifications: Email notification settings.
        monitor: Polling timer settings.
        dashboard: Dashboard service settings.
        logging: Logging settings.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    alerts: AlertStoreConfig = Field(default_factory=AlertStoreConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
