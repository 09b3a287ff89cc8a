"""
Configuration management for the alert monitor.

Configuration is loaded from config/safetrack.yaml and validated with
Pydantic models. Environment variables override connection settings.

Example:
    >>> from safetrack.config import load_config
    >>> config = load_config()
    >>> config.alerts.heartbeat_threshold
    90

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
"""

from safetrack.config.loader import ConfigLoadError, ConfigLoader, load_config
from safetrack.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    NotificationChannelType,
    StorageBackend,
    # Sections
    AlertStoreConfig,
    DashboardConfig,
    LoggingConfig,
    MonitorConfig,
    NotificationConfig,
    RedisConnectionConfig,
    StorageConfig,
    TelemetryConfig,
    # Root config
    AppConfig,
)

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Enums
    "LogFormat",
    "LogLevel",
    "NotificationChannelType",
    "StorageBackend",
    # Sections
    "AlertStoreConfig",
    "DashboardConfig",
    "LoggingConfig",
    "MonitorConfig",
    "NotificationConfig",
    "RedisConnectionConfig",
    "StorageConfig",
    "TelemetryConfig",
    # Root config
    "AppConfig",
]
