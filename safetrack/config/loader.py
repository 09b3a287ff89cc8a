"""
Configuration loader for YAML-based application configuration.

This module loads and validates configuration from a single YAML file. All
configuration is validated using Pydantic models so that configuration errors
surface at startup rather than mid-poll.

Configuration file expected:
    - config/safetrack.yaml (optional; defaults apply when absent)

Environment variables override:
    - SAFETRACK_TELEMETRY_URL: Telemetry endpoint URL
    - SAFETRACK_STORAGE_BACKEND: memory, file, or redis
    - SAFETRACK_DATA_DIR: Directory for the file backend
    - REDIS_URL: Redis connection URL
    - EMAILJS_SERVICE_ID / EMAILJS_TEMPLATE_ID / EMAILJS_PUBLIC_KEY /
      EMAILJS_PRIVATE_KEY: EmailJS identity
    - ALERT_EMAIL_TO: Alert email recipient
    - LOG_LEVEL: Application log level

Example:
    >>> from safetrack.config.loader import load_config
    >>> config = load_config("config")
    >>> print(config.telemetry.timeout_seconds)
    10
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from safetrack.config.models import (
    AlertStoreConfig,
    AppConfig,
    DashboardConfig,
    LoggingConfig,
    LogLevel,
    MonitorConfig,
    NotificationConfig,
    StorageConfig,
    TelemetryConfig,
)

CONFIG_FILENAME = "safetrack.yaml"


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


class ConfigLoader:
    """
    Loads and validates application configuration from YAML.

    Expects the following directory structure:
        config/
        └── safetrack.yaml  - all sections (telemetry, alerts, storage, ...)

    A missing file is not an error: every section falls back to its
    defaults, then environment overrides are applied.

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
        >>> config.storage.backend
        <StorageBackend.FILE: 'file'>
    """

    def __init__(self, config_dir: Path | str = "config"):
        """
        Initialize config loader.

        Args:
            config_dir: Path to configuration directory (default: 'config').

        Raises:
            ConfigLoadError: If config path exists but is not a directory.
        """
        self.config_dir = Path(config_dir)
        if self.config_dir.exists() and not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    def _load_yaml(self) -> Dict[str, Any]:
        """
        Load the YAML file from the config directory.

        Returns:
            Dict containing parsed YAML content, empty if the file is absent.

        Raises:
            ConfigLoadError: If the file is unreadable, invalid YAML, or not a mapping.
        """
        file_path = self.config_file
        if not file_path.exists():
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration file must contain a mapping: {file_path}",
                file_path=file_path,
            )
        return data

    @staticmethod
    def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigLoadError(f"Configuration section '{name}' must be a mapping")
        return dict(section)

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """
        Merge environment overrides into the raw section dicts.

        Args:
            data: Parsed YAML content.

        Returns:
            Dict of section name to raw section dict.
        """
        sections = {
            name: self._section(data, name)
            for name in (
                "telemetry",
                "alerts",
                "storage",
                "notifications",
                "monitor",
                "dashboard",
                "logging",
            )
        }

        telemetry_url = os.getenv("SAFETRACK_TELEMETRY_URL")
        if telemetry_url:
            sections["telemetry"]["endpoint"] = telemetry_url

        backend = os.getenv("SAFETRACK_STORAGE_BACKEND")
        if backend:
            sections["storage"]["backend"] = backend.lower()

        data_dir = os.getenv("SAFETRACK_DATA_DIR")
        if data_dir:
            sections["storage"]["data_dir"] = data_dir

        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            redis_section = dict(sections["storage"].get("redis") or {})
            redis_section["url"] = redis_url
            sections["storage"]["redis"] = redis_section

        env_to_notification = {
            "EMAILJS_SERVICE_ID": "service_id",
            "EMAILJS_TEMPLATE_ID": "template_id",
            "EMAILJS_PUBLIC_KEY": "public_key",
            "EMAILJS_PRIVATE_KEY": "private_key",
            "ALERT_EMAIL_TO": "recipient",
        }
        for env_name, field_name in env_to_notification.items():
            value = os.getenv(env_name)
            if value:
                sections["notifications"][field_name] = value

        log_level = self._get_log_level()
        if log_level is not None:
            sections["logging"]["level"] = log_level.value

        return sections

    def _get_log_level(self) -> Optional[LogLevel]:
        """
        Get log level from environment.

        Returns:
            LogLevel if LOG_LEVEL is set to a known level, else None.
        """
        level_str = os.getenv("LOG_LEVEL")
        if not level_str:
            return None
        try:
            return LogLevel(level_str.upper())
        except ValueError:
            return None

    def load(self) -> AppConfig:
        """
        Load and validate the configuration file.

        Returns:
            AppConfig: Validated application configuration.

        Raises:
            ConfigLoadError: If any configuration is invalid.

        Example:
            >>> config = ConfigLoader("config").load()
            >>> config.monitor.poll_interval_seconds
            5.0
        """
        data = self._load_yaml()
        sections = self._apply_env_overrides(data)

        try:
            return AppConfig(
                telemetry=TelemetryConfig(**sections["telemetry"]),
                alerts=AlertStoreConfig(**sections["alerts"]),
                storage=StorageConfig(**sections["storage"]),
                notifications=NotificationConfig(**sections["notifications"]),
                monitor=MonitorConfig(**sections["monitor"]),
                dashboard=DashboardConfig(**sections["dashboard"]),
                logging=LoggingConfig(**sections["logging"]),
            )
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                file_path=self.config_file,
                cause=e,
            ) from e


def load_config(config_dir: Path | str = "config") -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_dir: Path to configuration directory (default: 'config').

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.
    """
    loader = ConfigLoader(config_dir)
    return loader.load()
