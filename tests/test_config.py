"""Tests for configuration loading."""

import pytest

from safetrack.config.loader import ConfigLoader, ConfigLoadError, load_config
from safetrack.config.models import (
    AlertStoreConfig,
    LogLevel,
    NotificationChannelType,
    StorageBackend,
)

ENV_VARS = [
    "SAFETRACK_TELEMETRY_URL",
    "SAFETRACK_STORAGE_BACKEND",
    "SAFETRACK_DATA_DIR",
    "REDIS_URL",
    "EMAILJS_SERVICE_ID",
    "EMAILJS_TEMPLATE_ID",
    "EMAILJS_PUBLIC_KEY",
    "EMAILJS_PRIVATE_KEY",
    "ALERT_EMAIL_TO",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(directory, text: str) -> None:
    (directory / "safetrack.yaml").write_text(text, encoding="utf-8")


class TestLoad:
    """Test reading the YAML file."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test an empty config directory yields the defaults."""
        config = load_config(tmp_path)

        assert config.alerts.max_active_alerts == 1000
        assert config.alerts.max_archived_alerts == 5000
        assert config.alerts.heartbeat_threshold == 90
        assert config.telemetry.cache_ttl_ms == 3000
        assert config.storage.backend == StorageBackend.FILE
        assert config.notifications.is_email_configured is False

    def test_yaml_values(self, tmp_path):
        """Test file values override defaults."""
        write_config(
            tmp_path,
            """
alerts:
  max_active_alerts: 10
  max_archived_alerts: 20
storage:
  backend: memory
notifications:
  channel: console
monitor:
  poll_interval_seconds: 1.5
""",
        )

        config = load_config(tmp_path)

        assert config.alerts.max_active_alerts == 10
        assert config.storage.backend == StorageBackend.MEMORY
        assert config.notifications.channel == NotificationChannelType.CONSOLE
        assert config.monitor.poll_interval_seconds == 1.5

    def test_empty_file(self, tmp_path):
        """Test an empty file is treated as no overrides."""
        write_config(tmp_path, "")
        assert load_config(tmp_path).dashboard.port == 8050

    def test_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigLoadError."""
        write_config(tmp_path, "alerts: [unclosed")
        with pytest.raises(ConfigLoadError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.file_path == tmp_path / "safetrack.yaml"

    def test_non_mapping(self, tmp_path):
        """Test a top-level list is rejected."""
        write_config(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigLoadError):
            load_config(tmp_path)

    def test_invalid_values(self, tmp_path):
        """Test validation failures are wrapped."""
        write_config(tmp_path, "alerts:\n  max_active_alerts: 0\n")
        with pytest.raises(ConfigLoadError, match="validation failed"):
            load_config(tmp_path)

    def test_unknown_field(self, tmp_path):
        """Test unexpected keys are rejected."""
        write_config(tmp_path, "telemetry:\n  endpiont: http://x\n")
        with pytest.raises(ConfigLoadError):
            load_config(tmp_path)

    def test_path_is_a_file(self, tmp_path):
        """Test a file given as the config directory is rejected."""
        target = tmp_path / "config"
        target.write_text("x", encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            ConfigLoader(target)


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_overrides_apply(self, tmp_path, monkeypatch):
        """Test environment values win over the file."""
        write_config(tmp_path, "storage:\n  backend: file\n")
        monkeypatch.setenv("SAFETRACK_TELEMETRY_URL", "https://telemetry.test/devices")
        monkeypatch.setenv("SAFETRACK_STORAGE_BACKEND", "REDIS")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379")
        monkeypatch.setenv("EMAILJS_SERVICE_ID", "s")
        monkeypatch.setenv("EMAILJS_TEMPLATE_ID", "t")
        monkeypatch.setenv("EMAILJS_PUBLIC_KEY", "p")
        monkeypatch.setenv("ALERT_EMAIL_TO", "ops@example.com")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = load_config(tmp_path)

        assert config.telemetry.endpoint == "https://telemetry.test/devices"
        assert config.storage.backend == StorageBackend.REDIS
        assert config.storage.redis.url == "redis://cache:6379"
        assert config.notifications.is_email_configured is True
        assert config.logging.level == LogLevel.DEBUG

    def test_unknown_log_level_ignored(self, tmp_path, monkeypatch):
        """Test an unrecognized LOG_LEVEL keeps the configured level."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert load_config(tmp_path).logging.level == LogLevel.INFO


class TestModels:
    """Test model-level validation."""

    def test_archive_cap_not_below_active_cap(self):
        """Test the archive cap must cover the active cap."""
        with pytest.raises(ValueError):
            AlertStoreConfig(max_active_alerts=100, max_archived_alerts=50)
