"""Tests for the dashboard session state."""

from safetrack.session import AUTH_KEY, THEME_KEY, SessionState, Theme
from safetrack.storage.kv import InMemoryKeyValueStore, StorageUnavailable
from safetrack.telemetry.client import DEVICE_CACHE_KEY, HISTORY_KEY


class BrokenKeyValueStore(InMemoryKeyValueStore):
    """Store whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise StorageUnavailable("disk gone")


class TestLogin:
    """Test sign-in and sign-out."""

    def test_blank_credentials_rejected(self, kv):
        """Test an empty email or password does not sign in."""
        session = SessionState(kv)

        assert session.login("", "secret") is False
        assert session.login("   ", "secret") is False
        assert session.login("ops@example.com", "") is False
        assert session.is_authenticated() is False

    def test_login_sets_flag_and_clears_telemetry(self, kv):
        """Test any credentials sign in and discard cached telemetry."""
        kv.set(DEVICE_CACHE_KEY, "{}")
        kv.set(HISTORY_KEY, "[]")
        kv.set("safetrack_critical_alerts", "[]")
        session = SessionState(kv)

        assert session.login("ops@example.com", "anything") is True

        assert kv.get(AUTH_KEY) == "true"
        assert session.is_authenticated() is True
        assert kv.get(DEVICE_CACHE_KEY) is None
        assert kv.get(HISTORY_KEY) is None
        assert kv.get("safetrack_critical_alerts") == "[]"

    def test_logout(self, kv):
        """Test sign-out removes the flag and telemetry caches."""
        session = SessionState(kv)
        session.login("ops@example.com", "secret")
        kv.set(HISTORY_KEY, "[]")

        session.logout()

        assert session.is_authenticated() is False
        assert kv.get(AUTH_KEY) is None
        assert kv.get(HISTORY_KEY) is None

    def test_only_true_counts(self, kv):
        """Test a flag other than "true" is not authenticated."""
        kv.set(AUTH_KEY, "yes")
        assert SessionState(kv).is_authenticated() is False

    def test_login_write_failure(self):
        """Test a storage failure reports login as failed."""
        assert SessionState(BrokenKeyValueStore()).login("ops@example.com", "secret") is False


class TestTheme:
    """Test the theme preference."""

    def test_default_is_system_and_persisted(self, kv):
        """Test a missing theme reads as system and is written back."""
        session = SessionState(kv)

        assert session.get_theme() == Theme.SYSTEM
        assert kv.get(THEME_KEY) == "system"

    def test_unknown_value_resets(self, kv):
        """Test an unrecognized stored value falls back to system."""
        kv.set(THEME_KEY, "sepia")
        assert SessionState(kv).get_theme() == Theme.SYSTEM
        assert kv.get(THEME_KEY) == "system"

    def test_set_theme(self, kv):
        """Test a chosen theme is stored and read back."""
        session = SessionState(kv)

        assert session.set_theme(Theme.DARK) is True
        assert session.get_theme() == Theme.DARK
        assert session.set_theme("light") is True
        assert kv.get(THEME_KEY) == "light"

    def test_set_theme_failure(self):
        """Test a storage failure is reported."""
        assert SessionState(BrokenKeyValueStore()).set_theme(Theme.DARK) is False
