"""
Dashboard session state.

Holds the operator's sign-in flag and theme preference in the key-value
store. Sign-in is a client-side gate: any non-empty email and password is
accepted. Signing in or out discards the telemetry caches; alerts are kept.
"""

from enum import Enum

import structlog

from safetrack.storage.kv import KeyValueStore, StorageError
from safetrack.telemetry.client import DEVICE_CACHE_KEY, HISTORY_KEY

logger = structlog.get_logger(__name__)


AUTH_KEY = "safetrack_auth"
THEME_KEY = "safetrack_theme"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class SessionState:
    """
    Auth flag and theme persisted in the key-value store.

    Example:
        >>> session = SessionState(kv)
        >>> session.login("ops@example.com", "secret")
        True
        >>> session.is_authenticated()
        True
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def is_authenticated(self) -> bool:
        try:
            return self.kv.get(AUTH_KEY) == "true"
        except StorageError as e:
            logger.warning("session_read_failed", key=AUTH_KEY, error=str(e))
            return False

    def login(self, email: str, password: str) -> bool:
        """
        Sign in with any non-empty credentials.

        Args:
            email: Operator email.
            password: Operator password.

        Returns:
            bool: True if signed in, False if a credential is blank or the
                flag could not be stored.
        """
        if not email.strip() or not password:
            logger.info("login_rejected", reason="missing_credentials")
            return False

        self._clear_telemetry()
        try:
            self.kv.set(AUTH_KEY, "true")
        except StorageError as e:
            logger.error("login_failed", error=str(e))
            return False

        logger.info("login_succeeded", email=email)
        return True

    def logout(self) -> None:
        """Sign out and discard cached telemetry. Alerts are kept."""
        self._clear_telemetry()
        self._remove(AUTH_KEY)
        logger.info("logout_completed")

    def get_theme(self) -> Theme:
        """
        Get the stored theme, persisting "system" when none is set.

        Returns:
            Theme: Stored preference.
        """
        try:
            raw = self.kv.get(THEME_KEY)
        except StorageError as e:
            logger.warning("session_read_failed", key=THEME_KEY, error=str(e))
            return Theme.SYSTEM

        try:
            return Theme(raw)
        except ValueError:
            self.set_theme(Theme.SYSTEM)
            return Theme.SYSTEM

    def set_theme(self, theme: Theme) -> bool:
        try:
            self.kv.set(THEME_KEY, Theme(theme).value)
        except StorageError as e:
            logger.error("theme_save_failed", theme=str(theme), error=str(e))
            return False
        return True

    def _clear_telemetry(self) -> None:
        for key in (DEVICE_CACHE_KEY, HISTORY_KEY):
            self._remove(key)

    def _remove(self, key: str) -> None:
        try:
            self.kv.remove(key)
        except StorageError as e:
            logger.warning("session_key_remove_failed", key=key, error=str(e))
