"""
Key-value storage abstraction.

The alert store and telemetry cache persist whole JSON blobs under string
keys. Every backend offers the same synchronous get/set/remove surface with
no locking: concurrent writers sharing a backend (several processes on one
Redis, or one data directory) follow last-write-wins at blob granularity.

Backends:
    InMemoryKeyValueStore: Process-local dict with an optional byte quota
    FileKeyValueStore: One file per key in a data directory
    RedisKeyValueStore: Shared Redis instance (see redis_client.py)

Example:
    >>> kv = InMemoryKeyValueStore()
    >>> kv.set("safetrack_theme", "dark")
    >>> kv.get("safetrack_theme")
    'dark'
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

import structlog

from safetrack.config.models import StorageBackend, StorageConfig

logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base exception for key-value storage errors."""

    pass


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the backend capacity."""

    pass


class StorageUnavailable(StorageError):
    """Raised when the backend cannot be reached or read."""

    pass


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for string-keyed blob storage.

    Implementations raise StorageError (or a subclass) on failure.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete key; absent keys are ignored."""
        ...

    def keys(self) -> List[str]:
        """List stored keys."""
        ...


def _utf8_size(value: str) -> int:
    return len(value.encode("utf-8"))


class InMemoryKeyValueStore:
    """
    Process-local key-value store.

    Used by tests and single-process deployments. A quota emulates a
    capacity-bounded medium: writes that would exceed it raise
    StorageQuotaExceeded and leave the previous value in place.

    Attributes:
        quota_bytes: Maximum total size of keys plus values, or None.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            current = self.size_bytes() - self._entry_size(key)
            needed = _utf8_size(key) + _utf8_size(value)
            if current + needed > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key} needs {needed} bytes; "
                    f"{self.quota_bytes - current} of {self.quota_bytes} available"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def size_bytes(self) -> int:
        """Total UTF-8 size of all keys and values."""
        return sum(_utf8_size(k) + _utf8_size(v) for k, v in self._data.items())

    def _entry_size(self, key: str) -> int:
        if key not in self._data:
            return 0
        return _utf8_size(key) + _utf8_size(self._data[key])


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.:-]+$")


class FileKeyValueStore:
    """
    Directory-backed key-value store.

    Each key is one UTF-8 file. Writes go to a temporary file that is then
    renamed over the target, so readers never observe a half-written blob.
    Several processes may share the directory; there is no locking.

    Attributes:
        directory: Data directory (created on first use).
        quota_bytes: Maximum total size of stored values, or None.

    Example:
        >>> kv = FileKeyValueStore(".safetrack")
        >>> kv.set("safetrack_auth", "true")
    """

    SUFFIX = ".blob"

    def __init__(self, directory: Path | str, quota_bytes: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Unsupported key: {key!r}")
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageUnavailable(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        encoded = value.encode("utf-8")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if self.quota_bytes is not None:
                current = self.size_bytes()
                if path.exists():
                    current -= path.stat().st_size
                if current + len(encoded) > self.quota_bytes:
                    raise StorageQuotaExceeded(
                        f"Writing {key} needs {len(encoded)} bytes; "
                        f"{self.quota_bytes - current} of {self.quota_bytes} available"
                    )

            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(encoded)
                os.replace(tmp_name, path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except StorageError:
            raise
        except OSError as e:
            raise StorageUnavailable(f"Failed to write {path}: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Failed to remove {path}: {e}") from e

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(
            p.name[: -len(self.SUFFIX)]
            for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(self.SUFFIX)
        )

    def size_bytes(self) -> int:
        if not self.directory.exists():
            return 0
        return sum(
            p.stat().st_size
            for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(self.SUFFIX)
        )


def create_kv_store(config: StorageConfig) -> KeyValueStore:
    """
    Factory function to create the configured key-value store.

    Args:
        config: Storage configuration.

    Returns:
        KeyValueStore: Backend instance. Redis stores are returned connected.

    Raises:
        StorageUnavailable: If the Redis backend cannot connect.

    Example:
        >>> kv = create_kv_store(StorageConfig(backend=StorageBackend.MEMORY))
    """
    if config.backend == StorageBackend.MEMORY:
        store: KeyValueStore = InMemoryKeyValueStore(quota_bytes=config.quota_bytes)
    elif config.backend == StorageBackend.FILE:
        store = FileKeyValueStore(config.data_dir, quota_bytes=config.quota_bytes)
    else:
        from safetrack.storage.redis_client import RedisKeyValueStore

        redis_store = RedisKeyValueStore(config.redis)
        redis_store.connect()
        store = redis_store

    logger.info(
        "kv_store_created",
        backend=config.backend.value,
        quota_bytes=config.quota_bytes,
    )
    return store
