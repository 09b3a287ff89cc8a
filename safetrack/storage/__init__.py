"""
Key-value storage backends.

Components:
    kv: KeyValueStore protocol, errors, memory and file backends, factory
    redis_client: RedisKeyValueStore for stores shared across processes

Example:
    >>> from safetrack.storage import create_kv_store
    >>> kv = create_kv_store(config.storage)
"""

from safetrack.storage.kv import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    StorageError,
    StorageQuotaExceeded,
    StorageUnavailable,
    create_kv_store,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "StorageError",
    "StorageQuotaExceeded",
    "StorageUnavailable",
    "create_kv_store",
]
