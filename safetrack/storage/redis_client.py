"""
Redis key-value backend.

This module provides a Redis-backed KeyValueStore so several monitor and
dashboard processes can share one alert store, the way browser tabs share
local storage. Values are stored as plain strings under the configured key
prefix. There is no locking: each write replaces the whole blob.

Calls are synchronous and block the calling thread. With this backend the
polling monitor runs detection in a worker thread; API handlers still make
their short store calls on the event loop.

Key Patterns:
    - Alerts: `{prefix}safetrack_critical_alerts`, `{prefix}safetrack_archived_alerts`
    - Telemetry: `{prefix}safetrack_device_data`, `{prefix}safetrack_historical_data`
    - Session: `{prefix}safetrack_auth`, `{prefix}safetrack_theme`

Example:
    >>> from safetrack.config.models import RedisConnectionConfig
    >>> from safetrack.storage.redis_client import RedisKeyValueStore
    >>>
    >>> store = RedisKeyValueStore(RedisConnectionConfig(url="redis://localhost:6379"))
    >>> store.connect()
    >>> store.set("safetrack_theme", "dark")
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from redis import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from safetrack.config.models import RedisConnectionConfig
from safetrack.storage.kv import StorageError, StorageQuotaExceeded, StorageUnavailable

logger = structlog.get_logger(__name__)


class RedisKeyValueStore:
    """
    Redis client implementing the KeyValueStore protocol.

    Attributes:
        config: Redis connection configuration.
        _pool: Connection pool for connection reuse.
        _client: Redis client instance.
        _connected: Whether the client is connected.

    Example:
        >>> store = RedisKeyValueStore(config)
        >>> store.connect()
        >>> try:
        ...     store.set("safetrack_auth", "true")
        ... finally:
        ...     store.disconnect()
    """

    def __init__(self, config: RedisConnectionConfig) -> None:
        """
        Initialize the Redis store.

        Args:
            config: Redis connection configuration (URL, db, timeout, key prefix).
        """
        self.config = config
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None  # type: ignore[type-arg]
        self._connected: bool = False

        logger.info(
            "redis_store_initialized",
            url=config.url,
            db=config.db,
            key_prefix=config.key_prefix,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None

    def connect(self) -> None:
        """
        Establish connection to Redis.

        Raises:
            StorageUnavailable: If connection fails.
        """
        if self._connected:
            logger.warning("redis_already_connected")
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)

            # Verify connection with ping
            self._client.ping()
            self._connected = True

            logger.info("redis_connected", url=self.config.url, db=self.config.db)

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error("redis_connection_failed", url=self.config.url, error=str(e))
            raise StorageUnavailable(
                f"Failed to connect to Redis at {self.config.url}: {e}"
            ) from e

    def disconnect(self) -> None:
        """Close the connection and release the pool. Safe to call twice."""
        if self._client is not None:
            try:
                self._client.close()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                self._pool.disconnect()
            except RedisError as e:
                logger.warning("redis_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_disconnected")

    def _require_client(self) -> Redis:  # type: ignore[type-arg]
        if not self.is_connected or self._client is None:
            raise StorageUnavailable("Redis client is not connected")
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.config.key_prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        client = self._require_client()
        try:
            return client.get(self._key(key))
        except RedisError as e:
            raise StorageUnavailable(f"Redis GET {key} failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        client = self._require_client()
        try:
            client.set(self._key(key), value)
        except ResponseError as e:
            # maxmemory reached with a noeviction policy
            if str(e).startswith("OOM"):
                raise StorageQuotaExceeded(f"Redis is out of memory writing {key}") from e
            raise StorageError(f"Redis SET {key} failed: {e}") from e
        except RedisError as e:
            raise StorageUnavailable(f"Redis SET {key} failed: {e}") from e

    def remove(self, key: str) -> None:
        client = self._require_client()
        try:
            client.delete(self._key(key))
        except RedisError as e:
            raise StorageUnavailable(f"Redis DEL {key} failed: {e}") from e

    def keys(self) -> List[str]:
        client = self._require_client()
        prefix = self.config.key_prefix
        try:
            found = list(client.scan_iter(match=f"{prefix}*"))
        except RedisError as e:
            raise StorageUnavailable(f"Redis SCAN failed: {e}") from e
        return sorted(k[len(prefix):] for k in found)
