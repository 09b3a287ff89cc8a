"""
Telemetry HTTP client.

Fetches the latest device readings from the telemetry endpoint and keeps two
caches in the key-value store:

    safetrack_device_data:      {data, timestamp (epoch ms), lastUpdate}
                                Short-lived read-through cache (3 s default).
    safetrack_historical_data:  Readings deduplicated by id+timestamp, newest
                                ``history_limit`` kept per device.

Failures never propagate from ``fetch_devices``: it returns an empty list and
records the error in ``last_error``. ``refresh`` raises TelemetryFetchError
for callers (the polling monitor) that need to tell failure from an empty
response.

Example:
    >>> client = TelemetryClient(endpoint, kv)
    >>> readings = await client.fetch_devices()
    >>> await client.close()
"""

import asyncio
import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import aiohttp
import structlog
from pydantic import ValidationError

from safetrack.config.models import TelemetryConfig
from safetrack.models.device import DeviceCache, DeviceReading
from safetrack.models.timestamps import epoch_ms, to_iso_string, utc_now
from safetrack.storage.kv import KeyValueStore, StorageError
from safetrack.telemetry.normalizer import parse_payload

logger = structlog.get_logger(__name__)


DEVICE_CACHE_KEY = "safetrack_device_data"
HISTORY_KEY = "safetrack_historical_data"

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_CACHE_TTL_MS = 3000
DEFAULT_HISTORY_LIMIT = 100

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class TelemetryFetchError(Exception):
    """Raised when the telemetry endpoint cannot be read."""

    pass


class TelemetryClient:
    """
    Async client for the device telemetry endpoint.

    Attributes:
        endpoint: Telemetry URL (GET).
        kv: Key-value store holding the caches.
        timeout_seconds: Total request timeout.
        cache_ttl_ms: Age after which the device cache is ignored.
        history_limit: Readings kept per device in history.
        last_error: Message of the most recent failed fetch, cleared on success.
        last_success_at: Time of the most recent successful fetch.
    """

    def __init__(
        self,
        endpoint: str,
        kv: KeyValueStore,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the telemetry client.

        Args:
            endpoint: Telemetry URL.
            kv: Key-value store for the caches.
            timeout_seconds: Request timeout in seconds.
            cache_ttl_ms: Device cache lifetime in milliseconds.
            history_limit: Readings kept per device.
            session: Existing aiohttp session (not closed by this client).
            clock: Returns the current aware datetime.
        """
        self.endpoint = endpoint
        self.kv = kv
        self.timeout_seconds = timeout_seconds
        self.cache_ttl_ms = cache_ttl_ms
        self.history_limit = history_limit
        self._clock = clock or utc_now

        self._session = session
        self._owns_session = session is None

        self.last_error: Optional[str] = None
        self.last_success_at: Optional[datetime] = None

        logger.info(
            "telemetry_client_initialized",
            endpoint=endpoint,
            timeout_seconds=timeout_seconds,
            cache_ttl_ms=cache_ttl_ms,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session is created."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            logger.debug("telemetry_session_closed", endpoint=self.endpoint)

    async def _request(self) -> Any:
        """
        GET the endpoint and decode the JSON body.

        Returns:
            Any: Decoded JSON value.

        Raises:
            TelemetryFetchError: On non-2xx status, timeout, transport error,
                or an undecodable body.
        """
        session = await self._ensure_session()

        try:
            async with session.get(
                self.endpoint,
                headers={"Cache-Control": "no-cache"},
            ) as response:
                if response.status >= 300:
                    error_text = await response.text()
                    logger.error(
                        "telemetry_request_failed",
                        url=self.endpoint,
                        status=response.status,
                        error=error_text,
                    )
                    raise TelemetryFetchError(f"HTTP error! status: {response.status}")

                body = await response.text()

        except aiohttp.ClientError as e:
            logger.error("telemetry_client_error", url=self.endpoint, error=str(e))
            raise TelemetryFetchError(f"Telemetry request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error("telemetry_timeout", url=self.endpoint, timeout=self.timeout_seconds)
            raise TelemetryFetchError(
                f"Telemetry request timeout after {self.timeout_seconds}s"
            ) from e

        try:
            return json.loads(body) if body.strip() else None
        except ValueError as e:
            raise TelemetryFetchError(f"Invalid telemetry JSON: {e}") from e

    async def refresh(self) -> List[DeviceReading]:
        """
        Fetch from the endpoint, bypassing the cache, and update both caches.

        Returns:
            List[DeviceReading]: Accepted readings (possibly empty).

        Raises:
            TelemetryFetchError: If the fetch fails.
        """
        try:
            payload = await self._request()
        except TelemetryFetchError as e:
            self.last_error = str(e)
            raise

        now = self._clock()
        readings, failures = parse_payload(payload, now=now)

        if failures:
            logger.debug(
                "telemetry_items_rejected",
                rejected=len(failures),
                reasons=sorted({f.reason.value for f in failures}),
            )
        if not readings:
            logger.warning("telemetry_no_device_data")

        self._save_cache(readings, now)
        if readings:
            self._save_history(readings)

        self.last_error = None
        self.last_success_at = now
        logger.debug("telemetry_fetched", devices=len(readings))
        return readings

    async def fetch_devices(self, force_refresh: bool = False) -> List[DeviceReading]:
        """
        Get current readings, from cache when fresh.

        Args:
            force_refresh: Skip the cache.

        Returns:
            List[DeviceReading]: Readings, or an empty list on failure.

        Example:
            >>> readings = await client.fetch_devices(force_refresh=True)
        """
        if not force_refresh:
            cached = self.load_cache()
            if cached is not None:
                return list(cached.data)

        try:
            return await self.refresh()
        except TelemetryFetchError as e:
            logger.error("telemetry_fetch_failed", error=str(e))
            return []

    # =========================================================================
    # CACHES
    # =========================================================================

    def load_cache(self) -> Optional[DeviceCache]:
        """
        Read the device cache if present and not expired.

        Expired or unreadable entries are removed.

        Returns:
            Optional[DeviceCache]: Fresh cache entry, or None.
        """
        try:
            raw = self.kv.get(DEVICE_CACHE_KEY)
        except StorageError as e:
            logger.warning("telemetry_cache_read_failed", error=str(e))
            return None
        if not raw:
            return None

        try:
            cache = DeviceCache.model_validate_json(raw)
        except ValidationError:
            self._discard_cache()
            return None

        age_ms = epoch_ms(self._clock()) - cache.timestamp
        if age_ms > self.cache_ttl_ms:
            self._discard_cache()
            return None
        return cache

    def _discard_cache(self) -> None:
        try:
            self.kv.remove(DEVICE_CACHE_KEY)
        except StorageError as e:
            logger.warning("telemetry_cache_remove_failed", error=str(e))

    def _save_cache(self, readings: List[DeviceReading], fetched_at: datetime) -> None:
        cache = DeviceCache(
            data=readings,
            timestamp=epoch_ms(self._clock()),
            last_update=to_iso_string(fetched_at),
        )
        try:
            self.kv.set(DEVICE_CACHE_KEY, cache.model_dump_json(by_alias=True))
        except StorageError as e:
            logger.warning("telemetry_cache_write_failed", error=str(e))

    def load_history(self) -> List[DeviceReading]:
        """
        Read the history cache.

        Returns:
            List[DeviceReading]: Stored readings; empty if absent or unreadable.
        """
        try:
            raw = self.kv.get(HISTORY_KEY)
        except StorageError as e:
            logger.warning("telemetry_history_read_failed", error=str(e))
            return []
        if not raw:
            return []

        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("telemetry_history_corrupt")
            return []
        if not isinstance(items, list):
            return []

        history: List[DeviceReading] = []
        for item in items:
            try:
                history.append(DeviceReading.model_validate(item))
            except ValidationError:
                continue
        return history

    def _save_history(self, readings: List[DeviceReading]) -> None:
        history = self.load_history()
        seen = {(r.id, r.timestamp) for r in history}
        for reading in readings:
            if (reading.id, reading.timestamp) not in seen:
                history.append(reading)
                seen.add((reading.id, reading.timestamp))

        groups: Dict[str, List[DeviceReading]] = defaultdict(list)
        for reading in history:
            groups[reading.id].append(reading)

        trimmed: List[DeviceReading] = []
        for group in groups.values():
            group.sort(key=lambda r: r.parsed_timestamp or _EPOCH, reverse=True)
            trimmed.extend(group[: self.history_limit])

        try:
            self.kv.set(
                HISTORY_KEY,
                json.dumps([r.model_dump(mode="json") for r in trimmed], separators=(",", ":")),
            )
        except StorageError as e:
            logger.warning("telemetry_history_write_failed", error=str(e))

    def clear_caches(self) -> None:
        """Remove the device and history caches."""
        for key in (DEVICE_CACHE_KEY, HISTORY_KEY):
            try:
                self.kv.remove(key)
            except StorageError as e:
                logger.warning("telemetry_cache_remove_failed", key=key, error=str(e))
        logger.info("telemetry_caches_cleared")


def create_telemetry_client(config: TelemetryConfig, kv: KeyValueStore) -> TelemetryClient:
    """
    Factory function to create a TelemetryClient from TelemetryConfig.

    Example:
        >>> client = create_telemetry_client(config.telemetry, kv)
    """
    return TelemetryClient(
        endpoint=config.endpoint,
        kv=kv,
        timeout_seconds=config.timeout_seconds,
        cache_ttl_ms=config.cache_ttl_ms,
        history_limit=config.history_limit,
    )
