"""
Persistent Cache

Durable cache tier layered over a pluggable DurableStore.

STAGE-PERSIST: persistent lookup / write

Record layout:
    "<PERSISTENT_CACHE_PREFIX><cache key>" -> orjson-serialized CacheEntry

Failure contract:
    Every backend, serialization and deserialization failure is caught here,
    logged, reported to the error sink as a StorageError and treated as a miss
    (reads) or a no-op (writes). Nothing raised by the durable store reaches
    the caller. Corrupt records are deleted best-effort.
"""

from collections.abc import Callable
from typing import Any

from messcache.core.config.constants import PERSISTENT_CACHE_PREFIX
from messcache.core.exceptions import StorageError
from messcache.core.interfaces import DurableStore
from messcache.core.logging import get_logger
from messcache.core.utils.clock import Clock, now_ms
from messcache.infrastructure.cache.durable_store import InMemoryDurableStore
from messcache.infrastructure.cache.entry import CacheEntry

logger = get_logger(__name__)

ErrorSink = Callable[[str, BaseException], None]

COMPONENT = "persistent_cache"


class PersistentCache:
    """
    Async cache tier that outlives the process.

    Usage:
        cache = PersistentCache(RedisDurableStore())
        await cache.set("profile:42", profile, ttl=300_000)
        entry = await cache.get("profile:42")
    """

    def __init__(
        self,
        store: DurableStore | None = None,
        clock: Clock | None = None,
        error_sink: ErrorSink | None = None,
        prefix: str = PERSISTENT_CACHE_PREFIX,
    ):
        self._store = store if store is not None else InMemoryDurableStore()
        self._clock = clock or now_ms
        self._error_sink = error_sink
        self._prefix = prefix

    @property
    def store(self) -> DurableStore:
        return self._store

    def _record_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _degrade(self, operation: str, key: str | None, error: BaseException) -> None:
        storage_error = StorageError.from_exception(
            error,
            message=f"Persistent cache {operation} failed: {error}",
            request_id=key,
            operation=operation,
        )
        logger.warning(
            "Persistent cache degraded to miss",
            stage="PERSIST.ERR",
            operation=operation,
            cache_key=key,
            error=str(error),
            error_type=type(error).__name__,
        )
        if self._error_sink is not None:
            self._error_sink(COMPONENT, storage_error)

    async def _discard(self, record_key: str) -> None:
        try:
            await self._store.delete(record_key)
        except Exception as e:
            self._degrade("delete", record_key[len(self._prefix):], e)

    async def set(self, key: str, data: Any, ttl: float, etag: str = "") -> None:
        """Write an entry stamped with the current time. Failures are absorbed."""
        entry = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl, etag=etag)
        try:
            payload = entry.to_json()
        except TypeError as e:
            # orjson.JSONEncodeError is a TypeError
            self._degrade("serialize", key, e)
            return

        try:
            await self._store.set(self._record_key(key), payload)
        except Exception as e:
            self._degrade("set", key, e)
            return

        logger.debug("Persistent cache set", stage="PERSIST.SET", cache_key=key, ttl=ttl)

    async def get(self, key: str) -> CacheEntry | None:
        """
        Live entry for key, or None.

        Expired and unreadable records are removed and reported as misses.
        """
        record_key = self._record_key(key)
        try:
            raw = await self._store.get(record_key)
        except Exception as e:
            self._degrade("get", key, e)
            return None

        if raw is None:
            return None

        try:
            entry = CacheEntry.from_json(raw)
        except (ValueError, TypeError) as e:
            # orjson.JSONDecodeError is a ValueError
            self._degrade("deserialize", key, e)
            await self._discard(record_key)
            return None

        if entry.is_expired(self._clock()):
            logger.debug("Persistent cache entry expired", stage="PERSIST.GET", cache_key=key)
            await self._discard(record_key)
            return None

        return entry

    async def delete(self, key: str) -> None:
        await self._discard(self._record_key(key))

    async def keys(self) -> list[str]:
        """Cache keys (prefix stripped) currently stored."""
        try:
            record_keys = await self._store.keys(self._prefix)
        except Exception as e:
            self._degrade("keys", None, e)
            return []
        return [record_key[len(self._prefix):] for record_key in record_keys]

    async def clear(self) -> None:
        """Remove every record under the cache prefix, leaving other keys alone."""
        for key in await self.keys():
            await self.delete(key)

    async def size(self) -> int:
        return len(await self.keys())
