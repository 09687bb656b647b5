"""
Memory Cache

Process-lifetime cache tier.

STAGE-MEM: in-memory lookup

Operations contain no suspension point, so on a single event loop every call
is atomic with respect to other coroutines. Expired entries are evicted
lazily on the read that discovers them.
"""

from typing import Any

from messcache.core.logging import get_logger
from messcache.core.utils.clock import Clock, now_ms
from messcache.infrastructure.cache.entry import CacheEntry

logger = get_logger(__name__)


class MemoryCache:
    """
    Dict of CacheEntry keyed by cache key.

    Usage:
        cache = MemoryCache()
        cache.set("profile:42", profile, ttl=300_000)
        entry = cache.get("profile:42")
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or now_ms
        self._entries: dict[str, CacheEntry] = {}

    def set(self, key: str, data: Any, ttl: float, etag: str = "") -> CacheEntry:
        entry = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl, etag=etag)
        self._entries[key] = entry
        return entry

    def get(self, key: str) -> CacheEntry | None:
        """Live entry for key, or None. Expired entries are removed."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("Memory cache entry expired", cache_key=key)
            return None

        return entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)
