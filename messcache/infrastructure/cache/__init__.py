"""
Cache Module

Two-tier request cache: MemoryCache in front of a PersistentCache, wrapped by
the CacheOrchestrator (get_or_fetch).
"""

from messcache.infrastructure.cache.background_refresher import BackgroundRefresher
from messcache.infrastructure.cache.cache_service import (
    CacheOrchestrator,
    RequestOptions,
    build_durable_store,
    get_cache_service,
    reset_cache_service,
)
from messcache.infrastructure.cache.durable_store import InMemoryDurableStore, RedisDurableStore
from messcache.infrastructure.cache.entry import CacheEntry
from messcache.infrastructure.cache.memory_cache import MemoryCache
from messcache.infrastructure.cache.persistent_cache import PersistentCache

__all__ = [
    "BackgroundRefresher",
    "CacheEntry",
    "CacheOrchestrator",
    "InMemoryDurableStore",
    "MemoryCache",
    "PersistentCache",
    "RedisDurableStore",
    "RequestOptions",
    "build_durable_store",
    "get_cache_service",
    "reset_cache_service",
]
