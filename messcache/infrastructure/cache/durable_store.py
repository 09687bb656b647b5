"""
Durable Store Backends

Implementations of the DurableStore protocol used by the persistent cache tier.

InMemoryDurableStore:
    Plain dict. Survives nothing, but lets tests and local development run
    the full two-tier flow without infrastructure. Can be told to fail, to
    exercise the persistent tier's degradation path.

RedisDurableStore:
    redis.asyncio client with connection pooling. Records survive process
    restarts and are shared by every process pointed at the same database.
"""

from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, TimeoutError

from messcache.core.config.settings import Settings, get_settings
from messcache.core.exceptions import CacheConnectionError
from messcache.core.logging import get_logger

logger = get_logger(__name__)


class InMemoryDurableStore:
    """Dict-backed store with the DurableStore interface."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._check()
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self._check()
        self.data.pop(key, None)

    async def keys(self, prefix: str) -> list[str]:
        self._check()
        return [k for k in self.data if k.startswith(prefix)]


class RedisDurableStore:
    """
    Redis-backed store.

    STAGE-REDIS: connection lifecycle

    Usage:
        store = RedisDurableStore()
        await store.connect()
        cache = PersistentCache(store)
    """

    def __init__(self, settings: Settings | None = None, client: Any | None = None):
        self._settings = settings or get_settings()
        self._pool: ConnectionPool | None = None
        self._client: Any | None = client

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """
        Create the connection pool and verify it with PING.

        Raises:
            CacheConnectionError: If Redis cannot be reached
        """
        if self._client is not None:
            return

        cfg = self._settings.redis
        try:
            self._pool = ConnectionPool(
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
                db=cfg.REDIS_DB,
                password=cfg.REDIS_PASSWORD,
                socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
                decode_responses=True,  # Return strings instead of bytes
            )
            client = redis.Redis(connection_pool=self._pool)
            await client.ping()
            self._client = client

            logger.info(
                "Redis durable store connected",
                stage="REDIS.1",
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
            )

        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage="REDIS.1", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            )

    async def disconnect(self) -> None:
        """Close the client and its pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        logger.info("Redis durable store disconnected", stage="REDIS.2")

    def _require_client(self) -> Any:
        if self._client is None:
            raise CacheConnectionError("Redis durable store is not connected")
        return self._client

    async def get(self, key: str) -> str | None:
        return await self._require_client().get(key)

    async def set(self, key: str, value: str) -> None:
        await self._require_client().set(key, value)

    async def delete(self, key: str) -> None:
        await self._require_client().delete(key)

    async def keys(self, prefix: str) -> list[str]:
        client = self._require_client()
        return [key async for key in client.scan_iter(match=f"{prefix}*")]
