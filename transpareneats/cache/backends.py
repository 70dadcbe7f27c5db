"""
Fast cache back-ends.
A Redis client with connection pooling when Redis is configured and reachable,
otherwise an in-process mapping with per-entry expiry. Both store JSON text so
callers see the same behaviour from either.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Dict, Tuple

import redis.asyncio as redis
from redis.asyncio import ConnectionPool
from redis.exceptions import RedisError
import structlog

from transpareneats.core.config import Settings

logger = structlog.get_logger(__name__)


class CacheBackendError(Exception):
    """Network or serialization failure inside a cache back-end."""

    def __init__(self, message: str, key: str = "", original_error: Exception = None):
        super().__init__(message)
        self.key = key
        self.original_error = original_error


class ICacheBackend(ABC):
    """
    Key/value store with TTL.

    Implementations raise CacheBackendError on faults; the layered cache is
    responsible for turning those into misses.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def close(self) -> None:
        """Release connections, if any."""
        return None

    @property
    @abstractmethod
    def backend_name(self) -> str:
        pass

    @staticmethod
    def _dumps(key: str, value: Any) -> str:
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise CacheBackendError(f"Cannot serialize value: {e}", key=key, original_error=e) from e

    @staticmethod
    def _loads(key: str, raw: Any) -> Any:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheBackendError(f"Cannot deserialize value: {e}", key=key, original_error=e) from e


class InMemoryCacheBackend(ICacheBackend):
    """In-process cache with per-entry expiry timestamps."""

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    @property
    def backend_name(self) -> str:
        return "memory"

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        raw, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None

        return self._loads(key, raw)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (self._dumps(key, value), self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


class RedisCacheBackend(ICacheBackend):
    """Async Redis client with connection pooling."""

    def __init__(self, url: str, connect_timeout: float = 5.0):
        self.url = url
        self.connect_timeout = connect_timeout
        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None

    @property
    def backend_name(self) -> str:
        return "redis"

    async def connect(self):
        """Initialize Redis connection pool and check the server answers."""
        self.pool = ConnectionPool.from_url(
            self.url,
            max_connections=20,
            retry_on_timeout=True,
            socket_keepalive=True,
            socket_connect_timeout=self.connect_timeout,
            health_check_interval=30,
        )
        self.client = redis.Redis(
            connection_pool=self.pool,
            decode_responses=False,  # We'll handle encoding manually
        )
        await asyncio.wait_for(self.client.ping(), timeout=self.connect_timeout)
        logger.info("Redis connection established successfully", url=self.url)

    async def close(self):
        """Close Redis connections gracefully."""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        logger.info("Redis connections closed")

    def _require_client(self, key: str) -> redis.Redis:
        if self.client is None:
            raise CacheBackendError("Redis client is not connected", key=key)
        return self.client

    async def get(self, key: str) -> Optional[Any]:
        client = self._require_client(key)
        try:
            value = await client.get(key)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis GET error: {e}", key=key, original_error=e) from e

        if value is None:
            return None
        return self._loads(key, value)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        client = self._require_client(key)
        serialized_value = self._dumps(key, value)
        try:
            await client.setex(key, ttl, serialized_value)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis SET error: {e}", key=key, original_error=e) from e

    async def delete(self, key: str) -> None:
        client = self._require_client(key)
        try:
            await client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis DELETE error: {e}", key=key, original_error=e) from e

    async def clear(self) -> None:
        client = self._require_client("*")
        try:
            await client.flushdb()
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis FLUSHDB error: {e}", key="*", original_error=e) from e


async def create_cache_backend(settings: Settings) -> ICacheBackend:
    """
    Select the fast cache back-end at startup.

    Redis is used when enabled and reachable; any connection failure falls
    back to the in-memory back-end instead of aborting startup.
    """
    if not settings.redis_enabled:
        logger.info("Running with in-memory cache (Redis disabled)")
        return InMemoryCacheBackend()

    backend = RedisCacheBackend(settings.redis_url, connect_timeout=settings.redis_connect_timeout)
    try:
        await backend.connect()
        return backend
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        logger.warning("Failed to connect to Redis, falling back to in-memory cache", error=str(e))
        try:
            await backend.close()
        except (RedisError, OSError) as close_error:
            logger.warning("Failed to close Redis pool", error=str(close_error))
        return InMemoryCacheBackend()
