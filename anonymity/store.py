"""
Shared key-value store for daily salts and dedup markers.

Components:
- KeyValueStore: async get / set-with-expiry / set-if-absent / exists contract
- RedisStore: redis.asyncio backed store; failures surface as StoreUnavailableError
- MemoryStore: process-local store with clock-driven expiry (dev and tests)
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from anonymity.config import Settings
from anonymity.exceptions import ConfigurationError, StoreUnavailableError
from anonymity.metrics import store_errors_total, store_latency_seconds

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Key-scoped operations the anonymity service needs from a shared cache"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value under key, or None when absent or expired"""

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        """Unconditionally write value under key with a time-to-live"""

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Write value only if key is absent. Returns True if written."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key is present"""


class RedisStore(KeyValueStore):
    """
    Redis-backed shared store.

    Every Redis failure (connection refused, timeout, protocol error) is
    re-raised as StoreUnavailableError. Nothing is retried here; callers
    decide whether to retry, drop the event or fail the request.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @asynccontextmanager
    async def _operation(self, operation: str, key: str) -> AsyncIterator[None]:
        with store_latency_seconds.labels(operation=operation).time():
            try:
                yield
            except RedisError as e:
                store_errors_total.labels(operation=operation).inc()
                logger.error(f"Redis {operation.upper()} failed for {key}: {e}")
                raise StoreUnavailableError(operation, key, cause=e) from e

    async def get(self, key: str) -> Optional[str]:
        async with self._operation("get", key):
            value = await self.client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._operation("setex", key):
            await self.client.setex(key, ttl_seconds, value)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        async with self._operation("set_nx", key):
            result = await self.client.set(key, value, nx=True, ex=ttl_seconds)
        return bool(result)

    async def exists(self, key: str) -> bool:
        async with self._operation("exists", key):
            count = await self.client.exists(key)
        return count > 0

    async def close(self) -> None:
        """Release pooled connections"""
        await self.client.aclose()


class MemoryStore(KeyValueStore):
    """
    In-memory store with per-key expiry.

    Expiry is evaluated lazily against ``clock`` (epoch seconds), so tests can
    move time forward without sleeping. Not shared across processes.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self.clock() + ttl_seconds)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if self._live(key) is not None:
            return False
        self._data[key] = (value, self.clock() + ttl_seconds)
        return True

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until key expires, or None if absent"""
        if self._live(key) is None:
            return None
        expires_at = self._data[key][1]
        return None if expires_at is None else expires_at - self.clock()


def create_redis_client(settings: Settings) -> redis.Redis:
    """Create an async Redis client from settings"""
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
    )


def build_store(settings: Settings) -> KeyValueStore:
    """
    Build the configured shared store.

    Raises:
        ConfigurationError: If STORE_BACKEND is not 'redis' or 'memory'
    """
    if settings.STORE_BACKEND == "redis":
        return RedisStore(create_redis_client(settings))
    if settings.STORE_BACKEND == "memory":
        if settings.is_production:
            logger.warning(
                "Memory store in production: daily salts are not shared across processes"
            )
        return MemoryStore()
    raise ConfigurationError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
