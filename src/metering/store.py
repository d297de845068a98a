"""Key-value store adapters for usage records and rate-limit buckets.

The contract is deliberately small: string values, per-key last-write-wins
and an optional per-key expiry. No compare-and-swap, no multi-key
transactions.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.core.exceptions import StoreUnavailableError
from src.core.logging import get_logger

log = get_logger(__name__)


class BaseKeyValueStore(ABC):
    """Interface every counter store must implement."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent or expired."""
        ...

    @abstractmethod
    async def put(
        self, key: str, value: str, *, expire_after_seconds: int | None = None
    ) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def close(self) -> None:
        """Release connections. No-op by default."""


class MemoryStore(BaseKeyValueStore):
    """In-process store with lazy expiry. For tests and single-process dev."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # key -> (value, expires_at or None)
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def put(
        self, key: str, value: str, *, expire_after_seconds: int | None = None
    ) -> None:
        expires_at = None
        if expire_after_seconds is not None:
            expires_at = self._clock() + expire_after_seconds
        self._data[key] = (value, expires_at)

    def keys(self) -> list[str]:
        return list(self._data)


class RedisStore(BaseKeyValueStore):
    """Async Redis-backed store. Expiry maps to native key TTLs."""

    def __init__(self, url: str, socket_timeout: float = 2.0) -> None:
        self._url = url
        self._socket_timeout = socket_timeout
        self._redis: aioredis.Redis | None = None

    async def connect(self) -> None:
        """Initialize the Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
            log.info("redis_connected")

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            log.info("redis_closed")

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            await self.connect()
        assert self._redis is not None
        return self._redis

    async def get(self, key: str) -> str | None:
        r = await self._get_redis()
        try:
            return await r.get(key)
        except RedisError as exc:
            log.error("store_unavailable", op="get", key=key, error=str(exc))
            raise StoreUnavailableError("Counter store read failed", {"key": key}) from exc

    async def put(
        self, key: str, value: str, *, expire_after_seconds: int | None = None
    ) -> None:
        r = await self._get_redis()
        try:
            await r.set(key, value, ex=expire_after_seconds)
        except RedisError as exc:
            log.error("store_unavailable", op="put", key=key, error=str(exc))
            raise StoreUnavailableError("Counter store write failed", {"key": key}) from exc
