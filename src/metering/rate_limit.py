"""Fixed-window per-minute rate limiter.

Buckets are keyed ``ratelimit:{principal}:{minute}`` where ``minute`` is
whole minutes since the epoch, so every principal shares the same window
boundaries. Bursts of up to twice the limit are possible across a boundary.
Buckets expire two minutes after their last write and are never deleted
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from src.core.constants import (
    DEFAULT_RATE_LIMIT_PER_MINUTE,
    RATE_LIMIT_BUCKET_TTL_SECONDS,
    RATE_LIMIT_KEY_PREFIX,
    RATE_LIMIT_WINDOW_SECONDS,
)
from src.core.logging import get_logger
from src.metering.store import BaseKeyValueStore

log = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


def minute_index(now: datetime) -> int:
    """Whole minutes since the Unix epoch. Naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    epoch_ms = int(now.timestamp() * 1000)
    return epoch_ms // (RATE_LIMIT_WINDOW_SECONDS * 1000)


def bucket_key(principal: str, now: datetime) -> str:
    return f"{RATE_LIMIT_KEY_PREFIX}:{principal}:{minute_index(now)}"


class RateLimiter:
    """Per-principal request limiter, independent of subscription tier."""

    def __init__(
        self,
        store: BaseKeyValueStore,
        per_minute_limit: int = DEFAULT_RATE_LIMIT_PER_MINUTE,
    ) -> None:
        if per_minute_limit <= 0:
            raise ValueError("per_minute_limit must be positive")
        self._store = store
        self._limit = per_minute_limit

    @property
    def per_minute_limit(self) -> int:
        return self._limit

    async def allow(self, principal: str, now: datetime) -> RateLimitDecision:
        """Admit one request in the current window if the bucket has room.

        A rejected request does not touch the bucket. Callers decide how to
        react; nothing here blocks or retries.
        """
        key = bucket_key(principal, now)
        raw = await self._store.get(key)
        count = int(raw) if raw else 0

        if count >= self._limit:
            log.warning("rate_limited", principal=principal, count=count, limit=self._limit)
            return RateLimitDecision(allowed=False, remaining=0)

        await self._store.put(
            key, str(count + 1), expire_after_seconds=RATE_LIMIT_BUCKET_TTL_SECONDS
        )
        return RateLimitDecision(allowed=True, remaining=self._limit - count - 1)
