"""Usage accounting — monthly quota enforcement per principal.

One ``UsageRecord`` per principal lives at ``usage:{principal}`` with no
expiry. Finite-tier counters reset the first time a request lands in a new
calendar month; unlimited tiers never evaluate the reset at all.

Updates are read-then-write against a store with per-key last-write-wins.
Two concurrent requests from the same principal can both read the same base
count, so one increment may be lost. That under-count is accepted; no
locking is layered on top.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from src.core.constants import USAGE_KEY_PREFIX
from src.core.exceptions import UsageRecordCorruptError
from src.core.logging import get_logger
from src.metering.period import BillingPeriod, current_period
from src.metering.store import BaseKeyValueStore
from src.metering.tiers import UNLIMITED, Limit, TierRegistry, is_unlimited

log = get_logger(__name__)


def usage_key(principal: str) -> str:
    return f"{USAGE_KEY_PREFIX}:{principal}"


class UsageRecord(BaseModel):
    """Stored usage counter. Field aliases are the on-disk JSON names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    usage_count: int = Field(alias="usageCount", ge=0)
    plan: str
    last_updated: datetime = Field(alias="lastUpdated")
    period_start: date | None = Field(default=None, alias="periodStart")
    period_end: date | None = Field(default=None, alias="periodEnd")

    @field_serializer("last_updated")
    def _serialize_timestamp(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"

    @classmethod
    def fresh(cls, tier: str, now: datetime, period: BillingPeriod) -> UsageRecord:
        return cls(
            usage_count=0,
            plan=tier,
            last_updated=now,
            period_start=period.start,
            period_end=period.end,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass(frozen=True)
class UsageSnapshot:
    """Read-only view of a principal's usage in the current period."""

    principal: str
    plan: str
    usage_count: int
    limit: Limit
    period_start: date
    period_end: date

    @property
    def remaining(self) -> Limit:
        if is_unlimited(self.limit):
            return UNLIMITED
        return max(0, int(self.limit) - self.usage_count)

    @property
    def limit_reached(self) -> bool:
        return not is_unlimited(self.limit) and self.usage_count >= self.limit


@dataclass(frozen=True)
class UsageDecision(UsageSnapshot):
    """Outcome of a consuming check. ``usage_count`` is post-increment when allowed."""

    allowed: bool


class UsageAccountant:
    """Checks and consumes monthly quota against a key-value store."""

    def __init__(self, store: BaseKeyValueStore, tiers: TierRegistry) -> None:
        self._store = store
        self._tiers = tiers

    async def load(self, principal: str) -> UsageRecord | None:
        """Fetch and validate the stored record. Malformed data is an error."""
        raw = await self._store.get(usage_key(principal))
        if raw is None:
            return None
        try:
            return UsageRecord.model_validate_json(raw)
        except ValidationError as exc:
            log.error("usage_record_corrupt", principal=principal, errors=exc.error_count())
            raise UsageRecordCorruptError(
                "Stored usage record is malformed",
                {"principal": principal},
            ) from exc

    def _resolve(
        self,
        principal: str,
        record: UsageRecord | None,
        tier: str,
        now: datetime,
    ) -> tuple[UsageRecord, Limit]:
        """Steps shared by consume and peek: synthesize, look up limit, reset."""
        period = current_period(now)
        if record is None:
            record = UsageRecord.fresh(tier, now, period)

        limit = self._tiers.limit_for(tier)

        if not is_unlimited(limit) and record.period_start != period.start:
            log.info(
                "usage_period_reset",
                principal=principal,
                previous_start=str(record.period_start),
                period_start=str(period.start),
                previous_count=record.usage_count,
            )
            record.usage_count = 0
            record.period_start = period.start
            record.period_end = period.end

        return record, limit

    async def check_and_consume(
        self, principal: str, tier: str, now: datetime
    ) -> UsageDecision:
        """Count one request against the principal's quota if any is left.

        A denied check leaves the stored record untouched.
        """
        record, limit = self._resolve(principal, await self.load(principal), tier, now)
        record.plan = tier

        if not is_unlimited(limit) and record.usage_count >= limit:
            log.warning(
                "usage_denied",
                principal=principal,
                plan=tier,
                usage_count=record.usage_count,
                limit=limit,
            )
            return UsageDecision(**self._fields(principal, record, limit, now), allowed=False)

        record.usage_count += 1
        record.last_updated = now
        await self._store.put(usage_key(principal), record.to_json())

        log.debug(
            "usage_consumed",
            principal=principal,
            plan=tier,
            usage_count=record.usage_count,
        )
        return UsageDecision(**self._fields(principal, record, limit, now), allowed=True)

    async def peek(self, principal: str, tier: str, now: datetime) -> UsageSnapshot:
        """Current usage without consuming quota or persisting a reset."""
        record, limit = self._resolve(principal, await self.load(principal), tier, now)
        record.plan = tier
        return UsageSnapshot(**self._fields(principal, record, limit, now))

    @staticmethod
    def _fields(
        principal: str, record: UsageRecord, limit: Limit, now: datetime
    ) -> dict[str, Any]:
        # Unlimited tiers skip the reset, so an old record may lack a period.
        period = current_period(now)
        return {
            "principal": principal,
            "plan": record.plan,
            "usage_count": record.usage_count,
            "limit": limit,
            "period_start": record.period_start or period.start,
            "period_end": record.period_end or period.end,
        }
