"""Metering layer — billing periods, tier limits, usage accounting, and rate limiting."""

from src.metering.entitlements import (
    BaseEntitlementWriter,
    EntitlementChange,
    EntitlementSync,
    change_from_event,
)
from src.metering.period import BillingPeriod, current_period
from src.metering.rate_limit import RateLimitDecision, RateLimiter
from src.metering.store import BaseKeyValueStore, MemoryStore, RedisStore
from src.metering.tiers import UNLIMITED, TierDefinition, TierRegistry, is_unlimited
from src.metering.usage import UsageAccountant, UsageDecision, UsageRecord, UsageSnapshot

__all__ = [
    "BaseEntitlementWriter",
    "BaseKeyValueStore",
    "BillingPeriod",
    "EntitlementChange",
    "EntitlementSync",
    "MemoryStore",
    "RateLimitDecision",
    "RateLimiter",
    "RedisStore",
    "TierDefinition",
    "TierRegistry",
    "UNLIMITED",
    "UsageAccountant",
    "UsageDecision",
    "UsageRecord",
    "UsageSnapshot",
    "change_from_event",
    "current_period",
    "is_unlimited",
]
