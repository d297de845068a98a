"""FastAPI dependency injection — shared instances for routes."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Request, status

from config.settings import get_settings
from src.api.auth.tokens import Principal
from src.api.billing import BillingClient
from src.api.identity import IdentityClient
from src.api.middleware import verify_token
from src.core.constants import RATE_LIMIT_RETRY_AFTER_SECONDS
from src.core.logging import get_logger
from src.metering.entitlements import EntitlementSync
from src.metering.rate_limit import RateLimiter
from src.metering.store import BaseKeyValueStore, MemoryStore, RedisStore
from src.metering.tiers import TierRegistry
from src.metering.usage import UsageAccountant

log = get_logger(__name__)

_store: BaseKeyValueStore | None = None
_tiers: TierRegistry | None = None


# ── Clock ─────────────────────────────────────────────────────────


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Callable[[], datetime]:
    """Wall clock for request handlers. Engines receive ``now`` explicitly."""
    return _utc_now


# ── Store & registry ──────────────────────────────────────────────


def get_store() -> BaseKeyValueStore:
    """Process-wide counter store, built from settings on first use."""
    global _store  # noqa: PLW0603
    if _store is None:
        settings = get_settings()
        if settings.tollgate_store_backend == "memory":
            _store = MemoryStore()
        else:
            _store = RedisStore(
                settings.redis_url.get_secret_value(),
                socket_timeout=settings.redis_socket_timeout,
            )
        log.info("store_initialized", backend=settings.tollgate_store_backend)
    return _store


async def close_store() -> None:
    global _store  # noqa: PLW0603
    if _store is not None:
        await _store.close()
        _store = None


def get_tiers() -> TierRegistry:
    """Tier table, loaded once and never mutated afterwards."""
    global _tiers  # noqa: PLW0603
    if _tiers is None:
        settings = get_settings()
        _tiers = TierRegistry.from_yaml(settings.tiers_file) if settings.tiers_file else TierRegistry()
    return _tiers


# ── Engines & clients ─────────────────────────────────────────────


def get_accountant(
    store: BaseKeyValueStore = Depends(get_store),
    tiers: TierRegistry = Depends(get_tiers),
) -> UsageAccountant:
    return UsageAccountant(store, tiers)


def get_rate_limiter(store: BaseKeyValueStore = Depends(get_store)) -> RateLimiter:
    return RateLimiter(store, per_minute_limit=get_settings().rate_limit_per_minute)


def get_identity_client() -> IdentityClient:
    return IdentityClient.from_settings(get_settings())


def get_billing_client() -> BillingClient:
    return BillingClient.from_settings(get_settings())


def get_entitlement_sync(
    identity: IdentityClient = Depends(get_identity_client),
    tiers: TierRegistry = Depends(get_tiers),
) -> EntitlementSync:
    return EntitlementSync(identity, tiers)


# ── Auth dependency ───────────────────────────────────────────────


async def get_current_principal(
    request: Request,
    clock: Callable[[], datetime] = Depends(get_clock),
) -> Principal:
    """Verify the bearer token and return the principal with its plan claim."""
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )

    principal = verify_token(auth_header[7:], clock())
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return principal


async def require_auth(
    principal: Principal = Depends(get_current_principal),
    limiter: RateLimiter = Depends(get_rate_limiter),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> Principal:
    """Authenticated principal that has passed the per-minute rate limit."""
    decision = await limiter.allow(principal.principal_id, clock())
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Rate limit exceeded",
                "message": f"Maximum {limiter.per_minute_limit} requests per minute",
                "retryAfter": RATE_LIMIT_RETRY_AFTER_SECONDS,
            },
            headers={"Retry-After": str(RATE_LIMIT_RETRY_AFTER_SECONDS)},
        )
    return principal
