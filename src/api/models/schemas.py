"""Pydantic V2 request/response schemas for the Tollgate API.

Field names follow the JSON the frontend already consumes (camelCase).
Unlimited limits and remaining counts are rendered as ``"unlimited"``.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

# ── Usage ─────────────────────────────────────────────────────────


class UsageInfo(BaseModel):
    count: int
    limit: int | str
    plan: str


class DataResponse(BaseModel):
    """Successful metered request."""

    success: bool = True
    data: dict[str, object] = Field(default_factory=dict)
    usage: UsageInfo


class TierLimitResponse(BaseModel):
    error: str = "Tier limit reached"
    usageCount: int
    limit: int
    message: str = "Please upgrade to unlock more requests"


class UsageResponse(BaseModel):
    userId: str
    plan: str
    usageCount: int
    limit: int | str
    remaining: int | str
    periodStart: date
    periodEnd: date


# ── Tiers ─────────────────────────────────────────────────────────


class TierOut(BaseModel):
    id: str
    name: str
    price: float
    limit: int | str
    hasPriceId: bool


class TiersResponse(BaseModel):
    tiers: list[TierOut]


# ── Billing ───────────────────────────────────────────────────────


class CheckoutRequest(BaseModel):
    tier: str | None = None


class RedirectResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool = False


# ── Generic ───────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "dev"

