"""Custom exception hierarchy for Tollgate.

Expected outcomes (quota denial, rate limiting, unknown tiers) are typed
results, not exceptions. Only infrastructure and configuration failures
are raised.
"""

from __future__ import annotations

from typing import Any


class TollgateBaseError(Exception):
    """Base exception for all Tollgate errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context or {}


# ── Configuration ────────────────────────────────────────────────

class ConfigurationError(TollgateBaseError):
    """Required settings are missing. Fatal for the process, never retried."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "Missing required environment variables",
            context={"missing": list(missing)},
        )
        self.missing: list[str] = list(missing)


# ── Counter Store ────────────────────────────────────────────────

class StoreUnavailableError(TollgateBaseError):
    """Key-value store could not complete a read or write."""


class UsageRecordCorruptError(TollgateBaseError):
    """A stored usage record failed validation on load."""


# ── External Providers ───────────────────────────────────────────

class IdentityProviderError(TollgateBaseError):
    """Identity provider API call failed."""


class BillingProviderError(TollgateBaseError):
    """Billing provider API call failed."""


class WebhookVerificationError(TollgateBaseError):
    """Webhook signature or payload could not be verified."""
