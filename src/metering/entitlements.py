"""Entitlement sync — billing lifecycle events -> identity-provider tier.

The identity provider's user record is the durable source of a principal's
tier; the auth layer reflects it into token claims. Nothing is stored
locally here, and applying the same assignment twice leaves the same state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from src.core.constants import DEFAULT_TIER
from src.core.logging import get_logger
from src.metering.tiers import TierRegistry

log = get_logger(__name__)

# Subscription states that no longer grant the paid tier
_LAPSED_STATUSES = frozenset({"canceled", "unpaid", "incomplete_expired"})


@dataclass(frozen=True)
class EntitlementChange:
    """A tier assignment for one principal."""

    principal: str
    tier: str
    customer_id: str | None = None


class BaseEntitlementWriter(ABC):
    """Writes tier assignments to the identity provider."""

    @abstractmethod
    async def write_entitlement(self, change: EntitlementChange) -> None:
        """Overwrite the principal's stored tier (and billing customer, if known)."""
        ...


def change_from_event(event: dict[str, Any]) -> EntitlementChange | None:
    """Extract a tier assignment from a billing-provider event.

    Returns None for events that carry no entitlement change or that lack
    the principal reference set at checkout time.
    """
    event_type = str(event.get("type", ""))
    data = event.get("data") or {}
    obj = (data.get("object") or {}) if isinstance(data, dict) else None
    metadata = (obj.get("metadata") or {}) if isinstance(obj, dict) else None
    if not isinstance(obj, dict) or not isinstance(metadata, dict):
        log.warning("billing_event_incomplete", event_type=event_type, malformed=True)
        return None

    principal = metadata.get("userId") or obj.get("client_reference_id")
    customer = obj.get("customer")
    customer_id = str(customer) if customer else None

    if event_type in (
        "checkout.session.completed",
        "customer.subscription.created",
        "customer.subscription.updated",
    ):
        tier = metadata.get("tier")
        if obj.get("status") in _LAPSED_STATUSES:
            tier = DEFAULT_TIER
    elif event_type == "customer.subscription.deleted":
        tier = DEFAULT_TIER
    else:
        log.debug("billing_event_ignored", event_type=event_type)
        return None

    if not principal or not tier:
        log.warning(
            "billing_event_incomplete",
            event_type=event_type,
            has_principal=bool(principal),
            has_tier=bool(tier),
        )
        return None

    return EntitlementChange(principal=str(principal), tier=str(tier), customer_id=customer_id)


class EntitlementSync:
    """Applies tier assignments coming from the billing provider."""

    def __init__(self, writer: BaseEntitlementWriter, tiers: TierRegistry) -> None:
        self._writer = writer
        self._tiers = tiers

    async def apply(self, change: EntitlementChange) -> bool:
        """Write the assignment. Unknown tiers are skipped rather than stored."""
        if not self._tiers.is_known(change.tier):
            log.warning("entitlement_unknown_tier", principal=change.principal, tier=change.tier)
            return False

        await self._writer.write_entitlement(change)
        log.info(
            "entitlement_synced",
            principal=change.principal,
            tier=change.tier,
            customer_id=change.customer_id,
        )
        return True

    async def handle_event(self, event: dict[str, Any]) -> bool:
        """Apply the entitlement change carried by ``event``, if any."""
        change = change_from_event(event)
        if change is None:
            return False
        return await self.apply(change)
