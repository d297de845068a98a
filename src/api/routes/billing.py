"""Subscription upgrade flow — checkout and customer-portal redirects."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from config.settings import get_settings
from src.api.auth.tokens import Principal
from src.api.billing import BillingClient
from src.api.deps import get_billing_client, get_identity_client, get_tiers, require_auth
from src.api.identity import IdentityClient
from src.api.models.schemas import CheckoutRequest, RedirectResponse
from src.core.logging import get_logger
from src.metering.tiers import TierRegistry

log = get_logger(__name__)

router = APIRouter(tags=["billing"])


def _return_origin(request: Request) -> str:
    return request.headers.get("origin") or get_settings().frontend_url


@router.post("/create-checkout", response_model=RedirectResponse)
async def create_checkout(
    request: Request,
    body: CheckoutRequest | None = Body(default=None),
    principal: Principal = Depends(require_auth),
    tiers: TierRegistry = Depends(get_tiers),
    identity: IdentityClient = Depends(get_identity_client),
    billing: BillingClient = Depends(get_billing_client),
) -> RedirectResponse:
    """Start a subscription checkout. Defaults to the cheapest purchasable tier."""
    price_ids = get_settings().price_ids()

    target = body.tier if body and body.tier else None
    if target is None:
        target = next((t.tier_id for t in tiers.by_price() if price_ids.get(t.tier_id)), None)

    price_id = price_ids.get(target or "", "")
    if not target or not price_id:
        log.warning("checkout_no_price", principal=principal.principal_id, tier=target)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No price ID configured for tier: {target}",
        )

    email = await identity.get_email(principal.principal_id)
    url = await billing.create_checkout_session(
        principal=principal.principal_id,
        tier=target,
        price_id=price_id,
        customer_email=email,
        return_origin=_return_origin(request),
    )
    return RedirectResponse(url=url)


@router.post("/customer-portal", response_model=RedirectResponse)
async def customer_portal(
    request: Request,
    principal: Principal = Depends(require_auth),
    identity: IdentityClient = Depends(get_identity_client),
    billing: BillingClient = Depends(get_billing_client),
) -> RedirectResponse:
    """Open the billing portal for the principal's existing subscription."""
    metadata = await identity.get_public_metadata(principal.principal_id)
    customer_id = metadata.get("stripeCustomerId")
    if not customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No active subscription found",
        )

    url = await billing.create_portal_session(
        customer_id=str(customer_id),
        return_origin=_return_origin(request),
    )
    return RedirectResponse(url=url)
