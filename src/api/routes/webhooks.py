"""Billing-provider webhook — keeps tier assignments in sync.

Signatures are checked with the billing SDK when a signing secret is
configured; otherwise the delivery channel is trusted as-is.
"""

from __future__ import annotations

import json
from typing import Any

import stripe
from fastapi import APIRouter, Depends, Request

from config.settings import get_settings
from src.api.deps import get_entitlement_sync
from src.api.models.schemas import WebhookAck
from src.core.exceptions import WebhookVerificationError
from src.core.logging import get_logger
from src.metering.entitlements import EntitlementSync

log = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


def _verified_event(payload: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    if secret:
        if not signature:
            raise WebhookVerificationError("Missing stripe-signature header")
        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WebhookVerificationError("Invalid webhook payload") from exc
        try:
            stripe.WebhookSignature.verify_header(body, signature, secret)
        except stripe.SignatureVerificationError as exc:
            log.warning("webhook_signature_invalid")
            raise WebhookVerificationError("Invalid signature") from exc

    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise WebhookVerificationError("Invalid webhook payload") from exc
    if not isinstance(event, dict):
        raise WebhookVerificationError("Invalid webhook payload")
    return event


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    sync: EntitlementSync = Depends(get_entitlement_sync),
) -> WebhookAck:
    """Apply subscription lifecycle events to the principal's stored tier."""
    secret = get_settings().stripe_webhook_secret.get_secret_value()
    event = _verified_event(
        await request.body(), request.headers.get("stripe-signature"), secret
    )
    log.info("webhook_received", event_type=event.get("type"), event_id=event.get("id"))

    applied = await sync.handle_event(event)
    return WebhookAck(received=True, applied=applied)
