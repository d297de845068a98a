"""Billing-provider client — checkout and customer-portal sessions.

Both calls return a redirect URL for the browser. Failures surface as
``BillingProviderError`` and are never retried here.
"""

from __future__ import annotations

from typing import Any

import httpx

from config.settings import Settings
from src.core.exceptions import BillingProviderError
from src.core.logging import get_logger

log = get_logger(__name__)


class BillingClient:
    """Form-encoded REST client for the billing provider."""

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        *,
        portal_config_id: str = "",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self._portal_config_id = portal_config_id
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> BillingClient:
        return cls(
            settings.stripe_api_url,
            settings.stripe_secret_key.get_secret_value(),
            portal_config_id=settings.stripe_portal_config_id,
            timeout=settings.http_timeout,
        )

    async def _post(self, path: str, form: dict[str, str]) -> str:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    path,
                    data=form,
                    headers={"Authorization": f"Bearer {self._secret_key}"},
                )
        except httpx.HTTPError as exc:
            log.error("billing_request_failed", path=path, error=str(exc))
            raise BillingProviderError(f"Billing provider unreachable: {exc}") from exc

        try:
            body: dict[str, Any] = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if resp.is_error:
            message = (body.get("error") or {}).get("message") or f"HTTP {resp.status_code}"
            log.error("billing_request_rejected", path=path, status=resp.status_code)
            raise BillingProviderError(message, {"status": resp.status_code})

        url = body.get("url")
        if not url:
            raise BillingProviderError("Billing provider returned no session URL")
        return str(url)

    async def create_checkout_session(
        self,
        *,
        principal: str,
        tier: str,
        price_id: str,
        customer_email: str,
        return_origin: str,
    ) -> str:
        """Subscription checkout for ``tier``. The tier and principal ride along
        as metadata so the lifecycle webhooks can find their way back."""
        form = {
            "success_url": f"{return_origin}/dashboard?success=true",
            "cancel_url": f"{return_origin}/dashboard?canceled=true",
            "client_reference_id": principal,
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "metadata[userId]": principal,
            "metadata[tier]": tier,
            "subscription_data[metadata][userId]": principal,
            "subscription_data[metadata][tier]": tier,
        }
        if customer_email:
            form["customer_email"] = customer_email

        url = await self._post("/checkout/sessions", form)
        log.info("checkout_created", principal=principal, tier=tier)
        return url

    async def create_portal_session(self, *, customer_id: str, return_origin: str) -> str:
        form = {
            "customer": customer_id,
            "return_url": f"{return_origin}/dashboard",
        }
        if self._portal_config_id:
            form["configuration"] = self._portal_config_id

        url = await self._post("/billing_portal/sessions", form)
        log.info("portal_created", customer_id=customer_id)
        return url
