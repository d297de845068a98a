"""Identity-provider backend API client — user lookup and public metadata."""

from __future__ import annotations

from typing import Any

import httpx

from config.settings import Settings
from src.core.exceptions import IdentityProviderError
from src.core.logging import get_logger
from src.metering.entitlements import BaseEntitlementWriter, EntitlementChange

log = get_logger(__name__)


class IdentityClient(BaseEntitlementWriter):
    """Talks to the identity provider's user API.

    The ``plan`` key in a user's public metadata is what the session token
    template copies into the ``plan`` claim.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> IdentityClient:
        return cls(
            settings.identity_api_url,
            settings.identity_secret_key.get_secret_value(),
            timeout=settings.http_timeout,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Accept": "application/json",
            },
        )

    async def get_user(self, principal: str) -> dict[str, Any]:
        """Fetch the raw user record."""
        try:
            async with self._client() as client:
                resp = await client.get(f"/users/{principal}")
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPError as exc:
            log.error("identity_lookup_failed", principal=principal, error=str(exc))
            raise IdentityProviderError(
                "Identity provider lookup failed", {"principal": principal}
            ) from exc

    async def get_email(self, principal: str) -> str:
        user = await self.get_user(principal)
        addresses = user.get("email_addresses") or []
        if not addresses:
            return ""
        return str(addresses[0].get("email_address", ""))

    async def get_public_metadata(self, principal: str) -> dict[str, Any]:
        user = await self.get_user(principal)
        return dict(user.get("public_metadata") or {})

    async def update_public_metadata(self, principal: str, metadata: dict[str, Any]) -> None:
        """Merge ``metadata`` into the user's public metadata."""
        try:
            async with self._client() as client:
                resp = await client.patch(
                    f"/users/{principal}/metadata",
                    json={"public_metadata": metadata},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("identity_update_failed", principal=principal, error=str(exc))
            raise IdentityProviderError(
                "Identity provider update failed", {"principal": principal}
            ) from exc

    async def write_entitlement(self, change: EntitlementChange) -> None:
        metadata: dict[str, Any] = {"plan": change.tier}
        if change.customer_id:
            metadata["stripeCustomerId"] = change.customer_id
        await self.update_public_metadata(change.principal, metadata)
