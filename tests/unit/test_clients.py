"""Tests for the identity-provider and billing-provider HTTP clients."""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from src.api.billing import BillingClient
from src.api.identity import IdentityClient
from src.core.exceptions import BillingProviderError, IdentityProviderError
from src.metering.entitlements import EntitlementChange


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestIdentityClient:
    @pytest.mark.asyncio
    async def test_get_email(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "id": "user_1",
                    "email_addresses": [{"email_address": "a@example.com"}],
                    "public_metadata": {"plan": "pro"},
                },
            )

        client = IdentityClient(
            "https://idp.test/v1", "sk_idp", transport=httpx.MockTransport(handler)
        )
        assert await client.get_email("user_1") == "a@example.com"
        assert seen[0].url.path == "/v1/users/user_1"
        assert seen[0].headers["Authorization"] == "Bearer sk_idp"

    @pytest.mark.asyncio
    async def test_email_missing(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"id": "u"}))
        client = IdentityClient("https://idp.test", "sk", transport=transport)
        assert await client.get_email("u") == ""
        assert await client.get_public_metadata("u") == {}

    @pytest.mark.asyncio
    async def test_write_entitlement(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = IdentityClient("https://idp.test", "sk", transport=httpx.MockTransport(handler))
        await client.write_entitlement(EntitlementChange("user_1", "developer", "cus_7"))

        assert seen[0].method == "PATCH"
        assert seen[0].url.path == "/users/user_1/metadata"
        assert json.loads(seen[0].content) == {
            "public_metadata": {"plan": "developer", "stripeCustomerId": "cus_7"}
        }

    @pytest.mark.asyncio
    async def test_write_entitlement_without_customer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = IdentityClient("https://idp.test", "sk", transport=httpx.MockTransport(handler))
        await client.write_entitlement(EntitlementChange("user_1", "free"))
        assert json.loads(seen[0].content) == {"public_metadata": {"plan": "free"}}

    @pytest.mark.asyncio
    async def test_http_error_wrapped(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(500, json={}))
        client = IdentityClient("https://idp.test", "sk", transport=transport)
        with pytest.raises(IdentityProviderError):
            await client.get_user("user_1")
        with pytest.raises(IdentityProviderError):
            await client.update_public_metadata("user_1", {"plan": "pro"})


class TestBillingClient:
    @pytest.mark.asyncio
    async def test_checkout_session(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "cs_1", "url": "https://pay.test/cs_1"})

        client = BillingClient(
            "https://billing.test/v1", "sk_test", transport=httpx.MockTransport(handler)
        )
        url = await client.create_checkout_session(
            principal="user_1",
            tier="pro",
            price_id="price_pro",
            customer_email="a@example.com",
            return_origin="https://app.test",
        )

        assert url == "https://pay.test/cs_1"
        request = seen[0]
        assert request.url.path == "/v1/checkout/sessions"
        assert request.headers["Authorization"] == "Bearer sk_test"
        form = _form(request)
        assert form["mode"] == "subscription"
        assert form["line_items[0][price]"] == "price_pro"
        assert form["metadata[userId]"] == "user_1"
        assert form["metadata[tier]"] == "pro"
        assert form["subscription_data[metadata][tier]"] == "pro"
        assert form["client_reference_id"] == "user_1"
        assert form["customer_email"] == "a@example.com"
        assert form["success_url"] == "https://app.test/dashboard?success=true"
        assert form["cancel_url"] == "https://app.test/dashboard?canceled=true"

    @pytest.mark.asyncio
    async def test_checkout_omits_blank_email(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"url": "https://pay.test/x"})

        client = BillingClient("https://billing.test", "sk", transport=httpx.MockTransport(handler))
        await client.create_checkout_session(
            principal="u", tier="pro", price_id="p", customer_email="", return_origin="o"
        )
        assert "customer_email" not in _form(seen[0])

    @pytest.mark.asyncio
    async def test_portal_session(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"url": "https://portal.test/s"})

        client = BillingClient(
            "https://billing.test",
            "sk",
            portal_config_id="bpc_1",
            transport=httpx.MockTransport(handler),
        )
        url = await client.create_portal_session(
            customer_id="cus_1", return_origin="https://app.test"
        )
        assert url == "https://portal.test/s"
        form = _form(seen[0])
        assert seen[0].url.path == "/billing_portal/sessions"
        assert form == {
            "customer": "cus_1",
            "return_url": "https://app.test/dashboard",
            "configuration": "bpc_1",
        }

    @pytest.mark.asyncio
    async def test_provider_error_message(self) -> None:
        transport = httpx.MockTransport(
            lambda r: httpx.Response(400, json={"error": {"message": "No such price"}})
        )
        client = BillingClient("https://billing.test", "sk", transport=transport)
        with pytest.raises(BillingProviderError, match="No such price"):
            await client.create_portal_session(customer_id="cus_1", return_origin="o")

    @pytest.mark.asyncio
    async def test_missing_url(self) -> None:
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"id": "cs"}))
        client = BillingClient("https://billing.test", "sk", transport=transport)
        with pytest.raises(BillingProviderError):
            await client.create_portal_session(customer_id="cus_1", return_origin="o")

    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = BillingClient("https://billing.test", "sk", transport=httpx.MockTransport(handler))
        with pytest.raises(BillingProviderError):
            await client.create_portal_session(customer_id="cus_1", return_origin="o")
