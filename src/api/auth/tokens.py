"""Bearer token verification (HS256) and the authenticated principal.

The identity provider issues session tokens whose ``plan`` claim mirrors the
user's public metadata. Tokens are only verified here; ``create_token`` exists
for development and tests.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.core.constants import DEFAULT_TIER
from src.core.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: opaque id plus the tier from its claims."""

    principal_id: str
    plan: str = DEFAULT_TIER
    claims: dict[str, Any] = field(default_factory=dict)


class TokenVerifier:
    """Minimal HS256 JWT signer/verifier."""

    def __init__(self, secret: str, expiry_hours: int = 24) -> None:
        self._secret: str = secret
        self._expiry_hours: int = expiry_hours

    def create_token(
        self,
        principal_id: str,
        now: datetime,
        plan: str | None = None,
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """Create a signed token for ``principal_id`` issued at ``now``."""
        issued = int(now.timestamp())
        payload: dict[str, Any] = {
            "sub": principal_id,
            "iat": issued,
            "exp": issued + self._expiry_hours * 3600,
        }
        if plan is not None:
            payload["plan"] = plan
        if extra_claims:
            payload.update(extra_claims)

        header = _b64url_encode(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
        body = _b64url_encode(json.dumps(payload).encode())
        return f"{header}.{body}.{self._sign(f'{header}.{body}')}"

    def verify_token(self, token: str, now: datetime) -> Principal | None:
        """Verify signature and expiry. Returns None for any invalid token."""
        parts = token.split(".")
        if len(parts) != 3:
            return None

        header_b64, body_b64, sig = parts
        if not hmac.compare_digest(sig, self._sign(f"{header_b64}.{body_b64}")):
            log.warning("token_invalid_signature")
            return None

        try:
            payload = json.loads(_b64url_decode(body_b64))
        except ValueError:
            log.warning("token_decode_error")
            return None

        if not isinstance(payload, dict) or not payload.get("sub"):
            return None

        if int(now.timestamp()) > int(payload.get("exp", 0)):
            log.debug("token_expired", sub=payload.get("sub"))
            return None

        return Principal(
            principal_id=str(payload["sub"]),
            plan=str(payload.get("plan") or DEFAULT_TIER),
            claims=payload,
        )

    def _sign(self, message: str) -> str:
        digest = hmac.new(self._secret.encode(), message.encode(), hashlib.sha256).digest()
        return _b64url_encode(digest)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    padding = 4 - len(s) % 4
    if padding != 4:
        s += "=" * padding
    return base64.urlsafe_b64decode(s)
