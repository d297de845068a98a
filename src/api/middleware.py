"""HTTP middleware — config guard, security headers, and token verification."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from config.settings import get_settings
from src.api.auth.tokens import Principal, TokenVerifier
from src.core.exceptions import ConfigurationError
from src.core.logging import get_logger

log = get_logger(__name__)

_verifier: TokenVerifier | None = None

SECURITY_HEADERS: dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def _get_verifier() -> TokenVerifier:
    """Lazy-init singleton TokenVerifier."""
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        settings = get_settings()
        _verifier = TokenVerifier(
            secret=settings.tollgate_jwt_secret.get_secret_value(),
            expiry_hours=settings.tollgate_jwt_expiry_hours,
        )
    return _verifier


def create_token(principal_id: str, now: datetime, plan: str | None = None) -> str:
    """Issue a token for the given principal (dev and tests)."""
    return _get_verifier().create_token(principal_id, now, plan=plan)


def verify_token(token: str, now: datetime) -> Principal | None:
    return _get_verifier().verify_token(token, now)


def require_config() -> None:
    """Raise ConfigurationError naming every missing required setting."""
    missing = get_settings().missing_required()
    if missing:
        raise ConfigurationError(missing)


async def config_guard(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Refuse every request while required settings are missing."""
    try:
        require_config()
    except ConfigurationError as exc:
        log.error("config_missing", missing=exc.missing)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Server configuration error",
                "message": str(exc),
                "missing": exc.missing,
            },
        )
    return await call_next(request)


async def security_headers(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
