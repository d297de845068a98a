"""Tollgate FastAPI application — entry point for the API server."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config.settings import get_settings
from src.api.deps import close_store
from src.api.middleware import config_guard, security_headers
from src.core.constants import API_VERSION
from src.core.exceptions import (
    BillingProviderError,
    IdentityProviderError,
    StoreUnavailableError,
    TollgateBaseError,
    UsageRecordCorruptError,
    WebhookVerificationError,
)
from src.core.logging import get_logger, setup_logging

log = get_logger(__name__)

_ERROR_STATUS: dict[type[TollgateBaseError], int] = {
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    UsageRecordCorruptError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    IdentityProviderError: status.HTTP_502_BAD_GATEWAY,
    BillingProviderError: status.HTTP_502_BAD_GATEWAY,
    WebhookVerificationError: status.HTTP_400_BAD_REQUEST,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup/shutdown lifecycle — release the counter store on exit."""
    log.info("api_starting")
    yield
    await close_store()
    log.info("api_shutdown")


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def _tollgate_error(request: Request, exc: TollgateBaseError) -> JSONResponse:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log.error(
        "request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        **exc.context,
    )
    return JSONResponse(status_code=code, content={"error": str(exc)})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()
    setup_logging(json_output=settings.log_json, level=settings.log_level)

    app = FastAPI(
        title="Tollgate API",
        description="Metering, rate limiting, and entitlements in front of a product API",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_exception_handler(HTTPException, _http_error)  # type: ignore[arg-type]
    app.add_exception_handler(TollgateBaseError, _tollgate_error)  # type: ignore[arg-type]

    # Last added runs outermost: CORS, then security headers, then the config guard
    app.middleware("http")(config_guard)
    app.middleware("http")(security_headers)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origin_list(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    # Register routers
    from src.api.routes.billing import router as billing_router
    from src.api.routes.health import router as health_router
    from src.api.routes.tiers import router as tiers_router
    from src.api.routes.usage import router as usage_router
    from src.api.routes.webhooks import router as webhooks_router

    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(tiers_router, prefix="/api")
    app.include_router(usage_router, prefix="/api")
    app.include_router(billing_router, prefix="/api")

    return app


app = create_app()
