"""Tollgate settings — loaded from environment variables via .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent

_DEFAULT_ORIGINS = "http://localhost:5173,http://localhost:5174,http://localhost:8787"


class Settings(BaseSettings):
    """All configuration flows through this class. Never read env vars directly."""

    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    tollgate_env: Literal["dev", "prod"] = "dev"
    log_json: bool = False
    log_level: str = "INFO"

    # ── Auth ─────────────────────────────────────────────────────
    tollgate_jwt_secret: SecretStr = SecretStr("")
    tollgate_jwt_expiry_hours: int = 24

    # ── Counter Store ────────────────────────────────────────────
    tollgate_store_backend: Literal["redis", "memory"] = "redis"
    redis_url: SecretStr = SecretStr("redis://localhost:6379/0")
    redis_socket_timeout: float = 2.0

    # ── Metering ─────────────────────────────────────────────────
    rate_limit_per_minute: int = 100
    tiers_file: str = ""

    # ── Identity Provider ────────────────────────────────────────
    identity_api_url: str = "https://api.clerk.com/v1"
    identity_secret_key: SecretStr = SecretStr("")

    # ── Billing Provider ─────────────────────────────────────────
    stripe_api_url: str = "https://api.stripe.com/v1"
    stripe_secret_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")
    stripe_price_id_pro: str = ""
    stripe_price_id_developer: str = ""
    stripe_portal_config_id: str = ""

    # ── HTTP ─────────────────────────────────────────────────────
    frontend_url: str = "http://localhost:5173"
    allowed_origins: str = _DEFAULT_ORIGINS
    http_timeout: float = 15.0

    @model_validator(mode="after")
    def _check_prod_secrets(self) -> "Settings":
        """Prevent production deployment without a token secret."""
        if self.tollgate_env == "prod" and not self.tollgate_jwt_secret.get_secret_value():
            msg = (
                "TOLLGATE_JWT_SECRET must be set to a strong random value "
                "in production. Generate one with: openssl rand -base64 32"
            )
            raise ValueError(msg)
        return self

    def missing_required(self) -> list[str]:
        """Names of required settings that are empty, in a stable order."""
        required: dict[str, str] = {
            "TOLLGATE_JWT_SECRET": self.tollgate_jwt_secret.get_secret_value(),
            "IDENTITY_SECRET_KEY": self.identity_secret_key.get_secret_value(),
            "STRIPE_SECRET_KEY": self.stripe_secret_key.get_secret_value(),
        }
        if self.tollgate_store_backend == "redis":
            required["REDIS_URL"] = self.redis_url.get_secret_value()
        return [name for name, value in required.items() if not value]

    def origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def price_ids(self) -> dict[str, str]:
        """Tier id -> billing price id. Free tiers have no price."""
        return {
            "pro": self.stripe_price_id_pro,
            "developer": self.stripe_price_id_developer,
        }


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Singleton settings loader — reads .env once, reuses thereafter."""
    global _settings_instance  # noqa: PLW0603
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
