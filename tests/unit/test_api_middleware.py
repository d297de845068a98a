"""Tests for token verification and the auth helpers in middleware."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from src.api.auth.tokens import TokenVerifier
from src.api.middleware import create_token, require_config, verify_token
from src.core.exceptions import ConfigurationError

NOW = datetime(2024, 2, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _mock_settings() -> None:
    """Mock get_settings for all tests in this module."""
    mock_settings = MagicMock()
    mock_settings.tollgate_jwt_secret.get_secret_value.return_value = "test-secret-key"
    mock_settings.tollgate_jwt_expiry_hours = 24
    with patch("src.api.middleware.get_settings", return_value=mock_settings):
        yield


class TestTokenVerifier:
    def test_create_and_verify(self) -> None:
        verifier = TokenVerifier("s3cret")
        principal = verifier.verify_token(verifier.create_token("user_1", NOW, plan="pro"), NOW)
        assert principal is not None
        assert principal.principal_id == "user_1"
        assert principal.plan == "pro"

    def test_plan_defaults_to_free(self) -> None:
        verifier = TokenVerifier("s3cret")
        principal = verifier.verify_token(verifier.create_token("user_1", NOW), NOW)
        assert principal is not None
        assert principal.plan == "free"

    def test_extra_claims(self) -> None:
        verifier = TokenVerifier("s3cret")
        token = verifier.create_token("u", NOW, extra_claims={"email": "a@b.com"})
        principal = verifier.verify_token(token, NOW)
        assert principal is not None
        assert principal.claims["email"] == "a@b.com"

    def test_expired(self) -> None:
        verifier = TokenVerifier("s3cret", expiry_hours=1)
        token = verifier.create_token("u", NOW)
        assert verifier.verify_token(token, NOW + timedelta(minutes=59)) is not None
        assert verifier.verify_token(token, NOW + timedelta(hours=1, seconds=1)) is None

    def test_tampered_token(self) -> None:
        verifier = TokenVerifier("s3cret")
        parts = verifier.create_token("u", NOW).split(".")
        parts[1] = parts[1] + "x"
        assert verifier.verify_token(".".join(parts), NOW) is None

    def test_wrong_secret(self) -> None:
        token = TokenVerifier("one").create_token("u", NOW)
        assert TokenVerifier("two").verify_token(token, NOW) is None

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b", "a.b.c.d"])
    def test_malformed(self, garbage: str) -> None:
        assert TokenVerifier("s3cret").verify_token(garbage, NOW) is None


class TestMiddlewareHelpers:
    def test_module_level_round_trip(self) -> None:
        principal = verify_token(create_token("user-abc", NOW, plan="developer"), NOW)
        assert principal is not None
        assert principal.principal_id == "user-abc"
        assert principal.plan == "developer"

    def test_wrong_secret(self) -> None:
        token = create_token("t1", NOW)

        import src.api.middleware as mod
        mod._verifier = None

        mock_settings = MagicMock()
        mock_settings.tollgate_jwt_secret.get_secret_value.return_value = "different-secret"
        mock_settings.tollgate_jwt_expiry_hours = 24

        with patch("src.api.middleware.get_settings", return_value=mock_settings):
            assert verify_token(token, NOW) is None

    def test_require_config_lists_missing(self) -> None:
        mock_settings = MagicMock()
        mock_settings.missing_required.return_value = ["STRIPE_SECRET_KEY", "REDIS_URL"]
        with patch("src.api.middleware.get_settings", return_value=mock_settings):
            with pytest.raises(ConfigurationError) as exc_info:
                require_config()
        assert exc_info.value.missing == ["STRIPE_SECRET_KEY", "REDIS_URL"]

    def test_require_config_passes(self) -> None:
        mock_settings = MagicMock()
        mock_settings.missing_required.return_value = []
        with patch("src.api.middleware.get_settings", return_value=mock_settings):
            require_config()
