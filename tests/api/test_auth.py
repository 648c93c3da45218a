"""
Tests for token issuance, token validation and the user directory.
"""

import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from api.auth import (
    AuthError, ConfigurationError, TokenService, TokenValidator, UserDirectory, make_identity
)
from api.config import APIConfig
from api.models import LoginRequest

TEST_KEY = "test-signing-key-with-at-least-32-bytes!"
TEST_ISSUER = "https://books.test"
TEST_AUDIENCE = "https://books.test/api"


def _decode(token):
    return jwt.decode(
        token,
        TEST_KEY,
        algorithms=["HS256"],
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
    )


def _forge(key=TEST_KEY, issuer=TEST_ISSUER, audience=TEST_AUDIENCE, expires_in=timedelta(minutes=5)):
    payload = {
        "unique_name": "alice",
        "nameid": "nonce",
        "iss": issuer,
        "aud": audience,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, key, algorithm="HS256")


class TestTokenService:
    """Test the token service."""

    def test_token_is_compact_jws(self, token_service, alice):
        token = token_service.build_token(alice)
        assert token.count(".") == 2
        header = jwt.get_unverified_header(token)
        assert header["alg"] == "HS256"
        assert header["typ"] == "JWT"

    def test_token_verifies_with_configured_secret(self, token_service, alice):
        claims = _decode(token_service.build_token(alice))
        assert claims["unique_name"] == "alice"
        assert claims["iss"] == TEST_ISSUER
        assert claims["aud"] == TEST_AUDIENCE

    def test_expiry_is_thirty_minutes_after_issuance(self, token_service, alice):
        before = int(time.time())
        claims = _decode(token_service.build_token(alice))
        after = int(time.time())

        assert before + 30 * 60 <= claims["exp"] <= after + 30 * 60 + 1

    def test_tokens_differ_between_calls(self, token_service, alice):
        first = token_service.build_token(alice)
        second = token_service.build_token(alice)

        assert first != second
        assert _decode(first)["nameid"] != _decode(second)["nameid"]
        assert _decode(first)["unique_name"] == _decode(second)["unique_name"]

    @pytest.mark.parametrize("missing", ["jwt_key", "jwt_issuer", "jwt_audience"])
    def test_missing_settings_fail_loudly(self, api_config, missing):
        config = api_config.model_copy(update={missing: ""})
        with pytest.raises(ConfigurationError, match=missing):
            TokenService(config)
        with pytest.raises(ConfigurationError):
            TokenValidator(config)

    @pytest.mark.parametrize("algorithm", ["RS256", "HS512", "none"])
    def test_only_hs256_is_accepted(self, algorithm):
        with pytest.raises(ValidationError, match="jwt_algorithm"):
            APIConfig(_env_file=None, jwt_algorithm=algorithm)

    def test_algorithm_name_is_normalized(self):
        assert APIConfig(_env_file=None, jwt_algorithm="hs256").jwt_algorithm == "HS256"


class TestTokenValidator:
    """Test token validation."""

    def test_accepts_issued_token(self, token_service, token_validator, alice):
        claims = token_validator.validate(token_service.build_token(alice))
        assert claims.username == "alice"
        assert claims.issuer == TEST_ISSUER
        assert claims.audience == TEST_AUDIENCE

    def test_rejects_other_secret(self, token_validator):
        token = _forge(key="some-other-signing-key-of-32-bytes-or-more")
        with pytest.raises(AuthError) as exc_info:
            token_validator.validate(token)
        assert exc_info.value.error == "invalid_token"
        assert exc_info.value.status_code == 401

    def test_rejects_expired_token(self, token_validator):
        token = _forge(expires_in=timedelta(seconds=-1))
        with pytest.raises(AuthError) as exc_info:
            token_validator.validate(token)
        assert exc_info.value.error == "token_expired"

    def test_rejects_wrong_issuer(self, token_validator):
        with pytest.raises(AuthError):
            token_validator.validate(_forge(issuer="https://elsewhere.test"))

    def test_rejects_wrong_audience(self, token_validator):
        with pytest.raises(AuthError):
            token_validator.validate(_forge(audience="https://elsewhere.test/api"))

    def test_rejects_token_without_expiry(self, token_validator):
        token = jwt.encode(
            {"unique_name": "alice", "nameid": "n", "iss": TEST_ISSUER, "aud": TEST_AUDIENCE},
            TEST_KEY,
            algorithm="HS256",
        )
        with pytest.raises(AuthError):
            token_validator.validate(token)

    def test_rejects_garbage(self, token_validator):
        with pytest.raises(AuthError):
            token_validator.validate("not-a-token")

    def test_validate_credentials(self, token_service, token_validator, alice):
        token = token_service.build_token(alice)
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

        assert token_validator.validate_credentials(credentials).username == "alice"
        with pytest.raises(AuthError) as exc_info:
            token_validator.validate_credentials(None)
        assert exc_info.value.error == "missing_token"


class TestUserDirectory:
    """Test the user directory."""

    def test_known_user_resolves(self, api_config):
        directory = UserDirectory.from_config(api_config)
        user = directory.get_user(LoginRequest(userName="alice", password="wonderland"))

        assert user is not None
        assert user.username == "alice"
        assert user.user_id == make_identity("alice").user_id

    def test_wrong_password_is_rejected(self, api_config):
        directory = UserDirectory.from_config(api_config)
        assert directory.get_user(LoginRequest(username="alice", password="builder")) is None

    def test_unknown_user_is_rejected(self, api_config):
        directory = UserDirectory.from_config(api_config)
        assert directory.get_user(LoginRequest(username="mallory", password="x")) is None

    def test_malformed_entries_are_skipped(self):
        config = APIConfig(_env_file=None, auth_users="carol:pw, nocolon ,:orphan")
        assert config.get_user_credentials() == {"carol": "pw"}
        assert len(UserDirectory.from_config(config)) == 1
