"""
Token issuance, token validation and user lookup for the FastAPI API.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
import structlog
from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from api.config import APIConfig
from api.models import LoginRequest, TokenClaims, UserIdentity

logger = structlog.get_logger(__name__)

# Security scheme; missing credentials are reported by verify_token
security = HTTPBearer(
    auto_error=False,
    scheme_name="Bearer",
    bearerFormat="JWT",
    description="Access token from POST /auth/token",
)

# Claim names written by the token service
USERNAME_CLAIM = "unique_name"
NONCE_CLAIM = "nameid"


class ConfigurationError(Exception):
    """Raised at startup when required settings are missing."""


class AuthError(Exception):
    """A request could not be authenticated."""

    def __init__(self, error: str, message: str, *, status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code


def _require_settings(config: APIConfig) -> None:
    missing = [
        name for name in ("jwt_key", "jwt_issuer", "jwt_audience")
        if not getattr(config, name)
    ]
    if missing:
        raise ConfigurationError(f"JWT settings not configured: {', '.join(missing)}")


class TokenService:
    """Issues signed, short-lived access tokens for resolved users."""

    def __init__(self, config: APIConfig):
        _require_settings(config)
        self._key = config.jwt_key.encode("utf-8")
        self.issuer = config.jwt_issuer
        self.audience = config.jwt_audience
        self.algorithm = config.jwt_algorithm
        self.expiry_duration = timedelta(minutes=config.access_token_expire_minutes)

    def build_token(self, user: UserIdentity) -> str:
        """
        Create a signed JWT for the given user.

        Every call embeds a fresh UUID4 under ``nameid``, so two tokens for
        the same user never match.

        Args:
            user: Identity already resolved by the user directory

        Returns:
            Compact JWT string
        """
        expires_at = datetime.now(timezone.utc) + self.expiry_duration
        payload = {
            USERNAME_CLAIM: user.username,
            NONCE_CLAIM: str(uuid.uuid4()),
            "exp": expires_at,
            "iss": self.issuer,
            "aud": self.audience,
        }
        token = jwt.encode(payload, self._key, algorithm=self.algorithm)
        logger.info("Access token issued", username=user.username, expires_at=expires_at.isoformat())
        return token


class TokenValidator:
    """Checks bearer tokens produced by :class:`TokenService`."""

    def __init__(self, config: APIConfig):
        _require_settings(config)
        self._key = config.jwt_key.encode("utf-8")
        self.issuer = config.jwt_issuer
        self.audience = config.jwt_audience
        self.algorithm = config.jwt_algorithm

    def validate(self, token: str) -> TokenClaims:
        """
        Verify signature, issuer, audience and expiry of a token.

        Raises:
            AuthError: If any check fails
        """
        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired", "Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token", f"Invalid token: {exc}") from exc

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise AuthError("invalid_token", "Token is missing required claims") from exc

    def validate_credentials(self, credentials: Optional[HTTPAuthorizationCredentials]) -> TokenClaims:
        """
        Validate the bearer credential extracted by :data:`security`.

        Raises:
            AuthError: If no bearer credential was sent, or it is invalid
        """
        if credentials is None or not credentials.credentials:
            raise AuthError("missing_token", "Not authenticated")

        return self.validate(credentials.credentials)


async def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenClaims:
    """
    Require a valid bearer token on the route this dependency is attached to.

    Raises:
        AuthError: If the token is missing or invalid
    """
    validator: TokenValidator = request.app.state.token_validator
    try:
        claims = validator.validate_credentials(credentials)
    except AuthError as e:
        logger.warning("Rejected unauthenticated request", path=request.url.path, reason=e.error)
        raise

    request.state.username = claims.username
    return claims


def make_identity(username: str) -> UserIdentity:
    """Build the identity for a username; the opaque id is stable per username."""
    return UserIdentity(
        username=username,
        user_id=str(uuid.uuid5(uuid.NAMESPACE_OID, username)),
    )


class UserDirectory:
    """Resolves login credentials to a user identity."""

    def __init__(self, credentials: Dict[str, str]):
        self._credentials = dict(credentials)

    @classmethod
    def from_config(cls, config: APIConfig) -> "UserDirectory":
        return cls(config.get_user_credentials())

    def get_user(self, login: LoginRequest) -> Optional[UserIdentity]:
        """
        Look up a user by credentials.

        Args:
            login: Submitted username and password

        Returns:
            The matching identity, or None if the credentials are unknown
        """
        expected = self._credentials.get(login.username)
        if expected is None:
            return None
        if not secrets.compare_digest(expected.encode("utf-8"), login.password.encode("utf-8")):
            return None

        return make_identity(login.username)

    def __len__(self) -> int:
        return len(self._credentials)
