"""Bearer-token authentication: signed JWTs plus a static token for local development."""

from __future__ import annotations

import abc
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from fastapi import status

from ..models.auth import JWTPayload
from .config import AppConfig, get_config

DEV_FALLBACK_SECRET = "local-dev-secret-key-123"
STATIC_TOKEN_TTL = timedelta(days=365)


class AuthError(Exception):
    """Token rejected or auth misconfigured; carries the API error code."""

    def __init__(
        self,
        error: str,
        message: str,
        *,
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail or {}


def signing_secret(config: AppConfig) -> str:
    """
    Return the HMAC secret for JWTs.

    Without ``JWT_SECRET_KEY`` a fixed development secret is used, but only
    when ``ENVIRONMENT`` is ``dev``/``development`` and local mode is on.
    """
    if config.jwt_secret_key:
        return config.jwt_secret_key
    environment = os.getenv("ENVIRONMENT", "").lower()
    if environment in ("development", "dev") and config.enable_local_mode:
        return DEV_FALLBACK_SECRET
    raise AuthError(
        "missing_jwt_secret",
        "JWT secret is not configured.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def _claims(user_id: int, lifetime: timedelta) -> JWTPayload:
    issued = datetime.now(timezone.utc)
    return JWTPayload(
        sub=str(user_id),
        iat=int(issued.timestamp()),
        exp=int((issued + lifetime).timestamp()),
    )


class TokenValidator(abc.ABC):
    """One way of turning a bearer token into claims."""

    @abc.abstractmethod
    def validate(self, token: str) -> Optional[JWTPayload]:
        """
        Return claims for a token this validator accepts, None for a token it
        does not recognise, and raise AuthError for a recognised but bad token.
        """


class StaticTokenValidator(TokenValidator):
    """Accepts one configured token and maps it to a fixed workspace user."""

    def __init__(self, static_token: Optional[str], user_id: int):
        self.static_token = static_token
        self.user_id = user_id

    def validate(self, token: str) -> Optional[JWTPayload]:
        if not self.static_token or token != self.static_token:
            return None
        return _claims(self.user_id, STATIC_TOKEN_TTL)


class JWTValidator(TokenValidator):
    """Accepts HS256 JWTs signed with the application secret."""

    def __init__(self, config: AppConfig, algorithm: str = "HS256"):
        self.config = config
        self.algorithm = algorithm

    def validate(self, token: str) -> Optional[JWTPayload]:
        secret = signing_secret(self.config)
        try:
            decoded = jwt.decode(token, secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired", "Token expired") from exc
        except jwt.DecodeError:
            # Not a JWT at all
            return None
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token", f"Invalid token: {exc}") from exc
        return JWTPayload(**decoded)


class AuthService:
    """Validate bearer tokens and issue JWTs for workspace users."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        algorithm: str = "HS256",
        token_ttl_days: int = 90,
    ) -> None:
        self.config = config or get_config()
        self.algorithm = algorithm
        self.token_ttl = timedelta(days=token_ttl_days)

        # Checked in order; the static local-dev token wins over JWT parsing
        self.validators: List[TokenValidator] = []
        if self.config.enable_local_mode:
            self.validators.append(
                StaticTokenValidator(self.config.local_dev_token, self.config.local_dev_user_id)
            )
        self.validators.append(JWTValidator(self.config, algorithm))

    def validate_jwt(self, token: str) -> JWTPayload:
        """Return the claims of the first validator that accepts ``token``."""
        for validator in self.validators:
            payload = validator.validate(token)
            if payload is not None:
                return payload
        raise AuthError("invalid_token", "Invalid authentication credentials")

    @staticmethod
    def user_id_from_payload(payload: JWTPayload) -> int:
        """Workspace user ids are positive integers carried in ``sub``."""
        try:
            user_id = int(payload.sub)
        except ValueError:
            user_id = 0
        if user_id < 1:
            raise AuthError(
                "invalid_token",
                "Token subject is not a user id",
                detail={"sub": payload.sub},
            )
        return user_id

    def create_jwt(self, user_id: int, *, expires_in: Optional[timedelta] = None) -> str:
        """Create a signed JWT whose ``sub`` is ``user_id``."""
        claims = _claims(user_id, expires_in or self.token_ttl)
        return jwt.encode(claims.model_dump(), signing_secret(self.config), algorithm=self.algorithm)


__all__ = [
    "AuthService",
    "AuthError",
    "TokenValidator",
    "StaticTokenValidator",
    "JWTValidator",
    "signing_secret",
]
