"""Bearer-token dependency resolving the acting workspace user for API routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Header, HTTPException, status

from ...models.auth import JWTPayload
from ...services.auth import AuthError, AuthService

_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


@dataclass
class AuthContext:
    user_id: int
    token: str
    payload: JWTPayload


def _reject(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "message": message},
    )


def get_auth_context(
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
) -> AuthContext:
    """Every workspace route acts as the user named by the bearer token."""
    if not authorization:
        raise _reject("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _reject("Expected 'Authorization: Bearer <token>'")

    service = get_auth_service()
    try:
        payload = service.validate_jwt(token)
        return AuthContext(service.user_id_from_payload(payload), token, payload)
    except AuthError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.error, "message": exc.message, "detail": exc.detail or None},
        ) from exc


__all__ = ["AuthContext", "get_auth_context", "get_auth_service"]
