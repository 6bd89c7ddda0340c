"""Authentication models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class JWTPayload(BaseModel):
    """JWT claims payload."""

    sub: str = Field(..., description="Subject (numeric user id)")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")


__all__ = ["JWTPayload"]
