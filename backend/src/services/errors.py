"""Typed failures raised by the search, dispatch and assistant services."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class AssistantError(Exception):
    """Domain-specific error carrying an API error code and HTTP status."""

    error = "assistant_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, "detail": self.detail or None}


class ValidationError(AssistantError):
    """A required command parameter is missing or malformed."""

    error = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AssistantError):
    """The target entity does not exist or is not owned by the actor."""

    error = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ParseError(AssistantError):
    """The LLM reply did not contain an extractable JSON command."""

    error = "parse_error"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class PersistenceError(AssistantError):
    """A store operation failed."""

    error = "persistence_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AssistantError",
    "ValidationError",
    "NotFoundError",
    "ParseError",
    "PersistenceError",
]
