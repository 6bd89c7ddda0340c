"""Exception handlers producing the ``{error, message, detail}`` response body."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.errors import AssistantError
from ...services.llm_client import LLMClientError

logger = logging.getLogger(__name__)

# Error code and fallback message per status when a raiser gives neither
STATUS_DEFAULTS: Dict[int, tuple[str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("validation_error", "Invalid request payload"),
    status.HTTP_401_UNAUTHORIZED: ("unauthorized", "Authorization required"),
    status.HTTP_403_FORBIDDEN: ("forbidden", "Forbidden"),
    status.HTTP_404_NOT_FOUND: ("not_found", "Resource not found"),
    status.HTTP_422_UNPROCESSABLE_CONTENT: ("parse_error", "Unprocessable assistant reply"),
    status.HTTP_502_BAD_GATEWAY: ("llm_unavailable", "Completion provider unavailable"),
    status.HTTP_500_INTERNAL_SERVER_ERROR: ("internal_error", "Internal server error"),
}
_RESERVED_KEYS = frozenset({"error", "message", "detail"})


def error_body(status_code: int, detail: Any = None) -> Dict[str, Any]:
    """
    Build the error body for ``status_code``.

    ``detail`` may be a plain message, or a mapping carrying any of ``error``,
    ``message`` and ``detail``; unrecognised keys of a mapping become the
    ``detail`` object.
    """
    code, message = STATUS_DEFAULTS.get(
        status_code, STATUS_DEFAULTS[status.HTTP_500_INTERNAL_SERVER_ERROR]
    )
    extra: Optional[Any] = None
    if isinstance(detail, Mapping):
        code = detail.get("error") or code
        message = detail.get("message") or message
        extra = detail.get("detail")
        if extra is None:
            extra = {k: v for k, v in detail.items() if k not in _RESERVED_KEYS} or None
    elif isinstance(detail, str) and detail:
        message = detail
    return {"error": code, "message": message, "detail": extra}


def _json(status_code: int, detail: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(status_code, detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _json(status.HTTP_400_BAD_REQUEST, {"detail": {"errors": exc.errors()}})


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _json(exc.status_code, exc.detail)


async def assistant_exception_handler(
    request: Request, exc: AssistantError
) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            f"{exc.error} on {request.url.path}: {exc.message}", extra={"detail": exc.detail}
        )
    return _json(exc.status_code, exc.to_dict())


async def llm_exception_handler(request: Request, exc: LLMClientError) -> JSONResponse:
    logger.error(f"Completion provider failed on {request.url.path}: {exc.message}")
    return _json(
        status.HTTP_502_BAD_GATEWAY,
        {"message": exc.message, "detail": exc.details or None},
    )


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _json(status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(AssistantError, assistant_exception_handler)
    app.add_exception_handler(LLMClientError, llm_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "error_body",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "assistant_exception_handler",
    "llm_exception_handler",
    "internal_exception_handler",
]
