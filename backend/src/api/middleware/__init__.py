"""FastAPI middleware for authentication and error handling."""

from .auth_middleware import AuthContext, get_auth_context, get_auth_service
from .error_handlers import error_body, register_error_handlers

__all__ = [
    "AuthContext",
    "get_auth_context",
    "get_auth_service",
    "error_body",
    "register_error_handlers",
]
