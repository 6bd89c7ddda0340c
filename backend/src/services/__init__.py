"""Service layer for business logic and external integrations."""

from .assistant_service import AssistantService
from .auth import AuthError, AuthService
from .command_dispatcher import CommandDispatcher, get_command_dispatcher, slugify
from .config import AppConfig, get_config, reload_config
from .context_search import (
    ContextSearchService,
    format_context_for_ai,
    generate_source_citations,
    get_context_search_service,
)
from .database import DatabaseService, init_database
from .document import extract_page_text, flatten_document, markdown_to_document
from .errors import (
    AssistantError,
    NotFoundError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from .llm_client import LLMClient, LLMClientError
from .reply_parser import heuristic_command, parse_assistant_reply
from .text_search import calculate_relevance, extract_keywords, extract_snippet
from .workspace_store import WorkspaceStore

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "AuthService",
    "AuthError",
    "WorkspaceStore",
    "extract_keywords",
    "calculate_relevance",
    "extract_snippet",
    "flatten_document",
    "extract_page_text",
    "markdown_to_document",
    "ContextSearchService",
    "format_context_for_ai",
    "generate_source_citations",
    "get_context_search_service",
    "CommandDispatcher",
    "get_command_dispatcher",
    "slugify",
    "AssistantError",
    "ValidationError",
    "NotFoundError",
    "ParseError",
    "PersistenceError",
    "LLMClient",
    "LLMClientError",
    "parse_assistant_reply",
    "heuristic_command",
    "AssistantService",
]
