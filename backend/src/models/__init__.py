"""Pydantic models for data validation and serialization."""

from .auth import JWTPayload
from .command import (
    AssistantReply,
    ChatRequest,
    ChatResponse,
    CommandAction,
    CommandRequest,
    CommandResult,
    MarkdownRequest,
    RequestContext,
    RequestContextPayload,
)
from .conversation import (
    ChatMessage,
    Conversation,
    ConversationMessages,
    ConversationSummary,
    SaveMessageRequest,
)
from .document import BlockNode, Mark, RichTextNode, TextNode
from .enhancement import TaskEnhancement, TaskSuggestion
from .search import (
    SearchOptions,
    SearchRequest,
    SearchResult,
    SearchResultMetadata,
    TimeRange,
)

__all__ = [
    "JWTPayload",
    "Mark",
    "TextNode",
    "BlockNode",
    "RichTextNode",
    "TimeRange",
    "SearchOptions",
    "SearchRequest",
    "SearchResult",
    "SearchResultMetadata",
    "CommandAction",
    "RequestContext",
    "RequestContextPayload",
    "CommandRequest",
    "CommandResult",
    "AssistantReply",
    "ChatRequest",
    "ChatResponse",
    "MarkdownRequest",
    "Conversation",
    "ConversationSummary",
    "ConversationMessages",
    "ChatMessage",
    "SaveMessageRequest",
    "TaskEnhancement",
    "TaskSuggestion",
]
