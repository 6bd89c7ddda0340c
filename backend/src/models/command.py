"""Assistant command and conversation models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CommandAction(str, Enum):
    """Actions the assistant may ask the dispatcher to perform."""

    CREATE_PROJECT = "create_project"
    CREATE_TASK = "create_task"
    CREATE_MULTIPLE_TASKS = "create_multiple_tasks"
    UPDATE_TASK = "update_task"
    MOVE_TASK = "move_task"
    DELETE_TASK = "delete_task"
    UPDATE_PAGE = "update_page"
    CREATE_PAGE = "create_page"
    CREATE_NOTEBOOK = "create_notebook"
    NAVIGATE = "navigate"
    QUERY_TASKS = "query_tasks"
    QUERY_PROJECTS = "query_projects"

    @classmethod
    def parse(cls, value: Any) -> Optional["CommandAction"]:
        """Return the matching action, or None for unknown/empty values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def is_mutating(self) -> bool:
        return self not in READ_ONLY_ACTIONS


READ_ONLY_ACTIONS = frozenset(
    {CommandAction.NAVIGATE, CommandAction.QUERY_TASKS, CommandAction.QUERY_PROJECTS}
)


@dataclass(frozen=True)
class RequestContext:
    """Where the user currently is in the UI when issuing a command."""

    current_project_id: Optional[int] = None
    current_notebook_id: Optional[int] = None
    current_page_id: Optional[int] = None


class RequestContextPayload(BaseModel):
    """Wire form of ``RequestContext`` (camelCase keys accepted)."""

    current_project_id: Optional[int] = Field(None, alias="currentProjectId")
    current_notebook_id: Optional[int] = Field(None, alias="currentNotebookId")
    current_page_id: Optional[int] = Field(None, alias="currentPageId")

    model_config = {"populate_by_name": True}

    def to_context(self) -> RequestContext:
        return RequestContext(
            current_project_id=self.current_project_id,
            current_notebook_id=self.current_notebook_id,
            current_page_id=self.current_page_id,
        )


class CommandResult(BaseModel):
    """Outcome of one dispatched action."""

    action: str
    result: Dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None


class CommandRequest(BaseModel):
    """Direct dispatch request."""

    action: str = Field(..., min_length=1, max_length=64)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    context: RequestContextPayload = Field(default_factory=RequestContextPayload)


class AssistantReply(BaseModel):
    """Structured reply extracted from the LLM completion."""

    response: str = ""
    action: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ChatRequest(BaseModel):
    """One user message to the assistant, optionally continuing a conversation."""

    message: str = Field(..., min_length=1, max_length=10000)
    context: RequestContextPayload = Field(default_factory=RequestContextPayload)
    conversation_id: Optional[int] = Field(None, alias="conversationId")

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    """Assistant answer plus the action it took (if any)."""

    response: str
    action: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    sources: List[Dict[str, Any]] = Field(default_factory=list)
    conversation_id: Optional[int] = None


class MarkdownRequest(BaseModel):
    """Markdown to rich-text conversion request."""

    markdown: str = Field("", max_length=200000)
    highlight: bool = False


__all__ = [
    "CommandAction",
    "READ_ONLY_ACTIONS",
    "RequestContext",
    "RequestContextPayload",
    "CommandResult",
    "CommandRequest",
    "AssistantReply",
    "ChatRequest",
    "ChatResponse",
    "MarkdownRequest",
]
