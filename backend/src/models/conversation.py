"""Chat history models."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

MessageRole = Literal["user", "assistant"]


class ConversationSummary(BaseModel):
    """A conversation in the history list."""

    id: int
    title: Optional[str] = None
    started_at: str
    last_message_at: str
    message_count: int = 0
    preview: str = ""
    last_message_role: Optional[MessageRole] = None


class Conversation(BaseModel):
    id: int
    title: Optional[str] = None
    started_at: str
    last_message_at: str


class ChatMessage(BaseModel):
    id: int
    role: MessageRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


class ConversationMessages(BaseModel):
    conversation: Conversation
    messages: List[ChatMessage]


class MessageInput(BaseModel):
    role: MessageRole
    content: str = Field(..., min_length=1, max_length=20000)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SaveMessageRequest(BaseModel):
    """Append a message, opening a new conversation when none is given."""

    conversation_id: Optional[int] = Field(None, alias="conversationId")
    message: MessageInput
    is_new_conversation: bool = Field(False, alias="isNewConversation")

    model_config = {"populate_by_name": True}


class SaveMessageResponse(BaseModel):
    conversation_id: int


class RenameConversationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


__all__ = [
    "MessageRole",
    "ConversationSummary",
    "Conversation",
    "ChatMessage",
    "ConversationMessages",
    "MessageInput",
    "SaveMessageRequest",
    "SaveMessageResponse",
    "RenameConversationRequest",
]
