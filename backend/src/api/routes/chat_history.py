"""Chat history endpoints - list, read, append to, rename and delete conversations."""

from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends

from ..middleware import AuthContext, get_auth_context
from ...models.conversation import (
    ConversationMessages,
    ConversationSummary,
    RenameConversationRequest,
    SaveMessageRequest,
    SaveMessageResponse,
)
from ...services.assistant_service import conversation_title
from ...services.command_dispatcher import get_command_dispatcher
from ...services.errors import NotFoundError
from ...services.workspace_store import WorkspaceStore

router = APIRouter(prefix="/api/chat-history", tags=["chat-history"])

PREVIEW_LENGTH = 100


def get_workspace_store() -> WorkspaceStore:
    return get_command_dispatcher().store


def _preview(content: str | None) -> str:
    if not content:
        return ""
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + "..."


def _missing(conversation_id: int) -> NotFoundError:
    return NotFoundError("Conversation not found", {"conversationId": conversation_id})


@router.get("/conversations", response_model=List[ConversationSummary])
async def list_conversations(
    auth: AuthContext = Depends(get_auth_context),
    store: WorkspaceStore = Depends(get_workspace_store),
):
    """The caller's conversations, most recently active first."""
    return [
        ConversationSummary(
            id=row["id"],
            title=row["title"],
            started_at=row["started_at"],
            last_message_at=row["last_message_at"],
            message_count=row["message_count"],
            preview=_preview(row["last_message"]),
            last_message_role=row["last_message_role"],
        )
        for row in store.list_conversations(auth.user_id)
    ]


@router.get("/conversations/{conversation_id}/messages", response_model=ConversationMessages)
async def get_messages(
    conversation_id: int,
    auth: AuthContext = Depends(get_auth_context),
    store: WorkspaceStore = Depends(get_workspace_store),
):
    conversation = store.get_owned_conversation(auth.user_id, conversation_id)
    if conversation is None:
        raise _missing(conversation_id)
    return {"conversation": conversation, "messages": store.list_messages(conversation_id)}


@router.post("/conversations", response_model=SaveMessageResponse)
async def save_message(
    request: SaveMessageRequest,
    auth: AuthContext = Depends(get_auth_context),
    store: WorkspaceStore = Depends(get_workspace_store),
):
    """
    Append one message.

    A new conversation, titled after the message, is opened when no
    ``conversationId`` is given or ``isNewConversation`` is set.
    """
    if request.is_new_conversation or request.conversation_id is None:
        conversation_id = store.create_conversation(
            auth.user_id, conversation_title(request.message.content)
        )["id"]
    else:
        conversation_id = request.conversation_id
        if store.get_owned_conversation(auth.user_id, conversation_id) is None:
            raise _missing(conversation_id)

    store.add_message(
        conversation_id,
        request.message.role,
        request.message.content,
        request.message.metadata,
    )
    return SaveMessageResponse(conversation_id=conversation_id)


@router.patch("/conversations/{conversation_id}")
async def rename_conversation(
    conversation_id: int,
    request: RenameConversationRequest,
    auth: AuthContext = Depends(get_auth_context),
    store: WorkspaceStore = Depends(get_workspace_store),
) -> Dict[str, bool]:
    if not store.rename_conversation(auth.user_id, conversation_id, request.title.strip()):
        raise _missing(conversation_id)
    return {"success": True}


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: int,
    auth: AuthContext = Depends(get_auth_context),
    store: WorkspaceStore = Depends(get_workspace_store),
) -> Dict[str, bool]:
    if not store.delete_conversation(auth.user_id, conversation_id):
        raise _missing(conversation_id)
    return {"success": True}


__all__ = ["router", "get_workspace_store"]
