"""Assistant API endpoints - chat turns, direct commands and markdown conversion."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ..middleware import AuthContext, get_auth_context
from ...models.command import (
    ChatRequest,
    ChatResponse,
    CommandRequest,
    CommandResult,
    MarkdownRequest,
)
from ...models.document import node_to_dict
from ...services.assistant_service import AssistantService
from ...services.command_dispatcher import CommandDispatcher, get_command_dispatcher
from ...services.document import markdown_to_document

router = APIRouter(prefix="/api/assistant", tags=["assistant"])

# Singleton assistant instance
_assistant: AssistantService | None = None


def get_assistant_service() -> AssistantService:
    """Get or create the assistant service instance."""
    global _assistant
    if _assistant is None:
        _assistant = AssistantService()
    return _assistant


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    auth: AuthContext = Depends(get_auth_context),
    assistant: AssistantService = Depends(get_assistant_service),
):
    """
    Run one assistant turn.

    The reply may carry an executed action and its result. Failed actions are
    explained in ``response`` with ``error`` set; informational answers end
    with a numbered source list. Both messages are saved to the conversation
    named by ``conversationId``, or to a new one whose id is returned.
    """
    return await assistant.chat(
        request.message,
        auth.user_id,
        request.context.to_context(),
        conversation_id=request.conversation_id,
    )


@router.post("/command", response_model=CommandResult)
async def run_command(
    request: CommandRequest,
    auth: AuthContext = Depends(get_auth_context),
    dispatcher: CommandDispatcher = Depends(get_command_dispatcher),
):
    """Execute a structured command directly (typed failures map to 4xx/5xx)."""
    return await dispatcher.dispatch(
        request.action,
        request.parameters,
        auth.user_id,
        request.context.to_context(),
    )


@router.post("/markdown")
async def convert_markdown(
    request: MarkdownRequest,
    auth: AuthContext = Depends(get_auth_context),
) -> Dict[str, List[Dict[str, Any]]]:
    """Preview the document nodes a markdown snippet would produce."""
    nodes = markdown_to_document(request.markdown, highlight=request.highlight)
    return {"content": [node_to_dict(node) for node in nodes]}


__all__ = ["router", "get_assistant_service"]
