"""LLM task helpers - enhance a task draft or an existing task, suggest new tasks."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .assistant import get_assistant_service
from ..middleware import AuthContext, get_auth_context
from ...models.enhancement import (
    EnhanceTaskRequest,
    EnhanceTaskResponse,
    SuggestTasksRequest,
    SuggestTasksResponse,
)
from ...services.assistant_service import AssistantService

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/tasks/{task_id}/enhance", response_model=EnhanceTaskResponse)
async def enhance_existing_task(
    task_id: int,
    auth: AuthContext = Depends(get_auth_context),
    assistant: AssistantService = Depends(get_assistant_service),
):
    """Suggest a fuller version of an owned task alongside its current fields."""
    return await assistant.enhance_existing_task(auth.user_id, task_id)


@router.post("/enhance", response_model=EnhanceTaskResponse)
async def enhance_draft(
    request: EnhanceTaskRequest,
    auth: AuthContext = Depends(get_auth_context),
    assistant: AssistantService = Depends(get_assistant_service),
):
    """Enhance a task that is still being written."""
    enhancement = await assistant.enhance_task(request.title, request.description)
    return EnhanceTaskResponse(enhancement=enhancement)


@router.post("/suggest-tasks", response_model=SuggestTasksResponse)
async def suggest_tasks(
    request: SuggestTasksRequest,
    auth: AuthContext = Depends(get_auth_context),
    assistant: AssistantService = Depends(get_assistant_service),
):
    suggestions = await assistant.suggest_tasks(auth.user_id, request.project_id)
    return SuggestTasksResponse(suggestions=suggestions)


__all__ = ["router"]
