"""Task enhancement and suggestion models."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TaskPriority = Literal["low", "medium", "high"]


def _priority(value: object) -> Optional[str]:
    # Models answer "High", "medium priority" and the like
    if value is None:
        return None
    text = str(value).strip().lower()
    for level in ("low", "medium", "high"):
        if level in text:
            return level
    return None


class TaskEnhancement(BaseModel):
    """Suggested rewrite of a task; every field is optional."""

    title: Optional[str] = None
    description: Optional[str] = None
    subtasks: List[str] = Field(default_factory=list)
    priority: Optional[TaskPriority] = None
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")
    tags: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: object) -> Optional[str]:
        return _priority(value)


class TaskSuggestion(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = "medium"
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")

    model_config = {"populate_by_name": True}

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: object) -> str:
        return _priority(value) or "medium"


class TaskSnapshot(BaseModel):
    title: str
    description: Optional[str] = None
    priority: Optional[str] = None


class EnhanceTaskRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=10000)


class EnhanceTaskResponse(BaseModel):
    original: Optional[TaskSnapshot] = None
    enhancement: TaskEnhancement


class SuggestTasksRequest(BaseModel):
    project_id: int = Field(..., alias="projectId")

    model_config = {"populate_by_name": True}


class SuggestTasksResponse(BaseModel):
    suggestions: List[TaskSuggestion]


__all__ = [
    "TaskPriority",
    "TaskEnhancement",
    "TaskSuggestion",
    "TaskSnapshot",
    "EnhanceTaskRequest",
    "EnhanceTaskResponse",
    "SuggestTasksRequest",
    "SuggestTasksResponse",
]
