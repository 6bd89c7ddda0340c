"""Context search request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

SearchResultType = Literal["notebook_page", "project", "task"]


class TimeRange(BaseModel):
    """Inclusive ``updated_at`` bounds for scoped fetches."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SearchOptions(BaseModel):
    """Options controlling a context search."""

    limit: int = Field(10, ge=1, le=100)
    include_archived: bool = False
    time_range: Optional[TimeRange] = None


class SearchResultMetadata(BaseModel):
    """Owning collection and status details for a search hit."""

    notebook_id: Optional[int] = None
    notebook_title: Optional[str] = None
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    status: Optional[str] = None
    updated_at: Optional[str] = None


class SearchResult(BaseModel):
    """Ranked, snippeted hit from a user's projects, tasks or notebook pages."""

    type: SearchResultType
    id: int
    title: str
    snippet: str = Field(..., description="Keyword-densest preview of the body")
    full_content: str = Field(..., description="Complete flattened body text")
    relevance_score: int = Field(..., ge=0, description="Combined title/body keyword score")
    metadata: SearchResultMetadata = Field(default_factory=SearchResultMetadata)


class SearchRequest(BaseModel):
    """Context search query parameters."""

    query: str = Field(..., min_length=1, max_length=1000)
    limit: int = Field(10, ge=1, le=100)
    include_archived: bool = False
    time_range: Optional[TimeRange] = None


__all__ = [
    "SearchResultType",
    "TimeRange",
    "SearchOptions",
    "SearchResultMetadata",
    "SearchResult",
    "SearchRequest",
]
