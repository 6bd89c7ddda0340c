"""HTTP API routes for context search."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..middleware import AuthContext, get_auth_context
from ...models.search import SearchOptions, SearchRequest, SearchResult, TimeRange
from ...services.context_search import (
    ContextSearchService,
    format_context_for_ai,
    generate_source_citations,
    get_context_search_service,
)

router = APIRouter()


class ContextBlockResponse(BaseModel):
    """Rendered prompt context and citations for a query."""

    results: list[SearchResult]
    context: str
    citations: str


@router.get("/api/search", response_model=list[SearchResult])
async def search_content(
    q: str = Query(..., min_length=1, max_length=1000),
    limit: int = Query(10, ge=1, le=100),
    include_archived: bool = Query(False),
    start: Optional[datetime] = Query(None, description="Only items updated at/after"),
    end: Optional[datetime] = Query(None, description="Only items updated at/before"),
    auth: AuthContext = Depends(get_auth_context),
    search_service: ContextSearchService = Depends(get_context_search_service),
):
    """Ranked search across the caller's projects, tasks and notebook pages."""
    time_range = TimeRange(start=start, end=end) if start or end else None
    options = SearchOptions(limit=limit, include_archived=include_archived, time_range=time_range)
    return await search_service.search(q, auth.user_id, options)


@router.post("/api/search/context", response_model=ContextBlockResponse)
async def search_context(
    request: SearchRequest,
    auth: AuthContext = Depends(get_auth_context),
    search_service: ContextSearchService = Depends(get_context_search_service),
):
    """Search and render the LLM context block plus source citations."""
    options = SearchOptions(
        limit=request.limit,
        include_archived=request.include_archived,
        time_range=request.time_range,
    )
    results = await search_service.search(request.query, auth.user_id, options)
    return ContextBlockResponse(
        results=results,
        context=format_context_for_ai(results),
        citations=generate_source_citations(results),
    )


__all__ = ["router"]
