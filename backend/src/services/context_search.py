"""Context search - lexical relevance search over a user's workspace.

Scans the requesting user's projects, tasks and notebook pages for content
related to a free-text query and renders ranked results for LLM prompts and
user-facing citations. Search is a linear scan per request; there is no index.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.search import SearchOptions, SearchResult, SearchResultMetadata
from .config import get_config
from .database import DatabaseService
from .document import extract_page_text
from .text_search import extract_keywords, extract_snippet, score_item
from .workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

CONTEXT_PREAMBLE = (
    "Found relevant information from your knowledge base. "
    "The complete content of each source is included below:\n\n"
)
TYPE_LABELS = {
    "notebook_page": "Notebook page",
    "project": "Project",
    "task": "Task",
}


class ContextSearchService:
    """Rank a user's projects, tasks and notebook pages against a query."""

    def __init__(self, store: WorkspaceStore | None = None) -> None:
        self.store = store or WorkspaceStore()

    async def search(
        self,
        query: str,
        user_id: int,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Search all content types in parallel and return ranked results.

        Args:
            query: Free-text query
            user_id: Acting user; only content they own is considered
            options: Limit, archived-project inclusion and ``updated_at`` range

        Returns:
            Results sorted by descending relevance (stable on ties), at most
            ``options.limit`` long. Empty when the query has no keywords.
        """
        options = options or SearchOptions()
        keywords = extract_keywords(query)
        if not keywords:
            logger.debug("Context search skipped: no keywords", extra={"user_id": user_id})
            return []

        start_time = time.time()
        page_results, project_results, task_results = await asyncio.gather(
            self._scoped(self._search_pages, keywords, user_id, options),
            self._scoped(self._search_projects, keywords, user_id, options),
            self._scoped(self._search_tasks, keywords, user_id, options),
        )

        results = [*page_results, *project_results, *task_results]
        results.sort(key=lambda result: result.relevance_score, reverse=True)
        results = results[: options.limit]

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Context search completed",
            extra={
                "user_id": user_id,
                "keywords": keywords,
                "result_count": len(results),
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return results

    async def _scoped(
        self,
        fetch: Callable[[Sequence[str], int, SearchOptions], List[SearchResult]],
        keywords: Sequence[str],
        user_id: int,
        options: SearchOptions,
    ) -> List[SearchResult]:
        # Each scope runs on its own thread and connection; a failed scope yields [].
        try:
            return await asyncio.to_thread(fetch, keywords, user_id, options)
        except Exception as exc:
            logger.exception(f"Context search scope {fetch.__name__} failed: {exc}")
            return []

    def _search_pages(
        self, keywords: Sequence[str], user_id: int, options: SearchOptions
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        for page in self.store.list_pages(user_id, time_range=options.time_range):
            text = extract_page_text(page.get("content"))
            score = score_item(page["title"], text, keywords)
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    type="notebook_page",
                    id=page["id"],
                    title=page["title"],
                    snippet=extract_snippet(text, keywords),
                    full_content=text,
                    relevance_score=score,
                    metadata=SearchResultMetadata(
                        notebook_id=page["notebook_id"],
                        notebook_title=page["notebook_title"],
                        updated_at=page["updated_at"],
                    ),
                )
            )
        return results

    def _search_projects(
        self, keywords: Sequence[str], user_id: int, options: SearchOptions
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        projects = self.store.list_projects(
            user_id,
            include_archived=options.include_archived,
            time_range=options.time_range,
        )
        for project in projects:
            description = project.get("description") or ""
            score = score_item(project["name"], description, keywords)
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    type="project",
                    id=project["id"],
                    title=project["name"],
                    snippet=extract_snippet(description or project["name"], keywords),
                    full_content=description,
                    relevance_score=score,
                    metadata=SearchResultMetadata(
                        project_id=project["id"],
                        project_name=project["name"],
                        status=project.get("status"),
                        updated_at=project["updated_at"],
                    ),
                )
            )
        return results

    def _search_tasks(
        self, keywords: Sequence[str], user_id: int, options: SearchOptions
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        for task in self.store.list_tasks(user_id, time_range=options.time_range):
            description = task.get("description") or ""
            score = score_item(task["title"], description, keywords)
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    type="task",
                    id=task["id"],
                    title=task["title"],
                    snippet=extract_snippet(description or task["title"], keywords),
                    full_content=description,
                    relevance_score=score,
                    metadata=SearchResultMetadata(
                        project_id=task["project_id"],
                        project_name=task["project_name"],
                        status=task.get("status"),
                        updated_at=task["updated_at"],
                    ),
                )
            )
        return results


def _collection_label(result: SearchResult) -> str:
    meta = result.metadata
    if result.type == "notebook_page":
        return f'notebook "{meta.notebook_title or "Untitled"}"'
    if result.type == "task":
        return f'project "{meta.project_name or "Untitled"}" ({meta.status or "unknown"})'
    return "projects"


def format_context_for_ai(results: Sequence[SearchResult]) -> str:
    """Render results as a context block containing each source's full text."""
    if not results:
        return ""

    blocks: List[str] = [CONTEXT_PREAMBLE]
    for index, result in enumerate(results, start=1):
        content = result.full_content.strip() or "(no content)"
        blocks.append(
            f"--- Source {index} ---\n"
            f"Type: {TYPE_LABELS.get(result.type, result.type)}\n"
            f"Title: {result.title}\n"
            f"Location: {_collection_label(result)}\n"
            f"Content:\n{content}\n"
            f"--- End of source {index} ---\n\n"
        )
    return "".join(blocks)


def _citation_locator(result: SearchResult) -> str:
    meta = result.metadata
    if result.type == "notebook_page":
        return f'"{result.title}" in {meta.notebook_title} notebook'
    if result.type == "task":
        return f'Task: "{result.title}" in {meta.project_name}'
    return f'Project: "{result.title}"'


def generate_source_citations(results: Sequence[SearchResult]) -> str:
    """Numbered attribution list appended to informational answers."""
    if not results:
        return ""
    lines = [f"[{index}] {_citation_locator(result)}" for index, result in enumerate(results, 1)]
    return "\n\n**Sources:**\n" + "\n".join(lines) + "\n"


def citation_sources(results: Sequence[SearchResult]) -> List[Dict[str, Any]]:
    """Structured form of the citation list for API clients."""
    return [
        {"index": index, "type": result.type, "id": result.id, "title": result.title}
        for index, result in enumerate(results, 1)
    ]


# Singleton instance for dependency injection
_context_search: Optional[ContextSearchService] = None


def get_context_search_service() -> ContextSearchService:
    """Get or create the context search singleton."""
    global _context_search
    if _context_search is None:
        _context_search = ContextSearchService(
            WorkspaceStore(DatabaseService(get_config().database_path))
        )
    return _context_search


__all__ = [
    "ContextSearchService",
    "format_context_for_ai",
    "generate_source_citations",
    "citation_sources",
    "get_context_search_service",
]
