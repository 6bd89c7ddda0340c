"""FastMCP server exposing workspace search and assistant command tools."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.server.http import _current_http_request
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

load_dotenv()

from ..models.command import RequestContext
from ..models.document import node_to_dict
from ..models.search import SearchOptions
from ..services.auth import AuthError, AuthService
from ..services.command_dispatcher import get_command_dispatcher
from ..services.config import get_config
from ..services.context_search import (
    citation_sources,
    generate_source_citations,
    get_context_search_service,
)
from ..services.document import markdown_to_document
from ..services.errors import AssistantError

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "workspace-assistant",
    instructions=(
        "Project workspace tools. STDIO acts as LOCAL_DEV_USER_ID; HTTP mode must present a "
        "Bearer token whose sub is the numeric user id. search_content ranks the caller's "
        "notebook pages, projects and tasks by keyword frequency (title matches count triple). "
        "run_command executes one of: create_project, create_task, create_multiple_tasks, "
        "update_task, move_task, delete_task, update_page, create_page, create_notebook, "
        "navigate, query_tasks, query_projects. Task status is todo|in_progress|done, "
        "priority is low|medium|high."
    ),
)

_auth: Optional[AuthService] = None


def _user_from_header(header: Optional[str]) -> int:
    global _auth
    scheme, _, token = (header or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise PermissionError("Authorization header must be 'Bearer <token>'")
    if _auth is None:
        _auth = AuthService()
    try:
        return _auth.user_id_from_payload(_auth.validate_jwt(token))
    except AuthError as exc:
        raise PermissionError(exc.message) from exc


def _current_user_id() -> int:
    """Hosted HTTP calls act as the bearer token's user; STDIO acts as the local-dev user."""
    request = _current_http_request.get(None)
    if request is not None:
        return _user_from_header(request.headers.get("Authorization"))
    return int(os.getenv("LOCAL_DEV_USER_ID", str(get_config().local_dev_user_id)))


@mcp.tool(
    name="search_content",
    description="Keyword search over notebook pages, projects and tasks with snippets.",
)
async def search_content(
    query: str = Field(..., description="Free-text query; stop words are ignored."),
    limit: int = Field(10, ge=1, le=100, description="Result cap between 1 and 100."),
    include_archived: bool = Field(False, description="Include archived projects."),
) -> ToolResult:
    start_time = time.time()
    user_id = _current_user_id()

    results = await get_context_search_service().search(
        query,
        user_id,
        SearchOptions(limit=limit, include_archived=include_archived),
    )

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "MCP tool called",
        extra={
            "tool_name": "search_content",
            "user_id": user_id,
            "query": query,
            "limit": limit,
            "result_count": len(results),
            "duration_ms": f"{duration_ms:.2f}",
        },
    )

    structured_results = [
        {
            "type": r.type,
            "id": r.id,
            "title": r.title,
            "snippet": r.snippet,
            "score": r.relevance_score,
            "updated": r.metadata.updated_at,
        }
        for r in results
    ]
    summary = f"Found {len(results)} items matching '{query}'."
    return ToolResult(
        content=[TextContent(type="text", text=summary + generate_source_citations(results))],
        structured_content={"results": structured_results, "sources": citation_sources(results)},
    )


@mcp.tool(
    name="run_command",
    description="Execute a workspace action (create, update, move or delete tasks, pages, projects).",
)
async def run_command(
    action: str = Field(..., description="Action name, e.g. 'create_task'."),
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Action parameters (camelCase or snake_case keys)."
    ),
    current_project_id: Optional[int] = Field(None, description="Project the user is viewing."),
    current_notebook_id: Optional[int] = Field(None, description="Notebook the user is viewing."),
    current_page_id: Optional[int] = Field(None, description="Page the user is viewing."),
) -> Dict[str, Any]:
    start_time = time.time()
    user_id = _current_user_id()
    context = RequestContext(
        current_project_id=current_project_id,
        current_notebook_id=current_notebook_id,
        current_page_id=current_page_id,
    )

    try:
        outcome = await get_command_dispatcher().dispatch(action, parameters, user_id, context)
    except AssistantError as exc:
        logger.warning(
            f"MCP command failed: {exc.message}",
            extra={"tool_name": "run_command", "user_id": user_id, "action": action},
        )
        return exc.to_dict()

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "MCP tool called",
        extra={
            "tool_name": "run_command",
            "user_id": user_id,
            "action": outcome.action,
            "duration_ms": f"{duration_ms:.2f}",
        },
    )
    return outcome.model_dump(exclude_none=True)


@mcp.tool(
    name="markdown_to_document",
    description="Convert markdown (headings, bullets, bold, italic) into rich-text document nodes.",
)
def markdown_to_document_tool(
    markdown: str = Field(..., description="Markdown source."),
    highlight: bool = Field(False, description="Add a highlight mark to every text run."),
) -> Dict[str, Any]:
    nodes = markdown_to_document(markdown, highlight=highlight)
    return {"type": "doc", "content": [node_to_dict(node) for node in nodes]}


def main() -> None:
    transport = os.getenv("MCP_TRANSPORT", "stdio").strip().lower() or "stdio"
    options: Dict[str, Any] = {}
    if transport != "stdio":
        options = {
            "host": os.getenv("MCP_HOST", "127.0.0.1"),
            "port": int(os.getenv("MCP_PORT", "8001")),
        }
    logger.info(
        f"Serving workspace tools over {transport}",
        extra={"transport": transport, **options},
    )
    mcp.run(transport=transport, **options)


if __name__ == "__main__":
    main()
