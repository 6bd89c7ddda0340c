"""Serve the FastMCP tools over streamable HTTP from inside the FastAPI app."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, MutableMapping

from fastapi import APIRouter, HTTPException, Request
from fastmcp.server.http import set_http_request
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.responses import Response

from ..mcp.server import mcp

logger = logging.getLogger(__name__)

# Stateless: every POST carries its own bearer token, no session resumption
session_manager = StreamableHTTPSessionManager(
    app=mcp._mcp_server,
    event_store=None,
    json_response=False,
    stateless=True,
)

router = APIRouter(tags=["mcp"])


def _drain(messages: List[MutableMapping[str, Any]]) -> Response:
    """Fold captured ASGI send events into one buffered response."""
    status_code = 200
    headers: Dict[str, str] = {}
    chunks: List[bytes] = []
    for message in messages:
        if message["type"] == "http.response.start":
            status_code = message.get("status", 200)
            headers = {k.decode(): v.decode() for k, v in message.get("headers", [])}
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))
            if not message.get("more_body"):
                break
    return Response(content=b"".join(chunks), status_code=status_code, headers=headers)


@router.api_route("/mcp", methods=["GET", "POST", "DELETE"])
async def mcp_endpoint(request: Request) -> Response:
    queue: asyncio.Queue = asyncio.Queue()

    async def send(message: MutableMapping[str, Any]) -> None:
        await queue.put(message)

    try:
        with set_http_request(request):
            await session_manager.handle_request(request.scope, request.receive, send)
    except Exception as exc:
        logger.exception(f"MCP request failed: {exc}")
        raise HTTPException(status_code=500, detail=f"MCP request failed: {exc}") from exc

    captured = []
    while not queue.empty():
        captured.append(queue.get_nowait())
    return _drain(captured)


__all__ = ["router", "session_manager"]
