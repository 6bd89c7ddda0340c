"""FastAPI application: search and assistant routes plus the hosted MCP endpoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from . import mcp_bridge
from .middleware import register_error_handlers
from .routes import assistant, chat_history, search, tasks_ai
from ..services.seed import init_and_seed

logger = logging.getLogger(__name__)

DEV_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_and_seed()
        logger.info("Workspace database ready")
    except Exception as exc:
        # Serve anyway; search and commands report their own storage errors
        logger.exception(f"Workspace database initialization failed: {exc}")

    async with mcp_bridge.session_manager.run():
        yield


app = FastAPI(
    title="Workspace Assistant API",
    description="Project, task and notebook workspace with a search-backed assistant",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=DEV_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(search.router, tags=["search"])
app.include_router(assistant.router)
app.include_router(chat_history.router)
app.include_router(tasks_ai.router)
app.include_router(mcp_bridge.router)


@app.get("/health")
async def health():
    return {"status": "healthy"}


__all__ = ["app"]
