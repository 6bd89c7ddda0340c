"""Environment-driven settings for the workspace API, MCP server and assistant."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "workspace.db"
DEFAULT_LLM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_LLM_MODEL = "anthropic/claude-sonnet-4"
MIN_SECRET_LENGTH = 16


class AppConfig(BaseModel):
    """Frozen settings snapshot; build it through ``get_config``."""

    model_config = ConfigDict(frozen=True)

    database_path: Path = Field(..., description="SQLite database file for workspace data")
    jwt_secret_key: Optional[str] = Field(
        default=None,
        description="Signs and verifies bearer JWTs; needed outside local development",
    )
    enable_local_mode: bool = Field(
        default=True,
        description="Accept LOCAL_DEV_TOKEN and act as LOCAL_DEV_USER_ID",
    )
    local_dev_token: Optional[str] = Field(
        default="local-dev-token",
        description="Bearer token that stands in for a JWT in local mode",
    )
    local_dev_user_id: int = Field(
        default=1, ge=1, description="User id the local-dev token acts as"
    )
    llm_api_key: Optional[str] = Field(
        default=None, description="API key for the chat-completions provider"
    )
    llm_base_url: str = Field(
        default=DEFAULT_LLM_BASE_URL,
        description="Base URL of an OpenAI-compatible chat-completions API",
    )
    llm_model: str = Field(default=DEFAULT_LLM_MODEL, description="Model used by the assistant")
    search_result_limit: int = Field(
        default=10, ge=1, le=100, description="Default number of context search results"
    )
    seed_demo_data: bool = Field(
        default=True, description="Create a demo workspace for the local-dev user at startup"
    )

    @field_validator("database_path", mode="before")
    @classmethod
    def _normalize_database_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("DATABASE_PATH is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def _check_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        secret = value.strip()
        if len(secret) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"JWT_SECRET_KEY needs {MIN_SECRET_LENGTH}+ characters or must be unset"
            )
        return secret

    @field_validator("llm_api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _flag(key: str, default: bool = True) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Read settings from the environment once per process."""
    config = AppConfig(
        database_path=_env("DATABASE_PATH", str(DEFAULT_DB_PATH)),
        jwt_secret_key=_env("JWT_SECRET_KEY"),
        enable_local_mode=_flag("ENABLE_LOCAL_MODE"),
        local_dev_token=_env("LOCAL_DEV_TOKEN", "local-dev-token"),
        local_dev_user_id=_env("LOCAL_DEV_USER_ID", "1"),
        llm_api_key=_env("LLM_API_KEY") or _env("OPENROUTER_API_KEY"),
        llm_base_url=_env("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
        llm_model=_env("LLM_MODEL", DEFAULT_LLM_MODEL),
        search_result_limit=_env("SEARCH_RESULT_LIMIT", "10"),
        seed_demo_data=_flag("SEED_DEMO_DATA"),
    )
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Drop the cached settings and read the environment again."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "PROJECT_ROOT",
    "DEFAULT_DB_PATH",
]
