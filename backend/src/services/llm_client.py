"""Minimal chat-completions client used by the assistant."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import AppConfig, get_config

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    """Raised when the completion provider cannot produce a reply."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LLMClient:
    """Send a single prompt to an OpenAI-compatible endpoint and return the text."""

    DEFAULT_TIMEOUT = 60.0
    DEFAULT_MAX_TOKENS = 2000

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        config: Optional[AppConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = config or get_config()
        self.api_key = api_key or config.llm_api_key
        self.model = model or config.llm_model
        self.base_url = (base_url or config.llm_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = 0.3,
    ) -> str:
        """Return the assistant text for ``prompt``."""
        if not self.api_key:
            raise LLMClientError("No API key configured")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "messages": messages,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Completion API error: {e.response.status_code} - {e.response.text}")
            raise LLMClientError(
                f"API error: {e.response.status_code}",
                {"status_code": e.response.status_code},
            ) from e
        except httpx.TimeoutException as e:
            logger.error("Completion API timeout")
            raise LLMClientError("Request timeout - please try again") from e
        except httpx.HTTPError as e:
            logger.error(f"Completion API transport error: {e}")
            raise LLMClientError(f"Transport error: {e}") from e

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise LLMClientError("Malformed completion response", {"body": data}) from e


__all__ = ["LLMClient", "LLMClientError"]
