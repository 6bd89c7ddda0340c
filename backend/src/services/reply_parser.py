"""Extract structured commands from assistant completions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from ..models.command import AssistantReply, CommandAction
from .errors import ParseError

logger = logging.getLogger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
BARE_JSON_PATTERN = re.compile(r"\{[\s\S]*\}")
FENCED_ARRAY_PATTERN = re.compile(r"```(?:json)?\s*(\[[\s\S]*?\])\s*```", re.IGNORECASE)
BARE_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

# Fallback intents recognised directly in the user's message.
CREATE_TASK_PATTERNS = (
    re.compile(r"\b(?:create|add|new|make)\s+(?:a\s+)?(?:new\s+)?task:?\s*[\"“](.+?)[\"”]", re.IGNORECASE),
    re.compile(
        r"\b(?:create|add|new|make)\s+(?:a\s+)?(?:new\s+)?task\s+(?:called|named|titled)\s+[\"“]?(.+?)[\"”]?\s*$",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:create|add|new|make)\s+(?:a\s+)?(?:new\s+)?task:\s*(.+?)\s*$", re.IGNORECASE),
)


def _decoded(text: str, fenced: re.Pattern[str], bare: re.Pattern[str]) -> Iterator[Any]:
    """Yield each decodable JSON candidate, fenced blocks first."""
    candidates = [match.group(1) for match in fenced.finditer(text)]
    outer = bare.search(text)
    if outer:
        candidates.append(outer.group(0))
    for candidate in candidates:
        try:
            yield json.loads(candidate)
        except json.JSONDecodeError:
            continue


def extract_json_object(text: str | None, what: str = "a JSON object") -> Dict[str, Any]:
    """Return the first JSON object embedded in ``text`` or raise ``ParseError``."""
    if not text or not text.strip():
        raise ParseError("Assistant reply is empty")
    for data in _decoded(text, FENCED_JSON_PATTERN, BARE_JSON_PATTERN):
        if isinstance(data, dict):
            return data
    raise ParseError(f"Assistant reply does not contain {what}", {"reply": text[:200]})


def extract_json_array(text: str | None, what: str = "a JSON array") -> List[Any]:
    """Return the first JSON array embedded in ``text`` or raise ``ParseError``."""
    if not text or not text.strip():
        raise ParseError("Assistant reply is empty")
    for data in _decoded(text, FENCED_ARRAY_PATTERN, BARE_ARRAY_PATTERN):
        if isinstance(data, list):
            return data
    raise ParseError(f"Assistant reply does not contain {what}", {"reply": text[:200]})


def parse_assistant_reply(text: str | None) -> AssistantReply:
    """
    Parse ``{response, action, parameters}`` out of completion text.

    A fenced ```json block is preferred; otherwise the outermost brace span is
    tried. Raises ``ParseError`` when no JSON object can be decoded.
    """
    data = extract_json_object(text, "a JSON command")
    parameters = data.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ParseError(
            "Assistant reply parameters must be an object",
            {"parameters": parameters},
        )
    action = data.get("action")
    return AssistantReply(
        response=str(data.get("response") or ""),
        action=str(action) if action else None,
        parameters=parameters,
    )


def heuristic_command(message: str | None) -> Optional[AssistantReply]:
    """Recover a minimal ``create_task`` intent from the raw user message."""
    if not message:
        return None
    for pattern in CREATE_TASK_PATTERNS:
        match = pattern.search(message.strip())
        if match:
            title = match.group(1).strip().strip("\"'“”")
            if not title:
                continue
            logger.info("Recovered create_task intent from user message")
            return AssistantReply(
                response=f'Creating task "{title}".',
                action=CommandAction.CREATE_TASK.value,
                parameters={"title": title},
            )
    return None


__all__ = [
    "extract_json_object",
    "extract_json_array",
    "parse_assistant_reply",
    "heuristic_command",
]
