"""Rich-text document helpers: flattening, (de)serialization and markdown conversion."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence

import pydantic
from pydantic import TypeAdapter

from ..models.document import (
    BlockNode,
    Mark,
    RichTextNode,
    TextNode,
    empty_document,
    node_to_dict,
)

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
BULLET_PATTERN = re.compile(r"^[*-]\s+(.*)$")
BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")
ITALIC_PATTERN = re.compile(r"\*(.+?)\*")
SENTINEL = "\x00"
BULLET_GLYPH = "• "
HIGHLIGHT_MARK = "highlight"

_NODE_ADAPTER: TypeAdapter[Any] = TypeAdapter(RichTextNode)


def parse_node(value: Any) -> Optional[TextNode | BlockNode]:
    """Validate a JSON-like value into a node, or None when it is not one."""
    if isinstance(value, (TextNode, BlockNode)):
        return value
    if not isinstance(value, dict):
        return None
    try:
        return _NODE_ADAPTER.validate_python(value)
    except pydantic.ValidationError:
        return None


def flatten_document(node: Any) -> str:
    """Concatenate every leaf's text depth-first, each followed by a space."""
    node = parse_node(node)
    if node is None:
        return ""
    if isinstance(node, TextNode):
        return f"{node.text} "
    return "".join(flatten_document(child) for child in node.content)


def extract_page_text(raw_content: Any) -> str:
    """
    Flatten stored page content.

    Pages normally hold a serialized document tree; legacy rows may hold plain
    text, which is returned unchanged.
    """
    if raw_content is None:
        return ""
    if not isinstance(raw_content, str):
        return flatten_document(raw_content)
    try:
        decoded = json.loads(raw_content)
    except json.JSONDecodeError:
        return raw_content
    if isinstance(decoded, dict):
        return flatten_document(decoded)
    if isinstance(decoded, list):
        return "".join(flatten_document(item) for item in decoded)
    if isinstance(decoded, str):
        return decoded
    return raw_content


def load_document(raw_content: Optional[str]) -> BlockNode:
    """Rebuild a page's document; non-JSON content becomes a single paragraph."""
    if not raw_content:
        return empty_document()
    try:
        decoded = json.loads(raw_content)
    except json.JSONDecodeError:
        decoded = None
    node = parse_node(decoded) if isinstance(decoded, dict) else None
    if isinstance(node, BlockNode):
        return node
    logger.debug("Stored page content is not a document tree; wrapping as text")
    text = raw_content if decoded is None else extract_page_text(raw_content).strip()
    doc = empty_document()
    if text:
        doc.content.append(BlockNode(type="paragraph", content=[TextNode(text=text)]))
    return doc


def dump_document(doc: BlockNode) -> str:
    """Serialize a document root for storage."""
    return json.dumps(node_to_dict(doc), ensure_ascii=False)


def append_nodes(doc: BlockNode, nodes: Sequence[TextNode | BlockNode]) -> BlockNode:
    """Return a copy of ``doc`` with ``nodes`` appended to its root content."""
    return doc.model_copy(update={"content": [*doc.content, *nodes]})


def replace_content(nodes: Sequence[TextNode | BlockNode]) -> BlockNode:
    return BlockNode(type="doc", content=list(nodes))


def _text(text: str, marks: Iterable[str], highlight: bool) -> TextNode:
    mark_types = list(marks)
    if highlight:
        mark_types.append(HIGHLIGHT_MARK)
    return TextNode(
        text=text,
        marks=[Mark(type=mark) for mark in mark_types] or None,
    )


def _parse_inline(text: str, marks: List[str], highlight: bool) -> List[TextNode]:
    spans: List[tuple[str, str]] = []

    def stash(mark: str):
        def _replace(match: re.Match[str]) -> str:
            spans.append((mark, match.group(1)))
            return f"{SENTINEL}{len(spans) - 1}{SENTINEL}"

        return _replace

    work = BOLD_PATTERN.sub(stash("bold"), text)
    work = ITALIC_PATTERN.sub(stash("italic"), work)
    return _expand_spans(work, spans, marks, highlight)


def _expand_spans(
    work: str, spans: List[tuple[str, str]], marks: List[str], highlight: bool
) -> List[TextNode]:
    nodes: List[TextNode] = []
    for index, part in enumerate(work.split(SENTINEL)):
        if not index % 2:
            if part:
                nodes.append(_text(part, marks, highlight))
            continue
        mark, inner = spans[int(part)]
        if mark == "bold":
            # Bold spans were cut from raw text; italics inside them are still unparsed
            nodes.extend(_parse_inline(inner, [*marks, mark], highlight))
        else:
            # Italic spans may wrap placeholders of bold spans from the same pass
            nodes.extend(_expand_spans(inner, spans, [*marks, mark], highlight))
    return nodes


def _inline_nodes(line: str, highlight: bool) -> List[TextNode]:
    """Split a line into plain, bold and italic leaves in original order."""
    return _parse_inline(line.replace(SENTINEL, ""), [], highlight)


def markdown_to_document(markdown: str | None, highlight: bool = False) -> List[BlockNode]:
    """
    Convert a constrained markdown subset into document blocks.

    Supported: ATX headings (``#`` to ``######``), ``*``/``-`` bullets rendered
    as bullet-prefixed paragraphs, and ``**bold**`` / ``*italic*`` spans in
    ordinary paragraphs. Always returns at least one block.
    """
    blocks: List[BlockNode] = []
    for raw_line in (markdown or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        heading = HEADING_PATTERN.match(line)
        if heading:
            blocks.append(
                BlockNode(
                    type="heading",
                    attrs={"level": len(heading.group(1))},
                    content=[_text(heading.group(2).strip(), [], highlight)],
                )
            )
            continue

        bullet = BULLET_PATTERN.match(line)
        if bullet:
            blocks.append(
                BlockNode(
                    type="paragraph",
                    content=[_text(BULLET_GLYPH + bullet.group(1), [], highlight)],
                )
            )
            continue

        blocks.append(BlockNode(type="paragraph", content=_inline_nodes(line, highlight)))

    if not blocks:
        blocks.append(BlockNode(type="paragraph", content=[]))
    return blocks


__all__ = [
    "parse_node",
    "flatten_document",
    "extract_page_text",
    "load_document",
    "dump_document",
    "append_nodes",
    "replace_content",
    "markdown_to_document",
]
