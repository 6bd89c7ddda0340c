"""Rich-text document tree models (TipTap-compatible JSON)."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class Mark(BaseModel):
    """Inline formatting applied to a text leaf (bold, italic, highlight)."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    attrs: Optional[Dict[str, Any]] = None


class TextNode(BaseModel):
    """Leaf node holding text and optional marks."""

    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: str
    marks: Optional[List[Mark]] = None


class BlockNode(BaseModel):
    """Container node (doc, paragraph, heading, list item, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    attrs: Optional[Dict[str, Any]] = None
    content: List["RichTextNode"] = Field(default_factory=list)


def _node_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "leaf" if "text" in value else "block"
    return "leaf" if isinstance(value, TextNode) else "block"


RichTextNode = Annotated[
    Union[Annotated[TextNode, Tag("leaf")], Annotated[BlockNode, Tag("block")]],
    Discriminator(_node_kind),
]

BlockNode.model_rebuild()


def empty_document() -> BlockNode:
    """Return a ``doc`` root with no blocks."""
    return BlockNode(type="doc", content=[])


def node_to_dict(node: TextNode | BlockNode) -> Dict[str, Any]:
    """Serialize a node the way the editor stores it (unset fields omitted)."""
    return node.model_dump(exclude_none=True)


__all__ = [
    "Mark",
    "TextNode",
    "BlockNode",
    "RichTextNode",
    "empty_document",
    "node_to_dict",
]
