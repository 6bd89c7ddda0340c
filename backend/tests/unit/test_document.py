"""Unit tests for document flattening and markdown conversion."""

import json

from backend.src.models.document import BlockNode, TextNode, node_to_dict
from backend.src.services.document import (
    SENTINEL,
    append_nodes,
    dump_document,
    extract_page_text,
    flatten_document,
    load_document,
    markdown_to_document,
)

DOC = {
    "type": "doc",
    "content": [
        {
            "type": "paragraph",
            "content": [
                {"type": "text", "text": "Hello"},
                {"type": "text", "text": "world", "marks": [{"type": "bold"}]},
            ],
        },
        {
            "type": "heading",
            "attrs": {"level": 1},
            "content": [{"type": "text", "text": "Title"}],
        },
    ],
}


def _texts(block: BlockNode) -> list[str]:
    return [node.text for node in block.content]


def _marks(node: TextNode) -> list[str]:
    return [mark.type for mark in node.marks or []]


class TestFlattenDocument:
    """Tests for flatten_document() and extract_page_text()."""

    def test_visits_leaves_in_order(self) -> None:
        """Leaf texts are joined depth-first, each followed by a space."""
        assert flatten_document(DOC) == "Hello world Title "

    def test_ignores_malformed_nodes(self) -> None:
        """Non-mapping input and non-list content flatten to nothing."""
        assert flatten_document({"content": "nope"}) == ""
        assert flatten_document("plain") == ""
        assert flatten_document(None) == ""

    def test_single_leaf_document(self) -> None:
        """A lone leaf flattens to its text plus one space."""
        doc = {"type": "doc", "content": [{"type": "text", "text": "already flat"}]}

        assert flatten_document(doc) == "already flat "

    def test_extract_page_text_handles_json_and_legacy_text(self) -> None:
        """Serialized documents are flattened; plain stored text is returned as-is."""
        assert extract_page_text(json.dumps(DOC)) == "Hello world Title "
        assert extract_page_text("legacy plain text") == "legacy plain text"
        assert extract_page_text(None) == ""


class TestMarkdownToDocument:
    """Tests for markdown_to_document()."""

    def test_headings_bullets_and_inline_marks(self) -> None:
        """Each line type maps to its block shape with marks in order."""
        blocks = markdown_to_document(
            "# Title\n## Sub\n- item one\n* item two\n\nPlain **bold** and *italic* end"
        )

        assert [block.type for block in blocks] == [
            "heading",
            "heading",
            "paragraph",
            "paragraph",
            "paragraph",
        ]
        assert blocks[0].attrs == {"level": 1}
        assert blocks[1].attrs == {"level": 2}
        assert _texts(blocks[2]) == ["• item one"]
        assert _texts(blocks[3]) == ["• item two"]

        inline = blocks[4].content
        assert _texts(blocks[4]) == ["Plain ", "bold", " and ", "italic", " end"]
        assert inline[0].marks is None
        assert _marks(inline[1]) == ["bold"]
        assert _marks(inline[3]) == ["italic"]

    def test_single_heading(self) -> None:
        """'# Hello' becomes exactly one level-1 heading."""
        blocks = markdown_to_document("# Hello")

        assert [node_to_dict(block) for block in blocks] == [
            {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Hello"}]}
        ]

    def test_bold_inside_italic_keeps_text_and_both_marks(self) -> None:
        """An italic span wrapping bold text keeps every word, in order."""
        blocks = markdown_to_document("*see **this** now*")

        leaves = blocks[0].content
        assert _texts(blocks[0]) == ["see ", "this", " now"]
        assert _marks(leaves[0]) == ["italic"]
        assert _marks(leaves[1]) == ["italic", "bold"]
        assert _marks(leaves[2]) == ["italic"]
        assert all(SENTINEL not in leaf.text for leaf in leaves)

    def test_italic_inside_bold_is_parsed(self) -> None:
        """Italic text nested in a bold span carries both marks."""
        blocks = markdown_to_document("start **big *and* bold** end")

        leaves = blocks[0].content
        assert _texts(blocks[0]) == ["start ", "big ", "and", " bold", " end"]
        assert _marks(leaves[2]) == ["bold", "italic"]
        assert _marks(leaves[1]) == ["bold"]

    def test_stray_sentinel_characters_are_dropped(self) -> None:
        """NUL characters in the input never reach the document."""
        blocks = markdown_to_document(f"odd{SENTINEL}0{SENTINEL} **text**")

        assert "".join(_texts(blocks[0])) == "odd0 text"

    def test_highlight_marks_every_leaf(self) -> None:
        """highlight=True adds a highlight mark to each produced leaf."""
        blocks = markdown_to_document("# Heading\nsome **text**", highlight=True)

        leaves = [leaf for block in blocks for leaf in block.content]
        assert leaves
        for leaf in leaves:
            assert "highlight" in _marks(leaf)

    def test_empty_input_yields_empty_paragraph(self) -> None:
        """Empty markdown still produces one empty paragraph."""
        blocks = markdown_to_document("")

        assert len(blocks) == 1
        assert blocks[0].type == "paragraph"
        assert blocks[0].content == []


class TestDocumentStorage:
    """Tests for load/dump/append helpers."""

    def test_node_to_dict_omits_unset_fields(self) -> None:
        """Unset marks and attrs are left out of the wire form."""
        assert node_to_dict(TextNode(text="x")) == {"type": "text", "text": "x"}

    def test_load_document_wraps_plain_text(self) -> None:
        """Non-JSON stored content is wrapped in a paragraph."""
        doc = load_document("not json at all")

        assert doc.type == "doc"
        assert flatten_document(node_to_dict(doc)) == "not json at all "

    def test_append_nodes_keeps_existing_content(self) -> None:
        """Appending grows content by the number of new nodes without mutating the input."""
        original = load_document(json.dumps(DOC))

        updated = append_nodes(original, markdown_to_document("Appended line"))

        assert len(original.content) == 2
        assert len(updated.content) == 3
        assert extract_page_text(dump_document(updated)) == "Hello world Title Appended line "
