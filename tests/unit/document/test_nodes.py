"""Tests for the document IR constructors and helpers."""

import dataclasses

import pytest

from notepub.document import DocNode, NodeType, RichTextSpan, has_images, iter_nodes
from notepub.document import nodes as n


class TestConstructors:
    def test_heading(self):
        node = n.heading(2, "T")
        assert node.type == NodeType.HEADING
        assert node.level == 2
        assert node.text == "T"

    def test_empty_text_has_no_spans(self):
        assert n.paragraph("").rich_text == ()

    def test_code_empty_language_is_none(self):
        assert n.code("x", "").language is None

    def test_image_empty_caption_is_none(self):
        assert n.image("a.png", "").caption is None

    def test_list_items_share_type(self):
        node = n.list_node(NodeType.NUMBERED_LIST, ["a", "b"])
        assert node.is_list
        assert all(item.type == NodeType.NUMBERED_LIST for item in node.children)

    def test_list_rejects_non_list_type(self):
        with pytest.raises(ValueError):
            n.list_node(NodeType.PARAGRAPH, ["a"])

    def test_list_rejects_foreign_item(self):
        with pytest.raises(ValueError):
            n.list_node(NodeType.BULLET_LIST, [DocNode(NodeType.TODO_LIST)])

    def test_nodes_are_frozen(self):
        node = n.paragraph("x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            node.content = "y"


class TestHelpers:
    def test_text_joins_spans(self):
        node = n.paragraph((RichTextSpan("a", bold=True), RichTextSpan("b")))
        assert node.text == "ab"

    def test_iter_nodes_depth_first(self):
        tree = [n.list_node(NodeType.BULLET_LIST, ["a"]), n.divider()]
        assert [x.type for x in iter_nodes(tree)] == [
            NodeType.BULLET_LIST,
            NodeType.BULLET_LIST,
            NodeType.DIVIDER,
        ]

    def test_has_images(self):
        assert has_images([n.paragraph("x"), n.image("a.png")])
        assert not has_images([n.paragraph("x"), n.code("y")])
