"""Source readers and the shared IR.

* :class:`BlockReader` -- remote block tree to IR.
* :class:`MarkdownReader` -- Markdown text to IR.
"""

from __future__ import annotations

from .block_reader import BlockReader, parse_rich_text
from .inline import InlineParser
from .markdown_reader import (
    DEFAULT_TITLE,
    MarkdownReader,
    extract_title,
    remove_title,
    strip_front_matter,
)
from .nodes import DocNode, NodeType, RichTextSpan, has_images, iter_nodes

__all__ = [
    "DEFAULT_TITLE",
    "BlockReader",
    "DocNode",
    "InlineParser",
    "MarkdownReader",
    "NodeType",
    "RichTextSpan",
    "extract_title",
    "has_images",
    "iter_nodes",
    "parse_rich_text",
    "remove_title",
    "strip_front_matter",
]
