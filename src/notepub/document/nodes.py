"""Intermediate document representation.

Both readers produce :class:`DocNode` trees and both renderers consume
them.  Nodes are frozen: a reader builds them once and later stages derive
new nodes with :func:`dataclasses.replace` rather than mutating.

List containers hold item nodes of the *same* type (a ``BULLET_LIST``
holds ``BULLET_LIST`` items), tables hold ``TABLE_ROW`` nodes and rows hold
``TABLE_CELL`` nodes.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum


class NodeType(str, Enum):
    """Every node kind the IR can express."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BULLET_LIST = "bulletList"
    NUMBERED_LIST = "numberedList"
    TODO_LIST = "todoList"
    CODE = "code"
    QUOTE = "quote"
    CALLOUT = "callout"
    DIVIDER = "divider"
    IMAGE = "image"
    TABLE = "table"
    TABLE_ROW = "tableRow"
    TABLE_CELL = "tableCell"
    BOOKMARK = "bookmark"
    EMBED = "embed"
    UNSUPPORTED = "unsupported"


LIST_TYPES: frozenset[NodeType] = frozenset({
    NodeType.BULLET_LIST,
    NodeType.NUMBERED_LIST,
    NodeType.TODO_LIST,
})


@dataclass(frozen=True)
class RichTextSpan:
    """A run of text sharing one set of annotations."""

    text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    href: str | None = None


@dataclass(frozen=True)
class DocNode:
    """A single IR node.

    Attributes
    ----------
    type:
        The node kind.
    rich_text:
        Inline content for text-bearing nodes and list items.
    children:
        Owned child nodes (list items, table rows, table cells).
    content:
        Literal payload: code body, image source, bookmark/embed URL or an
        unsupported-block placeholder.
    level:
        Heading level, 1 to 6.
    checked:
        Todo item state.
    language:
        Code block language tag; ``None`` when untagged.
    caption:
        Image or bookmark caption.
    icon:
        Callout icon text.
    has_column_header:
        Whether a table's first row is a header row.
    """

    type: NodeType
    rich_text: tuple[RichTextSpan, ...] = ()
    children: tuple[DocNode, ...] = ()
    content: str = ""
    level: int | None = None
    checked: bool | None = None
    language: str | None = None
    caption: str | None = None
    icon: str | None = None
    has_column_header: bool | None = None

    @property
    def text(self) -> str:
        """Plain text of :attr:`rich_text`."""
        return plain_text(self.rich_text)

    @property
    def is_list(self) -> bool:
        return self.type in LIST_TYPES


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

def spans(text: str) -> tuple[RichTextSpan, ...]:
    """Wrap plain *text* in a single unannotated span (empty for ``""``)."""
    return (RichTextSpan(text),) if text else ()


def heading(level: int, text: str | tuple[RichTextSpan, ...]) -> DocNode:
    return DocNode(NodeType.HEADING, rich_text=_as_spans(text), level=level)


def paragraph(text: str | tuple[RichTextSpan, ...]) -> DocNode:
    return DocNode(NodeType.PARAGRAPH, rich_text=_as_spans(text))


def list_node(
    list_type: NodeType,
    items: Iterable[str | tuple[RichTextSpan, ...] | DocNode],
) -> DocNode:
    """Build a list container whose items share *list_type*.

    Raises
    ------
    ValueError
        If *list_type* is not a list kind or an item node has a different
        type.
    """
    if list_type not in LIST_TYPES:
        raise ValueError(f"{list_type.value} is not a list type")
    children: list[DocNode] = []
    for item in items:
        if isinstance(item, DocNode):
            if item.type != list_type:
                raise ValueError(
                    f"{item.type.value} item cannot live in a {list_type.value}"
                )
            children.append(item)
        else:
            children.append(DocNode(list_type, rich_text=_as_spans(item)))
    return DocNode(list_type, children=tuple(children))


def code(body: str, language: str | None = None) -> DocNode:
    return DocNode(NodeType.CODE, content=body, language=language or None)


def quote(text: str | tuple[RichTextSpan, ...]) -> DocNode:
    return DocNode(NodeType.QUOTE, rich_text=_as_spans(text))


def divider() -> DocNode:
    return DocNode(NodeType.DIVIDER)


def image(src: str, caption: str | None = None) -> DocNode:
    return DocNode(NodeType.IMAGE, content=src, caption=caption or None)


def unsupported(placeholder: str) -> DocNode:
    return DocNode(NodeType.UNSUPPORTED, content=placeholder)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def plain_text(rich_text: Iterable[RichTextSpan]) -> str:
    return "".join(span.text for span in rich_text)


def iter_nodes(nodes: Iterable[DocNode]) -> Iterator[DocNode]:
    """Yield every node in document order, depth first."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.children)


def has_images(nodes: Iterable[DocNode]) -> bool:
    return any(node.type == NodeType.IMAGE for node in iter_nodes(nodes))


def _as_spans(value: str | tuple[RichTextSpan, ...]) -> tuple[RichTextSpan, ...]:
    if isinstance(value, str):
        return spans(value)
    return tuple(value)
