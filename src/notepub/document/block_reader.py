"""Remote block tree to IR.

Converts a list of Notion API block objects (dicts) into :class:`DocNode`
values.  Consecutive list items of the same kind are grouped greedily into
a single list container; any other block ends the group.

Blocks carrying a ``"children"`` key (attached by
:meth:`notepub.notion_api.AsyncBlockAPI.get_children_recursive`) have those
children read and appended directly after the parent, up to
``config.max_block_depth``.  Table rows are the exception: they become the
table's own children.

Unknown block kinds and malformed payloads never raise.  Unknown kinds
degrade to an ``unsupported`` node carrying a bracketed placeholder.

Usage::

    reader = BlockReader(NotePubConfig())
    nodes = reader.read(blocks)
    reader.warnings   # ConversionWarning list for the last call
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from notepub.config import NotePubConfig
from notepub.models import ConversionWarning
from notepub.observability import NoopMetricsHook, get_logger

from .nodes import DocNode, NodeType, RichTextSpan, list_node, unsupported

log = get_logger("notepub.block_reader")

# Block kind -> list container type.
_LIST_KINDS: dict[str, NodeType] = {
    "bulleted_list_item": NodeType.BULLET_LIST,
    "numbered_list_item": NodeType.NUMBERED_LIST,
    "to_do": NodeType.TODO_LIST,
}

_MAX_HEADING_LEVEL = 3


class BlockReader:
    """Read Notion blocks into IR nodes.

    Parameters
    ----------
    config:
        Controls ``unsupported_block_warning`` and ``max_block_depth``.
    """

    def __init__(self, config: NotePubConfig | None = None) -> None:
        self._config = config or NotePubConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self.warnings: list[ConversionWarning] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self, blocks: list[dict]) -> list[DocNode]:
        """Convert *blocks* to a flat list of top-level IR nodes.

        Warnings from this call replace those of any previous call.
        """
        self.warnings = []
        return self._read_list(blocks, depth=0)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def _read_list(self, blocks: list[Any], depth: int) -> list[DocNode]:
        nodes: list[DocNode] = []
        i = 0
        while i < len(blocks):
            block = blocks[i]
            if not isinstance(block, dict):
                i += 1
                continue

            block_type = _kind(block)
            list_type = _LIST_KINDS.get(block_type)
            if list_type is not None:
                items: list[DocNode] = []
                nested: list[DocNode] = []
                while i < len(blocks) and _is_kind(blocks[i], block_type):
                    items.append(self._read_item(blocks[i], list_type))
                    nested.extend(self._read_children(blocks[i], depth))
                    i += 1
                nodes.append(list_node(list_type, items))
                nodes.extend(nested)
                continue

            nodes.append(self._dispatch(block))
            if block_type != "table":
                nodes.extend(self._read_children(block, depth))
            i += 1
        return nodes

    def _read_children(self, block: dict, depth: int) -> list[DocNode]:
        children = block.get("children")
        if not children or not isinstance(children, list):
            return []
        if depth + 1 > self._config.max_block_depth:
            log.debug(
                "Child blocks beyond max depth dropped",
                extra={"extra_fields": {
                    "op": "read_blocks",
                    "block_id": block.get("id", ""),
                    "depth": depth + 1,
                }},
            )
            return []
        return self._read_list(children, depth + 1)

    def _dispatch(self, block: dict) -> DocNode:
        block_type = _kind(block)
        reader = _BLOCK_READERS.get(block_type)
        if reader is None:
            return self._unsupported(block_type, f"[Unsupported: {block_type}]")
        return reader(self, block)

    # ------------------------------------------------------------------
    # Per-kind readers
    # ------------------------------------------------------------------

    def _read_item(self, block: dict, list_type: NodeType) -> DocNode:
        data = _data(block)
        checked = bool(data.get("checked", False)) if list_type is NodeType.TODO_LIST else None
        return DocNode(
            list_type,
            rich_text=parse_rich_text(data.get("rich_text")),
            checked=checked,
        )

    def _read_heading(self, block: dict) -> DocNode:
        suffix = block.get("type", "heading_1").rsplit("_", 1)[-1]
        level = int(suffix) if suffix.isdigit() else 1
        return DocNode(
            NodeType.HEADING,
            rich_text=parse_rich_text(_data(block).get("rich_text")),
            level=min(max(level, 1), _MAX_HEADING_LEVEL),
        )

    def _read_paragraph(self, block: dict) -> DocNode:
        return DocNode(NodeType.PARAGRAPH, rich_text=parse_rich_text(_data(block).get("rich_text")))

    def _read_quote(self, block: dict) -> DocNode:
        # Toggles land here too; their summary line becomes the quote text.
        return DocNode(NodeType.QUOTE, rich_text=parse_rich_text(_data(block).get("rich_text")))

    def _read_code(self, block: dict) -> DocNode:
        data = _data(block)
        body = _plain(data.get("rich_text"))
        language = _as_str(data.get("language")) or None
        if language == "plain text":
            language = None
        return DocNode(NodeType.CODE, content=body, language=language)

    def _read_callout(self, block: dict) -> DocNode:
        data = _data(block)
        icon = data.get("icon") or {}
        icon_text: str | None = None
        if isinstance(icon, dict):
            if icon.get("type") == "emoji":
                icon_text = _as_str(icon.get("emoji")) or None
            elif icon.get("type") == "external" and _as_dict(icon.get("external")).get("url"):
                icon_text = "[Image]"
        return DocNode(
            NodeType.CALLOUT,
            rich_text=parse_rich_text(data.get("rich_text")),
            icon=icon_text,
        )

    def _read_divider(self, block: dict) -> DocNode:
        return DocNode(NodeType.DIVIDER)

    def _read_image(self, block: dict) -> DocNode:
        data = _data(block)
        source_type = data.get("type", "")
        url = ""
        if source_type in ("file", "external"):
            url = _as_dict(data.get(source_type)).get("url")
            if not isinstance(url, str):
                url = ""
        caption = _plain(data.get("caption"))
        return DocNode(NodeType.IMAGE, content=url, caption=caption or None)

    def _read_table(self, block: dict) -> DocNode:
        data = _data(block)
        rows: list[DocNode] = []
        for child in _as_list(block.get("children")):
            if not isinstance(child, dict) or child.get("type") != "table_row":
                continue
            cells = _as_list(_as_dict(child.get("table_row")).get("cells"))
            rows.append(DocNode(
                NodeType.TABLE_ROW,
                children=tuple(
                    DocNode(NodeType.TABLE_CELL, rich_text=parse_rich_text(cell))
                    for cell in cells
                ),
            ))
        return DocNode(
            NodeType.TABLE,
            children=tuple(rows),
            has_column_header=bool(data.get("has_column_header", False)),
        )

    def _read_bookmark(self, block: dict) -> DocNode:
        data = _data(block)
        caption = _plain(data.get("caption"))
        return DocNode(NodeType.BOOKMARK, content=_as_str(data.get("url")), caption=caption or None)

    def _read_embed(self, block: dict) -> DocNode:
        data = _data(block)
        caption = _plain(data.get("caption"))
        return DocNode(NodeType.EMBED, content=_as_str(data.get("url")), caption=caption or None)

    def _read_child_page(self, block: dict) -> DocNode:
        title = _data(block).get("title", "")
        return self._unsupported("child_page", f"[Child Page: {title}]")

    def _read_child_database(self, block: dict) -> DocNode:
        title = _data(block).get("title", "")
        return self._unsupported("child_database", f"[Database: {title}]")

    def _unsupported(self, block_type: str, placeholder: str) -> DocNode:
        if self._config.unsupported_block_warning:
            log.warning(
                "Unsupported block degraded to placeholder",
                extra={"extra_fields": {"op": "read_blocks", "block_type": block_type}},
            )
            self.warnings.append(ConversionWarning(
                code="UNSUPPORTED_BLOCK",
                message=f"Block type {block_type!r} is not supported",
                context={"block_type": block_type, "placeholder": placeholder},
            ))
            self._metrics.increment(
                "notepub.conversion_warnings_total",
                tags={"code": "UNSUPPORTED_BLOCK"},
            )
        return unsupported(placeholder)


# ------------------------------------------------------------------
# Block reader dispatch table
# ------------------------------------------------------------------

_BlockReaderFn = Callable[[BlockReader, dict], DocNode]

_BLOCK_READERS: dict[str, _BlockReaderFn] = {
    "heading_1": BlockReader._read_heading,
    "heading_2": BlockReader._read_heading,
    "heading_3": BlockReader._read_heading,
    "paragraph": BlockReader._read_paragraph,
    "quote": BlockReader._read_quote,
    "toggle": BlockReader._read_quote,
    "code": BlockReader._read_code,
    "callout": BlockReader._read_callout,
    "divider": BlockReader._read_divider,
    "image": BlockReader._read_image,
    "table": BlockReader._read_table,
    "bookmark": BlockReader._read_bookmark,
    "embed": BlockReader._read_embed,
    "child_page": BlockReader._read_child_page,
    "child_database": BlockReader._read_child_database,
}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def parse_rich_text(segments: Any) -> tuple[RichTextSpan, ...]:
    """Convert a Notion ``rich_text`` array to spans.

    Malformed input never raises: a non-list yields no spans, a non-dict
    segment is skipped, and missing annotation flags default to ``False``.
    """
    if not isinstance(segments, list):
        return ()
    result: list[RichTextSpan] = []
    for seg in segments:
        if not isinstance(seg, dict):
            continue
        text = seg.get("plain_text")
        if text is None:
            text = _as_dict(seg.get("text")).get("content", "")
        if not text:
            continue
        ann = _as_dict(seg.get("annotations"))
        href = seg.get("href")
        result.append(RichTextSpan(
            str(text),
            bold=bool(ann.get("bold", False)),
            italic=bool(ann.get("italic", False)),
            strikethrough=bool(ann.get("strikethrough", False)),
            underline=bool(ann.get("underline", False)),
            code=bool(ann.get("code", False)),
            href=href if isinstance(href, str) and href else None,
        ))
    return tuple(result)


def _plain(segments: Any) -> str:
    return "".join(span.text for span in parse_rich_text(segments))


def _data(block: dict) -> dict:
    data = block.get(_kind(block), {})
    return data if isinstance(data, dict) else {}


def _is_kind(block: Any, block_type: str) -> bool:
    return isinstance(block, dict) and block.get("type") == block_type


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _kind(block: dict) -> str:
    return _as_str(block.get("type", ""))
