"""IR and Markdown to platform HTML.

:class:`HtmlRenderer` produces the HTML body accepted by the platform's
draft API.  It has two entry points:

* :meth:`HtmlRenderer.render_nodes` -- render IR nodes from either reader.
* :meth:`HtmlRenderer.render_markdown` -- the legacy direct path, which
  renders raw Markdown paragraph by paragraph.

Both obey the platform's heading rule (levels 1-2 become ``<h2>``, level 3
becomes ``<h3>``, levels 4-6 become a bold paragraph), give every block
element a ``name``/``id`` pair, and finish with :func:`sanitize_html`.

Usage::

    renderer = HtmlRenderer()
    html = renderer.render_markdown("## Title\\n\\nBody")
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterable
from enum import Enum
from html import escape

from notepub.document.inline import InlineParser
from notepub.document.nodes import DocNode, NodeType, RichTextSpan

from .inline import escape_attr, escape_text, render_spans
from .sanitize import is_safe_url, sanitize_html

_FENCE_RE = re.compile(
    r"^```[ \t]*([\w+#.-]*)[^\n]*\n(.*?)\n?^```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
_PLACEHOLDER = "__CODE_BLOCK_{}__"
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_RULE_RE = re.compile(r"^(?:-{3,}|\*{3,})\s*$")
_BULLET_RE = re.compile(r"^[-*+]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\d+\.\s+(.*)$")
_QUOTE_RE = re.compile(r"^>\s?(.*)$")
_CODE_PLACEHOLDER_RE = re.compile(r"^__CODE_BLOCK_(\d+)__$")


# ---------------------------------------------------------------------------
# Line classification and the paragraph state machine
# ---------------------------------------------------------------------------

class _LineKind(Enum):
    HEADING = "heading"
    RULE = "rule"
    CODE = "code"
    BULLET = "bullet"
    NUMBERED = "numbered"
    QUOTE = "quote"
    PLAIN = "plain"


class _State(Enum):
    IDLE = "idle"
    BULLET_LIST = "bullet_list"
    NUMBERED_LIST = "numbered_list"
    QUOTE = "quote"
    PARAGRAPH = "paragraph"


# Lines that are emitted on their own and never accumulate.
_STANDALONE: frozenset[_LineKind] = frozenset({
    _LineKind.HEADING,
    _LineKind.RULE,
    _LineKind.CODE,
})

# The state a line of each kind leads to.  A container is flushed whenever
# the next state differs from the current one.
_TARGET_STATE: dict[_LineKind, _State] = {
    _LineKind.HEADING: _State.IDLE,
    _LineKind.RULE: _State.IDLE,
    _LineKind.CODE: _State.IDLE,
    _LineKind.BULLET: _State.BULLET_LIST,
    _LineKind.NUMBERED: _State.NUMBERED_LIST,
    _LineKind.QUOTE: _State.QUOTE,
    _LineKind.PLAIN: _State.PARAGRAPH,
}

TRANSITIONS: dict[tuple[_State, _LineKind], tuple[bool, _State]] = {
    (state, kind): (state is not _State.IDLE and _TARGET_STATE[kind] is not state, _TARGET_STATE[kind])
    for state in _State
    for kind in _LineKind
}
"""``(state, line kind) -> (flush pending container?, next state)``."""


def _classify(line: str) -> tuple[_LineKind, re.Match[str] | None]:
    """Return the block kind of *line* and the match that identified it."""
    for kind, pattern in (
        (_LineKind.CODE, _CODE_PLACEHOLDER_RE),
        (_LineKind.HEADING, _HEADING_RE),
        (_LineKind.RULE, _RULE_RE),
        (_LineKind.BULLET, _BULLET_RE),
        (_LineKind.NUMBERED, _NUMBERED_RE),
        (_LineKind.QUOTE, _QUOTE_RE),
    ):
        match = pattern.match(line)
        if match:
            return kind, match
    return _LineKind.PLAIN, None


def _default_id() -> str:
    return str(uuid.uuid4())


class HtmlRenderer:
    """Render IR nodes or raw Markdown to sanitized platform HTML.

    Parameters
    ----------
    id_factory:
        Zero-argument callable producing the opaque identifier placed in
        each block element's ``name`` and ``id`` attributes.  Defaults to a
        random UUID4 per element.
    """

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._id_factory = id_factory or _default_id
        self._inline = InlineParser()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render_nodes(self, nodes: Iterable[DocNode]) -> str:
        """Render IR *nodes* to a sanitized HTML string."""
        return sanitize_html("".join(self._render_node(node) for node in nodes))

    def render_markdown(self, markdown: str) -> str:
        """Render raw Markdown through the paragraph-oriented path.

        Fenced code blocks are swapped for placeholders first so their
        bodies never see inline processing, then the text is split on blank
        lines.  A paragraph containing any block-level line is re-read line
        by line through :data:`TRANSITIONS`; any other paragraph becomes a
        single ``<p>`` with its lines joined by ``<br>``.
        """
        text = markdown.replace("\r\n", "\n").replace("\r", "\n")
        code_blocks: list[str] = []

        def stash(match: re.Match[str]) -> str:
            code_blocks.append(match.group(2))
            return _PLACEHOLDER.format(len(code_blocks) - 1)

        text = _FENCE_RE.sub(stash, text)

        parts: list[str] = []
        for block in _PARAGRAPH_SPLIT_RE.split(text.strip("\n")):
            lines = [line.rstrip() for line in block.split("\n")]
            lines = [line for line in lines if line.strip()]
            if not lines:
                continue
            if any(_classify(line)[0] is not _LineKind.PLAIN for line in lines):
                parts.append(self._render_lines(lines, code_blocks))
            else:
                parts.append(self._paragraph(lines))
        return sanitize_html("".join(parts))

    # ------------------------------------------------------------------
    # Markdown path
    # ------------------------------------------------------------------

    def _render_lines(self, lines: list[str], code_blocks: list[str]) -> str:
        out: list[str] = []
        state = _State.IDLE
        pending: list[str] = []

        for line in lines:
            kind, match = _classify(line)
            flush, next_state = TRANSITIONS[(state, kind)]
            if flush:
                out.append(self._flush(state, pending))
                pending = []

            if kind in _STANDALONE:
                out.append(self._standalone(kind, match, code_blocks))
            elif kind is _LineKind.PLAIN:
                pending.append(line)
            else:
                pending.append(match.group(1))
            state = next_state

        if state is not _State.IDLE:
            out.append(self._flush(state, pending))
        return "".join(out)

    def _flush(self, state: _State, lines: list[str]) -> str:
        if state is _State.BULLET_LIST:
            return self._list("ul", [self._inline_html(line) for line in lines])
        if state is _State.NUMBERED_LIST:
            return self._list("ol", [self._inline_html(line) for line in lines])
        if state is _State.QUOTE:
            body = "<br>".join(self._inline_html(line) for line in lines)
            return f"{self._open('blockquote')}{body}</blockquote>"
        if state is _State.PARAGRAPH:
            return self._paragraph(lines)
        return ""

    def _standalone(
        self,
        kind: _LineKind,
        match: re.Match[str] | None,
        code_blocks: list[str],
    ) -> str:
        assert match is not None
        if kind is _LineKind.HEADING:
            level = len(match.group(1))
            return self._heading(level, self._inline_html(match.group(2)))
        if kind is _LineKind.RULE:
            return "<hr>"
        index = int(match.group(1))
        body = code_blocks[index] if index < len(code_blocks) else ""
        return self._code(body)

    def _paragraph(self, lines: list[str]) -> str:
        body = "<br>".join(self._inline_html(line) for line in lines)
        return f"{self._open('p')}{body}</p>"

    def _inline_html(self, text: str) -> str:
        return render_spans(self._inline.parse_line(text))

    # ------------------------------------------------------------------
    # IR path
    # ------------------------------------------------------------------

    def _render_node(self, node: DocNode) -> str:
        renderer = _NODE_RENDERERS.get(node.type)
        if renderer is None:
            return self._text_paragraph(node.text or node.content)
        return renderer(self, node)

    def _render_heading(self, node: DocNode) -> str:
        return self._heading(node.level or 2, render_spans(node.rich_text))

    def _render_paragraph(self, node: DocNode) -> str:
        return f"{self._open('p')}{render_spans(node.rich_text)}</p>"

    def _render_bullet_list(self, node: DocNode) -> str:
        return self._list("ul", [render_spans(item.rich_text) for item in node.children])

    def _render_numbered_list(self, node: DocNode) -> str:
        return self._list("ol", [render_spans(item.rich_text) for item in node.children])

    def _render_todo_list(self, node: DocNode) -> str:
        items = [
            ("[x] " if item.checked else "[ ] ") + render_spans(item.rich_text)
            for item in node.children
        ]
        return self._list("ul", items)

    def _render_code(self, node: DocNode) -> str:
        return self._code(node.content)

    def _render_quote(self, node: DocNode) -> str:
        return f"{self._open('blockquote')}{render_spans(node.rich_text)}</blockquote>"

    def _render_callout(self, node: DocNode) -> str:
        icon = f"{escape_text(node.icon)} " if node.icon else ""
        return f"{self._open('blockquote')}{icon}{render_spans(node.rich_text)}</blockquote>"

    def _render_divider(self, node: DocNode) -> str:
        return "<hr>"

    def _render_image(self, node: DocNode) -> str:
        src = escape_attr(node.content) if is_safe_url(node.content) else ""
        alt = escape_attr(node.caption or "")
        parts = [self._open("figure"), f'<img src="{src}" alt="{alt}">']
        if node.caption:
            parts.append(f"{self._open('figcaption')}{escape_text(node.caption)}</figcaption>")
        parts.append("</figure>")
        return "".join(parts)

    def _render_table(self, node: DocNode) -> str:
        rows: list[str] = []
        for i, row in enumerate(node.children):
            cell_tag = "th" if i == 0 and node.has_column_header else "td"
            cells = "".join(
                f"{self._open(cell_tag)}{render_spans(cell.rich_text)}</{cell_tag}>"
                for cell in row.children
            )
            rows.append(f"{self._open('tr')}{cells}</tr>")
        return f"{self._open('table')}{''.join(rows)}</table>"

    def _render_link_block(self, node: DocNode) -> str:
        url = node.content
        label = escape_text(node.caption or url)
        if not is_safe_url(url):
            return self._text_paragraph(node.caption or url)
        return f'{self._open("p")}<a href="{escape_attr(url)}">{label}</a></p>'

    def _render_unsupported(self, node: DocNode) -> str:
        return self._text_paragraph(node.content)

    # ------------------------------------------------------------------
    # Element helpers
    # ------------------------------------------------------------------

    def _open(self, tag: str) -> str:
        ident = escape(self._id_factory(), quote=True)
        return f'<{tag} name="{ident}" id="{ident}">'

    def _heading(self, level: int, inner_html: str) -> str:
        if level <= 2:
            return f"{self._open('h2')}{inner_html}</h2>"
        if level == 3:
            return f"{self._open('h3')}{inner_html}</h3>"
        return f"{self._open('p')}<strong>{inner_html}</strong></p>"

    def _list(self, tag: str, items_html: list[str]) -> str:
        items = "".join(f"{self._open('li')}{item}</li>" for item in items_html)
        return f"{self._open(tag)}{items}</{tag}>"

    def _code(self, body: str) -> str:
        return f"{self._open('pre')}<code>{escape(body.strip(), quote=False)}</code></pre>"

    def _text_paragraph(self, text: str) -> str:
        spans = (RichTextSpan(text),) if text else ()
        return f"{self._open('p')}{render_spans(spans)}</p>"


# ------------------------------------------------------------------
# Node renderer dispatch table
# ------------------------------------------------------------------

_NodeRenderer = Callable[[HtmlRenderer, DocNode], str]

_NODE_RENDERERS: dict[NodeType, _NodeRenderer] = {
    NodeType.HEADING: HtmlRenderer._render_heading,
    NodeType.PARAGRAPH: HtmlRenderer._render_paragraph,
    NodeType.BULLET_LIST: HtmlRenderer._render_bullet_list,
    NodeType.NUMBERED_LIST: HtmlRenderer._render_numbered_list,
    NodeType.TODO_LIST: HtmlRenderer._render_todo_list,
    NodeType.CODE: HtmlRenderer._render_code,
    NodeType.QUOTE: HtmlRenderer._render_quote,
    NodeType.CALLOUT: HtmlRenderer._render_callout,
    NodeType.DIVIDER: HtmlRenderer._render_divider,
    NodeType.IMAGE: HtmlRenderer._render_image,
    NodeType.TABLE: HtmlRenderer._render_table,
    NodeType.BOOKMARK: HtmlRenderer._render_link_block,
    NodeType.EMBED: HtmlRenderer._render_link_block,
    NodeType.UNSUPPORTED: HtmlRenderer._render_unsupported,
}
