"""Markdown text to IR.

A line-oriented reader with explicit lookahead.  At each position the
first matching rule wins, in this order:

1. ``<!-- ai-summary:start ... -->`` block: the image inside it plus an
   ``*italic*`` caption line become one image node.
2. Fenced code block.  An unterminated fence runs to the end of input.
3. ``## `` / ``### `` heading.
4. Horizontal rule.
5. Block quote: consecutive ``>`` lines, empty quote lines dropped.
6. Bullet or numbered list: consecutive lines of the same style.
7. Image reference (``![alt](path)`` or ``![[path|opt]]``), with an
   optional caption on the next non-blank plain line.
8. Paragraph: consecutive plain lines, joined with line breaks.

Only the subset heading (2/3), paragraph, bullet/numbered list, quote,
code, image and divider is ever produced.  Inline markup inside text is
parsed by :class:`~notepub.document.inline.InlineParser`.
"""

from __future__ import annotations

import posixpath
import re

from notepub.models import Document

from .inline import InlineParser
from .nodes import DocNode, NodeType, divider, list_node

DEFAULT_TITLE = "無題"

_FRONT_MATTER_RE = re.compile(r"^---\n[\s\S]*?\n---\n?")
_TITLE_RE = re.compile(r"^# (.+)$", re.MULTILINE)
_TITLE_LINE_RE = re.compile(r"^# .+\n?", re.MULTILINE)

_AI_SUMMARY_START_RE = re.compile(r'^<!--\s*ai-summary:start\s+id="([^"]+)"')
_AI_SUMMARY_END_RE = re.compile(r"^<!--\s*ai-summary:end")
_ITALIC_CAPTION_RE = re.compile(r"^\*(.+)\*$")

_FENCE_RE = re.compile(r"^```")
_HEADING_RE = re.compile(r"^(#{1,3}) (.*)$")
_RULE_RE = re.compile(r"^(?:-{3,}|\*{3,})\s*$")
_QUOTE_RE = re.compile(r"^>\s?")
_BULLET_RE = re.compile(r"^[-*] ")
_NUMBERED_RE = re.compile(r"^\d+\. ")
_WIKI_IMAGE_RE = re.compile(r"^!\[\[([^\]|]+)(?:\|[^\]]+)?\]\]$")
_MD_IMAGE_RE = re.compile(r"^!\[([^\]]*)\]\(([^)]+)\)$")

# Lines that can never be an image caption.
_BLOCK_START_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^#{1,6}\s"),
    re.compile(r"^[-*]\s"),
    re.compile(r"^\d+\.\s"),
    re.compile(r"^>\s?"),
    _FENCE_RE,
    re.compile(r"^---+$"),
    re.compile(r"^!\["),
    _AI_SUMMARY_START_RE,
)


# ---------------------------------------------------------------------------
# Document-level helpers
# ---------------------------------------------------------------------------

def strip_front_matter(text: str) -> str:
    """Remove a leading ``---`` front matter block."""
    return _FRONT_MATTER_RE.sub("", text, count=1)


def extract_title(text: str, default: str = DEFAULT_TITLE) -> str:
    """Return the text of the first ``# `` line, or *default*."""
    match = _TITLE_RE.search(text)
    return match.group(1).strip() if match else default


def remove_title(text: str) -> str:
    """Remove the first ``# `` line."""
    return _TITLE_LINE_RE.sub("", text, count=1)


def _is_block_start(line: str) -> bool:
    return any(pattern.match(line) for pattern in _BLOCK_START_RES)


def _is_plain(line: str) -> bool:
    return bool(line.strip()) and not _is_block_start(line) and not _RULE_RE.match(line)


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class MarkdownReader:
    """Read Markdown into the IR subset the editor can reproduce."""

    def __init__(self) -> None:
        self._inline = InlineParser()

    def read_document(self, text: str, title: str | None = None) -> Document:
        """Strip front matter, take the title line, and read the body.

        Parameters
        ----------
        text:
            Full Markdown source.
        title:
            Explicit title.  When given, the ``# `` line is still removed
            from the body but its text is ignored.

        Returns
        -------
        Document
        """
        body = strip_front_matter(text.replace("\r\n", "\n"))
        found = extract_title(body)
        body = remove_title(body)
        return Document(title=title or found, nodes=self.read(body))

    def read(self, text: str) -> list[DocNode]:
        """Convert Markdown *text* to a list of IR nodes."""
        lines = text.replace("\r\n", "\n").split("\n")
        nodes: list[DocNode] = []
        i = 0
        while i < len(lines):
            line = lines[i]

            if not line.strip():
                i += 1
                continue

            if _AI_SUMMARY_START_RE.match(line):
                node, i = self._read_ai_summary(lines, i + 1)
                if node is not None:
                    nodes.append(node)
                continue

            if _FENCE_RE.match(line):
                node, i = self._read_fence(lines, i)
                nodes.append(node)
                continue

            heading = _HEADING_RE.match(line)
            if heading:
                # ``# `` inside a body is treated like ``## ``.
                level = max(len(heading.group(1)), 2)
                nodes.append(DocNode(
                    NodeType.HEADING,
                    rich_text=self._inline.parse(heading.group(2).strip()),
                    level=level,
                ))
                i += 1
                continue

            if _RULE_RE.match(line):
                nodes.append(divider())
                i += 1
                continue

            if _QUOTE_RE.match(line):
                quoted: list[str] = []
                while i < len(lines) and _QUOTE_RE.match(lines[i]):
                    quoted.append(_QUOTE_RE.sub("", lines[i], count=1).strip())
                    i += 1
                quoted = [q for q in quoted if q]
                if quoted:
                    nodes.append(DocNode(
                        NodeType.QUOTE,
                        rich_text=self._inline.parse("\n".join(quoted)),
                    ))
                continue

            if _BULLET_RE.match(line) or _NUMBERED_RE.match(line):
                node, i = self._read_list(lines, i)
                nodes.append(node)
                continue

            wiki = _WIKI_IMAGE_RE.match(line)
            md_image = _MD_IMAGE_RE.match(line)
            if wiki or md_image:
                node, i = self._read_image(lines, i, wiki, md_image)
                nodes.append(node)
                continue

            # The first line is taken even if it only resembles block syntax.
            paragraph: list[str] = [line.strip()]
            i += 1
            while i < len(lines) and _is_plain(lines[i]):
                paragraph.append(lines[i].strip())
                i += 1
            nodes.append(DocNode(
                NodeType.PARAGRAPH,
                rich_text=self._inline.parse("\n".join(paragraph)),
            ))
        return nodes

    # ------------------------------------------------------------------
    # Multi-line constructs
    # ------------------------------------------------------------------

    def _read_ai_summary(self, lines: list[str], i: int) -> tuple[DocNode | None, int]:
        src: str | None = None
        caption: str | None = None
        while i < len(lines) and not _AI_SUMMARY_END_RE.match(lines[i]):
            current = lines[i].strip()
            wiki = _WIKI_IMAGE_RE.match(current)
            md_image = _MD_IMAGE_RE.match(current)
            if wiki:
                src = wiki.group(1)
            elif md_image:
                src = md_image.group(2)
            italic = _ITALIC_CAPTION_RE.match(current)
            if italic:
                caption = italic.group(1).strip()
            i += 1
        if i < len(lines):
            i += 1  # the end marker
        if src is None:
            return None, i
        return DocNode(NodeType.IMAGE, content=src, caption=caption or None), i

    def _read_fence(self, lines: list[str], i: int) -> tuple[DocNode, int]:
        language = lines[i][3:].strip() or None
        body: list[str] = []
        i += 1
        while i < len(lines) and not _FENCE_RE.match(lines[i]):
            body.append(lines[i])
            i += 1
        # Skip the closing fence; an unterminated fence has consumed the rest.
        return DocNode(NodeType.CODE, content="\n".join(body), language=language), i + 1

    def _read_list(self, lines: list[str], i: int) -> tuple[DocNode, int]:
        if _BULLET_RE.match(lines[i]):
            pattern, list_type = _BULLET_RE, NodeType.BULLET_LIST
        else:
            pattern, list_type = _NUMBERED_RE, NodeType.NUMBERED_LIST
        items = []
        while i < len(lines) and pattern.match(lines[i]):
            items.append(self._inline.parse(pattern.sub("", lines[i], count=1).strip()))
            i += 1
        return list_node(list_type, items), i

    def _read_image(
        self,
        lines: list[str],
        i: int,
        wiki: re.Match[str] | None,
        md_image: re.Match[str] | None,
    ) -> tuple[DocNode, int]:
        caption: str | None = None
        if wiki is not None:
            src = wiki.group(1).strip()
            look_for_caption = True
        else:
            assert md_image is not None
            alt, src = md_image.group(1), md_image.group(2).strip()
            if alt and alt != posixpath.basename(src):
                caption = alt
            look_for_caption = not alt
        i += 1

        if look_for_caption:
            j = i
            # Tolerate a single blank line between the image and its caption.
            if j < len(lines) and not lines[j].strip():
                j += 1
            if j < len(lines) and _is_plain(lines[j]):
                caption = lines[j].strip()
                i = j + 1
        return DocNode(NodeType.IMAGE, content=src, caption=caption), i
