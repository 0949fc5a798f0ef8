"""Parse inline Markdown into :class:`RichTextSpan` tuples.

This module wraps mistune v3's AST renderer.  Each source line is parsed
on its own so that block syntax never leaks across lines, and any leading
block marker left in the text (``#``, ``>``, ``-``, ``1.``) is escaped
first so that mistune treats the line as a plain paragraph.

Handled inline tokens:
    text, strong, emphasis, strikethrough, mark (rendered bold), codespan,
    link, image (text fallback), softbreak, linebreak, inline_html
"""

from __future__ import annotations

import re

import mistune

from .nodes import RichTextSpan

# ``[[target|label]]`` and ``[[target]]`` wiki links, but not ``![[...]]``.
_WIKILINK_LABEL_RE = re.compile(r"(?<!!)\[\[([^\]|]+)\|([^\]]+)\]\]")
_WIKILINK_RE = re.compile(r"(?<!!)\[\[([^\]|]+)\]\]")

_ORDERED_LEAD_RE = re.compile(r"^(\d{1,9})([.)])(?=\s|$)")
_BLOCK_LEAD_RE = re.compile(
    r"^(?:"
    r"#{1,6}(?=\s|$)"           # ATX heading
    r"|>"                       # block quote
    r"|[-+*](?=\s|$)"           # bullet
    r"|`{3,}|~{3,}"             # code fence
    r"|[-*_=](?:\s*[-*_=]){2,}\s*$"  # rule / setext underline
    r"|\[[^\]]+\]:"             # link reference definition
    r")"
)

# Block-level tokens whose children are inline content.
_INLINE_CONTAINERS: frozenset[str] = frozenset({"paragraph", "block_text", "heading"})


def _escape_block_lead(line: str) -> str:
    """Neutralise block syntax at the start of *line*."""
    match = _ORDERED_LEAD_RE.match(line)
    if match:
        return f"{match.group(1)}\\{match.group(2)}{line[match.end():]}"
    if _BLOCK_LEAD_RE.match(line):
        return "\\" + line
    return line


def replace_wikilinks(text: str) -> str:
    """Reduce ``[[target|label]]`` to ``label`` and ``[[target]]`` to ``target``."""
    text = _WIKILINK_LABEL_RE.sub(lambda m: m.group(2), text)
    return _WIKILINK_RE.sub(lambda m: m.group(1), text)


class InlineParser:
    """Turn a line (or lines) of inline Markdown into rich-text spans."""

    def __init__(self) -> None:
        self._parser = mistune.create_markdown(
            renderer="ast",
            plugins=["strikethrough", "mark", "url"],
        )

    def parse(self, text: str) -> tuple[RichTextSpan, ...]:
        """Parse *text*; embedded newlines become ``"\\n"`` spans."""
        result: list[RichTextSpan] = []
        for i, line in enumerate(text.split("\n")):
            if i:
                result.append(RichTextSpan("\n"))
            result.extend(self.parse_line(line))
        return _merge_adjacent(result)

    def parse_line(self, line: str) -> list[RichTextSpan]:
        source = _escape_block_lead(replace_wikilinks(line.strip()))
        if not source:
            return []
        tokens = self._parser(source)
        if isinstance(tokens, str):
            return [RichTextSpan(line.strip())]
        return build_spans(list(_collect_inline(tokens)))


def _collect_inline(tokens: list[dict]):
    """Yield the inline tokens inside a parsed block token list."""
    for token in tokens:
        token_type = token.get("type", "")
        if token_type in _INLINE_CONTAINERS:
            yield from token.get("children", [])
        elif token_type == "block_html":
            yield {"type": "inline_html", "raw": token.get("raw", "").strip()}
        elif token_type == "blank_line":
            continue
        elif "children" in token:
            yield from _collect_inline(token["children"])
        elif token.get("raw"):
            yield {"type": "text", "raw": token["raw"]}


def build_spans(
    children: list[dict],
    *,
    bold: bool = False,
    italic: bool = False,
    strikethrough: bool = False,
    code: bool = False,
    href: str | None = None,
) -> list[RichTextSpan]:
    """Convert inline AST tokens to spans, inheriting parent annotations."""
    segments: list[RichTextSpan] = []
    inherited = {
        "bold": bold,
        "italic": italic,
        "strikethrough": strikethrough,
        "code": code,
        "href": href,
    }

    def make(text: str, **overrides) -> RichTextSpan:
        return RichTextSpan(text, **{**inherited, **overrides})

    for token in children:
        token_type = token.get("type", "")

        if token_type == "text":
            raw = token.get("raw", "")
            if raw:
                segments.append(make(raw))

        elif token_type in ("strong", "mark"):
            segments.extend(build_spans(
                token.get("children", []), **{**inherited, "bold": True},
            ))

        elif token_type == "emphasis":
            segments.extend(build_spans(
                token.get("children", []), **{**inherited, "italic": True},
            ))

        elif token_type == "strikethrough":
            segments.extend(build_spans(
                token.get("children", []), **{**inherited, "strikethrough": True},
            ))

        elif token_type == "codespan":
            raw = token.get("raw", "")
            if raw:
                segments.append(make(raw, code=True))

        elif token_type == "link":
            url = token.get("attrs", {}).get("url", "")
            segments.extend(build_spans(
                token.get("children", []), **{**inherited, "href": url or href},
            ))

        elif token_type == "image":
            alt = extract_text(token.get("children", []))
            url = token.get("attrs", {}).get("url", "")
            segments.append(make(alt or url or "[image]"))

        elif token_type == "softbreak":
            segments.append(make(" "))

        elif token_type == "linebreak":
            segments.append(make("\n"))

        elif token_type == "inline_html":
            raw = token.get("raw", "")
            if raw:
                segments.append(make(raw))

        # Unknown inline types are skipped.

    return segments


def extract_text(children: list[dict]) -> str:
    """Recursively extract plain text from inline tokens."""
    parts: list[str] = []
    for token in children:
        if token.get("type") == "text":
            parts.append(token.get("raw", ""))
        elif "children" in token:
            parts.append(extract_text(token["children"]))
        elif "raw" in token:
            parts.append(token["raw"])
    return "".join(parts)


def _merge_adjacent(segments: list[RichTextSpan]) -> tuple[RichTextSpan, ...]:
    merged: list[RichTextSpan] = []
    for span in segments:
        if merged and _same_annotations(merged[-1], span):
            last = merged[-1]
            merged[-1] = RichTextSpan(
                last.text + span.text,
                bold=last.bold,
                italic=last.italic,
                strikethrough=last.strikethrough,
                underline=last.underline,
                code=last.code,
                href=last.href,
            )
        else:
            merged.append(span)
    return tuple(merged)


def _same_annotations(a: RichTextSpan, b: RichTextSpan) -> bool:
    return (
        a.bold == b.bold
        and a.italic == b.italic
        and a.strikethrough == b.strikethrough
        and a.underline == b.underline
        and a.code == b.code
        and a.href == b.href
    )
