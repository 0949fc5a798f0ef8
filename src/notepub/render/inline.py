"""Inline rendering: rich-text spans to HTML.

Annotation combination order (innermost first)::

    bold -> italic -> strikethrough -> underline -> code -> link

Span text is sanitized and then HTML-escaped; embedded newlines become
``<br>``.
"""

from __future__ import annotations

from collections.abc import Iterable
from html import escape

from notepub.document.nodes import RichTextSpan

from .sanitize import is_safe_url, sanitize_html


def escape_text(text: str) -> str:
    """Sanitize and escape *text* for use as element content."""
    return escape(sanitize_html(text), quote=True)


def escape_attr(value: str) -> str:
    return escape(value, quote=True)


def render_span(span: RichTextSpan) -> str:
    text = "<br>".join(escape_text(part) for part in span.text.split("\n"))
    if not text:
        return ""

    if span.bold:
        text = f"<strong>{text}</strong>"
    if span.italic:
        text = f"<em>{text}</em>"
    if span.strikethrough:
        text = f"<s>{text}</s>"
    if span.underline:
        text = f"<u>{text}</u>"
    if span.code:
        text = f"<code>{text}</code>"

    # Link (outermost wrapping)
    if span.href and is_safe_url(span.href):
        text = f'<a href="{escape_attr(span.href)}">{text}</a>'

    return text


def render_spans(spans: Iterable[RichTextSpan]) -> str:
    """Render a span sequence to an HTML fragment."""
    return "".join(render_span(span) for span in spans)
