"""HTML rendering for the platform's draft API."""

from __future__ import annotations

from .html import HtmlRenderer
from .inline import render_span, render_spans
from .sanitize import DISALLOWED_TAGS, is_safe_url, sanitize_html

__all__ = [
    "DISALLOWED_TAGS",
    "HtmlRenderer",
    "is_safe_url",
    "render_span",
    "render_spans",
    "sanitize_html",
]
