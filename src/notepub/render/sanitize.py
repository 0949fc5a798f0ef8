"""HTML sanitization for the platform's accepted element set.

The platform rejects active content.  :func:`sanitize_html` removes the
disallowed elements (with their content when they come in pairs) and any
``on*=`` event-handler attribute, repeating until the output is stable so
that nested constructions such as ``<scr<script>ipt>`` cannot reassemble.
The same function is applied to raw span text before it is escaped, so
such strings are stripped rather than displayed.
"""

from __future__ import annotations

import re

DISALLOWED_TAGS: tuple[str, ...] = (
    "script",
    "iframe",
    "object",
    "embed",
    "form",
    "input",
    "button",
)

_PAIRED_RE = re.compile(
    r"<(script|iframe|object|embed|form|button)[^>]*>.*?</\1[^>]*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(
    r"</?(?:" + "|".join(DISALLOWED_TAGS) + r")[^>]*>?",
    re.IGNORECASE,
)
_HANDLER_RE = re.compile(
    r"\s*(?<![\w-])on[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)",
    re.IGNORECASE,
)


def sanitize_html(html: str) -> str:
    """Strip disallowed tags and event-handler attributes from *html*.

    Parameters
    ----------
    html:
        Rendered HTML, or raw text that may contain markup.

    Returns
    -------
    str
        The input with every disallowed construct removed.
    """
    while True:
        cleaned = _PAIRED_RE.sub("", html)
        cleaned = _TAG_RE.sub("", cleaned)
        cleaned = _HANDLER_RE.sub("", cleaned)
        if cleaned == html:
            return cleaned
        html = cleaned


def is_safe_url(url: str) -> bool:
    """Reject ``javascript:``, ``vbscript:`` and ``data:`` link targets."""
    scheme = url.strip().split(":", 1)[0].lower() if ":" in url else ""
    return scheme not in ("javascript", "vbscript", "data")
