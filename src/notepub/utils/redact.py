"""Secret and payload redaction for safe logging.

:func:`redact` must be applied before any request or response is written
to logs or debug dumps.  Rules:

* Values under sensitive keys (``cookie``, ``xsrf``, ``token``, ...) are
  masked, keeping only the last four characters.
* Any occurrence of an explicitly supplied secret is scrubbed from every
  string in the tree, including ``Cookie`` header values.
* Base64 data URIs become ``<data_uri:N_bytes>`` and byte values become
  ``<binary:N_bytes>``.
"""

from __future__ import annotations

import base64
import binascii
import copy
import re
from collections.abc import Iterable
from typing import Any

_DATA_URI_RE = re.compile(
    r"data:[a-zA-Z0-9_.+-]+/[a-zA-Z0-9_.+-]+;base64,[A-Za-z0-9+/=]+"
)

# A key containing any of these (case-insensitive) has its value masked.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "session",
    "xsrf",
    "csrf",
})


def _placeholder(secret: str) -> str:
    suffix = secret[-4:] if len(secret) >= 8 else "****"
    return f"<redacted:...{suffix}>"


def _scrub(value: str, secrets: tuple[str, ...]) -> str:
    for secret in secrets:
        if secret and secret in value:
            value = value.replace(secret, _placeholder(secret))
    return value


def _estimate_data_uri_bytes(uri: str) -> int:
    b64_part = uri.split(";base64,", 1)[-1]
    try:
        return len(base64.b64decode(b64_part, validate=True))
    except (binascii.Error, ValueError):
        return len(b64_part) * 3 // 4


def _redact_value(value: Any, secrets: tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, secrets)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, secrets) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str):
        value = _DATA_URI_RE.sub(
            lambda m: f"<data_uri:{_estimate_data_uri_bytes(m.group(0))}_bytes>",
            value,
        )
        return _scrub(value, secrets)
    return value


def _redact_dict(d: dict, secrets: tuple[str, ...]) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS):
            if isinstance(value, str) and value:
                result[key] = _placeholder(value)
            else:
                result[key] = "<redacted>"
        else:
            result[key] = _redact_value(value, secrets)
    return result


def redact(payload: dict, secrets: Iterable[str | None] = ()) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize (a request body, headers, or a dump).
    secrets:
        Known secret values (session cookie, XSRF token) to scrub from
        every string, wherever they appear.

    Returns
    -------
    dict
        A new dictionary.  The original *payload* is never mutated.

    Examples
    --------
    >>> redact({"X-XSRF-TOKEN": "abcdef123456"})
    {'X-XSRF-TOKEN': '<redacted:...3456>'}
    """
    known = tuple(s for s in secrets if s)
    return _redact_dict(copy.deepcopy(payload), known)
