"""Image validation: MIME type and size checks.

Every image is validated here before any network call: uploads, cover
images and remote images fetched for the browser run.  The MIME type is
sniffed from the leading bytes, with the file extension as a fallback.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from urllib.parse import unquote_to_bytes

from notepub.config import NotePubConfig
from notepub.errors import (
    NotePubImageParseError,
    NotePubImageSizeError,
    NotePubImageTypeError,
)

_DATA_URI_RE = re.compile(
    r"^data:(?P<mime>[^;,]+)?(?:;(?P<encoding>base64))?,(?P<data>.*)$",
    re.IGNORECASE | re.DOTALL,
)

# Map of magic bytes to MIME types for sniffing.
_MAGIC_BYTES: list[tuple[bytes, str]] = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),  # RIFF....WEBP (checked further)
    (b"<svg", "image/svg+xml"),
    (b"<?xml", "image/svg+xml"),
    (b"BM", "image/bmp"),
]

_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


def sniff_mime(data: bytes) -> str | None:
    """Detect a MIME type from the first bytes of *data*."""
    head = data[:512].lstrip()
    for magic, mime in _MAGIC_BYTES:
        if head[:len(magic)] == magic:
            if magic == b"RIFF" and head[8:12] != b"WEBP":
                continue
            return mime
    return None


def guess_mime_from_name(name: str) -> str | None:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type


def extension_for(mime_type: str) -> str:
    """File extension (with dot) for an allowed image MIME type."""
    return _EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or ".bin"


def validate_image(
    data: bytes,
    name: str,
    config: NotePubConfig,
) -> str:
    """Validate image bytes against the configured size limit and allowlist.

    The size check runs first so an oversized payload is rejected without
    inspecting its contents.

    Parameters
    ----------
    data:
        The image bytes.
    name:
        File name or source, used for the extension fallback and in error
        context.
    config:
        Supplies ``image_max_size_bytes`` and ``image_allowed_mimes``.

    Returns
    -------
    str
        The detected MIME type.

    Raises
    ------
    NotePubImageSizeError
        If *data* exceeds ``config.image_max_size_bytes``.
    NotePubImageTypeError
        If the detected MIME type is not allowed.
    """
    if len(data) > config.image_max_size_bytes:
        raise NotePubImageSizeError(
            message=(
                f"Image size {len(data)} bytes exceeds "
                f"maximum {config.image_max_size_bytes} bytes"
            ),
            context={
                "src": _truncate_src(name),
                "size_bytes": len(data),
                "max_bytes": config.image_max_size_bytes,
            },
        )

    mime_type = sniff_mime(data) or guess_mime_from_name(name) or "application/octet-stream"
    if mime_type not in config.image_allowed_mimes:
        raise NotePubImageTypeError(
            message=f"Image MIME type {mime_type!r} is not allowed",
            context={
                "src": _truncate_src(name),
                "detected_mime": mime_type,
                "allowed_mimes": list(config.image_allowed_mimes),
            },
        )
    return mime_type


def parse_data_uri(src: str) -> tuple[str, bytes]:
    """Parse a data URI and return ``(mime_type, decoded_bytes)``.

    Raises
    ------
    NotePubImageParseError
        If the data URI is malformed or cannot be decoded.
    """
    match = _DATA_URI_RE.match(src.strip())
    if not match:
        raise NotePubImageParseError(
            message="Invalid data URI format",
            context={"src": _truncate_src(src), "reason": "regex_no_match"},
        )

    mime_type = match.group("mime") or "application/octet-stream"
    raw_data = match.group("data")

    if match.group("encoding"):
        try:
            decoded = base64.b64decode(raw_data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise NotePubImageParseError(
                message="Failed to decode base64 data URI",
                context={"src": _truncate_src(src), "reason": "base64_decode_error"},
                cause=exc,
            ) from exc
    else:
        decoded = unquote_to_bytes(raw_data)

    return mime_type, decoded


def _truncate_src(src: str, max_len: int = 200) -> str:
    """Truncate a source string for inclusion in error context."""
    if len(src) <= max_len:
        return src
    return src[:max_len] + "..."
