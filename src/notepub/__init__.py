"""notepub: publish Markdown and Notion pages as note.com drafts.

Public re-exports
-----------------

* **Publisher:** :class:`AsyncNotePublisher`
* **Configuration:** :class:`NotePubConfig`
* **Errors:** Every :class:`NotePubError` subclass and :class:`ErrorCode`
* **Models:** Result dataclasses, enums and the document IR

Usage::

    from notepub import AsyncNotePublisher

    async with AsyncNotePublisher(session_cookie="...", xsrf_token="...") as pub:
        result = await pub.publish(markdown_text)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from notepub.config import DEFAULT_UPLOAD_MIMES, MAX_IMAGE_BYTES, NotePubConfig

# ── Document IR ─────────────────────────────────────────────────────────
from notepub.document import DocNode, NodeType, RichTextSpan

# ── Errors ──────────────────────────────────────────────────────────────
from notepub.errors import (
    ErrorCode,
    NotePubAuthError,
    NotePubAutomationError,
    NotePubConversionError,
    NotePubError,
    NotePubImageError,
    NotePubImageNotFoundError,
    NotePubImageParseError,
    NotePubImageSizeError,
    NotePubImageTypeError,
    NotePubLocatorError,
    NotePubNetworkError,
    NotePubNotFoundError,
    NotePubPermissionError,
    NotePubRateLimitError,
    NotePubServerError,
    NotePubUploadError,
    NotePubValidationError,
)

# ── Models ──────────────────────────────────────────────────────────────
from notepub.models import (
    ConversionWarning,
    DeliveryPath,
    Document,
    DraftResult,
    FailedAction,
    ImageSourceType,
    PublishResult,
    RunState,
    UploadTarget,
)

# ── Publisher ───────────────────────────────────────────────────────────
from notepub.publisher import AsyncNotePublisher

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Publisher
    "AsyncNotePublisher",
    # Configuration
    "NotePubConfig",
    "DEFAULT_UPLOAD_MIMES",
    "MAX_IMAGE_BYTES",
    # Error base + code enum
    "NotePubError",
    "ErrorCode",
    # API / transport errors
    "NotePubValidationError",
    "NotePubAuthError",
    "NotePubPermissionError",
    "NotePubNotFoundError",
    "NotePubRateLimitError",
    "NotePubServerError",
    "NotePubNetworkError",
    # Conversion errors
    "NotePubConversionError",
    # Image errors
    "NotePubImageError",
    "NotePubImageNotFoundError",
    "NotePubImageTypeError",
    "NotePubImageSizeError",
    "NotePubImageParseError",
    # Upload errors
    "NotePubUploadError",
    # Automation errors
    "NotePubAutomationError",
    "NotePubLocatorError",
    # Models: results
    "DraftResult",
    "PublishResult",
    "FailedAction",
    "UploadTarget",
    "ConversionWarning",
    # Models: documents
    "Document",
    "DocNode",
    "NodeType",
    "RichTextSpan",
    # Models: enums
    "DeliveryPath",
    "ImageSourceType",
    "RunState",
]
