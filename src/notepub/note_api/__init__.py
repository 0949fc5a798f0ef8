"""Platform JSON API wrappers."""

from __future__ import annotations

from .drafts import AsyncDraftAPI, draft_key_for
from .uploads import AsyncUploadAPI

__all__ = [
    "AsyncDraftAPI",
    "AsyncUploadAPI",
    "draft_key_for",
]
