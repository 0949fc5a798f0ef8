"""Error hierarchy for notepub.

Every error carries a ``code`` from :class:`ErrorCode`, a ``message``, a
structured ``context`` dict and an optional chained ``cause``.  Subclasses
only pick their default code; the context keys each one is raised with are
listed in its docstring.

Errors whose ``transient`` attribute is ``True`` may be retried by the
caller.  notepub itself never retries a failed API call.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONVERSION_ERROR = "CONVERSION_ERROR"
    IMAGE_ERROR = "IMAGE_ERROR"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    IMAGE_TYPE_ERROR = "IMAGE_TYPE_ERROR"
    IMAGE_SIZE_ERROR = "IMAGE_SIZE_ERROR"
    IMAGE_PARSE_ERROR = "IMAGE_PARSE_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    AUTOMATION_ERROR = "AUTOMATION_ERROR"
    LOCATOR_EXHAUSTED = "LOCATOR_EXHAUSTED"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class NotePubError(Exception):
    """Base exception for all notepub errors.

    Parameters
    ----------
    message:
        What went wrong.
    context:
        Structured diagnostic detail.
    cause:
        The wrapped exception, also set as ``__cause__``.
    code:
        Overrides the class's ``default_code``.
    """

    default_code: str = "NOTEPUB_ERROR"
    default_message: str = "notepub error"
    transient: bool = False

    def __init__(
        self,
        message: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str | None = None,
    ) -> None:
        self.code: str = code or self.default_code
        self.message: str = message or self.default_message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(self.message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# API / transport errors
# ---------------------------------------------------------------------------

class NotePubValidationError(NotePubError):
    """A 400-class rejection, or a response missing required fields.

    Context keys: ``status_code``, ``body``, ``path``.
    """

    default_code = ErrorCode.VALIDATION_ERROR


class NotePubAuthError(NotePubError):
    """401, or the editor still shows the login page after a refresh.

    Context keys: ``status_code``, ``account_id``, ``url``.
    """

    default_code = ErrorCode.AUTH_ERROR


class NotePubPermissionError(NotePubError):
    default_code = ErrorCode.PERMISSION_ERROR


class NotePubNotFoundError(NotePubError):
    default_code = ErrorCode.NOT_FOUND


class NotePubRateLimitError(NotePubError):
    """429.  Context keys: ``status_code``, ``retry_after_seconds``."""

    default_code = ErrorCode.RATE_LIMITED
    transient = True


class NotePubServerError(NotePubError):
    default_code = ErrorCode.SERVER_ERROR
    transient = True


class NotePubNetworkError(NotePubError):
    """Timeout, DNS failure or connection reset.  Context keys: ``url``."""

    default_code = ErrorCode.NETWORK_ERROR
    transient = True


# ---------------------------------------------------------------------------
# Conversion errors
# ---------------------------------------------------------------------------

class NotePubConversionError(NotePubError):
    """An image node has no source.

    Raised before any network or browser activity for the document.

    Context keys: ``node_type``, ``index``.
    """

    default_code = ErrorCode.CONVERSION_ERROR
    default_message = "Conversion error"


# ---------------------------------------------------------------------------
# Image errors
# ---------------------------------------------------------------------------

class NotePubImageError(NotePubError):
    """Base for image errors; raised directly for failed downloads."""

    default_code = ErrorCode.IMAGE_ERROR
    default_message = "Image error"


class NotePubImageNotFoundError(NotePubImageError):
    """Context keys: ``src``, ``resolved_path``."""

    default_code = ErrorCode.IMAGE_NOT_FOUND


class NotePubImageTypeError(NotePubImageError):
    """Context keys: ``src``, ``detected_mime``, ``allowed_mimes``."""

    default_code = ErrorCode.IMAGE_TYPE_ERROR


class NotePubImageSizeError(NotePubImageError):
    """Context keys: ``src``, ``size_bytes``, ``max_bytes``."""

    default_code = ErrorCode.IMAGE_SIZE_ERROR


class NotePubImageParseError(NotePubImageError):
    """Malformed data URI.  Context keys: ``src``, ``reason``."""

    default_code = ErrorCode.IMAGE_PARSE_ERROR


# ---------------------------------------------------------------------------
# Upload errors
# ---------------------------------------------------------------------------

class NotePubUploadError(NotePubError):
    """Context keys: ``step``, ``filename``, ``response``."""

    default_code = ErrorCode.UPLOAD_ERROR
    default_message = "Upload error"


# ---------------------------------------------------------------------------
# Automation errors
# ---------------------------------------------------------------------------

class NotePubAutomationError(NotePubError):
    """A browser step failed.

    Context keys: ``action``, ``index``, ``state``, ``attempts``,
    ``partial``, ``url``.
    """

    default_code = ErrorCode.AUTOMATION_ERROR


class NotePubLocatorError(NotePubAutomationError):
    """No locator strategy found a visible element for a DOM target.

    Context keys: ``target``, ``strategies``.
    """

    default_code = ErrorCode.LOCATOR_EXHAUSTED
