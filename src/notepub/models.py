"""Public data models for notepub.

Result types, warning types and enums referenced by the public API.  All
types are plain dataclasses with no behaviour beyond a few derived
properties.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from notepub.document.nodes import DocNode


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ImageSourceType(str, Enum):
    """Classification of an image source string."""

    EXTERNAL_URL = "external_url"
    """The image is referenced by an ``http://`` or ``https://`` URL."""

    LOCAL_FILE = "local_file"
    """The image is a path on the local filesystem."""

    DATA_URI = "data_uri"
    """The image is encoded inline as a ``data:`` URI."""

    UNKNOWN = "unknown"
    """The source is empty and cannot be resolved."""


class DeliveryPath(str, Enum):
    """How a document reaches the platform."""

    API = "api"
    """Sanitized HTML saved through the JSON API."""

    UI = "ui"
    """Editor actions replayed in a browser session."""


class RunState(str, Enum):
    """States of a single automation run."""

    IDLE = "idle"
    """Nothing has happened yet."""

    NAVIGATING = "navigating"
    """Opening the editor for the target draft."""

    LOGIN_REQUIRED = "login_required"
    """The editor redirected to the login page."""

    REAUTHENTICATING = "reauthenticating"
    """Waiting on the credential provider for a refreshed session."""

    FILLING_TITLE = "filling_title"
    """Locating and filling the title field."""

    EMITTING_BODY = "emitting_body"
    """Replaying the action list, one action at a time."""

    SAVING_DRAFT = "saving_draft"
    """Clicking the save control and reading back the draft key."""

    DONE = "done"
    """Terminal: the draft was saved."""

    FAILED = "failed"
    """Terminal: a critical step failed.  The draft is left as it was."""

    INTERRUPTED = "interrupted"
    """Terminal: the run was cancelled and the browser session closed."""


class ActionPhase(str, Enum):
    """Sub-states of a single action inside ``EMITTING_BODY``."""

    COMPOSING = "composing"
    INVOKING_INSERT_MENU = "invoking_insert_menu"
    AWAITING_INPUT_SURFACE = "awaiting_input_surface"
    COMMITTING = "committing"


# ---------------------------------------------------------------------------
# Conversion warnings
# ---------------------------------------------------------------------------

@dataclass
class ConversionWarning:
    """A non-fatal issue encountered while reading a document.

    Attributes
    ----------
    code:
        A machine-readable warning code (e.g. ``"UNSUPPORTED_BLOCK"``).
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class Document:
    """A document read from Markdown or a block source.

    Attributes
    ----------
    title:
        Document title, taken from the first ``# `` line or supplied by
        the caller.
    nodes:
        Top-level IR nodes in document order.
    warnings:
        Non-fatal issues from the reader.
    """

    title: str
    nodes: list[DocNode] = field(default_factory=list)
    warnings: list[ConversionWarning] = field(default_factory=list)


# ---------------------------------------------------------------------------
# API results
# ---------------------------------------------------------------------------

@dataclass
class DraftResult:
    """A draft record on the platform.

    Attributes
    ----------
    draft_id:
        Numeric draft identifier used by the JSON API.
    key:
        Public key (``n...``) used in editor and article URLs.
    edit_url:
        Browser editor address for this draft.
    """

    draft_id: str
    key: str
    edit_url: str


@dataclass
class UploadTarget:
    """A pre-signed upload destination.

    Attributes
    ----------
    url:
        Final public URL of the object once uploaded.
    action:
        Storage endpoint that receives the multipart POST.
    fields:
        Signed form fields, in the order they must be sent.
    """

    url: str
    action: str
    fields: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Publish results
# ---------------------------------------------------------------------------

@dataclass
class FailedAction:
    """A non-critical action that was skipped during a browser run.

    Attributes
    ----------
    index:
        Position of the action in the compiled action list.
    action_type:
        The action's type value, e.g. ``"insert-image"``.
    reason:
        Short machine-readable reason (``"missing_file"``,
        ``"locator_exhausted"``, ``"error"``).
    error:
        String form of the last error seen, if any.
    """

    index: int
    action_type: str
    reason: str
    error: str = ""


@dataclass
class PublishResult:
    """Outcome of a publish call on either delivery path.

    Attributes
    ----------
    status:
        Terminal :class:`RunState` (``DONE``, ``FAILED`` or
        ``INTERRUPTED``).
    path:
        The delivery path that was used.
    draft_id:
        Draft identifier, when known.  Present even on failure so a retry
        can target the same draft.
    draft_key:
        Draft key parsed from the editor address or the API response.
    edit_url:
        Browser editor address for the draft.
    failed_actions:
        Inline actions that were skipped.
    warnings:
        Reader warnings carried through from conversion.
    error:
        The error that caused a ``FAILED`` status.
    """

    status: RunState
    path: DeliveryPath
    draft_id: str | None = None
    draft_key: str | None = None
    edit_url: str | None = None
    failed_actions: list[FailedAction] = field(default_factory=list)
    warnings: list[ConversionWarning] = field(default_factory=list)
    error: Any | None = None

    @property
    def success(self) -> bool:
        return self.status == RunState.DONE

    @property
    def partial(self) -> bool:
        """``True`` when the draft was saved but some inline actions were skipped."""
        return self.success and bool(self.failed_actions)
