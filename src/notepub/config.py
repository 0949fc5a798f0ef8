"""Configuration for notepub.

:class:`NotePubConfig` captures every tuneable knob: platform endpoints,
session secrets, image limits, browser-automation timeouts and the
partial-failure policies.  One instance is shared by the publisher, the
API wrappers and the automation executor.

:data:`DEFAULT_UPLOAD_MIMES` is the MIME allowlist the platform accepts
for uploaded images.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import urlparse

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_UPLOAD_MIMES: list[str] = [
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
    "image/svg+xml",
]
"""MIME types accepted by the platform for body and cover images."""

MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
"""Platform upload limit: 10 MiB per file."""

_SECRET_FIELDS: frozenset[str] = frozenset({
    "session_cookie",
    "xsrf_token",
    "notion_token",
})

_LOCAL_HOSTS: tuple[str, ...] = ("localhost", "127.0.0.1", "::1")


def _mask(value: str) -> str:
    return f"...{value[-4:]}" if len(value) >= 4 else "****"


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class NotePubConfig:
    """Complete configuration for a notepub publisher.

    Parameters
    ----------
    session_cookie:
        Value of the platform's ``_note_session_v5`` cookie.  Never logged.
    xsrf_token:
        CSRF token sent as ``X-XSRF-TOKEN``.  Never logged.
    account_id:
        Identifier used to serialise re-authentication across concurrent
        sessions of the same account.
    api_base_url:
        Platform JSON API root.
    editor_base_url:
        Root of the browser editor.
    login_url:
        Address the editor redirects to when the session is not
        authenticated.
    notion_token:
        Integration token for the block source.  Never logged.
    notion_version:
        Value of the ``Notion-Version`` header.
    notion_base_url:
        Block source API root.
    max_block_depth:
        Maximum depth for recursive child-block retrieval.
    unsupported_block_warning:
        Log a warning and record a :class:`ConversionWarning` for every
        block kind that degrades to an ``unsupported`` node.
    image_max_size_bytes:
        Maximum image size in bytes.  Default is 10 MiB.
    image_allowed_mimes:
        MIME types accepted for uploads and editor inserts.
    image_base_dir:
        Directory against which relative image paths are resolved.  Paths
        must stay inside it once resolved.
    image_download_dir:
        Directory for remote images fetched before a browser run.  A
        temporary directory is used when ``None``.
    missing_image_policy:
        What happens when an image file is missing at automation time.

        * ``"skip"`` -- record the action as failed and keep going.
        * ``"fail"`` -- abort the run as failed.
    hoist_cover_image:
        Turn the first image of a document into the cover image.
    headless:
        Run the browser without a visible window.
    action_timeout_ms:
        Timeout for a single locator strategy or DOM wait.
    navigation_timeout_ms:
        Timeout for page navigation.
    title_timeout_ms:
        Overall budget for locating the title field.
    action_max_attempts:
        Attempts per editor action before it is recorded as failed.
    action_retry_base_delay:
        Base delay (seconds) for backoff between action attempts.
    action_retry_max_delay:
        Upper cap (seconds) for that backoff.
    retry_jitter:
        Randomise action backoff between 50 % and 100 % of its value.
    settle_delay_ms:
        Pause after each committed action so the editor can re-render.
    locale:
        Browser locale.  The editor's menu labels depend on it.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    debug_dump_payload:
        Write redacted request/response dumps to *stderr*.
    debug_dump_actions:
        Log the compiled action list before a browser run.
    """

    # ── Session ─────────────────────────────────────────────────────────
    session_cookie: str = ""

    xsrf_token: str = ""

    account_id: str = "default"

    # ── Platform ────────────────────────────────────────────────────────
    api_base_url: str = "https://note.com/api"

    editor_base_url: str = "https://editor.note.com"

    login_url: str = "https://note.com/login"

    # ── Block source ────────────────────────────────────────────────────
    notion_token: str = ""

    notion_version: str = "2022-06-28"

    notion_base_url: str = "https://api.notion.com/v1"

    max_block_depth: int = 10

    unsupported_block_warning: bool = False

    # ── Images ──────────────────────────────────────────────────────────
    image_max_size_bytes: int = MAX_IMAGE_BYTES

    image_allowed_mimes: list[str] = field(
        default_factory=lambda: list(DEFAULT_UPLOAD_MIMES),
    )

    image_base_dir: str | None = None

    image_download_dir: str | None = None

    missing_image_policy: Literal["skip", "fail"] = "skip"

    hoist_cover_image: bool = True

    # ── Browser automation ──────────────────────────────────────────────
    headless: bool = True

    action_timeout_ms: int = 5_000

    navigation_timeout_ms: int = 30_000

    title_timeout_ms: int = 30_000

    action_max_attempts: int = 3

    action_retry_base_delay: float = 0.5

    action_retry_max_delay: float = 5.0

    retry_jitter: bool = True

    settle_delay_ms: int = 200

    locale: str = "ja-JP"

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    debug_dump_actions: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("api_base_url", "editor_base_url", "notion_base_url"):
            parsed = urlparse(getattr(self, name))
            if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
                raise ValueError(
                    f"{name} uses insecure HTTP for non-local host "
                    f"'{parsed.hostname}'. Use HTTPS to protect session "
                    "credentials, or target localhost for testing."
                )

        if self.missing_image_policy not in ("skip", "fail"):
            raise ValueError(
                f"missing_image_policy must be 'skip' or 'fail', "
                f"got {self.missing_image_policy!r}"
            )
        if self.image_max_size_bytes <= 0:
            raise ValueError(f"image_max_size_bytes must be > 0, got {self.image_max_size_bytes}")
        if self.max_block_depth < 0:
            raise ValueError(f"max_block_depth must be >= 0, got {self.max_block_depth}")
        if self.action_max_attempts < 1:
            raise ValueError(f"action_max_attempts must be >= 1, got {self.action_max_attempts}")
        if self.action_timeout_ms <= 0:
            raise ValueError(f"action_timeout_ms must be > 0, got {self.action_timeout_ms}")
        if self.navigation_timeout_ms <= 0:
            raise ValueError(
                f"navigation_timeout_ms must be > 0, got {self.navigation_timeout_ms}"
            )
        if self.action_retry_base_delay < 0:
            raise ValueError(
                f"action_retry_base_delay must be >= 0, got {self.action_retry_base_delay}"
            )
        if self.action_retry_max_delay < 0:
            raise ValueError(
                f"action_retry_max_delay must be >= 0, got {self.action_retry_max_delay}"
            )
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    def __repr__(self) -> str:
        """Mask secrets to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                parts.append(f"{f.name}='{_mask(val)}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"NotePubConfig({', '.join(parts)})"
