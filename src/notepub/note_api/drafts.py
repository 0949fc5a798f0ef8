"""Draft API wrappers for the platform.

Provides :class:`AsyncDraftAPI`, a thin wrapper around the
``/v1/text_notes`` endpoints and the cover-image endpoint.  Every call
takes the :class:`SessionContext` explicitly.
"""

from __future__ import annotations

from typing import Any

from notepub.automation.session import SessionContext
from notepub.errors import NotePubValidationError
from notepub.models import DraftResult
from notepub.observability import get_logger
from notepub.transport import AsyncTransport

log = get_logger("notepub.note_api.drafts")

DEFAULT_DRAFT_TITLE = "無題"


def draft_key_for(draft_id: str) -> str:
    """Public key for a numeric draft id (``n`` prefix added once)."""
    return draft_id if draft_id.startswith("n") else f"n{draft_id}"


class AsyncDraftAPI:
    """Asynchronous wrapper for the platform's draft endpoints.

    Parameters
    ----------
    transport:
        Transport bound to the platform API root.
    editor_base_url:
        Root used to build ``DraftResult.edit_url``.
    """

    def __init__(
        self,
        transport: AsyncTransport,
        editor_base_url: str = "https://editor.note.com",
    ) -> None:
        self._transport = transport
        self._editor_base_url = editor_base_url.rstrip("/")

    def edit_url(self, key: str) -> str:
        return f"{self._editor_base_url}/notes/{draft_key_for(key)}/edit/"

    async def create(self, session: SessionContext, title: str = "") -> DraftResult:
        """Create an empty draft.

        Parameters
        ----------
        session:
            Session to authenticate with.
        title:
            Draft title; ``"無題"`` when empty.

        Returns
        -------
        DraftResult

        Raises
        ------
        NotePubValidationError
            If the response carries no draft id.
        """
        payload = {
            "body": "<p></p>",
            "body_length": 0,
            "name": title or DEFAULT_DRAFT_TITLE,
            "index": False,
            "is_lead_form": False,
        }
        response = await self._transport.request(
            "POST",
            "/v1/text_notes",
            json=payload,
            headers=session.api_headers(),
            secrets=session.secrets(),
        )
        data = _data(response)
        draft_id = data.get("id")
        if draft_id is None:
            raise NotePubValidationError(
                message="Draft creation response has no id",
                context={"body": response, "path": "/v1/text_notes"},
            )
        draft_id = str(draft_id)
        key = str(data.get("key") or draft_key_for(draft_id))
        log.info(
            "Draft created",
            extra={"extra_fields": {"op": "create_draft", "draft_id": draft_id, "key": key}},
        )
        return DraftResult(draft_id=draft_id, key=key, edit_url=self.edit_url(key))

    async def save(
        self,
        session: SessionContext,
        draft_id: str,
        title: str,
        body_html: str,
    ) -> dict[str, Any]:
        """Overwrite the draft's title and body.

        Parameters
        ----------
        session:
            Session to authenticate with.
        draft_id:
            Numeric id returned by :meth:`create`.
        title:
            Draft title; ``"無題"`` when empty.
        body_html:
            Sanitized HTML body.

        Returns
        -------
        dict
            The raw response.
        """
        payload = {
            "body": body_html,
            "body_length": len(body_html),
            "name": title or DEFAULT_DRAFT_TITLE,
            "index": False,
            "is_lead_form": False,
        }
        return await self._transport.request(
            "POST",
            "/v1/text_notes/draft_save",
            params={"id": draft_id, "is_temp_saved": "true"},
            json=payload,
            headers=session.api_headers(),
            secrets=session.secrets(),
        )

    async def set_cover_image(
        self,
        session: SessionContext,
        draft_id: str,
        filename: str,
        data: bytes,
        mime_type: str,
    ) -> str:
        """Upload *data* as the draft's cover image and return its URL.

        The caller validates the image first.

        Raises
        ------
        NotePubValidationError
            If the response carries no URL.
        """
        headers = session.api_headers()
        headers["Referer"] = self.edit_url(draft_id)
        response = await self._transport.request(
            "POST",
            "/v1/image_upload/note_eyecatch",
            data={"note_id": draft_id},
            files={"file": (filename, data, mime_type)},
            headers=headers,
            secrets=session.secrets(),
        )
        url = _data(response).get("url")
        if not url:
            raise NotePubValidationError(
                message="Cover image response has no url",
                context={"body": response, "path": "/v1/image_upload/note_eyecatch"},
            )
        return str(url)


def _data(response: dict[str, Any]) -> dict[str, Any]:
    data = response.get("data")
    return data if isinstance(data, dict) else {}
