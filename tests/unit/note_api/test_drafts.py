"""Tests for AsyncDraftAPI."""

import json

import pytest

from notepub.errors import NotePubAuthError, NotePubValidationError
from notepub.note_api import AsyncDraftAPI, draft_key_for


@pytest.fixture
def drafts(api_transport):
    return AsyncDraftAPI(api_transport, "https://editor.note.com/")


class TestDraftKey:
    def test_prefix_added(self):
        assert draft_key_for("123") == "n123"

    def test_prefix_not_doubled(self):
        assert draft_key_for("n123") == "n123"

    def test_edit_url(self, drafts):
        assert drafts.edit_url("123") == "https://editor.note.com/notes/n123/edit/"


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_with_placeholder_body(self, drafts, mock_api, session):
        mock_api.add("/v1/text_notes", json={"data": {"id": 42, "key": "nabc"}})
        result = await drafts.create(session, "タイトル")

        assert result.draft_id == "42"
        assert result.key == "nabc"
        assert result.edit_url == "https://editor.note.com/notes/nabc/edit/"
        sent = json.loads(mock_api.requests[0].content)
        assert sent == {
            "body": "<p></p>",
            "body_length": 0,
            "name": "タイトル",
            "index": False,
            "is_lead_form": False,
        }

    @pytest.mark.asyncio
    async def test_empty_title_uses_default(self, drafts, mock_api, session):
        mock_api.add("/v1/text_notes", json={"data": {"id": 1}})
        result = await drafts.create(session, "")
        assert json.loads(mock_api.requests[0].content)["name"] == "無題"
        assert result.key == "n1"

    @pytest.mark.asyncio
    async def test_session_headers(self, drafts, mock_api, session, config):
        mock_api.add("/v1/text_notes", json={"data": {"id": 1}})
        await drafts.create(session)
        headers = mock_api.requests[0].headers
        assert config.session_cookie in headers["cookie"]
        assert headers["x-xsrf-token"] == config.xsrf_token

    @pytest.mark.asyncio
    async def test_missing_id(self, drafts, mock_api, session):
        mock_api.add("/v1/text_notes", json={"data": {}})
        with pytest.raises(NotePubValidationError):
            await drafts.create(session)

    @pytest.mark.asyncio
    async def test_expired_session(self, drafts, mock_api, session):
        mock_api.add("/v1/text_notes", status=401)
        with pytest.raises(NotePubAuthError):
            await drafts.create(session)


class TestSave:
    @pytest.mark.asyncio
    async def test_save_payload(self, drafts, mock_api, session):
        mock_api.add("/v1/text_notes/draft_save", json={"data": {"result": True}})
        body = "<p>本文</p>"
        await drafts.save(session, "42", "t", body)

        request = mock_api.requests[0]
        assert request.url.params["id"] == "42"
        assert request.url.params["is_temp_saved"] == "true"
        sent = json.loads(request.content)
        assert sent["body"] == body
        assert sent["body_length"] == len(body)
        assert sent["name"] == "t"


class TestCoverImage:
    @pytest.mark.asyncio
    async def test_upload(self, drafts, mock_api, session, png_bytes):
        mock_api.add("/v1/image_upload/note_eyecatch", json={"data": {"url": "https://cdn/e.png"}})
        url = await drafts.set_cover_image(session, "42", "e.png", png_bytes, "image/png")

        assert url == "https://cdn/e.png"
        request = mock_api.requests[0]
        assert request.headers["referer"] == "https://editor.note.com/notes/n42/edit/"
        assert b'name="note_id"' in request.content
        assert b'filename="e.png"' in request.content

    @pytest.mark.asyncio
    async def test_missing_url(self, drafts, mock_api, session, png_bytes):
        mock_api.add("/v1/image_upload/note_eyecatch", json={"data": {}})
        with pytest.raises(NotePubValidationError):
            await drafts.set_cover_image(session, "42", "e.png", png_bytes, "image/png")
