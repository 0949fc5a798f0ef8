"""Tests for AsyncNotePublisher: path selection and both delivery paths."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from notepub import AsyncNotePublisher, NotePubConfig
from notepub.actions import ActionType
from notepub.document import nodes as n
from notepub.errors import (
    NotePubAuthError,
    NotePubConversionError,
    NotePubImageNotFoundError,
    NotePubImageSizeError,
)
from notepub.models import DeliveryPath, Document, PublishResult, RunState
from notepub.transport import AsyncTransport

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeAPI:
    """Minimal platform and block-source backend."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.blocks: dict[str, list[dict]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if self.status != 200:
            return httpx.Response(self.status, json={})
        if path.endswith("/v1/text_notes"):
            return httpx.Response(201, json={"data": {"id": 77, "key": "n77abc"}})
        if path.endswith("/draft_save"):
            return httpx.Response(200, json={"data": {"result": True}})
        if path.endswith("/note_eyecatch"):
            return httpx.Response(200, json={"data": {"url": "https://cdn/eye.png"}})
        if "/blocks/" in path:
            parent = path.split("/")[-2]
            return httpx.Response(200, json={"results": self.blocks[parent], "has_more": False})
        return httpx.Response(404, json={})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def transport_for(config, api: FakeAPI, base: str) -> AsyncTransport:
    client = httpx.AsyncClient(base_url=base, transport=httpx.MockTransport(api.handler))
    return AsyncTransport(config, base_url=base, client=client)


@pytest.fixture
def api():
    return FakeAPI()


@pytest.fixture
def executor():
    executor = MagicMock()
    executor.run = AsyncMock(return_value=PublishResult(
        status=RunState.DONE,
        path=DeliveryPath.UI,
        draft_key="nui1",
        edit_url="https://editor.note.com/notes/nui1/edit/",
    ))
    return executor


@pytest.fixture
def publisher(config, api, executor, tmp_path):
    config.image_base_dir = str(tmp_path)
    return AsyncNotePublisher(
        config,
        executor=executor,
        api_transport=transport_for(config, api, config.api_base_url),
        notion_transport=transport_for(config, api, config.notion_base_url),
    )


# =========================================================================
# Construction
# =========================================================================

class TestConstruction:
    @pytest.mark.asyncio
    async def test_config_from_kwargs(self):
        async with AsyncNotePublisher(session_cookie="c" * 12, headless=False) as pub:
            assert isinstance(pub.config, NotePubConfig)
            assert pub.config.headless is False

    @pytest.mark.asyncio
    async def test_block_source_headers(self, config):
        async with AsyncNotePublisher(config) as pub:
            headers = pub._notion_transport._client.headers
            assert headers["authorization"] == "Bearer secret_notion_9999"
            assert headers["notion-version"] == config.notion_version

    def test_invalid_kwargs(self):
        with pytest.raises(ValueError):
            AsyncNotePublisher(missing_image_policy="ignore")


# =========================================================================
# API path
# =========================================================================

class TestPublishHtml:
    @pytest.mark.asyncio
    async def test_text_only_goes_through_api(self, publisher, api, executor):
        result = await publisher.publish("# タイトル\n\n## 見出し\n本文")

        assert result.status is RunState.DONE
        assert result.path is DeliveryPath.API
        assert result.draft_id == "77"
        assert result.draft_key == "n77abc"
        assert result.edit_url == "https://editor.note.com/notes/n77abc/edit/"
        executor.run.assert_not_awaited()
        assert api.paths() == ["/api/v1/text_notes", "/api/v1/text_notes/draft_save"]

        created = json.loads(api.requests[0].content)
        assert created["name"] == "タイトル"
        saved = json.loads(api.requests[1].content)
        assert "<h2" in saved["body"] and "見出し</h2>" in saved["body"]
        assert "<script" not in saved["body"]

    @pytest.mark.asyncio
    async def test_existing_draft_not_recreated(self, publisher, api):
        result = await publisher.publish("本文", title="t", draft_id="55")
        assert api.paths() == ["/api/v1/text_notes/draft_save"]
        assert api.requests[0].url.params["id"] == "55"
        assert result.draft_key == "n55"

    @pytest.mark.asyncio
    async def test_failure_returns_failed_result(self, publisher, api):
        api.status = 401
        result = await publisher.publish("本文", title="t")
        assert result.status is RunState.FAILED
        assert not result.success
        assert isinstance(result.error, NotePubAuthError)

    @pytest.mark.asyncio
    async def test_script_is_never_sent(self, publisher, api):
        await publisher.publish_html("<script>alert(1)</script>\n\ntext", title="t")
        saved = json.loads(api.requests[-1].content)
        assert "<script" not in saved["body"].lower()


# =========================================================================
# UI path
# =========================================================================

class TestPublishUi:
    @pytest.mark.asyncio
    async def test_images_go_through_browser(self, publisher, api, executor, png_file):
        result = await publisher.publish("# T\n\n本文\n\n![図](photo.png)\n\n後")

        assert result.path is DeliveryPath.UI
        assert result.draft_key == "nui1"
        assert api.paths() == ["/api/v1/text_notes"]
        title, actions = executor.run.await_args.args
        assert title == "T"
        assert actions[0].type is ActionType.SET_COVER_IMAGE
        assert actions[0].payload["path"] == str(png_file.resolve())
        assert executor.run.await_args.kwargs["draft_key"] == "n77abc"
        assert executor.run.await_args.kwargs["draft_id"] == "77"

    @pytest.mark.asyncio
    async def test_existing_draft_key_forwarded(self, publisher, executor, png_file):
        await publisher.publish("![](photo.png)", title="t", draft_id="9")
        kwargs = executor.run.await_args.kwargs
        assert kwargs["draft_key"] == "n9"
        assert kwargs["draft_id"] == "9"

    @pytest.mark.asyncio
    async def test_existing_draft_not_recreated(self, publisher, api, png_file):
        await publisher.publish("![](photo.png)", title="t", draft_id="9")
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_failed_run_keeps_created_draft(self, publisher, executor, png_file):
        async def failed_run(title, actions, *, draft_key, session, draft_id):
            return PublishResult(
                status=RunState.FAILED,
                path=DeliveryPath.UI,
                draft_id=draft_id,
                draft_key=draft_key,
            )

        executor.run.side_effect = failed_run
        result = await publisher.publish("![](photo.png)", title="t")
        assert result.status is RunState.FAILED
        assert result.draft_id == "77"
        assert result.draft_key == "n77abc"

    @pytest.mark.asyncio
    async def test_draft_creation_failure_skips_browser(self, publisher, api, png_file):
        api.status = 401
        result = await publisher.publish("![](photo.png)", title="t")
        assert result.status is RunState.FAILED
        assert isinstance(result.error, NotePubAuthError)

    @pytest.mark.asyncio
    async def test_image_without_source_aborts_before_any_activity(
        self, publisher, api, executor, monkeypatch,
    ):
        localizer = MagicMock()
        monkeypatch.setattr("notepub.publisher.ImageLocalizer", localizer)
        document = Document(title="t", nodes=[
            n.image("https://example.com/a.png"),
            n.paragraph(n.spans("p")),
            n.image(""),
        ])
        result = await publisher.publish(document)

        assert result.status is RunState.FAILED
        assert isinstance(result.error, NotePubConversionError)
        localizer.assert_not_called()
        assert api.requests == []
        executor.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_image_warning_carried(self, publisher, executor):
        result = await publisher.publish("![](missing.png)", title="t")
        assert [w.code for w in result.warnings] == ["IMAGE_NOT_FOUND"]

    @pytest.mark.asyncio
    async def test_missing_image_fail_policy(self, publisher, config, executor):
        config.missing_image_policy = "fail"
        result = await publisher.publish("![](missing.png)", title="t")
        assert result.status is RunState.FAILED
        assert result.path is DeliveryPath.UI
        assert isinstance(result.error, NotePubImageNotFoundError)
        executor.run.assert_not_awaited()


# =========================================================================
# Block source
# =========================================================================

class TestReadBlocks:
    @pytest.mark.asyncio
    async def test_reads_nested_page(self, publisher, api):
        api.blocks = {
            "page1": [
                {
                    "id": "h",
                    "type": "heading_1",
                    "has_children": False,
                    "heading_1": {"rich_text": [{"type": "text", "plain_text": "見出し",
                                                 "text": {"content": "見出し"}}]},
                },
                {"id": "x", "type": "pdf", "has_children": False, "pdf": {}},
            ],
        }
        document = await publisher.read_blocks("page1", title="From blocks")
        assert document.title == "From blocks"
        assert document.nodes[0].type is n.NodeType.HEADING
        assert len(document.nodes) == 2

    def test_render_html(self, publisher):
        html = publisher.render_html(Document(title="t", nodes=[n.paragraph("x")]))
        assert html.endswith(">x</p>")


# =========================================================================
# Images
# =========================================================================

class TestCoverImage:
    @pytest.mark.asyncio
    async def test_set_cover(self, publisher, api, png_file):
        assert await publisher.set_cover_image("77", png_file) == "https://cdn/eye.png"
        assert api.paths() == ["/api/v1/image_upload/note_eyecatch"]

    @pytest.mark.asyncio
    async def test_oversized_rejected_without_request(self, publisher, api, config, tmp_path):
        big = tmp_path / "big.png"
        big.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * config.image_max_size_bytes)
        with pytest.raises(NotePubImageSizeError):
            await publisher.set_cover_image("77", big)
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_missing_file(self, publisher, tmp_path):
        with pytest.raises(NotePubImageNotFoundError):
            await publisher.set_cover_image("77", tmp_path / "none.png")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_closes_both_transports(self, config, executor):
        api_transport = MagicMock(close=AsyncMock())
        notion_transport = MagicMock(close=AsyncMock())
        async with AsyncNotePublisher(
            config,
            executor=executor,
            api_transport=api_transport,
            notion_transport=notion_transport,
        ):
            pass
        api_transport.close.assert_awaited_once()
        notion_transport.close.assert_awaited_once()
