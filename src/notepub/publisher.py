"""Publish Markdown or block-source pages to note.com drafts.

:class:`AsyncNotePublisher` wires the readers, the HTML renderer, the
action compiler, the automation executor and the API wrappers together.
Each document goes down one of two delivery paths:

* **API** -- documents without images are rendered to sanitized HTML and
  saved through the JSON draft endpoints.
* **UI** -- documents with at least one image are compiled to editor
  actions and replayed in a browser session, because inline images can
  only be placed through the editor.

Usage::

    import asyncio
    from notepub import AsyncNotePublisher

    async def main():
        async with AsyncNotePublisher(session_cookie="...", xsrf_token="...") as pub:
            result = await pub.publish("# Title\\n\\nBody text")
            print(result.status, result.edit_url)

    asyncio.run(main())
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from notepub.actions import ActionCompiler
from notepub.automation import (
    AutomationExecutor,
    CredentialProvider,
    SessionContext,
    StaticCredentialProvider,
)
from notepub.config import NotePubConfig
from notepub.document import BlockReader, MarkdownReader, has_images
from notepub.errors import NotePubError, NotePubImageNotFoundError
from notepub.image import ImageLocalizer, validate_image
from notepub.models import (
    DeliveryPath,
    Document,
    DraftResult,
    PublishResult,
    RunState,
)
from notepub.note_api import AsyncDraftAPI, AsyncUploadAPI, draft_key_for
from notepub.notion_api import AsyncBlockAPI
from notepub.observability import get_logger
from notepub.render import HtmlRenderer
from notepub.transport import AsyncTransport

log = get_logger("notepub.publisher")


class AsyncNotePublisher:
    """Asynchronous publisher for note.com drafts.

    Parameters
    ----------
    config:
        Full configuration.  When omitted, one is built from *kwargs*.
    credentials:
        Session source.  Defaults to :class:`StaticCredentialProvider`
        over the config's cookie and token.
    executor:
        Pre-built automation executor, mainly for tests.
    api_transport:
        Pre-built transport for the platform API, mainly for tests.
    notion_transport:
        Pre-built transport for the block source, mainly for tests.
    **kwargs:
        Forwarded to :class:`NotePubConfig` when *config* is omitted.
    """

    def __init__(
        self,
        config: NotePubConfig | None = None,
        *,
        credentials: CredentialProvider | None = None,
        executor: AutomationExecutor | None = None,
        api_transport: AsyncTransport | None = None,
        notion_transport: AsyncTransport | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config if config is not None else NotePubConfig(**kwargs)
        cfg = self._config
        self._credentials = credentials or StaticCredentialProvider(cfg)
        self._api_transport = api_transport or AsyncTransport(
            cfg,
            base_url=cfg.api_base_url,
            secrets=(cfg.session_cookie, cfg.xsrf_token),
        )
        self._notion_transport = notion_transport or AsyncTransport(
            cfg,
            base_url=cfg.notion_base_url,
            headers={
                "Authorization": f"Bearer {cfg.notion_token}",
                "Notion-Version": cfg.notion_version,
                "Content-Type": "application/json",
            },
            secrets=(cfg.notion_token,),
        )
        self._drafts = AsyncDraftAPI(self._api_transport, cfg.editor_base_url)
        self._uploads = AsyncUploadAPI(self._api_transport, cfg)
        self._blocks = AsyncBlockAPI(self._notion_transport)
        self._markdown = MarkdownReader()
        self._renderer = HtmlRenderer()
        self._compiler = ActionCompiler(hoist_cover=cfg.hoist_cover_image)
        self._executor = executor or AutomationExecutor(cfg, self._credentials)

    @property
    def config(self) -> NotePubConfig:
        return self._config

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_markdown(self, text: str, title: str | None = None) -> Document:
        """Read Markdown (front matter and ``# `` title line allowed)."""
        return self._markdown.read_document(text, title=title)

    async def read_blocks(self, page_id: str, title: str = "") -> Document:
        """Fetch a page's block tree and read it into a :class:`Document`.

        Parameters
        ----------
        page_id:
            Block-source page (or block) identifier.
        title:
            Title for the resulting document.

        Returns
        -------
        Document
            Unsupported blocks become placeholder nodes; any warnings they
            raised are attached.
        """
        blocks = await self._blocks.get_children_recursive(
            page_id, max_depth=self._config.max_block_depth,
        )
        reader = BlockReader(self._config)
        nodes = reader.read(blocks)
        return Document(title=title, nodes=nodes, warnings=list(reader.warnings))

    def render_html(self, document: Document) -> str:
        return self._renderer.render_nodes(document.nodes)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def session(self) -> SessionContext:
        """Current session built from the credential provider."""
        credential = await self._credentials.get_credential()
        return SessionContext(self._config.account_id, credential)

    async def create_draft(self, title: str = "") -> DraftResult:
        """Create an empty draft and return its id, key and edit URL."""
        return await self._drafts.create(await self.session(), title)

    async def publish(
        self,
        source: Document | str,
        *,
        title: str | None = None,
        draft_id: str | None = None,
    ) -> PublishResult:
        """Publish *source* through the delivery path it needs.

        Parameters
        ----------
        source:
            A :class:`Document`, or Markdown text to read first.
        title:
            Overrides the document title.
        draft_id:
            Existing draft to overwrite.  A new draft is created when
            ``None``.

        Returns
        -------
        PublishResult
            Always returned, with ``FAILED`` status and ``error`` set when a
            step fails.  Cancellation propagates.
        """
        document = self._as_document(source, title)
        if has_images(document.nodes):
            return await self.publish_ui(document, draft_id=draft_id)
        return await self.publish_html(document, draft_id=draft_id)

    async def publish_html(
        self,
        source: Document | str,
        *,
        title: str | None = None,
        draft_id: str | None = None,
    ) -> PublishResult:
        """Render *source* to HTML and save it through the draft API."""
        document = self._as_document(source, title)
        result = PublishResult(
            status=RunState.IDLE,
            path=DeliveryPath.API,
            draft_id=draft_id,
            warnings=list(document.warnings),
        )
        try:
            session = await self.session()
            if draft_id is None:
                draft = await self._drafts.create(session, document.title)
                result.draft_id = draft.draft_id
                result.draft_key = draft.key
            else:
                result.draft_key = draft_key_for(draft_id)
            result.edit_url = self._drafts.edit_url(result.draft_key)
            body_html = self.render_html(document)
            await self._drafts.save(session, result.draft_id, document.title, body_html)
        except NotePubError as exc:
            return self._failed(result, exc)
        result.status = RunState.DONE
        log.info(
            "Draft saved",
            extra={"extra_fields": {
                "op": "publish",
                "path": DeliveryPath.API.value,
                "draft_id": result.draft_id,
                "key": result.draft_key,
            }},
        )
        return result

    async def publish_ui(
        self,
        source: Document | str,
        *,
        title: str | None = None,
        draft_id: str | None = None,
    ) -> PublishResult:
        """Compile *source* to editor actions and replay them in a browser.

        The draft is created through the API before the browser opens, so a
        failed run leaves a draft that a retry with ``draft_id`` overwrites.
        """
        document = self._as_document(source, title)
        result = PublishResult(
            status=RunState.IDLE,
            path=DeliveryPath.UI,
            draft_id=draft_id,
            warnings=list(document.warnings),
        )
        try:
            # Unresolvable images abort before any download or draft exists.
            self._compiler.check(document.nodes)
            session = await self.session()
            if draft_id is None:
                draft = await self._drafts.create(session, document.title)
                result.draft_id = draft.draft_id
                result.draft_key = draft.key
                result.edit_url = draft.edit_url
            else:
                result.draft_key = draft_key_for(draft_id)
                result.edit_url = self._drafts.edit_url(result.draft_key)
            async with ImageLocalizer(self._config) as localizer:
                nodes, image_warnings = await localizer.localize(document.nodes)
                result.warnings.extend(image_warnings)
                actions = self._compiler.compile(nodes)
                run = await self._executor.run(
                    document.title,
                    actions,
                    draft_key=result.draft_key,
                    session=session,
                    draft_id=result.draft_id,
                )
        except NotePubError as exc:
            return self._failed(result, exc)
        run.warnings = result.warnings + run.warnings
        log.info(
            "Browser run finished",
            extra={"extra_fields": {
                "op": "publish",
                "path": DeliveryPath.UI.value,
                "status": run.status.value,
                "key": run.draft_key,
                "failed_actions": len(run.failed_actions),
            }},
        )
        return run

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def upload_image(self, path: str | Path) -> str:
        """Upload a local image and return its public URL."""
        return await self._uploads.upload_file(await self.session(), path)

    async def set_cover_image(self, draft_id: str, path: str | Path) -> str:
        """Validate a local image and set it as the draft's cover.

        Raises
        ------
        NotePubImageNotFoundError
            If *path* is not a file.
        NotePubImageSizeError, NotePubImageTypeError
            Before any network call, if the image is not acceptable.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise NotePubImageNotFoundError(
                message=f"Image file not found: {path}",
                context={"src": str(path), "resolved_path": str(file_path.resolve())},
            )
        data = file_path.read_bytes()
        mime_type = validate_image(data, file_path.name, self._config)
        return await self._drafts.set_cover_image(
            await self.session(), draft_id, file_path.name, data, mime_type,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close both HTTP transports."""
        await self._api_transport.close()
        await self._notion_transport.close()

    async def __aenter__(self) -> AsyncNotePublisher:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _as_document(self, source: Document | str, title: str | None) -> Document:
        if isinstance(source, Document):
            if title is not None:
                return Document(title=title, nodes=source.nodes, warnings=source.warnings)
            return source
        return self.read_markdown(source, title=title)

    def _failed(self, result: PublishResult, exc: NotePubError) -> PublishResult:
        result.status = RunState.FAILED
        result.error = exc
        log.error(
            "Publish failed",
            extra={"extra_fields": {
                "op": "publish",
                "path": result.path.value,
                "draft_id": result.draft_id,
                "code": str(exc.code),
                "error": exc.message,
            }},
        )
        return result
