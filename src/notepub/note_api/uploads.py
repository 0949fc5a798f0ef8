"""Two-step image upload.

1. Ask the platform for a pre-signed target
   (``POST /v3/images/upload/presigned_post``).
2. Post the file directly to the storage ``action`` URL with the signed
   fields, in the order given, followed by the file.

Images are validated before step 1, so an oversized or disallowed file
never causes a network call.
"""

from __future__ import annotations

from pathlib import Path

from notepub.automation.session import SessionContext
from notepub.config import NotePubConfig
from notepub.errors import NotePubImageNotFoundError, NotePubUploadError
from notepub.image.validate import validate_image
from notepub.models import UploadTarget
from notepub.observability import NoopMetricsHook, get_logger
from notepub.transport import AsyncTransport

log = get_logger("notepub.note_api.uploads")


class AsyncUploadAPI:
    """Asynchronous wrapper for the platform's image upload flow.

    Parameters
    ----------
    transport:
        Transport bound to the platform API root.  The direct upload uses
        the same transport with an absolute URL and no session headers.
    config:
        Supplies the image limits and the metrics hook.
    """

    def __init__(self, transport: AsyncTransport, config: NotePubConfig) -> None:
        self._transport = transport
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def request_target(self, session: SessionContext, filename: str) -> UploadTarget:
        """Obtain a pre-signed upload target for *filename*.

        Raises
        ------
        NotePubUploadError
            If the response lacks ``url`` or ``action``.
        """
        response = await self._transport.request(
            "POST",
            "/v3/images/upload/presigned_post",
            files={"filename": (None, filename)},
            headers=session.api_headers(),
            secrets=session.secrets(),
        )
        data = response.get("data")
        if not isinstance(data, dict) or not data.get("url") or not data.get("action"):
            raise NotePubUploadError(
                message="Pre-signed upload response is missing url or action",
                context={"step": "request_target", "filename": filename, "response": response},
            )
        post = data.get("post") or {}
        fields = {str(k): str(v) for k, v in post.items()} if isinstance(post, dict) else {}
        return UploadTarget(url=str(data["url"]), action=str(data["action"]), fields=fields)

    async def upload(
        self,
        target: UploadTarget,
        filename: str,
        data: bytes,
        mime_type: str,
    ) -> str:
        """Post the file to *target* and return its public URL."""
        await self._transport.request(
            "POST",
            target.action,
            data=dict(target.fields),
            files={"file": (filename, data, mime_type)},
        )
        return target.url

    async def upload_image(
        self,
        session: SessionContext,
        filename: str,
        data: bytes,
    ) -> str:
        """Validate, then run both upload steps.  Returns the public URL.

        Raises
        ------
        NotePubImageSizeError
            If *data* is larger than the configured limit.
        NotePubImageTypeError
            If the type is not allowed.
        """
        mime_type = validate_image(data, filename, self._config)
        target = await self.request_target(session, filename)
        url = await self.upload(target, filename, data, mime_type)
        self._metrics.increment("notepub.uploads_total", tags={"mime": mime_type})
        log.info(
            "Image uploaded",
            extra={"extra_fields": {
                "op": "upload_image",
                "image_filename": filename,
                "size_bytes": len(data),
                "mime": mime_type,
            }},
        )
        return url

    async def upload_file(self, session: SessionContext, path: str | Path) -> str:
        """Read and upload a local file.  See :meth:`upload_image`."""
        file_path = Path(path)
        if not file_path.is_file():
            raise NotePubImageNotFoundError(
                message=f"Image file not found: {path}",
                context={"src": str(path), "resolved_path": str(file_path.resolve())},
            )
        return await self.upload_image(session, file_path.name, file_path.read_bytes())

