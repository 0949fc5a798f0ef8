"""Make every image in a document available as a local file.

The browser editor can only attach files from disk.  Before a UI run,
:class:`ImageLocalizer` rewrites each image node's source to an absolute
local path:

* local paths are resolved against ``config.image_base_dir`` and must
  stay inside it,
* remote URLs are downloaded into ``config.image_download_dir`` (or a
  temporary directory),
* data URIs are decoded to files in the same directory.

Every file is validated for size and type on the way.  A source that
cannot be localized is handled by ``config.missing_image_policy``: with
``"skip"`` the node is left as it was and a :class:`ConversionWarning` is
recorded (the executor then skips the action), with ``"fail"`` the error
propagates.
"""

from __future__ import annotations

import dataclasses
import hashlib
import shutil
import tempfile
from pathlib import Path

import httpx

from notepub.config import NotePubConfig
from notepub.document.nodes import DocNode, NodeType
from notepub.errors import (
    NotePubImageError,
    NotePubImageNotFoundError,
    NotePubNetworkError,
)
from notepub.models import ConversionWarning, ImageSourceType
from notepub.observability import NoopMetricsHook, get_logger

from .detect import detect_image_source
from .validate import extension_for, parse_data_uri, validate_image

log = get_logger("notepub.image")


class ImageLocalizer:
    """Resolve, download and validate document images.

    Parameters
    ----------
    config:
        Image limits, directories and the missing-image policy.
    client:
        HTTP client for remote downloads.  One is created (and closed by
        :meth:`close`) when omitted.
    """

    def __init__(self, config: NotePubConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
            follow_redirects=True,
        )
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._temp_dir: Path | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def localize(
        self,
        nodes: list[DocNode],
    ) -> tuple[list[DocNode], list[ConversionWarning]]:
        """Return *nodes* with image sources replaced by local paths.

        Raises
        ------
        NotePubImageError
            With ``missing_image_policy="fail"``, for the first image that
            cannot be localized.
        NotePubNetworkError
            With ``missing_image_policy="fail"``, when a download fails at
            the transport level.
        """
        warnings: list[ConversionWarning] = []
        result: list[DocNode] = []
        for node in nodes:
            if node.type != NodeType.IMAGE:
                result.append(node)
                continue
            try:
                path = await self.localize_source(node.content)
            except (NotePubImageError, NotePubNetworkError) as exc:
                if self._config.missing_image_policy == "fail":
                    raise
                log.warning(
                    "Image could not be localized",
                    extra={"extra_fields": {
                        "op": "localize_image",
                        "code": str(exc.code),
                        "error": exc.message,
                    }},
                )
                warnings.append(ConversionWarning(
                    code=str(exc.code),
                    message=exc.message,
                    context={"src": node.content[:200]},
                ))
                self._metrics.increment(
                    "notepub.conversion_warnings_total",
                    tags={"code": str(exc.code)},
                )
                result.append(node)
                continue
            result.append(dataclasses.replace(node, content=str(path)))
        return result, warnings

    async def localize_source(self, src: str) -> Path:
        """Return a validated local file for a single image source."""
        source_type = detect_image_source(src)
        if source_type == ImageSourceType.LOCAL_FILE:
            path = self.resolve_local_path(src)
            validate_image(path.read_bytes(), path.name, self._config)
            return path
        if source_type == ImageSourceType.DATA_URI:
            _, data = parse_data_uri(src)
            mime_type = validate_image(data, "data-uri", self._config)
            return self._write(src, data, mime_type)
        if source_type == ImageSourceType.EXTERNAL_URL:
            return await self._download(src)
        raise NotePubImageNotFoundError(
            message="Image source is empty",
            context={"src": src, "resolved_path": None},
        )

    def resolve_local_path(self, src: str) -> Path:
        """Resolve a local image path.

        Relative paths are joined to ``config.image_base_dir`` and must not
        escape it.

        Raises
        ------
        NotePubImageNotFoundError
            If the path escapes the base directory or no file exists.
        """
        raw = Path(src.strip()).expanduser()
        base = self._config.image_base_dir
        if raw.is_absolute() or base is None:
            resolved = raw.resolve()
        else:
            base_path = Path(base).expanduser().resolve()
            resolved = (base_path / raw).resolve()
            if not resolved.is_relative_to(base_path):
                raise NotePubImageNotFoundError(
                    message=f"Image path escapes the base directory: {src}",
                    context={"src": src, "resolved_path": str(resolved)},
                )
        if not resolved.is_file():
            raise NotePubImageNotFoundError(
                message=f"Image file not found: {src}",
                context={"src": src, "resolved_path": str(resolved)},
            )
        return resolved

    async def close(self) -> None:
        """Close the HTTP client (if owned) and remove the temporary directory."""
        if self._owns_client:
            await self._client.aclose()
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None

    async def __aenter__(self) -> ImageLocalizer:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _download(self, url: str) -> Path:
        try:
            response = await self._client.get(url)
        except httpx.TransportError as exc:
            raise NotePubNetworkError(
                message=f"Network error downloading image: {exc}",
                context={"url": url[:200]},
                cause=exc,
            ) from exc
        if response.status_code != 200:
            raise NotePubImageError(
                message=f"Image download returned {response.status_code}",
                context={"src": url[:200], "status_code": response.status_code},
            )
        mime_type = validate_image(response.content, url.split("?", 1)[0], self._config)
        log.debug(
            "Remote image downloaded",
            extra={"extra_fields": {
                "op": "localize_image",
                "mime": mime_type,
                "size_bytes": len(response.content),
            }},
        )
        return self._write(url, response.content, mime_type)

    def _write(self, key: str, data: bytes, mime_type: str) -> Path:
        name = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16] + extension_for(mime_type)
        path = self._download_dir() / name
        path.write_bytes(data)
        return path

    def _download_dir(self) -> Path:
        if self._config.image_download_dir:
            directory = Path(self._config.image_download_dir).expanduser()
            directory.mkdir(parents=True, exist_ok=True)
            return directory
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="notepub-"))
        return self._temp_dir
