"""Async HTTP transport shared by the platform and block-source clients.

Request lifecycle:

1. Send the request with the per-call headers.
2. On ``2xx`` -- return the parsed JSON body (``{}`` when empty or not
   JSON, e.g. a ``204`` from object storage).
3. On any other status -- raise the matching typed error immediately,
   with the original status in ``context``.
4. On a transport failure -- raise :class:`NotePubNetworkError`.

There are no internal retries.  Errors marked ``transient`` may be retried
by the caller.
"""

from __future__ import annotations

import json as _json
import sys
import time
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx

from notepub.config import NotePubConfig
from notepub.errors import (
    NotePubAuthError,
    NotePubNetworkError,
    NotePubNotFoundError,
    NotePubPermissionError,
    NotePubRateLimitError,
    NotePubServerError,
    NotePubValidationError,
)
from notepub.observability import NoopMetricsHook, get_logger
from notepub.utils.redact import redact

log = get_logger("notepub.transport")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    """Raise the :class:`NotePubError` subclass matching a non-2xx status."""
    status = response.status_code
    body = _response_body(response)
    detail = body if isinstance(body, str) else _json.dumps(body, ensure_ascii=False)[:500]
    where = f"{method} {path}"

    if status == 400:
        raise NotePubValidationError(
            message=f"Validation error on {where}: {detail}",
            context={"status_code": status, "body": body, "path": path},
        )
    if status == 401:
        raise NotePubAuthError(
            message=f"Authentication failed on {where}",
            context={"status_code": status, "url": path},
        )
    if status == 403:
        raise NotePubPermissionError(
            message=f"Permission denied on {where}",
            context={"status_code": status, "operation": where},
        )
    if status == 404:
        raise NotePubNotFoundError(
            message=f"Resource not found on {where}",
            context={"status_code": status, "path": path},
        )
    if status == 429:
        raise NotePubRateLimitError(
            message=f"Rate limited on {where}",
            context={"status_code": status, "retry_after_seconds": _parse_retry_after(response)},
        )
    if status >= 500:
        raise NotePubServerError(
            message=f"Server error {status} on {where}",
            context={"status_code": status, "path": path},
        )
    raise NotePubValidationError(
        message=f"Client error {status} on {where}: {detail}",
        context={"status_code": status, "body": body, "path": path},
    )


def _dump_payload(
    method: str,
    url: str,
    headers: dict[str, str] | None,
    payload: Any,
    response_status: int | None,
    response_body: Any,
    secrets: Iterable[str],
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {"method": method, "url": url}
    if headers:
        dump["request_headers"] = dict(headers)
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(
        _json.dumps(redact(dump, secrets), indent=2, default=str, ensure_ascii=False),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class AsyncTransport:
    """Asynchronous HTTP transport with typed errors, metrics and dumps.

    Parameters
    ----------
    config:
        Supplies the timeout, proxy, metrics hook and debug flags.
    base_url:
        Root that relative request paths are joined to.  Absolute URLs
        (pre-signed upload targets) bypass it.
    headers:
        Headers sent with every request.  Session headers are passed per
        call instead so they never reach third-party hosts.
    secrets:
        Values scrubbed from debug dumps in addition to the key-based
        redaction rules.
    client:
        Pre-built ``httpx.AsyncClient``, mainly for tests.
    """

    def __init__(
        self,
        config: NotePubConfig,
        *,
        base_url: str,
        headers: dict[str, str] | None = None,
        secrets: Iterable[str] = (),
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._secrets = tuple(s for s in secrets if s)
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
        )

    # -- public API --------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        secrets: Iterable[str] = (),
        **kwargs: Any,
    ) -> dict:
        """Execute one HTTP request and return the parsed JSON body.

        Parameters
        ----------
        method:
            HTTP method.
        path:
            Path relative to the base URL, or an absolute URL.
        secrets:
            Extra values to scrub from this call's debug dump.
        **kwargs:
            Passed to ``httpx.AsyncClient.request`` (``json``, ``params``,
            ``data``, ``files``, ``headers``).

        Raises
        ------
        NotePubError
            The subclass matching the status, or
            :class:`NotePubNetworkError` on a transport failure.
        """
        tags = {"method": method, "path": _metric_path(path)}
        t0 = time.monotonic()
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            self._metrics.increment("notepub.requests_total", tags={**tags, "status": "error"})
            log.warning(
                "Request network error",
                extra={"extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": tags["path"],
                    "error": str(exc),
                }},
            )
            raise NotePubNetworkError(
                message=f"Network error on {method} {tags['path']}: {exc}",
                context={"url": tags["path"]},
                cause=exc,
            ) from exc
        elapsed_ms = (time.monotonic() - t0) * 1000

        status_tags = {**tags, "status": str(response.status_code)}
        self._metrics.increment("notepub.requests_total", tags=status_tags)
        self._metrics.timing("notepub.request_duration_ms", elapsed_ms, tags=status_tags)

        if self._config.debug_dump_payload:
            _dump_payload(
                method,
                tags["path"],
                kwargs.get("headers"),
                kwargs.get("json", kwargs.get("data")),
                response.status_code,
                _response_body(response),
                (*self._secrets, *secrets),
            )

        if not 200 <= response.status_code < 300:
            log.warning(
                "Request rejected",
                extra={"extra_fields": {
                    "op": "request",
                    "method": method,
                    "path": tags["path"],
                    "status_code": response.status_code,
                }},
            )
            _raise_for_status(response, method, tags["path"])

        if response.status_code == 204 or not response.content:
            return {}
        try:
            result = response.json()
        except ValueError:
            return {}
        return result if isinstance(result, dict) else {"data": result}

    async def paginate(self, path: str, **kwargs: Any) -> AsyncIterator[dict]:
        """Follow ``has_more`` / ``next_cursor`` on a GET list endpoint."""
        params: dict[str, Any] = dict(kwargs.pop("params", {}) or {})
        params["page_size"] = 100
        cursor: str | None = None

        while True:
            if cursor is not None:
                params["start_cursor"] = cursor
            else:
                params.pop("start_cursor", None)
            data = await self.request("GET", path, params=dict(params), **kwargs)
            for item in data.get("results", []):
                yield item

            if not data.get("has_more", False):
                break
            cursor = data.get("next_cursor")
            if cursor is None:
                break

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


def _metric_path(path: str) -> str:
    # Pre-signed URLs carry signatures in the query string.
    return path.split("?", 1)[0]
