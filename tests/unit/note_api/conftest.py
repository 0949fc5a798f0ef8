"""Fixtures for the platform API wrappers."""

from __future__ import annotations

import httpx
import pytest

from notepub.automation.session import Credential, SessionContext
from notepub.transport import AsyncTransport


class MockAPI:
    """Routes requests to canned responses and records what was sent."""

    def __init__(self) -> None:
        self.routes: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, status: int = 200, json=None) -> None:
        self.routes[path] = httpx.Response(status, json=json if json is not None else {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.host}{request.url.path}"
        for path, response in self.routes.items():
            if key.endswith(path):
                return response
        return httpx.Response(404, json={"error": "no route"})


@pytest.fixture
def mock_api() -> MockAPI:
    return MockAPI()


@pytest.fixture
def api_transport(config, mock_api) -> AsyncTransport:
    client = httpx.AsyncClient(
        base_url=config.api_base_url,
        transport=httpx.MockTransport(mock_api.handler),
    )
    return AsyncTransport(config, base_url=config.api_base_url, client=client)


@pytest.fixture
def session(config) -> SessionContext:
    return SessionContext("default", Credential(config.session_cookie, config.xsrf_token))
