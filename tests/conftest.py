"""Shared test fixtures for the notepub test suite."""

from __future__ import annotations

import pytest

from notepub.config import NotePubConfig
from notepub.document import BlockReader, MarkdownReader
from notepub.render import HtmlRenderer

PNG_HEADER = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class RecordingMetrics:
    """Metrics hook that keeps every call for assertions."""

    def __init__(self) -> None:
        self.increments: list[tuple[str, int, dict | None]] = []
        self.timings: list[tuple[str, float, dict | None]] = []
        self.gauges: list[tuple[str, float, dict | None]] = []

    def increment(self, name, value=1, tags=None):
        self.increments.append((name, value, tags))

    def timing(self, name, ms, tags=None):
        self.timings.append((name, ms, tags))

    def gauge(self, name, value, tags=None):
        self.gauges.append((name, value, tags))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.increments]


@pytest.fixture
def config() -> NotePubConfig:
    """Default test configuration with dummy secrets."""
    return NotePubConfig(
        session_cookie="session_cookie_value_1234",
        xsrf_token="xsrf_token_value_5678",
        notion_token="secret_notion_9999",
        action_retry_base_delay=0.0,
        action_retry_max_delay=0.0,
        retry_jitter=False,
        settle_delay_ms=0,
    )


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def markdown_reader() -> MarkdownReader:
    return MarkdownReader()


@pytest.fixture
def block_reader(config: NotePubConfig) -> BlockReader:
    return BlockReader(config)


@pytest.fixture
def renderer() -> HtmlRenderer:
    """Renderer with deterministic element identifiers."""
    counter = iter(range(1_000_000))
    return HtmlRenderer(id_factory=lambda: f"id{next(counter)}")


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_HEADER


@pytest.fixture
def png_file(tmp_path, png_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes)
    return path
