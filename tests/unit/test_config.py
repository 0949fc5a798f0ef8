"""Tests for NotePubConfig validation and secret masking."""

import pytest

from notepub.config import DEFAULT_UPLOAD_MIMES, MAX_IMAGE_BYTES, NotePubConfig


class TestDefaults:
    def test_defaults(self):
        cfg = NotePubConfig()
        assert cfg.image_max_size_bytes == MAX_IMAGE_BYTES == 10 * 1024 * 1024
        assert cfg.image_allowed_mimes == DEFAULT_UPLOAD_MIMES
        assert cfg.missing_image_policy == "skip"
        assert cfg.action_max_attempts == 3
        assert cfg.headless is True
        assert cfg.hoist_cover_image is True
        assert cfg.metrics is None

    def test_mime_list_not_shared(self):
        first, second = NotePubConfig(), NotePubConfig()
        first.image_allowed_mimes.append("image/bmp")
        assert "image/bmp" not in second.image_allowed_mimes


class TestValidation:
    @pytest.mark.parametrize("field", ["api_base_url", "editor_base_url", "notion_base_url"])
    def test_plain_http_rejected(self, field):
        with pytest.raises(ValueError, match="insecure HTTP"):
            NotePubConfig(**{field: "http://note.com/api"})

    @pytest.mark.parametrize("url", ["http://localhost:8080", "http://127.0.0.1/api"])
    def test_plain_http_allowed_locally(self, url):
        assert NotePubConfig(api_base_url=url).api_base_url == url

    @pytest.mark.parametrize("kwargs", [
        {"missing_image_policy": "ignore"},
        {"image_max_size_bytes": 0},
        {"max_block_depth": -1},
        {"action_max_attempts": 0},
        {"action_timeout_ms": 0},
        {"navigation_timeout_ms": -5},
        {"action_retry_base_delay": -0.1},
        {"action_retry_max_delay": -1},
        {"timeout_seconds": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            NotePubConfig(**kwargs)


class TestRepr:
    def test_secrets_masked(self, config):
        text = repr(config)
        assert "session_cookie_value_1234" not in text
        assert "xsrf_token_value_5678" not in text
        assert "secret_notion_9999" not in text
        assert "session_cookie='...1234'" in text
        assert "notion_token='...9999'" in text

    def test_short_secret(self):
        assert "xsrf_token='****'" in repr(NotePubConfig(xsrf_token="ab"))
