"""Tests for backoff and redaction helpers."""

import base64

import pytest

from notepub.utils import compute_backoff, redact


class TestComputeBackoff:
    @pytest.mark.parametrize("attempt,expected", [(0, 0.5), (1, 1.0), (2, 2.0), (10, 5.0)])
    def test_exponential_capped(self, attempt, expected):
        assert compute_backoff(attempt, base=0.5, maximum=5.0, jitter=False) == expected

    def test_jitter_range(self):
        for _ in range(50):
            assert 0.5 <= compute_backoff(1, base=0.5, maximum=5.0) <= 1.0


class TestRedact:
    def test_sensitive_keys_masked(self):
        out = redact({"X-XSRF-TOKEN": "abcdef123456", "Cookie": "_note_session_v5=zzzzzzzz9876"})
        assert out["X-XSRF-TOKEN"] == "<redacted:...3456>"
        assert out["Cookie"] == "<redacted:...9876>"

    def test_empty_sensitive_value(self):
        assert redact({"token": ""}) == {"token": "<redacted>"}

    def test_known_secret_scrubbed_everywhere(self):
        secret = "cookie-value-0000"
        out = redact({"body": f"before {secret} after", "list": [secret]}, [secret])
        assert secret not in str(out)
        assert out["body"] == "before <redacted:...0000> after"

    def test_binary_and_data_uri(self):
        uri = "data:image/png;base64," + base64.b64encode(b"x" * 30).decode()
        out = redact({"file": b"\x00" * 12, "src": uri})
        assert out["file"] == "<binary:12_bytes>"
        assert out["src"] == "<data_uri:30_bytes>"

    def test_original_untouched(self):
        payload = {"nested": {"token": "abcdefgh1234"}}
        redact(payload)
        assert payload["nested"]["token"] == "abcdefgh1234"

    def test_none_secrets_ignored(self):
        assert redact({"a": "b"}, [None, ""]) == {"a": "b"}
