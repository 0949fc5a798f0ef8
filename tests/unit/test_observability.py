"""Tests for the structured logger and metrics hook."""

import io
import json
import logging
import sys

from notepub.observability import MetricsHook, NoopMetricsHook, StructuredFormatter, get_logger


def make_record(msg, extra_fields=None, exc_info=None):
    record = logging.LogRecord(
        name="notepub.test",
        level=logging.WARNING,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


class TestStructuredFormatter:
    def test_guaranteed_keys(self):
        out = json.loads(StructuredFormatter().format(make_record("hello")))
        assert out["message"] == "hello"
        assert out["level"] == "WARNING"
        assert out["logger"] == "notepub.test"
        assert "ts" in out

    def test_extra_fields_merged(self):
        record = make_record("saved", {"op": "save_draft", "draft_key": "n1"})
        out = json.loads(StructuredFormatter().format(record))
        assert out["op"] == "save_draft"
        assert out["draft_key"] == "n1"

    def test_non_ascii_kept(self):
        line = StructuredFormatter().format(make_record("見出し"))
        assert "見出し" in line

    def test_exception_serialised(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = make_record("failed", exc_info=sys.exc_info())
        out = json.loads(StructuredFormatter().format(record))
        assert "ValueError: bad" in out["exception"]


class TestGetLogger:
    def test_writes_json_lines(self):
        stream = io.StringIO()
        log = get_logger("notepub.test.stream", stream=stream)
        log.info("hi", extra={"extra_fields": {"n": 1}})
        assert json.loads(stream.getvalue())["n"] == 1

    def test_idempotent(self):
        first = get_logger("notepub.test.once", stream=io.StringIO())
        second = get_logger("notepub.test.once")
        assert first is second
        assert len(first.handlers) == 1

    def test_string_level(self):
        log = get_logger("notepub.test.level", level="warning", stream=io.StringIO())
        assert log.level == logging.WARNING


class TestMetrics:
    def test_noop_satisfies_protocol(self):
        hook = NoopMetricsHook()
        assert isinstance(hook, MetricsHook)
        hook.increment("x")
        hook.timing("x", 1.0)
        hook.gauge("x", 2.0)

    def test_recording_hook_satisfies_protocol(self, metrics):
        assert isinstance(metrics, MetricsHook)
