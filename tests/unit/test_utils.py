"""Tests for ULID generation and PerformanceLogger."""

from __future__ import annotations

import pytest

from mountmux.utils.logger import PerformanceLogger, clear_request_id, request_id_var, set_request_id
from mountmux.utils.ulid import generate_ulid


class _RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def _record(self, level):
        def log(event, **kw):
            self.calls.append((level, event, kw))

        return log

    def __getattr__(self, level):
        return self._record(level)


class TestGenerateUlid:
    def test_shape_and_uniqueness(self):
        ids = {generate_ulid() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 26 for i in ids)


class TestRequestId:
    def test_set_and_clear(self):
        set_request_id("RID")
        assert request_id_var.get() == "RID"
        clear_request_id()
        assert request_id_var.get() is None


class TestPerformanceLogger:
    def test_fast_operation_logged_at_debug(self):
        recorder = _RecordingLogger()
        with PerformanceLogger("op", recorder, warn_after_ms=10_000, path="x"):
            pass
        level, event, context = recorder.calls[0]
        assert level == "debug"
        assert event == "op completed"
        assert context["path"] == "x"

    def test_slow_operation_logged_at_warning(self):
        recorder = _RecordingLogger()
        with PerformanceLogger("op", recorder, warn_after_ms=-1):
            pass
        assert recorder.calls[0][0] == "warning"

    def test_failure_logged_and_reraised(self):
        recorder = _RecordingLogger()
        with pytest.raises(RuntimeError):
            with PerformanceLogger("op", recorder):
                raise RuntimeError("boom")
        assert recorder.calls[0][0] == "error"
        assert recorder.calls[0][2]["error"] == "boom"
