"""Tests for the numeric logging level system."""
from __future__ import annotations

import io
import json
import logging
import os
from unittest.mock import patch

import pytest

from script_reader.core.logging import (
    LogLevel,
    coerce_level,
    configure_logging,
    debug,
    fail,
    get_level,
    get_level_name,
    get_logger,
    get_request_id,
    info,
    set_request_id,
    verbose,
)


@pytest.fixture(autouse=True)
def _restore_logging():
    """Reconfigure against the real stdout once each test is done."""
    yield
    set_request_id("-")
    configure_logging(force=True)


def _capture(level) -> io.StringIO:
    buf = io.StringIO()
    with patch("sys.stdout", buf):
        configure_logging(level, force=True)
    return buf


class TestLogLevelEnum:
    """LogLevel values."""

    def test_level_enum_values(self):
        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_enum_ordering(self):
        assert LogLevel.MINIMAL < LogLevel.NORMAL < LogLevel.VERBOSE < LogLevel.DEBUG


class TestLevelCoercion:
    """coerce_level() from various input types."""

    def test_level_from_int(self):
        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_level_from_string_names(self):
        assert coerce_level("verbose") == LogLevel.VERBOSE
        assert coerce_level(" DEBUG ") == LogLevel.DEBUG
        assert coerce_level("warning") == LogLevel.MINIMAL
        assert coerce_level("info") == LogLevel.NORMAL

    def test_level_from_numeric_string(self):
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_python_logging_levels(self):
        assert coerce_level(logging.ERROR) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_unknown_falls_back_to_normal(self):
        assert coerce_level("chatty") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL
        assert coerce_level(True) == LogLevel.NORMAL


class TestLevelFiltering:
    """Messages above the configured level are dropped."""

    def test_normal_hides_verbose(self):
        buf = _capture(LogLevel.NORMAL)
        log = get_logger("test.filter")
        info(log, "shown_info")
        verbose(log, "hidden_verbose")
        debug(log, "hidden_debug")

        out = buf.getvalue()
        assert "shown_info" in out
        assert "hidden_verbose" not in out
        assert "hidden_debug" not in out
        assert get_level_name() == "NORMAL"

    def test_minimal_shows_only_failures(self):
        buf = _capture(LogLevel.MINIMAL)
        log = get_logger("test.filter")
        info(log, "hidden_info")
        fail(log, "shown_fail", code="TIMEOUT")

        out = buf.getvalue()
        assert "hidden_info" not in out
        assert "shown_fail" in out
        assert "code=TIMEOUT" in out

    def test_debug_shows_everything(self):
        buf = _capture(LogLevel.DEBUG)
        log = get_logger("test.filter")
        verbose(log, "shown_verbose")
        debug(log, "shown_debug")

        out = buf.getvalue()
        assert "shown_verbose" in out
        assert "shown_debug" in out
        assert get_level() == LogLevel.DEBUG

    def test_env_level_override(self):
        with patch.dict(os.environ, {"SCRIPT_READER_LOG_LEVEL": "VERBOSE"}):
            buf = _capture(None)
        verbose(get_logger("test.env"), "env_verbose")
        assert get_level() == LogLevel.VERBOSE
        assert "env_verbose" in buf.getvalue()


class TestRequestId:
    """Correlation id on log lines."""

    def test_request_id_in_console_line(self):
        buf = _capture(LogLevel.NORMAL)
        set_request_id("gen-7")
        assert get_request_id() == "gen-7"
        info(get_logger("test.rid"), "with_rid")
        assert "(gen-7)" in buf.getvalue()

    def test_default_request_id(self):
        set_request_id("-")
        assert get_request_id() == "-"


class TestJsonlOutput:
    """JSONL file handler."""

    def test_jsonl_written(self, tmp_path):
        env = {"SCRIPT_READER_LOG_DIR": str(tmp_path), "SCRIPT_READER_JSONL_FILE": "test.jsonl"}
        with patch.dict(os.environ, env):
            _capture(LogLevel.NORMAL)

        set_request_id("abc123")
        info(get_logger("test.jsonl"), "segment", current=2, total=5, seconds=0.5)
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[-1])
        assert record["message"] == "segment"
        assert record["level"] == 2
        assert record["tag"] == "INFO"
        assert record["request_id"] == "abc123"
        assert record["seconds"] == 0.5
        assert record["extra"] == {"current": 2, "total": 5}
        # close before tmp_path disappears
        for handler in logging.getLogger().handlers:
            handler.close()
