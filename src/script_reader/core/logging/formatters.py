"""
Log Formatters for JSON Lines and Console Output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
        {"ts":"2026-10-19T14:30:05+02:00","level":2,"tag":"INFO",
         "message":"segment","request_id":"a1b2c3","extra":{"current":2,"total":5}}

    ColoredConsoleFormatter: human-readable terminal line.
        14:30:05 [ INFO  ] (a1b2c3) segment current=2 total=5 0.812s

Colors are disabled when stdout is not a TTY, when NO_COLOR is set, or
when SCRIPT_READER_NO_COLOR=1.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict


class Colors:
    """ANSI escape codes used by the console formatter."""
    RESET = "\033[0m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
}


def supports_color() -> bool:
    """Return True when ANSI colors should be written to stdout."""
    if os.getenv("SCRIPT_READER_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return sys.platform != "win32" or "WT_SESSION" in os.environ


def get_tag_color(tag: str) -> str:
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)


class JsonlFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records as ``HH:MM:SS [ TAG ] (rid) message k=v 0.123s``.

    Timings are green under 0.1s, yellow under 1s, red above; backend
    calls routinely land in the red band, which is expected.
    """

    def __init__(self, use_colors: bool | None = None):
        super().__init__()
        self.use_colors = supports_color() if use_colors is None else use_colors

    def _paint(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            self._paint(ts, Colors.DIM),
            self._paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(self._paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(self._paint(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(self._paint(f"{k}={v}", Colors.DIM))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                color = Colors.GREEN
            elif seconds < 1.0:
                color = Colors.YELLOW
            else:
                color = Colors.RED
            parts.append(self._paint(f"{seconds:.3f}s", color))

        return " ".join(parts)
