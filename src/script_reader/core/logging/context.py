"""
Correlation Context and Configuration State for Logging.

The correlation id is kept in a ContextVar so that every log line emitted
while a generation runs (segmenting, each backend call, encoding, history
insertion) carries the same id, including lines emitted from the worker
thread that executes timed backend calls.

Environment Variables:
    - SCRIPT_READER_LOG_LEVEL: Override log level (1-4 or name)
    - SCRIPT_READER_LOG_DIR: Directory for the JSONL log file
    - SCRIPT_READER_JSONL_FILE: JSONL filename
    - SCRIPT_READER_LOG_ROTATE_BYTES: Max log file size
    - SCRIPT_READER_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the correlation id for the current context ("-" if unset)."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the correlation id for the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the logging section from settings.yaml and the environment.

    Priority (highest first): SCRIPT_READER_* variables, the ``logging``
    section of the settings file, built-in defaults. A missing or broken
    settings file is not an error here; logging must come up regardless.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SCRIPT_READER_SETTINGS", "config/settings.yaml")
    try:
        from script_reader.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError):
        pass

    if os.getenv("SCRIPT_READER_LOG_LEVEL"):
        cfg["level"] = os.environ["SCRIPT_READER_LOG_LEVEL"]
    if os.getenv("SCRIPT_READER_LOG_DIR"):
        cfg["log_dir"] = os.environ["SCRIPT_READER_LOG_DIR"]
    if os.getenv("SCRIPT_READER_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SCRIPT_READER_JSONL_FILE"]

    rotate_bytes = _env_int("SCRIPT_READER_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("SCRIPT_READER_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
