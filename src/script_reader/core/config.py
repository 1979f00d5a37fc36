"""
Configuration Management for script-reader.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (SCRIPT_READER_BACKEND, GEMINI_API_KEY, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    text:
      max_chars: 10000

    segmenting:
      soft_limit: 800

    audio:
      sample_rate: 24000

    backend:
      engine: gemini
      voice: Kore
      timeout_s: 60

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


DEFAULT_SETTINGS_PATH = "config/settings.yaml"


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds
    or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Every constant the pipeline owns lives here so the YAML file and the
    environment only ever override, never define, behaviour.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Input text
    # ─────────────────────────────────────────────────────────────────────────
    TEXT_MAX_CHARS = 10000              # Accepted input is truncated to this

    # ─────────────────────────────────────────────────────────────────────────
    # Segmenting
    # ─────────────────────────────────────────────────────────────────────────
    SEGMENT_SOFT_LIMIT = 800            # Advisory accumulation threshold (chars)

    # ─────────────────────────────────────────────────────────────────────────
    # Audio container
    # ─────────────────────────────────────────────────────────────────────────
    AUDIO_SAMPLE_RATE = 24000           # Backend PCM sample rate
    AUDIO_CHANNELS = 1                  # Mono
    AUDIO_BITS_PER_SAMPLE = 16          # Signed little-endian PCM

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis backend
    # ─────────────────────────────────────────────────────────────────────────
    BACKEND_ENGINE = "gemini"
    BACKEND_BASE_URL = "https://generativelanguage.googleapis.com"
    BACKEND_MODEL = "gemini-2.5-flash-preview-tts"
    BACKEND_VOICE = "Kore"
    BACKEND_TIMEOUT_S = 60.0            # Per-segment call timeout

    # ─────────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────────
    HISTORY_SNIPPET_CHARS = 60          # Display snippet length
    HISTORY_STORE_FULL_TEXT = True      # Keep the whole script per entry

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class TextConfig:
    """Input text limits."""
    max_chars: int = Defaults.TEXT_MAX_CHARS


@dataclass
class SegmentingConfig:
    """
    Segmenter configuration.

    soft_limit is advisory: paragraphs accumulate into a segment while the
    running length stays below it, but a single long paragraph is never cut.
    """
    soft_limit: int = Defaults.SEGMENT_SOFT_LIMIT


@dataclass
class AudioConfig:
    """Fixed PCM format shared by the backend and the WAV encoder."""
    sample_rate: int = Defaults.AUDIO_SAMPLE_RATE
    channels: int = Defaults.AUDIO_CHANNELS
    bits_per_sample: int = Defaults.AUDIO_BITS_PER_SAMPLE


@dataclass
class BackendConfig:
    """
    Remote synthesis backend configuration.

    api_key is optional here; backends fall back to the environment.
    """
    engine: str = Defaults.BACKEND_ENGINE
    base_url: str = Defaults.BACKEND_BASE_URL
    model: str = Defaults.BACKEND_MODEL
    voice: str = Defaults.BACKEND_VOICE
    timeout_s: float = Defaults.BACKEND_TIMEOUT_S
    api_key: Optional[str] = None


@dataclass
class HistoryConfig:
    """History entry presentation settings."""
    snippet_chars: int = Defaults.HISTORY_SNIPPET_CHARS
    store_full_text: bool = Defaults.HISTORY_STORE_FULL_TEXT


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Generation lifecycle, history changes (default)
        3 = VERBOSE: Per-segment timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ReaderConfig:
    """
    Validated configuration for the ScriptReader service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ReaderConfig.from_settings(settings)
        print(config.segmenting.soft_limit)
    """
    text: TextConfig = field(default_factory=TextConfig)
    segmenting: SegmentingConfig = field(default_factory=SegmentingConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ReaderConfig":
        """
        Create ReaderConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ReaderConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        text_raw = raw.get("text", {}) or {}
        text = TextConfig(
            max_chars=int(text_raw.get("max_chars", Defaults.TEXT_MAX_CHARS)),
        )
        cls._validate_positive("text.max_chars", text.max_chars)

        seg_raw = raw.get("segmenting", {}) or {}
        segmenting = SegmentingConfig(
            soft_limit=int(seg_raw.get("soft_limit", Defaults.SEGMENT_SOFT_LIMIT)),
        )
        cls._validate_positive("segmenting.soft_limit", segmenting.soft_limit)

        audio_raw = raw.get("audio", {}) or {}
        audio = AudioConfig(
            sample_rate=int(audio_raw.get("sample_rate", Defaults.AUDIO_SAMPLE_RATE)),
            channels=int(audio_raw.get("channels", Defaults.AUDIO_CHANNELS)),
            bits_per_sample=int(audio_raw.get("bits_per_sample", Defaults.AUDIO_BITS_PER_SAMPLE)),
        )
        cls._validate_positive("audio.sample_rate", audio.sample_rate)
        # The container is mono PCM-16 only
        cls._validate_range("audio.channels", audio.channels, 1, 1)
        cls._validate_range("audio.bits_per_sample", audio.bits_per_sample, 16, 16)

        backend_raw = raw.get("backend", {}) or {}
        engine = os.getenv("SCRIPT_READER_BACKEND") or backend_raw.get("engine", Defaults.BACKEND_ENGINE)
        backend = BackendConfig(
            engine=str(engine).strip().lower(),
            base_url=str(backend_raw.get("base_url", Defaults.BACKEND_BASE_URL)).rstrip("/"),
            model=str(backend_raw.get("model", Defaults.BACKEND_MODEL)),
            voice=str(backend_raw.get("voice", Defaults.BACKEND_VOICE)),
            timeout_s=float(backend_raw.get("timeout_s", Defaults.BACKEND_TIMEOUT_S)),
            api_key=backend_raw.get("api_key"),
        )
        cls._validate_positive("backend.timeout_s", backend.timeout_s)

        history_raw = raw.get("history", {}) or {}
        history = HistoryConfig(
            snippet_chars=int(history_raw.get("snippet_chars", Defaults.HISTORY_SNIPPET_CHARS)),
            store_full_text=bool(history_raw.get("store_full_text", Defaults.HISTORY_STORE_FULL_TEXT)),
        )
        cls._validate_positive("history.snippet_chars", history.snippet_chars)

        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            text=text,
            segmenting=segmenting,
            audio=audio,
            backend=backend,
            history=history,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_reader_config() to get a validated ReaderConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def backend_engine(self) -> str:
        """Get the configured backend engine name (gemini, stub)."""
        return str((self.raw.get("backend") or {}).get("engine", Defaults.BACKEND_ENGINE))

    @property
    def sample_rate(self) -> int:
        """Get the PCM sample rate returned by the backend."""
        return int((self.raw.get("audio") or {}).get("sample_rate", Defaults.AUDIO_SAMPLE_RATE))

    @property
    def soft_limit(self) -> int:
        """Get the segment soft limit in characters."""
        return int((self.raw.get("segmenting") or {}).get("soft_limit", Defaults.SEGMENT_SOFT_LIMIT))

    def get_reader_config(self) -> ReaderConfig:
        """
        Get validated ReaderConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ReaderConfig.from_settings(self)


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - GEMINI_API_KEY: Sets backend.api_key when the file leaves it empty

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    key = os.getenv("GEMINI_API_KEY")
    if key and not (raw.get("backend") or {}).get("api_key"):
        raw["backend"] = {**(raw.get("backend") or {}), "api_key": key}

    return Settings(raw=raw)


def load_settings_or_defaults(path: Optional[str] = None) -> Settings:
    """
    Load settings, falling back to an empty Settings when the file is absent.

    The path defaults to SCRIPT_READER_SETTINGS or config/settings.yaml.
    """
    path = path or os.getenv("SCRIPT_READER_SETTINGS", DEFAULT_SETTINGS_PATH)
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw={})
