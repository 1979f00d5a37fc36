"""
Tests for configuration validation and defaults.

Tests cover:
- ReaderConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Environment overrides (SCRIPT_READER_BACKEND, GEMINI_API_KEY)
- load_settings() / load_settings_or_defaults()
- The shipped config/settings.yaml
"""
from pathlib import Path

import pytest

from script_reader.core.config import (
    ConfigValidationError,
    Defaults,
    ReaderConfig,
    Settings,
    load_settings,
    load_settings_or_defaults,
)

REPO_SETTINGS = Path(__file__).parent.parent / "config" / "settings.yaml"


class TestDefaults:
    """Tests for Defaults class values."""

    def test_text_and_segmenting_defaults(self):
        assert Defaults.TEXT_MAX_CHARS == 10000
        assert Defaults.SEGMENT_SOFT_LIMIT == 800

    def test_audio_defaults(self):
        assert Defaults.AUDIO_SAMPLE_RATE == 24000
        assert Defaults.AUDIO_CHANNELS == 1
        assert Defaults.AUDIO_BITS_PER_SAMPLE == 16

    def test_history_defaults(self):
        assert Defaults.HISTORY_SNIPPET_CHARS == 60
        assert Defaults.HISTORY_STORE_FULL_TEXT is True

    def test_logging_defaults(self):
        assert Defaults.LOGGING_TEXT_PREVIEW_CHARS == 80
        assert Defaults.LOGGING_LEVEL == 2


class TestReaderConfigFromSettings:
    """Tests for ReaderConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        cfg = ReaderConfig.from_settings(Settings(raw={}))
        assert cfg.text.max_chars == Defaults.TEXT_MAX_CHARS
        assert cfg.segmenting.soft_limit == Defaults.SEGMENT_SOFT_LIMIT
        assert cfg.audio.sample_rate == Defaults.AUDIO_SAMPLE_RATE
        assert cfg.backend.engine == "gemini"
        assert cfg.backend.timeout_s == Defaults.BACKEND_TIMEOUT_S
        assert cfg.history.snippet_chars == 60
        assert cfg.logging.level == 2

    def test_sections_set_to_none_use_defaults(self):
        """A YAML key with no value loads as None and must not crash."""
        cfg = ReaderConfig.from_settings(Settings(raw={"backend": None, "segmenting": None}))
        assert cfg.backend.engine == "gemini"
        assert cfg.segmenting.soft_limit == 800

    def test_custom_values(self):
        cfg = ReaderConfig.from_settings(Settings(raw={
            "text": {"max_chars": 500},
            "segmenting": {"soft_limit": 100},
            "audio": {"sample_rate": 16000},
            "backend": {"engine": "STUB", "voice": "Puck", "timeout_s": 5},
            "history": {"snippet_chars": 20, "store_full_text": False},
        }))
        assert cfg.text.max_chars == 500
        assert cfg.segmenting.soft_limit == 100
        assert cfg.audio.sample_rate == 16000
        assert cfg.backend.engine == "stub"
        assert cfg.backend.voice == "Puck"
        assert cfg.backend.timeout_s == 5.0
        assert cfg.history.snippet_chars == 20
        assert cfg.history.store_full_text is False

    def test_base_url_trailing_slash_stripped(self):
        cfg = ReaderConfig.from_settings(Settings(raw={"backend": {"base_url": "http://localhost:9000/"}}))
        assert cfg.backend.base_url == "http://localhost:9000"

    def test_backend_env_override(self, monkeypatch):
        monkeypatch.setenv("SCRIPT_READER_BACKEND", "stub")
        cfg = ReaderConfig.from_settings(Settings(raw={"backend": {"engine": "gemini"}}))
        assert cfg.backend.engine == "stub"

    def test_string_log_level(self):
        cfg = ReaderConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert cfg.logging.level == 4

        cfg = ReaderConfig.from_settings(Settings(raw={"logging": {"level": "verbose"}}))
        assert cfg.logging.level == 3


class TestValidation:
    """ConfigValidationError on invalid values."""

    @pytest.mark.parametrize("raw", [
        {"segmenting": {"soft_limit": 0}},
        {"segmenting": {"soft_limit": -5}},
        {"text": {"max_chars": 0}},
        {"backend": {"timeout_s": 0}},
        {"history": {"snippet_chars": 0}},
        {"audio": {"sample_rate": -1}},
    ])
    def test_non_positive_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            ReaderConfig.from_settings(Settings(raw=raw))

    def test_stereo_rejected(self):
        with pytest.raises(ConfigValidationError, match="audio.channels"):
            ReaderConfig.from_settings(Settings(raw={"audio": {"channels": 2}}))

    def test_non_16_bit_rejected(self):
        with pytest.raises(ConfigValidationError, match="bits_per_sample"):
            ReaderConfig.from_settings(Settings(raw={"audio": {"bits_per_sample": 24}}))

    def test_log_level_out_of_range(self):
        with pytest.raises(ConfigValidationError, match="logging.level"):
            ReaderConfig.from_settings(Settings(raw={"logging": {"level": 7}}))


class TestSettings:
    """Settings properties and loaders."""

    def test_properties(self):
        s = Settings(raw={"backend": {"engine": "stub"}, "audio": {"sample_rate": 16000},
                          "segmenting": {"soft_limit": 50}})
        assert s.backend_engine == "stub"
        assert s.sample_rate == 16000
        assert s.soft_limit == 50
        assert s.get_reader_config().segmenting.soft_limit == 50

    def test_properties_defaults(self):
        s = Settings(raw={})
        assert s.backend_engine == "gemini"
        assert s.sample_rate == 24000
        assert s.soft_limit == 800

    def test_load_settings_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_load_settings_from_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("segmenting:\n  soft_limit: 123\nbackend:\n  engine: stub\n", encoding="utf-8")
        s = load_settings(str(path))
        assert s.soft_limit == 123
        assert s.backend_engine == "stub"

    def test_empty_yaml_is_empty_settings(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(str(path)).raw == {}

    def test_gemini_api_key_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("backend:\n  engine: gemini\n  api_key: \"\"\n", encoding="utf-8")
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        s = load_settings(str(path))
        assert s.raw["backend"]["api_key"] == "env-key"
        assert s.raw["backend"]["engine"] == "gemini"

    def test_file_api_key_wins_over_env(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("backend:\n  api_key: file-key\n", encoding="utf-8")
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        assert load_settings(str(path)).raw["backend"]["api_key"] == "file-key"

    def test_load_settings_or_defaults_missing(self, tmp_path):
        s = load_settings_or_defaults(str(tmp_path / "missing.yaml"))
        assert s.raw == {}

    def test_load_settings_or_defaults_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("text:\n  max_chars: 42\n", encoding="utf-8")
        monkeypatch.setenv("SCRIPT_READER_SETTINGS", str(path))
        s = load_settings_or_defaults()
        assert s.get_reader_config().text.max_chars == 42

    def test_shipped_settings_file_is_valid(self):
        s = load_settings(str(REPO_SETTINGS))
        cfg = s.get_reader_config()
        assert cfg.text.max_chars == 10000
        assert cfg.segmenting.soft_limit == 800
        assert cfg.audio.sample_rate == 24000
        assert cfg.backend.engine == "gemini"
