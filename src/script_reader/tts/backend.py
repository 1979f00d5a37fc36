"""
Synthesis Backend Base Class and Factory.

A backend turns one text segment into raw PCM-16 mono samples at the
configured sample rate. It is the only component that talks to the
outside world, and the orchestrator treats it as a black box:

    synthesize_segment(text) -> bytes     or raises BackendError

Backends:
    - gemini: Remote Generative Language API over httpx
    - stub: Deterministic offline tone generator (tests, dry runs)

Engine Selection:
    SCRIPT_READER_BACKEND environment variable, else backend.engine in
    settings.yaml.

Implementing a New Backend:
    1. Create backends/<name>_backend.py
    2. Inherit from BaseSynthesisBackend
    3. Implement synthesize_segment() and raise BackendError subclasses
    4. Register it in _create_backend()
"""
from __future__ import annotations

from typing import Optional

from script_reader.core.config import ReaderConfig, Settings
from script_reader.core.logging import get_logger
from script_reader.utils.audio import AudioFormat


class BaseSynthesisBackend:
    """
    Abstract base class for synthesis backends.

    Attributes:
        name: Backend identifier (e.g., "gemini", "stub").
        config: Validated reader configuration.
        audio_format: PCM format every returned buffer must use.
    """
    name: str = "base"

    def __init__(self, settings: Settings, config: Optional[ReaderConfig] = None):
        self.settings = settings
        self.config = config or ReaderConfig.from_settings(settings)
        self.audio_format = AudioFormat(
            sample_rate=self.config.audio.sample_rate,
            channels=self.config.audio.channels,
            bits_per_sample=self.config.audio.bits_per_sample,
        )
        self.logger = get_logger(f"script-reader.backend.{self.name}")

    def synthesize_segment(self, text: str) -> bytes:
        """
        Synthesize one segment to raw PCM-16 bytes.

        Raises:
            BackendError: Connectivity, quota, timeout or content failure.
            NotImplementedError: If not overridden.
        """
        raise NotImplementedError

    def __call__(self, text: str) -> bytes:
        return self.synthesize_segment(text)

    def close(self) -> None:
        """Release network clients or other handles. Default: nothing."""

    def describe(self) -> dict:
        """Short description for health output."""
        return {"engine": self.name, "sample_rate": self.audio_format.sample_rate}


def _create_backend(engine: str, settings: Settings, config: ReaderConfig) -> BaseSynthesisBackend:
    """
    Instantiate a backend by name.

    Raises:
        ValueError: If the engine name is unknown.
    """
    if engine == "gemini":
        from script_reader.tts.backends.gemini_backend import GeminiBackend
        return GeminiBackend(settings, config)

    if engine == "stub":
        from script_reader.tts.backends.stub_backend import StubBackend
        return StubBackend(settings, config)

    raise ValueError(f"Unknown backend engine: {engine}")


def get_backend(settings: Settings, config: Optional[ReaderConfig] = None) -> BaseSynthesisBackend:
    """
    Create the backend selected by configuration.

    ReaderConfig already applies the SCRIPT_READER_BACKEND override.
    """
    config = config or ReaderConfig.from_settings(settings)
    return _create_backend(config.backend.engine, settings, config)
