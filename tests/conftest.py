"""Shared fixtures: isolated environment and a scriptable backend."""
from __future__ import annotations

import os
import threading
from typing import Callable, Dict, List, Optional

import pytest

os.environ.setdefault("SCRIPT_READER_NO_COLOR", "1")

from script_reader.core.config import Settings
from script_reader.tts.backend import BaseSynthesisBackend


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep host settings (real API keys, backend overrides) out of tests."""
    for var in ("SCRIPT_READER_BACKEND", "GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)


class ScriptedBackend(BaseSynthesisBackend):
    """
    Backend whose output and failures are decided per segment text.

    By default each segment returns its text encoded as UTF-16-LE, so the
    merged PCM is predictable and always 2-byte aligned.
    """
    name = "scripted"

    def __init__(
        self,
        settings: Settings,
        outputs: Optional[Dict[str, bytes]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        hook: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(settings)
        self.outputs = outputs or {}
        self.failures = failures or {}
        self.hook = hook
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def synthesize_segment(self, text: str) -> bytes:
        with self._lock:
            self.calls.append(text)
        if self.hook is not None:
            self.hook(text)
        if text in self.failures:
            raise self.failures[text]
        return self.outputs.get(text, text.encode("utf-16-le"))


@pytest.fixture
def stub_settings() -> Settings:
    return Settings(raw={"backend": {"engine": "stub"}})


@pytest.fixture
def make_backend():
    """Factory for ScriptedBackend instances bound to given settings."""
    def _make(settings: Optional[Settings] = None, **kwargs) -> ScriptedBackend:
        return ScriptedBackend(settings or Settings(raw={"backend": {"engine": "stub"}}), **kwargs)
    return _make
