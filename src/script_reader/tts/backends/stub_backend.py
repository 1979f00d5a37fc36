"""
Stub synthesis backend for tests and offline runs.

Deterministic and fast: each segment becomes a short sine tone whose
duration grows with the text length, so merged output length is
predictable and audible when played back.
"""
from __future__ import annotations

import numpy as np

from script_reader.core.errors import ContentRejectedError
from script_reader.core.logging import debug
from script_reader.tts.backend import BaseSynthesisBackend
from script_reader.utils.audio import pcm16_from_float32

# Tone duration per character of input text
SECONDS_PER_CHAR = 0.01
TONE_HZ = 440.0
TONE_AMPLITUDE = 0.2


class StubBackend(BaseSynthesisBackend):
    """Offline backend producing a deterministic tone per segment."""
    name = "stub"

    def synthesize_segment(self, text: str) -> bytes:
        if not text.strip():
            raise ContentRejectedError("Stub backend received an empty segment")

        sr = self.audio_format.sample_rate
        n_samples = max(1, int(len(text) * SECONDS_PER_CHAR * sr))
        t = np.arange(n_samples, dtype=np.float32) / sr
        wave = TONE_AMPLITUDE * np.sin(2 * np.pi * TONE_HZ * t)

        pcm = pcm16_from_float32(wave)
        debug(self.logger, "stub_synth", chars=len(text), bytes=len(pcm))
        return pcm
