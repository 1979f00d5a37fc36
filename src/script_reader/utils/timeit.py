"""
Timing Utilities.

Each pipeline stage (segment, synth, merge, encode) is wrapped in
``timeit`` so the stage durations can be logged and returned to callers
alongside the audio.

Example:
    with timeit("encode") as t:
        wav = pcm_to_wav(pcm, fmt)
    print(f"Took {t.timing.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed (e.g., "synth", "encode").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks with perf_counter().

    The result is available as ``.timing`` after the block exits, also
    when the block raised.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, or -1.0 if the block has not finished."""
        return self.timing.seconds if self.timing else -1.0
