"""
ScriptReader - Script-to-WAV Session.

This module provides the ScriptReader class, the single entry point the
HTTP API and the CLI use to turn a script into audio and to manage the
resulting history.

Architecture:
    Input → Truncate → Segment → Synthesize (sequential) → Merge → Encode
          → AudioResource → History + Active slot

Key Components:
    - Backend: Per-segment speech synthesis (gemini, stub)
    - Orchestrator: Sequential calls, progress, all-or-nothing output
    - ResourceCache: Reference-counted history and active result

Generations:
    Every generate() call takes a new generation id. Starting a newer
    generation makes older ones stale: a stale run stops before its next
    segment, and a stale result that still completes is released without
    touching the history or the active slot.

Failure:
    Any error leaves the previous active result and the history exactly
    as they were.

Example:
    >>> from script_reader.core.config import Settings
    >>> from script_reader.services import ScriptReader
    >>>
    >>> reader = ScriptReader(Settings(raw={"backend": {"engine": "stub"}}))
    >>> result = reader.generate("Hello world.\\n\\nThis is a second paragraph.")
    >>> result.segments, result.entry.snippet
    (1, 'Hello world.\\n\\nThis is a second paragraph.')
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from script_reader.core.config import ReaderConfig, Settings
from script_reader.core.errors import (
    EmptyInputError,
    GenerationAbandonedError,
    ScriptReaderError,
)
from script_reader.core.logging import (
    fail,
    get_logger,
    info,
    set_request_id,
    success,
    verbose,
    warn,
)
from script_reader.tts.backend import BaseSynthesisBackend, get_backend
from script_reader.tts.history import AudioResource, HistoryEntry, ResourceCache
from script_reader.tts.orchestrator import ProgressCallback, synthesize_segments
from script_reader.tts.segmenter import segment_text
from script_reader.utils.audio import AudioFormat, pcm_to_wav
from script_reader.utils.timeit import timeit

_LOG = get_logger("script-reader.service")


# =============================================================================
# State Dataclasses
# =============================================================================

@dataclass
class GenerationProgress:
    """
    Snapshot of the latest generation's progress.

    Attributes:
        state: "idle", "running", "done" or "failed".
        current: 1-based index of the segment being synthesized.
        total: Number of segments in the run.
        generation_id: Id of the generation this snapshot belongs to.
        started_at: perf_counter() at start, None when idle.
        error: User-facing message of the last failure.
    """
    state: str = "idle"
    current: int = 0
    total: int = 0
    generation_id: int = 0
    started_at: Optional[float] = None
    error: Optional[str] = None

    @property
    def message(self) -> str:
        if self.state == "running" and self.total:
            return f"Generating part {self.current}/{self.total}..."
        return self.error or ""

    def to_dict(self) -> Dict[str, Any]:
        elapsed = None
        if self.started_at is not None and self.state == "running":
            elapsed = round(time.perf_counter() - self.started_at, 3)
        return {
            "state": self.state,
            "current": self.current,
            "total": self.total,
            "generation_id": self.generation_id,
            "elapsed_s": elapsed,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class GenerationResult:
    """
    Result of a successful generation.

    Attributes:
        entry: History entry created for the run.
        wav_bytes: Encoded WAV audio.
        sample_rate: Audio sample rate.
        segments: Number of segments synthesized.
        generation_id: Id of the generation.
        total_seconds: Wall time of the whole run.
        timings: Per-stage timing breakdown.
    """
    entry: HistoryEntry
    wav_bytes: bytes
    sample_rate: int
    segments: int
    generation_id: int
    total_seconds: float
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def entry_id(self) -> str:
        return self.entry.id


# =============================================================================
# Session Class
# =============================================================================

class ScriptReader:
    """
    Script-to-WAV session holding the backend, history and active result.

    Usage:
        reader = ScriptReader(settings)
        result = reader.generate(long_script, on_progress=print)
        reader.restore(older_entry_id)
        reader.delete(result.entry_id)
    """

    def __init__(self, settings: Settings, backend: Optional[BaseSynthesisBackend] = None):
        """
        Args:
            settings: Application settings loaded from YAML/environment.
            backend: Backend to use instead of the configured one.
        """
        self._settings = settings
        self._config = ReaderConfig.from_settings(settings)
        self._backend = backend or get_backend(settings, self._config)
        self._cache = ResourceCache()
        self._format = AudioFormat(
            sample_rate=self._config.audio.sample_rate,
            channels=self._config.audio.channels,
            bits_per_sample=self._config.audio.bits_per_sample,
        )

        self._state_lock = threading.Lock()
        self._generation = 0
        self._progress = GenerationProgress()
        self._input_text = ""

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ReaderConfig:
        return self._config

    @property
    def backend(self) -> BaseSynthesisBackend:
        return self._backend

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    @property
    def audio_format(self) -> AudioFormat:
        return self._format

    @property
    def active(self) -> Optional[AudioResource]:
        """The currently playable audio, if any."""
        return self._cache.active

    @property
    def input_text(self) -> str:
        with self._state_lock:
            return self._input_text

    @property
    def progress(self) -> GenerationProgress:
        with self._state_lock:
            return GenerationProgress(**vars(self._progress))

    # =========================================================================
    # Input
    # =========================================================================

    def set_input(self, text: str) -> str:
        """
        Accept ``text`` as the current input, truncated to text.max_chars.

        Returns:
            The accepted text.
        """
        text = self._truncate(text)
        with self._state_lock:
            self._input_text = text
        return text

    def _truncate(self, text: str) -> str:
        max_chars = self._config.text.max_chars
        if len(text) > max_chars:
            warn(_LOG, "input_truncated", chars=len(text), max_chars=max_chars)
            return text[:max_chars]
        return text

    # =========================================================================
    # Generation State
    # =========================================================================

    def _begin(self) -> int:
        with self._state_lock:
            self._generation += 1
            gen_id = self._generation
            self._progress = GenerationProgress(
                state="running", generation_id=gen_id, started_at=time.perf_counter(),
            )
        return gen_id

    def _is_stale(self, gen_id: int) -> bool:
        with self._state_lock:
            return gen_id != self._generation

    def _update_progress(self, gen_id: int, **changes: Any) -> None:
        with self._state_lock:
            if gen_id != self._generation:
                return
            for key, value in changes.items():
                setattr(self._progress, key, value)

    # =========================================================================
    # Public API: generate()
    # =========================================================================

    def generate(self, text: str, on_progress: Optional[ProgressCallback] = None) -> GenerationResult:
        """
        Turn ``text`` into one WAV, add it to history and make it active.

        Pipeline:
            1. Truncate to text.max_chars
            2. Segment on blank lines (soft limit)
            3. Synthesize each segment in order
            4. Merge PCM and encode WAV
            5. Insert history entry, set active result

        Args:
            text: Script to read.
            on_progress: Called with ``(current, total)`` before each segment.

        Returns:
            GenerationResult with the WAV and its history entry.

        Raises:
            EmptyInputError: If the text holds nothing to read.
            BackendError: If any segment fails (nothing is kept).
            GenerationAbandonedError: If a newer generation superseded this one.
        """
        # Blank input is rejected before any state changes, so it never
        # supersedes a generation already in flight
        text = self._truncate(text)
        seg = segment_text(text, self._config.segmenting.soft_limit)
        if not seg.segments:
            warn(_LOG, "empty_input", chars=len(text))
            raise EmptyInputError()

        self.set_input(text)
        gen_id = self._begin()
        set_request_id(f"gen-{gen_id}")

        preview_chars = self._config.logging.text_preview_chars
        info(_LOG, "generate", generation=gen_id, chars=len(text),
             text_preview=text[:preview_chars] if preview_chars > 0 else "")

        def _progress(current: int, total: int) -> None:
            self._update_progress(gen_id, current=current, total=total)
            info(_LOG, "generating_part", generation=gen_id, current=current, total=total)
            if on_progress is not None:
                on_progress(current, total)

        timings: Dict[str, float] = dict(seg.timings_s)
        try:
            with timeit("total") as total_t:
                self._update_progress(gen_id, total=len(seg.segments))
                run = synthesize_segments(
                    seg.segments,
                    self._backend,
                    on_progress=_progress,
                    timeout_s=self._config.backend.timeout_s,
                    is_cancelled=lambda: self._is_stale(gen_id),
                )
                timings.update(run.timings_s)

                with timeit("encode") as t:
                    wav = pcm_to_wav(run.pcm, self._format)
                timings["encode"] = t.seconds

                entry = self._commit(gen_id, text, wav, run.segment_count)
        except ScriptReaderError as e:
            self._update_progress(gen_id, state="failed", error=e.user_message)
            fail(_LOG, "generate_failed", generation=gen_id, code=e.code, error=e.message)
            raise
        except Exception as e:
            # e.g. a failing on_progress callback
            self._update_progress(gen_id, state="failed", error=str(e) or type(e).__name__)
            fail(_LOG, "generate_failed", generation=gen_id, error_type=type(e).__name__, error=str(e))
            raise

        timings["total"] = total_t.seconds + timings.get("segment", 0.0)
        self._update_progress(gen_id, state="done")
        success(
            _LOG, "generate_done",
            generation=gen_id,
            entry=entry.id[:8],
            segments=run.segment_count,
            bytes=len(wav),
            seconds=round(timings["total"], 3),
        )
        return GenerationResult(
            entry=entry,
            wav_bytes=wav,
            sample_rate=self._format.sample_rate,
            segments=run.segment_count,
            generation_id=gen_id,
            total_seconds=timings["total"],
            timings=timings,
        )

    def _commit(self, gen_id: int, text: str, wav: bytes, segments: int) -> HistoryEntry:
        """Hand a finished WAV to the history and active slot, unless stale."""
        resource = AudioResource(wav, sample_rate=self._format.sample_rate)
        try:
            with self._state_lock:
                if gen_id != self._generation:
                    verbose(_LOG, "stale_result_discarded", generation=gen_id, bytes=len(wav))
                    raise GenerationAbandonedError(details={"generation_id": gen_id})
                entry = HistoryEntry.create(
                    text,
                    resource,
                    segments=segments,
                    snippet_chars=self._config.history.snippet_chars,
                    store_full_text=self._config.history.store_full_text,
                )
                self._cache.insert(entry)
                self._cache.set_active(resource)
        finally:
            # Drop the creator reference; history and active slot keep their own
            resource.release()
        return entry

    # =========================================================================
    # Public API: history
    # =========================================================================

    def history(self) -> List[HistoryEntry]:
        """History entries, most recent first."""
        return self._cache.list_most_recent_first()

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        return self._cache.get(entry_id)

    def restore(self, entry_id: str) -> Optional[HistoryEntry]:
        """
        Make a history entry's audio the active result and load its text
        back as the current input. Unknown ids return None.
        """
        entry = self._cache.restore(entry_id)
        if entry is not None:
            with self._state_lock:
                self._input_text = entry.full_text if entry.full_text is not None else entry.snippet
        return entry

    def delete(self, entry_id: str) -> bool:
        """Delete a history entry. Unknown ids return False."""
        return self._cache.delete(entry_id)

    def clear_history(self) -> int:
        """Delete every history entry and the active result."""
        return self._cache.clear()

    def clear(self) -> None:
        """Clear the current input, error and active result. History is kept."""
        self._cache.clear_active()
        with self._state_lock:
            self._input_text = ""
            if self._progress.state != "running":
                self._progress = GenerationProgress(generation_id=self._progress.generation_id)
        verbose(_LOG, "session_cleared")

    # =========================================================================
    # Health
    # =========================================================================

    def health(self) -> Dict[str, Any]:
        """Health payload for the /health endpoint."""
        return {
            "ok": True,
            "backend": self._backend.describe(),
            "audio": {
                "sample_rate": self._format.sample_rate,
                "channels": self._format.channels,
                "bits_per_sample": self._format.bits_per_sample,
            },
            "segmenting": {"soft_limit": self._config.segmenting.soft_limit},
            "text": {"max_chars": self._config.text.max_chars},
            "history": self._cache.stats(),
            "progress": self.progress.to_dict(),
        }

    def close(self) -> None:
        """Release all audio and close the backend."""
        self._cache.clear()
        self._backend.close()


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[ScriptReader] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> ScriptReader:
    """
    Get or create the global ScriptReader instance.

    Thread-safe lazy singleton used by the HTTP API.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = ScriptReader(settings)
    return _service


def reset_service() -> None:
    """
    Close and drop the global instance.

    Used primarily for testing to ensure clean state between tests.
    """
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
        _service = None
