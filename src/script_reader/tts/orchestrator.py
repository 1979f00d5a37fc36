"""
Sequential Synthesis Orchestrator.

Drives one backend call per segment, strictly in index order, and merges
the returned PCM buffers into a single contiguous buffer.

Pipeline:
    for each segment i of n:
        is_cancelled()?  -> GenerationAbandonedError
        on_progress(i + 1, n)
        pcm_i = backend_call(segment.text)      (optionally under timeout_s)
    merged = concatenate_pcm(pcm_0 .. pcm_n-1)

Guarantees:
    - Exactly one backend call in flight at any time
    - Progress notifications are strictly monotonic
    - All-or-nothing: the first failure aborts the run and every buffer
      collected so far is dropped, nothing partial is returned
    - No retries

Timeouts:
    When ``timeout_s`` is given, each call runs on a single-worker thread
    pool and the orchestrator waits at most ``timeout_s`` for it. A late
    call is left to finish in the background and its result is discarded.
"""
from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from script_reader.core.errors import (
    BackendError,
    EmptyInputError,
    GenerationAbandonedError,
    ScriptReaderError,
    SynthesisTimeoutError,
)
from script_reader.core.logging import debug, fail, get_logger, verbose
from script_reader.tts.segmenter import Segment
from script_reader.utils.audio import concatenate_pcm
from script_reader.utils.timeit import timeit

_LOG = get_logger("script-reader.orchestrator")

BackendCall = Callable[[str], bytes]
ProgressCallback = Callable[[int, int], None]


@dataclass
class SynthesisRun:
    """
    Output of one successful orchestrated run.

    Attributes:
        pcm: Merged PCM buffer in segment order.
        segment_bytes: Byte length returned for each segment.
        timings_s: Stage timings (``synth``, ``merge``) plus ``synth_<i>``.
    """
    pcm: bytes
    segment_bytes: List[int]
    timings_s: Dict[str, float] = field(default_factory=dict)

    @property
    def segment_count(self) -> int:
        return len(self.segment_bytes)


def _call_with_timeout(backend_call: BackendCall, text: str, timeout_s: float) -> bytes:
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="synth")
    future = pool.submit(contextvars.copy_context().run, backend_call, text)
    try:
        return future.result(timeout=timeout_s)
    except FutureTimeoutError as e:
        raise SynthesisTimeoutError(
            f"Backend call exceeded {timeout_s}s",
            {"timeout_s": timeout_s},
        ) from e
    finally:
        # Never block on a late call
        pool.shutdown(wait=False, cancel_futures=True)


def synthesize_segments(
    segments: Sequence[Segment],
    backend_call: BackendCall,
    on_progress: Optional[ProgressCallback] = None,
    timeout_s: Optional[float] = None,
    is_cancelled: Optional[Callable[[], bool]] = None,
) -> SynthesisRun:
    """
    Synthesize ``segments`` one at a time and merge the results.

    Args:
        segments: Ordered segments from the segmenter.
        backend_call: ``text -> pcm bytes``; raises on failure.
        on_progress: Called with ``(current, total)`` before each call.
        timeout_s: Per-call wait limit in seconds (None waits forever).
        is_cancelled: Checked before each segment.

    Returns:
        SynthesisRun with the merged buffer.

    Raises:
        EmptyInputError: If ``segments`` is empty.
        BackendError: First failing call, annotated with its segment index.
        GenerationAbandonedError: If ``is_cancelled()`` turned true.
    """
    total = len(segments)
    if total == 0:
        raise EmptyInputError()

    buffers: List[bytes] = []
    timings: Dict[str, float] = {}

    with timeit("synth") as t_all:
        for i, segment in enumerate(segments):
            if is_cancelled is not None and is_cancelled():
                verbose(_LOG, "abandoned", segment=i, total=total)
                raise GenerationAbandonedError(details={"segment_index": i})

            if on_progress is not None:
                on_progress(i + 1, total)

            with timeit(f"synth_{i}") as t:
                try:
                    if timeout_s is None:
                        pcm = backend_call(segment.text)
                    else:
                        pcm = _call_with_timeout(backend_call, segment.text, timeout_s)
                except BackendError as e:
                    fail(_LOG, "segment_failed", segment=i, total=total, code=e.code, error=e.message)
                    raise e.with_segment(i)
                except ScriptReaderError:
                    raise
                except Exception as e:
                    fail(_LOG, "segment_failed", segment=i, total=total, error=str(e))
                    raise BackendError(
                        f"Synthesis failed for segment {i + 1}/{total}: {e}",
                        {"error_type": type(e).__name__},
                        segment_index=i,
                    ) from e

            timings[f"synth_{i}"] = t.seconds
            buffers.append(pcm)
            debug(_LOG, "segment_done", segment=i, bytes=len(pcm), seconds=round(t.seconds, 4))

    timings["synth"] = t_all.seconds

    with timeit("merge") as t_merge:
        merged = concatenate_pcm(buffers)
    timings["merge"] = t_merge.seconds

    verbose(_LOG, "merged", segments=total, bytes=len(merged))
    return SynthesisRun(pcm=merged, segment_bytes=[len(b) for b in buffers], timings_s=timings)
