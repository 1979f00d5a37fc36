"""
Text Segmentation for Long Scripts.

Splits a script into an ordered list of segments, each sent to the
synthesis backend as one call. Segmentation is purely paragraph based:

    1. Split on blank lines into paragraphs
    2. Trim each paragraph, drop empty ones
    3. Greedily pack paragraphs into segments joined by a blank line while
       the running length stays below ``soft_limit``

The soft limit is advisory. A paragraph longer than the limit becomes a
segment of its own and is never cut, so no text is ever lost.

Example:
    >>> from script_reader.tts.segmenter import segment_text
    >>> result = segment_text("Hello world.\\n\\nThis is a second paragraph.", soft_limit=800)
    >>> [s.text for s in result.segments]
    ['Hello world.\\n\\nThis is a second paragraph.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from script_reader.core.logging import get_logger, verbose
from script_reader.utils.timeit import timeit

_LOG = get_logger("script-reader.segmenter")

PARAGRAPH_SEPARATOR = "\n\n"

# A newline, optional horizontal/other whitespace, then another newline
_BLANK_LINE_SPLIT = re.compile(r"\n[^\S\n]*\n\s*")


@dataclass(frozen=True)
class Segment:
    """
    One synthesis unit.

    Attributes:
        index: 0-based position in the segment sequence.
        text: Trimmed, non-empty segment text.
    """
    index: int
    text: str


@dataclass
class SegmentResult:
    """
    Result of segmenting a script.

    Attributes:
        segments: Ordered segments, possibly empty.
        timings_s: Timing measurements in seconds.
    """
    segments: List[Segment]
    timings_s: Dict[str, float]

    @property
    def texts(self) -> List[str]:
        return [s.text for s in self.segments]


def split_paragraphs(text: str) -> List[str]:
    """Split on blank lines and return trimmed, non-empty paragraphs in order."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [p.strip() for p in _BLANK_LINE_SPLIT.split(normalized) if p.strip()]


def segment_text(text: str, soft_limit: int) -> SegmentResult:
    """
    Split ``text`` into ordered segments bounded (softly) by ``soft_limit``.

    A paragraph is appended to the current segment when
    ``len(current) + len(paragraph) < soft_limit`` or when the current
    segment is still empty; otherwise the current segment is closed and
    the paragraph opens the next one.

    Args:
        text: Input script.
        soft_limit: Accumulation threshold in characters.

    Returns:
        SegmentResult; ``segments`` is empty for blank input.

    Raises:
        ValueError: If soft_limit is not positive.
    """
    if soft_limit <= 0:
        raise ValueError(f"soft_limit must be positive, got {soft_limit}")

    with timeit("segment") as t:
        texts: List[str] = []
        current = ""

        for paragraph in split_paragraphs(text):
            if not current or len(current) + len(paragraph) < soft_limit:
                current = current + PARAGRAPH_SEPARATOR + paragraph if current else paragraph
            else:
                texts.append(current)
                current = paragraph

        if current:
            texts.append(current)

        segments = [Segment(index=i, text=s) for i, s in enumerate(texts)]

    timings = {"segment": t.seconds}
    verbose(
        _LOG, "segmented",
        chars=len(text),
        segments=len(segments),
        soft_limit=soft_limit,
        seconds=round(timings["segment"], 4),
    )
    return SegmentResult(segments=segments, timings_s=timings)
