"""
Audio Buffer and WAV Container Utilities.

All audio in script-reader uses one fixed format:
    - PCM 16-bit signed little-endian
    - Mono
    - Sample rate set by the backend contract (24000 Hz by default)

The backend returns raw PCM per segment. This module concatenates those
buffers and wraps the result in a canonical 44-byte RIFF/WAVE header:

    offset  size  field
    0       4     "RIFF"
    4       4     chunk size = 36 + data size
    8       4     "WAVE"
    12      4     "fmt "
    16      4     16 (fmt sub-chunk size)
    20      2     1 (linear PCM)
    22      2     channels
    24      4     sample rate
    28      4     byte rate = sample_rate * channels * bits / 8
    32      2     block align = channels * bits / 8
    34      2     bits per sample
    36      4     "data"
    40      4     data size = len(payload)
    44      ...   payload

Key Functions:
    concatenate_pcm: Byte-exact, order-preserving merge of segment buffers
    pcm_to_wav: Header + payload encoding
    parse_wav_header: Read the header fields back
    wav_to_pcm16: Decode any WAV with soundfile (reference decoder)
    pcm16_from_float32: Convert a float waveform in [-1, 1] to PCM-16 bytes

Precondition:
    concatenate_pcm does not check that its inputs share a sample format.
    The backend contract guarantees one format; mixing formats here would
    silently corrupt the result.
"""
from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
import soundfile as sf

from script_reader.core.logging import debug, get_logger

_LOG = get_logger("script-reader.audio")

WAV_HEADER_SIZE = 44
WAVE_FORMAT_PCM = 1

# "<" = little-endian, no padding; 44 bytes in total
_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class AudioFormat:
    """
    PCM sample format.

    Attributes:
        sample_rate: Samples per second.
        channels: Channel count (1 for the backend contract).
        bits_per_sample: Sample width in bits (16 for the backend contract).
    """
    sample_rate: int
    channels: int = 1
    bits_per_sample: int = 16

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align

    def duration_seconds(self, pcm_length: int) -> float:
        """Playback duration of a payload of ``pcm_length`` bytes."""
        return pcm_length / self.byte_rate if self.byte_rate else 0.0


@dataclass(frozen=True)
class WavHeader:
    """Decoded fields of a canonical 44-byte WAV header."""
    chunk_size: int
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def concatenate_pcm(buffers: Iterable[bytes]) -> bytes:
    """
    Concatenate raw PCM buffers in the given order.

    No resampling, no silence between segments. An empty iterable yields
    an empty buffer.
    """
    return b"".join(buffers)


def pcm_to_wav(pcm: bytes, fmt: AudioFormat) -> bytes:
    """
    Wrap raw PCM in a 44-byte WAV header.

    The payload is copied unmodified. A payload whose length is not a
    multiple of ``fmt.block_align`` is still encoded with its literal
    length.

    Args:
        pcm: Raw sample bytes.
        fmt: Sample format of ``pcm``.

    Returns:
        Complete WAV file bytes.
    """
    data_size = len(pcm)
    header = _HEADER_STRUCT.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        WAVE_FORMAT_PCM,
        fmt.channels,
        fmt.sample_rate,
        fmt.byte_rate,
        fmt.block_align,
        fmt.bits_per_sample,
        b"data",
        data_size,
    )
    wav = header + pcm

    # Pure computation above; a mismatch here is a bug, not bad input
    assert len(header) == WAV_HEADER_SIZE
    assert len(wav) - WAV_HEADER_SIZE == data_size

    debug(_LOG, "wav_encoded", data_size=data_size, sample_rate=fmt.sample_rate)
    return wav


def parse_wav_header(wav: bytes) -> WavHeader:
    """
    Parse the canonical header produced by pcm_to_wav.

    Raises:
        ValueError: If the bytes are too short or lack the RIFF/WAVE,
            fmt or data markers at their canonical offsets.
    """
    if len(wav) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(wav)} bytes")

    (riff, chunk_size, wave, fmt_id, fmt_size, format_tag, channels,
     sample_rate, byte_rate, block_align, bits, data_id, data_size) = _HEADER_STRUCT.unpack_from(wav)

    if riff != b"RIFF" or wave != b"WAVE":
        raise ValueError("missing RIFF/WAVE markers")
    if fmt_id != b"fmt " or fmt_size != 16 or data_id != b"data":
        raise ValueError("not a canonical 44-byte PCM header")

    return WavHeader(
        chunk_size=chunk_size,
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )


def wav_to_pcm16(wav_bytes: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode WAV bytes to int16 samples using libsndfile.

    Returns:
        Tuple of (samples, sample_rate). Mono input gives a 1-D array.
    """
    samples, sr = sf.read(io.BytesIO(wav_bytes), dtype="int16")
    return np.asarray(samples, dtype=np.int16), int(sr)


def pcm16_from_float32(waveform: np.ndarray) -> bytes:
    """
    Convert a float waveform in [-1, 1] to PCM-16 little-endian bytes.

    Values outside the range are clipped.
    """
    wav = np.asarray(waveform, dtype=np.float32).reshape(-1)
    clipped = np.clip(wav, -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()
