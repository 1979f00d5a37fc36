"""
script-reader: Long Script to Single WAV Text-to-Speech.

Turns arbitrarily long scripts into one playable WAV file by calling a
speech backend once per paragraph-sized segment and stitching the raw
PCM results together.

Key Features:
    - Paragraph-based segmentation with an advisory soft limit
    - Strictly sequential, all-or-nothing synthesis with progress
    - Byte-exact PCM merge and canonical 44-byte WAV header
    - Reference-counted history with an active result slot
    - Gemini backend over httpx, offline stub backend
    - HTTP API (FastAPI) and CLI

Example Usage:
    >>> from script_reader.services import ScriptReader
    >>> from script_reader.core.config import Settings
    >>>
    >>> reader = ScriptReader(Settings(raw={"backend": {"engine": "stub"}}))
    >>> result = reader.generate("First paragraph.\\n\\nSecond paragraph.")
    >>> with open("output.wav", "wb") as f:
    ...     f.write(result.wav_bytes)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
