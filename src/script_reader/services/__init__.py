"""
script-reader Services Layer.

This package provides the session layer between the presentation
boundary (HTTP API, CLI) and the synthesis pipeline.

Components:
    - reader_service.py: ScriptReader class (generate, restore, delete, clear)

The ScriptReader class handles:
    - Input truncation and segmentation
    - Sequential synthesis and WAV encoding
    - History and active result ownership
    - Generation ids and stale result discarding
"""
from .reader_service import (
    GenerationProgress,
    GenerationResult,
    ScriptReader,
    get_service,
    reset_service,
)

__all__ = [
    "ScriptReader",
    "GenerationResult",
    "GenerationProgress",
    "get_service",
    "reset_service",
]
