"""
API Request/Response Schemas.

Pydantic models for the script-reader endpoints.

Models:
    GenerateRequest: Input for POST /v1/generate
    HistoryItem / HistoryList: GET /v1/history
    ProgressInfo: GET /v1/progress
    Ack: Acknowledgment for delete/clear endpoints

Example Request:
    {
        "text": "Chapter one.\\n\\nIt was a dark and stormy night."
    }
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """
    Generation request.

    Text longer than the configured maximum is truncated by the service,
    not rejected. Whitespace-only text yields an EMPTY_INPUT error.
    """
    text: str = Field(
        ...,
        description="Script to read aloud; paragraphs separated by blank lines",
    )


class HistoryItem(BaseModel):
    """One history entry as returned by the API (audio is fetched via restore)."""
    id: str = Field(..., description="Entry identifier")
    created_at: float = Field(..., description="Unix timestamp of creation")
    snippet: str = Field(..., description="Display snippet of the source text")
    full_text: Optional[str] = Field(default=None, description="Whole source text, if retained")
    segments: int = Field(..., description="Number of segments synthesized")
    bytes: int = Field(..., description="WAV size in bytes")
    sample_rate: int = Field(..., description="Audio sample rate in Hz")
    active: bool = Field(default=False, description="Whether this entry is the active result")


class HistoryList(BaseModel):
    """History, most recent first."""
    count: int
    entries: List[HistoryItem]


class ProgressInfo(BaseModel):
    """Progress of the latest generation."""
    state: str = Field(..., description="idle, running, done or failed")
    current: int = Field(..., description="1-based segment being synthesized")
    total: int = Field(..., description="Total segments in the run")
    generation_id: int
    elapsed_s: Optional[float] = Field(default=None, description="Seconds since start while running")
    message: str = ""
    error: Optional[str] = None


class Ack(BaseModel):
    """Acknowledgment for mutations."""
    ok: bool = True
    id: Optional[str] = None
    cleared: Optional[int] = None
