"""
script-reader API Routes.

All endpoints go through the shared ScriptReader session.

Endpoints:
    POST   /v1/generate               - Read a script, returns WAV audio
    GET    /v1/progress               - Progress of the latest generation
    GET    /v1/history                - History entries, most recent first
    POST   /v1/history/{id}/restore   - Make an entry active, returns its WAV
    DELETE /v1/history/{id}           - Delete one entry
    DELETE /v1/history                - Delete every entry
    GET    /v1/active                 - WAV of the active result
    DELETE /v1/active                 - Clear input and active result
    GET    /health                    - Health check

Error Handling:
    All errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<user facing message>",
        "details": {...}
    }

    HTTP status codes are mapped from ErrorCode:
        - EMPTY_INPUT -> 400
        - NOT_FOUND -> 404
        - ABANDONED -> 409
        - RESOURCE_RELEASED -> 410
        - CONTENT_REJECTED -> 422
        - QUOTA_EXCEEDED -> 429
        - SYNTHESIS_FAILED -> 502
        - CONNECTION_FAILED -> 503
        - TIMEOUT -> 504

Example Usage:
    >>> import httpx
    >>> r = httpx.post("http://localhost:8000/v1/generate", json={"text": script}, timeout=None)
    >>> with open("output.wav", "wb") as f:
    ...     f.write(r.content)
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from script_reader.api.dependencies import get_reader
from script_reader.api.schemas import Ack, GenerateRequest, HistoryItem, HistoryList, ProgressInfo
from script_reader.core.errors import ErrorCode, ScriptReaderError
from script_reader.core.logging import error, get_logger, set_request_id
from script_reader.services.reader_service import ScriptReader
from script_reader.tts.history import AudioResource

router = APIRouter()

_LOG = get_logger("script-reader.api")

STATUS_MAP = {
    ErrorCode.EMPTY_INPUT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ABANDONED: 409,
    ErrorCode.RESOURCE_RELEASED: 410,
    ErrorCode.CONTENT_REJECTED: 422,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.SYNTHESIS_FAILED: 502,
    ErrorCode.CONNECTION_FAILED: 503,
    ErrorCode.TIMEOUT: 504,
}


def _error_response(err: ScriptReaderError) -> JSONResponse:
    """Create a standardized JSON error response."""
    return JSONResponse(status_code=STATUS_MAP.get(err.code, 500), content=err.to_dict())


def _internal_error(exc: Exception, rid: str) -> JSONResponse:
    error(_LOG, "internal_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


def _not_found(entry_id: str) -> JSONResponse:
    return _error_response(ScriptReaderError(
        f"History entry not found: {entry_id}",
        ErrorCode.NOT_FOUND,
        {"id": entry_id},
    ))


def _wav_response(resource: AudioResource, entry_id: Optional[str] = None) -> Response:
    data = resource.data
    headers = {
        "X-Sample-Rate": str(resource.sample_rate),
        "X-Bytes": str(len(data)),
    }
    if entry_id:
        headers["X-Entry-Id"] = entry_id
    return Response(content=data, media_type=resource.media_type, headers=headers)


@router.post("/v1/generate", response_class=Response)
def generate(req: GenerateRequest, reader: ScriptReader = Depends(get_reader)):
    """
    Read a script and return the merged WAV.

    Returns:
        Response: WAV audio bytes with headers:
            - X-Entry-Id: History entry created for this run
            - X-Generation-Id: Generation counter value
            - X-Segments: Number of segments synthesized
            - X-Sample-Rate: Audio sample rate

    Example:
        curl -X POST http://localhost:8000/v1/generate \\
            -H "Content-Type: application/json" \\
            -d '{"text": "Hello world.\\n\\nSecond paragraph."}' \\
            --output script.wav
    """
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)

    try:
        result = reader.generate(req.text)
    except ScriptReaderError as e:
        return _error_response(e)
    except Exception as e:
        return _internal_error(e, rid)

    headers = {
        "X-Entry-Id": result.entry_id,
        "X-Generation-Id": str(result.generation_id),
        "X-Segments": str(result.segments),
        "X-Sample-Rate": str(result.sample_rate),
        "X-Bytes": str(len(result.wav_bytes)),
    }
    return Response(content=result.wav_bytes, media_type="audio/wav", headers=headers)


@router.get("/v1/progress", response_model=ProgressInfo)
def progress(reader: ScriptReader = Depends(get_reader)):
    """Progress of the latest generation, for polling while /v1/generate runs."""
    return reader.progress.to_dict()


@router.get("/v1/history", response_model=HistoryList)
def history(reader: ScriptReader = Depends(get_reader)):
    active = reader.active
    entries = [
        HistoryItem(**entry.to_dict(), active=entry.resource is active)
        for entry in reader.history()
    ]
    return HistoryList(count=len(entries), entries=entries)


@router.post("/v1/history/{entry_id}/restore", response_class=Response)
def restore(entry_id: str, reader: ScriptReader = Depends(get_reader)):
    """Make a history entry the active result and return its audio."""
    try:
        entry = reader.restore(entry_id)
        if entry is None:
            return _not_found(entry_id)
        return _wav_response(entry.resource, entry.id)
    except ScriptReaderError as e:
        return _error_response(e)


@router.delete("/v1/history/{entry_id}", response_model=Ack)
def delete_entry(entry_id: str, reader: ScriptReader = Depends(get_reader)):
    if not reader.delete(entry_id):
        return _not_found(entry_id)
    return Ack(id=entry_id)


@router.delete("/v1/history", response_model=Ack)
def clear_history(reader: ScriptReader = Depends(get_reader)):
    return Ack(cleared=reader.clear_history())


@router.get("/v1/active", response_class=Response)
def get_active(reader: ScriptReader = Depends(get_reader)):
    """WAV of the currently active result."""
    resource = reader.active
    if resource is None:
        return _error_response(ScriptReaderError("No active result", ErrorCode.NOT_FOUND))
    try:
        return _wav_response(resource)
    except ScriptReaderError as e:
        return _error_response(e)


@router.delete("/v1/active", response_model=Ack)
def clear_active(reader: ScriptReader = Depends(get_reader)):
    """Clear the current input and active result. History is kept."""
    reader.clear()
    return Ack()


@router.get("/health")
def health(reader: ScriptReader = Depends(get_reader)):
    """
    Health check endpoint.

    Returns backend description, audio format, history statistics and
    the latest progress snapshot.
    """
    return reader.health()
