"""
Error Codes and Exceptions.

Every failure that reaches the presentation boundary (HTTP API or CLI)
is a ScriptReaderError carrying a stable code, a message and optional
details, plus a short user-facing message.

Hierarchy:
    ScriptReaderError
    ├── EmptyInputError           no text left after trimming/splitting
    ├── BackendError              a segment's synthesis call failed
    │   ├── BackendConnectionError   network / server unavailable
    │   ├── SynthesisTimeoutError    call exceeded the timeout
    │   ├── QuotaExceededError       backend rate limit / quota
    │   └── ContentRejectedError     backend refused the text
    ├── GenerationAbandonedError  superseded by a newer generation
    └── ResourceReleasedError     use or release of a freed audio resource
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Stable error codes returned in API error payloads."""
    EMPTY_INPUT = "EMPTY_INPUT"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TIMEOUT = "TIMEOUT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONTENT_REJECTED = "CONTENT_REJECTED"
    ABANDONED = "ABANDONED"
    RESOURCE_RELEASED = "RESOURCE_RELEASED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ScriptReaderError(Exception):
    """
    Base exception for script-reader errors.

    Attributes:
        message: Developer-facing error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    default_user_message = "Unable to generate audio."

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Message suitable for showing to an end user."""
        return self.message or self.default_user_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the standardized API error payload."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.user_message,
        }
        if self.details:
            result["details"] = self.details
        return result


class EmptyInputError(ScriptReaderError):
    """Raised before any backend call when the input holds no text."""
    def __init__(self, message: str = "No text to process.", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.EMPTY_INPUT, details)


class BackendError(ScriptReaderError):
    """
    Raised when a segment's synthesis call fails.

    Attributes:
        segment_index: 0-based index of the failing segment, when known.
    """
    connectivity = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict] = None,
        segment_index: Optional[int] = None,
        code: str = ErrorCode.SYNTHESIS_FAILED,
    ):
        details = dict(details or {})
        if segment_index is not None:
            details.setdefault("segment_index", segment_index)
        super().__init__(message, code, details)
        self.segment_index = segment_index

    def with_segment(self, index: int) -> "BackendError":
        """Annotate the failing segment index in place and return self."""
        self.segment_index = index
        self.details["segment_index"] = index
        return self


class BackendConnectionError(BackendError):
    """The backend could not be reached or answered with a server error."""
    connectivity = True

    def __init__(self, message: str, details: Optional[Dict] = None, segment_index: Optional[int] = None):
        super().__init__(message, details, segment_index, code=ErrorCode.CONNECTION_FAILED)

    @property
    def user_message(self) -> str:
        return "Connection failed. Please try again."


class SynthesisTimeoutError(BackendError):
    """A backend call exceeded the configured timeout."""
    connectivity = True

    def __init__(self, message: str, details: Optional[Dict] = None, segment_index: Optional[int] = None):
        super().__init__(message, details, segment_index, code=ErrorCode.TIMEOUT)

    @property
    def user_message(self) -> str:
        return "The speech service took too long to respond. Please try again."


class QuotaExceededError(BackendError):
    """The backend rejected the call because of rate limits or quota."""

    def __init__(self, message: str, details: Optional[Dict] = None, segment_index: Optional[int] = None):
        super().__init__(message, details, segment_index, code=ErrorCode.QUOTA_EXCEEDED)

    @property
    def user_message(self) -> str:
        return "The speech service quota was exceeded. Please wait and try again."


class ContentRejectedError(BackendError):
    """The backend refused to synthesize the segment's text."""

    def __init__(self, message: str, details: Optional[Dict] = None, segment_index: Optional[int] = None):
        super().__init__(message, details, segment_index, code=ErrorCode.CONTENT_REJECTED)


class GenerationAbandonedError(ScriptReaderError):
    """A generation was superseded by a newer one and its result discarded."""
    def __init__(self, message: str = "Generation superseded by a newer request.", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.ABANDONED, details)


class ResourceReleasedError(ScriptReaderError):
    """An audio resource was used or released after its storage was freed."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.RESOURCE_RELEASED, details)
