"""
Gemini speech backend over the Generative Language REST API.

Request:
    POST {base_url}/v1beta/models/{model}:generateContent
    x-goog-api-key: <key>
    {
      "contents": [{"parts": [{"text": "<segment>"}]}],
      "generationConfig": {
        "responseModalities": ["AUDIO"],
        "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": "Kore"}}}
      }
    }

Response:
    candidates[0].content.parts[*].inlineData.data holds base64 PCM-16
    mono samples at 24 kHz.

Failure mapping:
    httpx.TimeoutException       -> SynthesisTimeoutError
    other httpx transport errors -> BackendConnectionError
    HTTP 5xx                     -> BackendConnectionError
    HTTP 429                     -> QuotaExceededError
    HTTP 400, blocked prompt,
    or no audio in the reply     -> ContentRejectedError
    anything else                -> BackendError
"""
from __future__ import annotations

import base64
import binascii
import os
from typing import Any, Dict, Optional

import httpx

from script_reader.core.config import ReaderConfig, Settings
from script_reader.core.errors import (
    BackendConnectionError,
    BackendError,
    ContentRejectedError,
    QuotaExceededError,
    SynthesisTimeoutError,
)
from script_reader.core.logging import debug, verbose
from script_reader.tts.backend import BaseSynthesisBackend

_API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


class GeminiBackend(BaseSynthesisBackend):
    """
    Remote backend calling Gemini's text-to-speech models.

    Args:
        settings: Application settings.
        config: Validated configuration (built from settings if omitted).
        transport: Optional httpx transport, used by tests to mock the API.
    """
    name = "gemini"

    def __init__(
        self,
        settings: Settings,
        config: Optional[ReaderConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(settings, config)
        backend = self.config.backend
        self.model = backend.model
        self.voice = backend.voice
        self.timeout_s = backend.timeout_s
        self._api_key = backend.api_key or next(
            (os.environ[v] for v in _API_KEY_ENV_VARS if os.getenv(v)), None
        )
        self._client = httpx.Client(
            base_url=backend.base_url,
            timeout=httpx.Timeout(self.timeout_s),
            transport=transport,
        )

    def _payload(self, text: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}},
                },
            },
        }

    def synthesize_segment(self, text: str) -> bytes:
        if not self._api_key:
            raise BackendError(
                "Gemini API key is not configured",
                {"hint": "set backend.api_key or GEMINI_API_KEY"},
            )

        url = f"/v1beta/models/{self.model}:generateContent"
        debug(self.logger, "gemini_request", chars=len(text), model=self.model, voice=self.voice)

        try:
            resp = self._client.post(
                url,
                json=self._payload(text),
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.TimeoutException as e:
            raise SynthesisTimeoutError(
                f"Gemini request timed out after {self.timeout_s}s",
                {"timeout_s": self.timeout_s, "error_type": type(e).__name__},
            ) from e
        except httpx.TransportError as e:
            raise BackendConnectionError(
                f"Gemini request failed: {e}",
                {"error_type": type(e).__name__},
            ) from e

        self._raise_for_status(resp)
        pcm = self._extract_audio(resp)
        verbose(self.logger, "gemini_audio", bytes=len(pcm))
        return pcm

    def _raise_for_status(self, resp: httpx.Response) -> None:
        status = resp.status_code
        if status < 400:
            return

        details = {"status": status, "body": resp.text[:500]}
        if status == 429:
            raise QuotaExceededError("Gemini quota exceeded", details)
        if status >= 500:
            raise BackendConnectionError(f"Gemini server error {status}", details)
        if status == 400:
            raise ContentRejectedError("Gemini rejected the request", details)
        raise BackendError(f"Gemini request failed with HTTP {status}", details)

    def _extract_audio(self, resp: httpx.Response) -> bytes:
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendError("Gemini returned a non-JSON response") from e

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentRejectedError(
                f"Gemini blocked the prompt: {block_reason}",
                {"block_reason": block_reason},
            )

        candidates = data.get("candidates") or []
        if not candidates:
            raise ContentRejectedError("Gemini returned no candidates")

        candidate = candidates[0]
        for part in (candidate.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                try:
                    return base64.b64decode(inline["data"], validate=True)
                except (binascii.Error, ValueError) as e:
                    raise BackendError("Gemini returned malformed audio data") from e

        finish_reason = candidate.get("finishReason", "UNKNOWN")
        raise ContentRejectedError(
            f"Gemini returned no audio (finishReason={finish_reason})",
            {"finish_reason": finish_reason},
        )

    def close(self) -> None:
        self._client.close()

    def describe(self) -> dict:
        info = super().describe()
        info.update({"model": self.model, "voice": self.voice, "timeout_s": self.timeout_s})
        return info
