"""
app/services/gemini_client.py – wrapper around the Google Gen AI SDK.

Key design decisions
────────────────────
• Uses the `google-genai` SDK (not the deprecated `google-generativeai`).
• Retries on transient errors (429, 5xx, connection errors) with exponential backoff.
• Never logs the API key or raw user content.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from app.config import settings

logger = logging.getLogger(__name__)

TRANSCRIBE_INSTRUCTION = (
    "Please transcribe this audio file. Return only the transcribed text "
    "without any additional formatting or explanation."
)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _is_transient(exc: BaseException) -> bool:
    """Return True for errors that are safe to retry."""
    if isinstance(exc, genai_errors.APIError):
        # 429 = quota/rate-limit, 5xx = server errors
        return exc.code in {429, 500, 502, 503, 504}
    # Connection-level / timeout errors
    return isinstance(exc, (TimeoutError, ConnectionError, OSError))


def _token_count(response: Any) -> int:
    usage = getattr(response, "usage_metadata", None)
    if not usage:
        return 0
    return (usage.prompt_token_count or 0) + (usage.candidates_token_count or 0)


# ── Client ────────────────────────────────────────────────────────────────────


class GeminiClient:
    """Thin, production-hardened wrapper around the Google Gen AI SDK."""

    def __init__(self) -> None:
        api_key = settings.gemini_api_key
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY is not set. "
                "Please export it or add it to your .env file."
            )
        self._client = genai.Client(api_key=api_key)
        self._model = settings.gemini_model
        logger.info(
            "GeminiClient initialised",
            extra={"model": self._model},
        )

    @property
    def model(self) -> str:
        return self._model

    # ── Public methods ────────────────────────────────────────────────────────

    def generate_text(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Call Gemini and return a result dict.

        Returns
        -------
        dict with keys:
            text        – raw text of the response
            model       – model string used
            tokens_used – token count reported by the SDK (0 if absent)
            latency_ms  – wall-clock latency in milliseconds
        """
        config_kwargs: dict[str, Any] = {
            "temperature": settings.gemini_temperature if temperature is None else temperature,
            "max_output_tokens": max_output_tokens or settings.gemini_max_output_tokens,
        }
        if system_instruction:
            config_kwargs["system_instruction"] = system_instruction

        return self._call_with_retry(
            contents=prompt,
            config=genai_types.GenerateContentConfig(**config_kwargs),
        )

    def transcribe_audio(self, audio: bytes, mime_type: str) -> dict[str, Any]:
        """Send audio inline and ask for a plain transcript."""
        contents = [
            genai_types.Part.from_bytes(data=audio, mime_type=mime_type),
            TRANSCRIBE_INSTRUCTION,
        ]
        return self._call_with_retry(contents=contents, config=None)

    # ── Internal retry wrapper ─────────────────────────────────────────────────

    def _call_with_retry(
        self,
        contents: Any,
        config: Optional[genai_types.GenerateContentConfig],
    ) -> dict[str, Any]:
        """Executes the API call with exponential-backoff retries."""

        @retry(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(settings.gemini_retry_attempts),
            wait=wait_exponential(
                min=settings.gemini_retry_min_wait,
                max=settings.gemini_retry_max_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _execute() -> dict[str, Any]:
            t0 = time.perf_counter()
            response = self._client.models.generate_content(
                model=self._model,
                contents=contents,
                config=config,
            )
            latency_ms = (time.perf_counter() - t0) * 1000
            tokens_used = _token_count(response)

            logger.debug(
                "Gemini call completed",
                extra={
                    "model": self._model,
                    "tokens_used": tokens_used,
                    "latency_ms": round(latency_ms, 1),
                },
            )

            return {
                "text": response.text or "",
                "model": self._model,
                "tokens_used": tokens_used,
                "latency_ms": latency_ms,
            }

        return _execute()


# ── Module-level singleton (lazy init) ────────────────────────────────────────

_client_instance: Optional[GeminiClient] = None


def get_gemini_client() -> GeminiClient:
    """Return the shared GeminiClient singleton (created on first call)."""
    global _client_instance
    if _client_instance is None:
        _client_instance = GeminiClient()
    return _client_instance
