"""Google Gemini LLM provider with exponential backoff.

Uses the google-genai SDK. Rate-limit and quota errors are retried with
exponential backoff (2s, 4s, 8s); anything else fails at once with
``LLMUnavailableError``.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any

from llm.base_llm import BaseLLM, LLMUnavailableError

logger = logging.getLogger("veritas.llm.gemini")

_MAX_RETRIES = 3
_BASE_WAIT_SECONDS = 2.0
_RATE_LIMIT_MARKERS = ("429", "rate limit", "quota", "resource exhausted", "too many")


class GeminiProvider(BaseLLM):
    """Google Gemini API adapter with exponential backoff on rate limits."""

    name = "gemini"

    def __init__(self, model: str = "gemini-2.5-flash", max_retries: int = _MAX_RETRIES) -> None:
        self.model = model
        self.max_retries = max_retries

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        _ = kwargs
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise LLMUnavailableError("GEMINI_API_KEY not set")
        try:
            from google import genai
        except ImportError as exc:
            raise LLMUnavailableError("`google-genai` package missing") from exc

        client = genai.Client(api_key=api_key)
        contents = self._convert_messages(messages)

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = client.models.generate_content(model=self.model, contents=contents)
            except Exception as exc:
                last_error = exc
                if not any(marker in str(exc).lower() for marker in _RATE_LIMIT_MARKERS):
                    logger.error("Gemini call failed (non-retryable): %s", exc)
                    raise LLMUnavailableError(f"Gemini call failed: {exc}") from exc
                wait = _BASE_WAIT_SECONDS * (2 ** (attempt - 1))
                logger.warning(
                    "Gemini rate limit hit (attempt %d/%d), retrying in %.1fs: %s",
                    attempt,
                    self.max_retries,
                    wait,
                    exc,
                )
                time.sleep(wait)
                continue
            if not response.text:
                raise LLMUnavailableError("Gemini returned an empty response")
            return response.text

        logger.error("Gemini exhausted %d retries: %s", self.max_retries, last_error)
        raise LLMUnavailableError(f"Gemini failed after {self.max_retries} retries: {last_error}")

    @staticmethod
    def _convert_messages(messages: list[dict[str, str]]) -> list[dict[str, Any]]:
        """Convert OpenAI-style messages to Gemini contents; system text is folded into
        the first user turn."""
        contents: list[dict[str, Any]] = []
        system_text = ""
        for msg in messages:
            role = msg.get("role", "user")
            text = msg.get("content", "")
            if role == "system":
                system_text = f"{system_text}\n{text}".strip()
                continue
            contents.append(
                {"role": "model" if role == "assistant" else "user", "parts": [{"text": text}]}
            )
        if system_text and contents and contents[0]["role"] == "user":
            first = contents[0]["parts"][0]
            first["text"] = f"[System: {system_text}]\n\n{first['text']}"
        return contents
