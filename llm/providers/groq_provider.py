"""Groq LLM provider (OpenAI-compatible API)."""

from __future__ import annotations

import logging
import os
from typing import Any

from llm.base_llm import BaseLLM, LLMUnavailableError

logger = logging.getLogger("veritas.llm.groq")


class GroqProvider(BaseLLM):
    """Groq inference adapter. Uses OpenAI-compatible endpoint."""

    name = "groq"
    BASE_URL = "https://api.groq.com/openai/v1"

    def __init__(self, model: str = "llama-3.3-70b-versatile", temperature: float | None = None) -> None:
        self.model = model
        self.temperature = temperature

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        api_key = os.getenv("GROQ_API_KEY")
        if not api_key:
            raise LLMUnavailableError("GROQ_API_KEY not set")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise LLMUnavailableError("`openai` package missing") from exc

        params: dict[str, Any] = {"model": self.model, "messages": messages}
        temperature = kwargs.get("temperature", self.temperature)
        if temperature is not None:
            params["temperature"] = temperature
        try:
            client = OpenAI(api_key=api_key, base_url=self.BASE_URL)
            response = client.chat.completions.create(**params)
        except Exception as exc:  # pragma: no cover - external API path
            logger.warning("Groq call failed: %s", exc)
            raise LLMUnavailableError(f"Groq call failed: {exc}") from exc
        content = response.choices[0].message.content
        if not content:
            raise LLMUnavailableError("Groq returned an empty response")
        return content
