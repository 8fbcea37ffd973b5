"""OpenAI chat provider."""

from __future__ import annotations

import logging
import os
from typing import Any

from llm.base_llm import BaseLLM, LLMUnavailableError

logger = logging.getLogger("veritas.llm.openai")


class OpenAIProvider(BaseLLM):
    """OpenAI API adapter. Works only when dependency and API key are present."""

    name = "openai"

    def __init__(self, model: str = "gpt-4o-mini", temperature: float | None = None) -> None:
        self.model = model
        self.temperature = temperature

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise LLMUnavailableError("OPENAI_API_KEY not set")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise LLMUnavailableError("`openai` package missing") from exc

        params: dict[str, Any] = {"model": self.model, "messages": messages}
        temperature = kwargs.get("temperature", self.temperature)
        if temperature is not None:
            params["temperature"] = temperature
        try:
            client = OpenAI(api_key=api_key)
            response = client.chat.completions.create(**params)
        except Exception as exc:  # pragma: no cover - external API path
            logger.warning("OpenAI call failed: %s", exc)
            raise LLMUnavailableError(f"OpenAI call failed: {exc}") from exc
        content = response.choices[0].message.content
        if not content:
            raise LLMUnavailableError("OpenAI returned an empty response")
        return content
