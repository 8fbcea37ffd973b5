"""Base LLM interface."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any


class LLMUnavailableError(RuntimeError):
    """Provider cannot answer: missing credentials, package or a failed call."""


class BaseLLM(ABC):
    """Abstract LLM provider interface."""

    name: str = "llm"

    @abstractmethod
    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        """Return assistant response text for a message list.

        Raises ``LLMUnavailableError`` instead of returning error text, so callers
        never mistake a provider failure for an answer.
        """

    async def achat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        """Run the blocking ``chat`` call in a worker thread."""
        return await asyncio.to_thread(self.chat, messages, **kwargs)
