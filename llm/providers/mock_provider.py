"""Deterministic local fallback LLM provider for offline usage."""

from __future__ import annotations

import re
from collections import Counter

from llm.base_llm import BaseLLM

_GREETING = re.compile(
    r"^\s*(hi|hello|hey|bonjour|salut|good\s+(morning|afternoon|evening)|thanks|thank\s+you|merci)\b",
    re.IGNORECASE,
)


class MockProvider(BaseLLM):
    """Rule-based local responder when external LLM backends are unavailable.

    Answers end with a ``CONFIDENCE:`` line so council members can parse them.
    Small talk gets a friendly reply; anything else is answered with low
    confidence, which keeps the validation gate from approving it.
    """

    name = "mock"

    def __init__(self, question_confidence: int = 40, greeting_confidence: int = 90) -> None:
        self.question_confidence = question_confidence
        self.greeting_confidence = greeting_confidence

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return [token for token in re.split(r"[^a-zA-Z0-9]+", text.lower()) if token]

    @staticmethod
    def _summarize_tokens(tokens: list[str], max_items: int = 8) -> str:
        if not tokens:
            return "no salient terms detected"
        top = Counter(tokens).most_common(max_items)
        return ", ".join(term for term, _ in top)

    def chat(self, messages: list[dict[str, str]], **kwargs: object) -> str:
        """Generate deterministic text from conversational messages."""
        _ = kwargs
        if not messages:
            return "No input received.\nCONFIDENCE: 0"
        user_messages = [m["content"] for m in messages if m.get("role") == "user"]
        prompt = user_messages[-1] if user_messages else messages[-1]["content"]
        question = prompt.rsplit("Question:", 1)[-1].strip()

        if _GREETING.search(question):
            return (
                "Hello! I am here and ready to help with your questions.\n"
                f"CONFIDENCE: {self.greeting_confidence}"
            )
        salient = self._summarize_tokens(self._tokenize(question))
        return (
            f"Offline reasoning only; no verified answer. Salient terms: {salient}.\n"
            "REASONING: no external model or source was consulted.\n"
            f"CONFIDENCE: {self.question_confidence}"
        )
