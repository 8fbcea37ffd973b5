"""Embedding generators for fact retrieval."""

from __future__ import annotations

import hashlib
import logging
import math
import os
from abc import ABC, abstractmethod
from typing import Any

from llm.base_llm import LLMUnavailableError

logger = logging.getLogger("veritas.embedding")


def _tokenize(text: str) -> list[str]:
    return [t for t in "".join(ch.lower() if ch.isalnum() else " " for ch in text).split() if t]


def normalize(vector: list[float]) -> list[float]:
    """Scale a vector to unit length; zero vectors are returned unchanged."""
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


class BaseEmbedder(ABC):
    """Fixed-dimension text embedder."""

    dimension: int

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return a vector of length ``dimension``."""


class HashEmbedder(BaseEmbedder):
    """Deterministic offline embedder: hashed token counts, unit-normalized."""

    def __init__(self, dimension: int = 1536) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    def _bucket(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self.dimension

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _tokenize(text):
            vector[self._bucket(token)] += 1.0
        return normalize(vector)


class OpenAIEmbedder(BaseEmbedder):
    """OpenAI embeddings adapter. Requires the ``openai`` package and an API key."""

    def __init__(self, model: str = "text-embedding-3-small", dimension: int = 1536) -> None:
        self.model = model
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise LLMUnavailableError("OPENAI_API_KEY not set; configure credentials or use the hash embedder.")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise LLMUnavailableError("`openai` package missing") from exc

        client = OpenAI(api_key=api_key)
        response = client.embeddings.create(model=self.model, input=text, dimensions=self.dimension)
        vector = list(response.data[0].embedding)[: self.dimension]
        return normalize(vector)


def build_embedder(config: dict[str, Any]) -> BaseEmbedder:
    """Build an embedder from configuration, defaulting to the offline hash embedder."""
    memory_cfg = config.get("memory", {})
    dimension = int(memory_cfg.get("embedding_dimension", 1536))
    provider = str(memory_cfg.get("embedding_provider", "hash"))
    if provider == "openai":
        return OpenAIEmbedder(
            model=memory_cfg.get("embedding_model", "text-embedding-3-small"),
            dimension=dimension,
        )
    if provider != "hash":
        logger.warning("Unknown embedding provider %s, using hash embedder", provider)
    return HashEmbedder(dimension=dimension)
