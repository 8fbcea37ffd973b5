"""Dense vector similarity helpers shared by the claim stores."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import TypeVar

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two dense vectors; 0.0 when either is empty or zero."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_by_similarity(
    query: Sequence[float],
    rows: Iterable[tuple[T, Sequence[float] | None]],
    limit: int = 5,
    min_score: float | None = None,
) -> list[tuple[T, float]]:
    """Score rows against the query vector and return the best ``limit`` matches."""
    scored: list[tuple[T, float]] = []
    for item, vector in rows:
        if not vector:
            continue
        score = cosine_similarity(query, vector)
        if min_score is not None and score <= min_score:
            continue
        scored.append((item, score))
    scored.sort(key=lambda x: x[1], reverse=True)
    return scored[:limit]
