"""Text scoring helpers for branch lookup and fact indexing."""

from __future__ import annotations

import re

STOP_WORDS = frozenset(
    {
        # French
        "le", "la", "les", "un", "une", "des", "de", "du", "à", "au", "aux",
        "et", "ou", "mais", "donc", "car", "ni", "que", "qui", "quoi",
        "ce", "cet", "cette", "ces", "mon", "ton", "son", "notre", "votre",
        "je", "tu", "il", "elle", "nous", "vous", "ils", "elles", "on",
        "est", "sont", "suis", "es", "sommes", "êtes", "être", "avoir",
        # English
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "can", "to", "of", "in", "for",
        "on", "with", "at", "by", "from", "as", "into", "through", "during",
        "before", "after", "above", "below", "between", "under", "again",
        "and", "but", "or", "nor", "so", "yet", "both", "either", "neither",
        "not", "only", "own", "same", "than", "too", "very", "just",
    }
)

_NON_WORD = re.compile(r"[^a-zàâäéèêëïîôùûüç\s]")


def extract_keywords(text: str, limit: int = 20) -> list[str]:
    """Lowercased content words longer than two characters, stop words removed."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS][:limit]


def lexical_overlap(query: str, text: str) -> float:
    """Share of query keywords present in text."""
    q_tokens = set(extract_keywords(query, limit=200))
    t_tokens = set(extract_keywords(text, limit=10_000))
    if not q_tokens or not t_tokens:
        return 0.0
    return len(q_tokens & t_tokens) / len(q_tokens)
