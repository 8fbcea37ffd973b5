"""Source anchoring: find factual claims in content and attach verified sources."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from memory.types.claims import EpistemicBranch
from memory.types.sources import Source

logger = logging.getLogger("veritas.governance.anchoring")

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_FACTUAL_MARKER = re.compile(r"\d|\b(?:is|are|was|were|has|have|had)\b", re.IGNORECASE)
MIN_CLAIM_CHARS = 10
MAX_CLAIMS = 10


def extract_claims(content: str) -> list[str]:
    """Sentences that look like factual statements."""
    claims = []
    for sentence in _SENTENCE_SPLIT.split(content):
        sentence = sentence.strip()
        if len(sentence) > MIN_CLAIM_CHARS and _FACTUAL_MARKER.search(sentence):
            claims.append(sentence)
        if len(claims) >= MAX_CLAIMS:
            break
    return claims


def verify_source(source: Source) -> bool:
    return source.branch == EpistemicBranch.HIGH_TRUST and source.trust_score == 100


def dedupe_sources(sources: Iterable[Source]) -> list[Source]:
    seen: set[str] = set()
    unique: list[Source] = []
    for source in sources:
        if source.dedup_key in seen:
            continue
        seen.add(source.dedup_key)
        unique.append(source)
    return unique


@dataclass
class AnchoringReport:
    claims: list[str] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    rejected_sources: int = 0

    @property
    def anchored(self) -> bool:
        return bool(self.sources)


class AnchoringService:
    """Attaches verified sources to content; unverifiable candidates are dropped."""

    def anchor(self, content: str, candidates: Sequence[Source]) -> AnchoringReport:
        claims = extract_claims(content)
        verified = [s for s in candidates if verify_source(s)]
        report = AnchoringReport(
            claims=claims,
            sources=dedupe_sources(verified),
            rejected_sources=len(candidates) - len(verified),
        )
        if report.rejected_sources:
            logger.info("Dropped %s unverifiable source(s)", report.rejected_sources)
        return report
