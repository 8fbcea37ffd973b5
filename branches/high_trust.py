"""HIGH_TRUST branch: answers only from verified, citable material."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from branches.base import BaseBranch, BranchResult
from memory.ledger import MemoryLedger
from memory.scoring import lexical_overlap
from memory.types.claims import ClaimKind, ClaimState, EpistemicBranch
from memory.types.sources import Source

logger = logging.getLogger("veritas.branches.high_trust")


@dataclass(frozen=True)
class CorpusEntry:
    """One verified document the branch may cite."""

    identifier: str
    title: str
    content: str
    type: str = "document"
    url: str = ""

    def as_source(self) -> Source:
        return Source(
            type=self.type,
            identifier=self.identifier,
            url=self.url,
            title=self.title,
            trust_score=100,
            branch=EpistemicBranch.HIGH_TRUST,
        )


def load_corpus(entries: Iterable[dict[str, Any]]) -> list[CorpusEntry]:
    corpus: list[CorpusEntry] = []
    for raw in entries:
        if not raw.get("identifier") or not raw.get("content"):
            logger.warning("Skipping corpus entry without identifier or content: %s", raw)
            continue
        corpus.append(
            CorpusEntry(
                identifier=str(raw["identifier"]),
                title=str(raw.get("title", raw["identifier"])),
                content=str(raw["content"]),
                type=str(raw.get("type", "document")),
                url=str(raw.get("url", "")),
            )
        )
    return corpus


class HighTrustBranch(BaseBranch):
    """Matches the query against a verified corpus and verified ledger claims.

    Either returns content at confidence 100 with its sources, or nothing.
    """

    branch = EpistemicBranch.HIGH_TRUST

    def __init__(
        self,
        corpus: Sequence[CorpusEntry] = (),
        ledger: MemoryLedger | None = None,
        min_overlap: float = 0.5,
        max_results: int = 3,
    ) -> None:
        self.corpus = list(corpus)
        self.ledger = ledger
        self.min_overlap = min_overlap
        self.max_results = max_results

    def _corpus_hits(self, text: str) -> list[tuple[float, str, Source]]:
        hits = []
        for entry in self.corpus:
            score = lexical_overlap(text, f"{entry.title} {entry.content}")
            if score >= self.min_overlap:
                hits.append((score, entry.content, entry.as_source()))
        return hits

    def _ledger_hits(self, text: str) -> list[tuple[float, str, Source]]:
        if self.ledger is None:
            return []
        hits = []
        verified = self.ledger.list_claims(
            kind=ClaimKind.CLAIM, states=[ClaimState.VERIFIED], include_invalidated=False
        )
        for claim in verified:
            if claim.epistemic_branch != EpistemicBranch.HIGH_TRUST:
                continue
            score = lexical_overlap(text, claim.statement)
            if score >= self.min_overlap:
                source = Source(
                    type="ledger",
                    identifier=claim.id,
                    title=claim.domain,
                    trust_score=100,
                    branch=EpistemicBranch.HIGH_TRUST,
                )
                hits.append((score, claim.statement, source))
        return hits

    async def query(self, text: str, context: str = "") -> BranchResult:
        hits = self._corpus_hits(text) + self._ledger_hits(text)
        if not hits:
            return self.empty()
        hits.sort(key=lambda hit: hit[0], reverse=True)
        top = hits[: self.max_results]
        lines = [f"- {content} ({source.title or source.identifier})" for _, content, source in top]
        logger.info("High-trust branch matched %s source(s)", len(top))
        return BranchResult(
            branch=self.branch,
            content="Based on verified sources:\n" + "\n".join(lines),
            confidence=100,
            sources=[source for _, _, source in top],
        )
