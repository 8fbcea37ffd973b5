"""Fact persistence, review and retrieval on top of the ledger."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from core.errors import InvalidTransitionError, NotFoundError
from memory.embedding import BaseEmbedder
from memory.facts.extractor import FactExtractor
from memory.facts.trust import assign_trust
from memory.ledger import MemoryLedger
from memory.stores.vector_store import rank_by_similarity
from memory.types.claims import (
    ClaimKind,
    ClaimState,
    EpistemicBranch,
    KnowledgeClaim,
    PriorityQueue,
    utc_now,
)
from memory.types.facts import (
    FACT_IMPORTANCE,
    ExtractedFact,
    Fact,
    FactType,
    PersistenceResult,
    TrustState,
    VerificationLevel,
)

logger = logging.getLogger("veritas.facts")

SIMILARITY_THRESHOLD = 0.3


class FactService:
    """Stores user facts as hypothesis-branch claims with an embedding."""

    def __init__(
        self,
        ledger: MemoryLedger,
        embedder: BaseEmbedder,
        extractor: FactExtractor | None = None,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self.ledger = ledger
        self.embedder = embedder
        self.extractor = extractor or FactExtractor()
        self.similarity_threshold = similarity_threshold

    @staticmethod
    def _to_fact(claim: KnowledgeClaim) -> Fact:
        meta = claim.metadata
        verified_at = meta.get("verified_at")
        return Fact(
            id=claim.id,
            user_id=claim.owner_id or "",
            type=FactType(meta.get("fact_type", FactType.DECLARATION.value)),
            content=claim.statement,
            trust_state=TrustState(meta.get("trust_state", TrustState.PENDING.value)),
            confidence=int(meta.get("fact_confidence", claim.confidence_score)),
            keywords=list(meta.get("keywords", [])),
            requires_verification=bool(meta.get("requires_verification", False)),
            verified_by=meta.get("verified_by"),
            verified_at=datetime.fromisoformat(verified_at) if verified_at else None,
        )

    def store_fact(self, user_id: str, fact: ExtractedFact, level: VerificationLevel) -> Fact:
        """Persist one extracted fact with the trust state its submitter earns."""
        trust = assign_trust(fact, level)
        importance = FACT_IMPORTANCE.get(fact.type, 50)
        claim = self.ledger.create_claim(
            fact.content,
            domain="user_facts",
            tags=["fact", fact.type.value.lower()],
            initial_state=ClaimState.VERIFIED if trust == TrustState.VERIFIED else ClaimState.PENDING_PROOF,
            branch=EpistemicBranch.HYPOTHESIS,
            initial_confidence=max(50, min(99, fact.confidence)),
            importance=importance,
            priority_queue=PriorityQueue.HOT if importance >= 90 else PriorityQueue.WARM,
            kind=ClaimKind.FACT,
            owner_id=user_id,
            metadata={
                "fact_type": fact.type.value,
                "trust_state": trust.value,
                "fact_confidence": fact.confidence,
                "requires_verification": fact.requires_verification,
                "keywords": fact.keywords,
                "submitted_level": level.value,
            },
            embedding=self.embedder.embed(fact.content),
            agent=f"user:{user_id}",
        )
        return self._to_fact(claim)

    def persist_message(
        self,
        user_id: str,
        message: str,
        level: VerificationLevel = VerificationLevel.UNVERIFIED,
    ) -> PersistenceResult:
        """Extract facts from a message and store every one of them."""
        extracted = self.extractor.extract(message)
        result = PersistenceResult(facts_extracted=len(extracted))
        for fact in extracted:
            stored = self.store_fact(user_id, fact, level)
            result.stored_facts.append(stored)
            result.facts_stored += 1
            if stored.trust_state == TrustState.PENDING:
                result.facts_pending += 1
        if extracted:
            logger.info(
                "Persisted %s fact(s) for %s (%s pending)",
                result.facts_stored,
                user_id,
                result.facts_pending,
            )
        return result

    def get_fact(self, fact_id: str) -> Fact:
        claim = self.ledger.get_claim(fact_id)
        if claim.kind != ClaimKind.FACT:
            raise NotFoundError("Fact", fact_id)
        return self._to_fact(claim)

    def list_facts(
        self,
        user_id: str,
        trust_state: TrustState | None = None,
        types: Sequence[FactType] | None = None,
    ) -> list[Fact]:
        facts: list[Fact] = []
        for claim in self.ledger.list_claims(
            owner_id=user_id, kind=ClaimKind.FACT, include_invalidated=False
        ):
            fact = self._to_fact(claim)
            if trust_state is not None and fact.trust_state != trust_state:
                continue
            if types is not None and fact.type not in types:
                continue
            facts.append(fact)
        return facts

    def verify_fact(self, fact_id: str, reviewer_id: str, approve: bool) -> Fact:
        """Move a PENDING fact to VERIFIED or REJECTED. Any other source state raises."""
        target = TrustState.VERIFIED if approve else TrustState.REJECTED
        with self.ledger.lock:
            fact = self.get_fact(fact_id)
            if fact.trust_state != TrustState.PENDING:
                raise InvalidTransitionError("fact", fact.trust_state.value, target.value)
            claim = self.ledger.transition(
                fact_id,
                ClaimState.VERIFIED if approve else ClaimState.DEPRECATED,
                trigger="fact_review",
                agent=reviewer_id,
                reason=f"Fact {'approved' if approve else 'rejected'} by {reviewer_id}",
            )
            claim.metadata["trust_state"] = target.value
            claim.metadata["verified_by"] = reviewer_id
            claim.metadata["verified_at"] = utc_now().isoformat()
            self.ledger.claims.save(claim)
        logger.info("Fact %s %s by %s", fact_id, target.value, reviewer_id)
        return self._to_fact(claim)

    def context_for_query(self, user_id: str, query: str, limit: int = 10) -> list[Fact]:
        """Verified identity fact plus the verified facts most similar to the query."""
        verified = [
            claim
            for claim in self.ledger.list_claims(
                owner_id=user_id, kind=ClaimKind.FACT, include_invalidated=False
            )
            if claim.metadata.get("trust_state") == TrustState.VERIFIED.value
            and claim.current_state != ClaimState.DEPRECATED
        ]
        identity = next(
            (
                c
                for c in reversed(verified)
                if c.metadata.get("fact_type") == FactType.IDENTITY.value
            ),
            None,
        )
        results: list[Fact] = [self._to_fact(identity)] if identity is not None else []
        if not verified:
            return results

        # Only verified, live facts are ranked.
        candidates = [c for c in verified if identity is None or c.id != identity.id]
        matches = rank_by_similarity(
            self.embedder.embed(query),
            ((c, c.embedding) for c in candidates),
            limit=limit,
            min_score=self.similarity_threshold,
        )
        results.extend(self._to_fact(claim) for claim, _score in matches)
        return results

    @staticmethod
    def format_context(facts: Sequence[Fact]) -> str:
        """Render facts as a prompt preamble."""
        if not facts:
            return ""
        lines = [f"- [{fact.type.value}] {fact.content}" for fact in facts]
        return "Known facts about the user:\n" + "\n".join(lines)
