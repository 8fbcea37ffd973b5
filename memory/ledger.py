"""Dependency-aware knowledge ledger with audited state transitions."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from core.errors import ConfidenceOutOfRangeError, InvalidTransitionError, NotFoundError
from memory.stores.base import ClaimStore, DependencyStore
from memory.types.claims import (
    BRANCH_CONFIDENCE_RANGES,
    AuditEntry,
    ClaimKind,
    ClaimState,
    Dependency,
    DependencyType,
    EpistemicBranch,
    KnowledgeClaim,
    LedgerAction,
    PriorityQueue,
    confidence_in_range,
    is_allowed_transition,
    utc_now,
)

logger = logging.getLogger("veritas.ledger")


@dataclass
class InvalidationResult:
    """Outcome of one invalidation call."""

    root_id: str
    invalidated_count: int = 0
    invalidated_ids: list[str] = field(default_factory=list)


class MemoryLedger:
    """Owns knowledge claims and their dependency graph.

    Claims are never physically deleted: invalidation and deprecation only set
    fields and append audit entries. Mutations that read then write several
    claims (transition, invalidate, rollback) run under ``self.lock`` so they
    are serialized within one process.
    """

    def __init__(self, claims: ClaimStore, dependencies: DependencyStore) -> None:
        self.claims = claims
        self.dependencies = dependencies
        self.lock = threading.RLock()

    @staticmethod
    def check_confidence(branch: EpistemicBranch, confidence: int) -> None:
        """Raise when a confidence value does not belong to its branch."""
        if not confidence_in_range(branch, confidence):
            raise ConfidenceOutOfRangeError(confidence, branch.value, BRANCH_CONFIDENCE_RANGES[branch])

    def create_claim(
        self,
        statement: str,
        *,
        domain: str = "general",
        tags: Sequence[str] | None = None,
        initial_state: ClaimState | None = None,
        branch: EpistemicBranch = EpistemicBranch.HYPOTHESIS,
        initial_confidence: int | None = None,
        importance: int = 50,
        priority_queue: PriorityQueue = PriorityQueue.WARM,
        kind: ClaimKind = ClaimKind.CLAIM,
        owner_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
        agent: str = "system",
    ) -> KnowledgeClaim:
        """Insert a claim. High-trust claims start VERIFIED at confidence 100."""
        if branch == EpistemicBranch.HIGH_TRUST:
            state = initial_state or ClaimState.VERIFIED
            confidence = 100 if initial_confidence is None else initial_confidence
        else:
            state = initial_state or ClaimState.PENDING_PROOF
            low, _ = BRANCH_CONFIDENCE_RANGES[branch]
            confidence = low if initial_confidence is None else initial_confidence
        self.check_confidence(branch, confidence)
        if state == ClaimState.DEPRECATED:
            raise InvalidTransitionError("claim", "NEW", state.value)

        now = utc_now()
        claim = KnowledgeClaim(
            id=uuid.uuid4().hex,
            statement=statement,
            domain=domain,
            current_state=state,
            epistemic_branch=branch,
            confidence_score=confidence,
            tags=list(tags or []),
            importance=max(0, min(100, importance)),
            priority_queue=priority_queue,
            kind=kind,
            owner_id=owner_id,
            metadata=dict(metadata or {}),
            embedding=embedding,
            audit_trail=[
                AuditEntry(
                    timestamp=now,
                    action=LedgerAction.CREATE,
                    to_state=state,
                    trigger="create",
                    agent=agent,
                    reason="Claim created",
                    metadata={"branch": branch.value, "confidence": confidence},
                )
            ],
            created_at=now,
            updated_at=now,
        )
        stored = self.claims.add(claim)
        logger.info(
            "Created claim %s branch=%s state=%s confidence=%s",
            stored.id,
            branch.value,
            state.value,
            confidence,
        )
        return stored

    def get_claim(self, claim_id: str) -> KnowledgeClaim:
        claim = self.claims.get(claim_id)
        if claim is None:
            raise NotFoundError("Claim", claim_id)
        return claim

    def list_claims(self, **filters: Any) -> list[KnowledgeClaim]:
        return self.claims.list_claims(**filters)

    def transition(
        self,
        claim_id: str,
        new_state: ClaimState,
        *,
        trigger: str,
        agent: str,
        reason: str = "",
        new_confidence: int | None = None,
        new_branch: EpistemicBranch | None = None,
    ) -> KnowledgeClaim:
        """Move a claim through its lifecycle, always appending an audit entry."""
        with self.lock:
            claim = self.get_claim(claim_id)
            if not is_allowed_transition(claim.current_state, new_state):
                raise InvalidTransitionError("claim", claim.current_state.value, new_state.value)
            branch = new_branch or claim.epistemic_branch
            confidence = claim.confidence_score if new_confidence is None else new_confidence
            self.check_confidence(branch, confidence)

            action = (
                LedgerAction.DEPRECATE if new_state == ClaimState.DEPRECATED else LedgerAction.TRANSITION
            )
            claim.audit_trail.append(
                AuditEntry(
                    action=action,
                    from_state=claim.current_state,
                    to_state=new_state,
                    trigger=trigger,
                    agent=agent,
                    reason=reason,
                    metadata={
                        "from_confidence": claim.confidence_score,
                        "to_confidence": confidence,
                        "branch": branch.value,
                    },
                )
            )
            claim.current_state = new_state
            claim.confidence_score = confidence
            claim.epistemic_branch = branch
            claim.updated_at = utc_now()
            self.claims.save(claim)
        logger.info(
            "Claim %s transitioned to %s by %s (%s)", claim_id, new_state.value, agent, trigger
        )
        return claim

    def add_dependency(
        self,
        claim_id: str,
        depends_on_id: str,
        dependency_type: DependencyType = DependencyType.DERIVES_FROM,
    ) -> Dependency:
        """Record that ``claim_id`` depends on ``depends_on_id``. Cycles are not checked."""
        self.get_claim(claim_id)
        self.get_claim(depends_on_id)
        edge = self.dependencies.add(
            Dependency(claim_id=claim_id, depends_on_id=depends_on_id, type=dependency_type)
        )
        logger.debug("Dependency %s -[%s]-> %s", claim_id, dependency_type.value, depends_on_id)
        return edge

    def get_dependents(self, claim_id: str) -> list[KnowledgeClaim]:
        """Direct dependents of a claim."""
        out: list[KnowledgeClaim] = []
        for dependent_id in self.dependencies.dependents_of(claim_id):
            claim = self.claims.get(dependent_id)
            if claim is not None:
                out.append(claim)
        return out

    def collect_cascade(self, claim_id: str) -> list[str]:
        """Breadth-first list of the claim and everything that transitively depends on it."""
        ordered: list[str] = []
        visited: set[str] = set()
        queue: deque[str] = deque([claim_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            ordered.append(current)
            for dependent_id in self.dependencies.dependents_of(current):
                if dependent_id not in visited:
                    queue.append(dependent_id)
        return ordered

    def invalidate(
        self,
        claim_id: str,
        invalidated_by: str,
        reason: str,
        cascade: bool = True,
    ) -> InvalidationResult:
        """Soft-invalidate a claim and, when cascading, every transitive dependent once."""
        with self.lock:
            self.get_claim(claim_id)
            targets = self.collect_cascade(claim_id) if cascade else [claim_id]
            result = InvalidationResult(root_id=claim_id)
            for target_id in targets:
                claim = self.claims.get(target_id)
                if claim is None:
                    logger.warning("Dependency points at missing claim %s, skipping", target_id)
                    continue
                is_root = target_id == claim_id
                claim_reason = reason if is_root else f"Cascade invalidation from {claim_id}: {reason}"
                self._mark_invalidated(claim, invalidated_by, claim_reason, claim_id, is_root)
                result.invalidated_count += 1
                result.invalidated_ids.append(target_id)
        logger.warning(
            "Invalidated %s claim(s) from root %s by %s (cascade=%s)",
            result.invalidated_count,
            claim_id,
            invalidated_by,
            cascade,
        )
        return result

    def _mark_invalidated(
        self,
        claim: KnowledgeClaim,
        invalidated_by: str,
        reason: str,
        root_id: str,
        is_root: bool,
    ) -> None:
        now = utc_now()
        claim.audit_trail.append(
            AuditEntry(
                timestamp=now,
                action=LedgerAction.INVALIDATE,
                from_state=claim.current_state,
                to_state=ClaimState.DEPRECATED,
                trigger="root_cause" if is_root else "cascade_effect",
                agent=invalidated_by,
                reason=reason,
                metadata={"root_id": root_id, "root_cause": is_root},
            )
        )
        claim.current_state = ClaimState.DEPRECATED
        claim.invalidated_at = now
        claim.invalidated_by = invalidated_by
        claim.invalidation_reason = reason
        claim.updated_at = now
        self.claims.save(claim)

    def prune_audit_trail(self, claim_id: str, keep_last: int, agent: str = "retention") -> int:
        """Retention policy: drop all but the newest ``keep_last`` audit entries."""
        if keep_last < 0:
            raise ValueError("keep_last must be >= 0")
        with self.lock:
            claim = self.get_claim(claim_id)
            removed = max(0, len(claim.audit_trail) - keep_last)
            if removed == 0:
                return 0
            kept = claim.audit_trail[-keep_last:] if keep_last else []
            kept.append(
                AuditEntry(
                    action=LedgerAction.RETENTION,
                    from_state=claim.current_state,
                    to_state=claim.current_state,
                    trigger="retention_policy",
                    agent=agent,
                    reason=f"Pruned {removed} audit entries",
                    metadata={"removed": removed, "kept": keep_last},
                )
            )
            claim.audit_trail = kept
            claim.updated_at = utc_now()
            self.claims.save(claim)
        logger.warning("Pruned %s audit entries from claim %s (agent=%s)", removed, claim_id, agent)
        return removed
