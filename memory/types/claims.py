"""Knowledge claim models and epistemic branch rules."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(UTC)


class EpistemicBranch(str, Enum):
    """Knowledge sources ordered by trust. Never mixed."""

    HIGH_TRUST = "HIGH_TRUST"
    HYPOTHESIS = "HYPOTHESIS"
    UNVERIFIED = "UNVERIFIED"


BRANCH_CONFIDENCE_RANGES: dict[EpistemicBranch, tuple[int, int]] = {
    EpistemicBranch.HIGH_TRUST: (100, 100),
    EpistemicBranch.HYPOTHESIS: (50, 99),
    EpistemicBranch.UNVERIFIED: (0, 49),
}


def confidence_in_range(branch: EpistemicBranch, confidence: float) -> bool:
    """Return True when confidence is allowed for the branch."""
    low, high = BRANCH_CONFIDENCE_RANGES[branch]
    return low <= confidence <= high


def branch_for_confidence(confidence: float) -> EpistemicBranch:
    """Map a confidence value to the branch that may hold it."""
    if confidence >= 100:
        return EpistemicBranch.HIGH_TRUST
    if confidence >= 50:
        return EpistemicBranch.HYPOTHESIS
    return EpistemicBranch.UNVERIFIED


class ClaimState(str, Enum):
    PENDING_PROOF = "PENDING_PROOF"
    WATCHING = "WATCHING"
    VERIFIED = "VERIFIED"
    DEPRECATED = "DEPRECATED"


# Forward order of the lifecycle; DEPRECATED sits outside it.
STATE_RANK: dict[ClaimState, int] = {
    ClaimState.PENDING_PROOF: 0,
    ClaimState.WATCHING: 1,
    ClaimState.VERIFIED: 2,
}


def is_allowed_transition(from_state: ClaimState, to_state: ClaimState) -> bool:
    """Forward moves, same-state updates and deprecation are allowed."""
    if to_state == ClaimState.DEPRECATED:
        return True
    if from_state == ClaimState.DEPRECATED:
        return False
    return STATE_RANK[to_state] >= STATE_RANK[from_state]


class PriorityQueue(str, Enum):
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"


class ClaimKind(str, Enum):
    CLAIM = "claim"
    INTERACTION = "interaction"
    DECISION = "decision"
    FACT = "fact"


class DependencyType(str, Enum):
    DERIVES_FROM = "DERIVES_FROM"
    REFERENCES = "REFERENCES"
    INVALIDATES = "INVALIDATES"
    SUPERSEDES = "SUPERSEDES"


class LedgerAction(str, Enum):
    CREATE = "CREATE"
    TRANSITION = "TRANSITION"
    INVALIDATE = "INVALIDATE"
    DEPRECATE = "DEPRECATE"
    RESTORE = "RESTORE"
    RETENTION = "RETENTION"


class AuditEntry(BaseModel):
    """One append-only record in a claim's audit trail."""

    timestamp: datetime = Field(default_factory=utc_now)
    action: LedgerAction
    from_state: ClaimState | None = None
    to_state: ClaimState | None = None
    trigger: str = ""
    agent: str = "system"
    reason: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class KnowledgeClaim(BaseModel):
    """Durable statement tracked by the ledger. Soft-invalidated only."""

    id: str
    seq: int = 0
    statement: str
    domain: str = "general"
    current_state: ClaimState = ClaimState.PENDING_PROOF
    epistemic_branch: EpistemicBranch = EpistemicBranch.HYPOTHESIS
    confidence_score: int = 50
    tags: list[str] = Field(default_factory=list)
    importance: int = 50
    priority_queue: PriorityQueue = PriorityQueue.WARM
    kind: ClaimKind = ClaimKind.CLAIM
    owner_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    audit_trail: list[AuditEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    invalidated_at: datetime | None = None
    invalidated_by: str | None = None
    invalidation_reason: str | None = None

    @property
    def is_invalidated(self) -> bool:
        return self.invalidated_at is not None


class Dependency(BaseModel):
    """Directed edge: claim_id depends on depends_on_id."""

    claim_id: str
    depends_on_id: str
    type: DependencyType = DependencyType.DERIVES_FROM
    created_at: datetime = Field(default_factory=utc_now)
