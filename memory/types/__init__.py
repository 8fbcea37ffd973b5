"""Typed ledger payload models."""

from memory.types.checkpoints import Checkpoint, CheckpointKind, ClaimSnapshot, RollbackResult
from memory.types.claims import (
    AuditEntry,
    ClaimKind,
    ClaimState,
    Dependency,
    DependencyType,
    EpistemicBranch,
    KnowledgeClaim,
    LedgerAction,
    PriorityQueue,
)
from memory.types.facts import (
    ExtractedFact,
    Fact,
    FactType,
    PersistenceResult,
    TrustState,
    VerificationLevel,
)
from memory.types.sources import Source

__all__ = [
    "AuditEntry",
    "Checkpoint",
    "CheckpointKind",
    "ClaimKind",
    "ClaimSnapshot",
    "ClaimState",
    "Dependency",
    "DependencyType",
    "EpistemicBranch",
    "ExtractedFact",
    "Fact",
    "FactType",
    "KnowledgeClaim",
    "LedgerAction",
    "PersistenceResult",
    "PriorityQueue",
    "RollbackResult",
    "Source",
    "TrustState",
    "VerificationLevel",
]
