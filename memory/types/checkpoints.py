"""Checkpoint snapshot models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from memory.types.claims import ClaimState, EpistemicBranch, PriorityQueue, utc_now


class CheckpointKind(str, Enum):
    MANUAL = "MANUAL"
    AUTO = "AUTO"
    PRE_CASCADE = "PRE_CASCADE"


class ClaimSnapshot(BaseModel):
    """Frozen view of one claim at checkpoint time."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    statement: str
    state: ClaimState
    branch: EpistemicBranch
    confidence: int
    priority_queue: PriorityQueue
    audit_trail_length: int


class Checkpoint(BaseModel):
    """Immutable rollback target owned by one user."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    label: str
    description: str = ""
    kind: CheckpointKind = CheckpointKind.MANUAL
    state_hash: str
    claim_ids: tuple[str, ...] = ()
    snapshots: tuple[ClaimSnapshot, ...] = ()
    watermark: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class RollbackResult(BaseModel):
    checkpoint_id: str
    invalidated_count: int = 0
    restored_count: int = 0
    errors: list[str] = Field(default_factory=list)
