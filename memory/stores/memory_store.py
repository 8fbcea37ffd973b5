"""Dictionary-backed claim and checkpoint stores for tests and offline runs."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from memory.stores.base import CheckpointStore, ClaimStore
from memory.stores.vector_store import rank_by_similarity
from memory.types.checkpoints import Checkpoint
from memory.types.claims import ClaimKind, ClaimState, KnowledgeClaim


class InMemoryClaimStore(ClaimStore):
    """Keeps deep copies so callers never alias stored state."""

    def __init__(self) -> None:
        self._claims: dict[str, KnowledgeClaim] = {}
        self._last_seq = 0
        self._lock = threading.Lock()

    def last_seq(self) -> int:
        return self._last_seq

    def add(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        with self._lock:
            if claim.id in self._claims:
                raise ValueError(f"Duplicate claim id: {claim.id}")
            self._last_seq += 1
            stored = claim.model_copy(update={"seq": self._last_seq}, deep=True)
            self._claims[claim.id] = stored
        return stored.model_copy(deep=True)

    def get(self, claim_id: str) -> KnowledgeClaim | None:
        claim = self._claims.get(claim_id)
        return claim.model_copy(deep=True) if claim is not None else None

    def save(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        if claim.id not in self._claims:
            raise KeyError(claim.id)
        self._claims[claim.id] = claim.model_copy(deep=True)
        return claim

    def list_claims(
        self,
        *,
        owner_id: str | None = None,
        kind: ClaimKind | None = None,
        states: Sequence[ClaimState] | None = None,
        include_invalidated: bool = True,
        limit: int | None = None,
    ) -> list[KnowledgeClaim]:
        rows = sorted(self._claims.values(), key=lambda c: c.seq)
        out: list[KnowledgeClaim] = []
        for claim in rows:
            if owner_id is not None and claim.owner_id != owner_id:
                continue
            if kind is not None and claim.kind != kind:
                continue
            if states is not None and claim.current_state not in states:
                continue
            if not include_invalidated and claim.is_invalidated:
                continue
            out.append(claim.model_copy(deep=True))
        return out[:limit] if limit is not None else out

    def created_after(self, seq: int) -> list[KnowledgeClaim]:
        return [
            claim.model_copy(deep=True)
            for claim in sorted(self._claims.values(), key=lambda c: c.seq)
            if claim.seq > seq
        ]

    def search_similar(
        self,
        vector: Sequence[float],
        limit: int = 10,
        *,
        owner_id: str | None = None,
        kind: ClaimKind | None = None,
        min_score: float | None = None,
    ) -> list[tuple[KnowledgeClaim, float]]:
        candidates = self.list_claims(owner_id=owner_id, kind=kind)
        return rank_by_similarity(
            vector,
            ((claim, claim.embedding) for claim in candidates),
            limit=limit,
            min_score=min_score,
        )


class InMemoryCheckpointStore(CheckpointStore):
    def __init__(self) -> None:
        self._checkpoints: dict[str, Checkpoint] = {}

    def add(self, checkpoint: Checkpoint) -> Checkpoint:
        self._checkpoints[checkpoint.id] = checkpoint
        return checkpoint

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        return self._checkpoints.get(checkpoint_id)

    def delete(self, checkpoint_id: str) -> bool:
        return self._checkpoints.pop(checkpoint_id, None) is not None

    def list_checkpoints(self, owner_id: str | None = None) -> list[Checkpoint]:
        rows = [
            cp for cp in self._checkpoints.values() if owner_id is None or cp.owner_id == owner_id
        ]
        return sorted(rows, key=lambda cp: cp.watermark, reverse=True)
