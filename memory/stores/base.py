"""Repository interfaces for claims, dependency edges and checkpoints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from memory.types.checkpoints import Checkpoint
from memory.types.claims import ClaimKind, ClaimState, Dependency, KnowledgeClaim


class ClaimStore(ABC):
    """Persistence for knowledge claims. Claims are never physically deleted."""

    @abstractmethod
    def last_seq(self) -> int:
        """Highest creation sequence assigned so far, 0 when empty."""

    @abstractmethod
    def add(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        """Insert a new claim and return it with its creation sequence assigned."""

    @abstractmethod
    def get(self, claim_id: str) -> KnowledgeClaim | None:
        """Fetch one claim by id."""

    @abstractmethod
    def save(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        """Persist the full current state of an existing claim."""

    @abstractmethod
    def list_claims(
        self,
        *,
        owner_id: str | None = None,
        kind: ClaimKind | None = None,
        states: Sequence[ClaimState] | None = None,
        include_invalidated: bool = True,
        limit: int | None = None,
    ) -> list[KnowledgeClaim]:
        """List claims ordered by creation sequence."""

    @abstractmethod
    def created_after(self, seq: int) -> list[KnowledgeClaim]:
        """Claims whose creation sequence is strictly greater than ``seq``."""

    @abstractmethod
    def search_similar(
        self,
        vector: Sequence[float],
        limit: int = 10,
        *,
        owner_id: str | None = None,
        kind: ClaimKind | None = None,
        min_score: float | None = None,
    ) -> list[tuple[KnowledgeClaim, float]]:
        """Raw similarity search by embedding vector."""


class DependencyStore(ABC):
    """Persistence for typed dependency edges. Cycles are allowed."""

    @abstractmethod
    def add(self, dependency: Dependency) -> Dependency:
        """Insert an edge."""

    @abstractmethod
    def dependents_of(self, claim_id: str) -> list[str]:
        """Ids of claims that depend on ``claim_id``."""

    @abstractmethod
    def dependencies_of(self, claim_id: str) -> list[Dependency]:
        """Edges leaving ``claim_id``."""


class CheckpointStore(ABC):
    """Persistence for immutable checkpoints. Hard delete is allowed."""

    @abstractmethod
    def add(self, checkpoint: Checkpoint) -> Checkpoint:
        """Insert a checkpoint."""

    @abstractmethod
    def get(self, checkpoint_id: str) -> Checkpoint | None:
        """Fetch one checkpoint."""

    @abstractmethod
    def delete(self, checkpoint_id: str) -> bool:
        """Physically remove a checkpoint."""

    @abstractmethod
    def list_checkpoints(self, owner_id: str | None = None) -> list[Checkpoint]:
        """List checkpoints, newest first."""
