"""SQLite SQLAlchemy store wrapper and ledger repositories."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from memory.schemas import Base, CheckpointRecord, ClaimRecord, DependencyRecord
from memory.stores.base import CheckpointStore, ClaimStore, DependencyStore
from memory.stores.vector_store import rank_by_similarity
from memory.types.checkpoints import Checkpoint, CheckpointKind, ClaimSnapshot
from memory.types.claims import (
    AuditEntry,
    ClaimKind,
    ClaimState,
    Dependency,
    DependencyType,
    EpistemicBranch,
    KnowledgeClaim,
    PriorityQueue,
)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SQLStore:
    """Provides SQLAlchemy session management for SQLite persistence."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite+pysqlite:///{self.db_path}",
            future=True,
            connect_args={"check_same_thread": False},
        )
        self._session_factory = sessionmaker(bind=self.engine, future=True)

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error."""
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()


class SQLClaimStore(ClaimStore):
    """Claim repository over the ``claims`` table."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()

    @staticmethod
    def _to_model(row: ClaimRecord) -> KnowledgeClaim:
        return KnowledgeClaim(
            id=row.claim_id,
            seq=row.seq,
            statement=row.statement,
            domain=row.domain,
            current_state=ClaimState(row.current_state),
            epistemic_branch=EpistemicBranch(row.epistemic_branch),
            confidence_score=row.confidence_score,
            tags=list(row.tags or []),
            importance=row.importance,
            priority_queue=PriorityQueue(row.priority_queue),
            kind=ClaimKind(row.kind),
            owner_id=row.owner_id,
            metadata=dict(row.metadata_json or {}),
            embedding=list(row.embedding) if row.embedding is not None else None,
            audit_trail=[AuditEntry.model_validate(item) for item in row.audit_trail or []],
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            invalidated_at=_as_utc(row.invalidated_at),
            invalidated_by=row.invalidated_by,
            invalidation_reason=row.invalidation_reason,
        )

    @staticmethod
    def _apply(row: ClaimRecord, claim: KnowledgeClaim) -> None:
        row.statement = claim.statement
        row.domain = claim.domain
        row.current_state = claim.current_state.value
        row.epistemic_branch = claim.epistemic_branch.value
        row.confidence_score = claim.confidence_score
        row.tags = list(claim.tags)
        row.importance = claim.importance
        row.priority_queue = claim.priority_queue.value
        row.kind = claim.kind.value
        row.owner_id = claim.owner_id
        row.metadata_json = dict(claim.metadata)
        row.embedding = list(claim.embedding) if claim.embedding is not None else None
        row.audit_trail = [entry.model_dump(mode="json") for entry in claim.audit_trail]
        row.updated_at = claim.updated_at
        row.invalidated_at = claim.invalidated_at
        row.invalidated_by = claim.invalidated_by
        row.invalidation_reason = claim.invalidation_reason

    def last_seq(self) -> int:
        with self.sql_store.session() as sess:
            value = sess.scalar(select(func.max(ClaimRecord.seq)))
        return int(value or 0)

    def add(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        record = ClaimRecord(claim_id=claim.id, created_at=claim.created_at)
        self._apply(record, claim)
        with self.sql_store.session() as sess:
            sess.add(record)
            sess.flush()
            sess.refresh(record)
            return self._to_model(record)

    def get(self, claim_id: str) -> KnowledgeClaim | None:
        with self.sql_store.session() as sess:
            row = sess.scalar(select(ClaimRecord).where(ClaimRecord.claim_id == claim_id))
            return self._to_model(row) if row is not None else None

    def save(self, claim: KnowledgeClaim) -> KnowledgeClaim:
        with self.sql_store.session() as sess:
            row = sess.scalar(select(ClaimRecord).where(ClaimRecord.claim_id == claim.id))
            if row is None:
                raise KeyError(claim.id)
            self._apply(row, claim)
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
        stmt = select(ClaimRecord).order_by(ClaimRecord.seq.asc())
        if owner_id is not None:
            stmt = stmt.where(ClaimRecord.owner_id == owner_id)
        if kind is not None:
            stmt = stmt.where(ClaimRecord.kind == kind.value)
        if states is not None:
            stmt = stmt.where(ClaimRecord.current_state.in_([s.value for s in states]))
        if not include_invalidated:
            stmt = stmt.where(ClaimRecord.invalidated_at.is_(None))
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.sql_store.session() as sess:
            rows = sess.scalars(stmt).all()
            return [self._to_model(row) for row in rows]

    def created_after(self, seq: int) -> list[KnowledgeClaim]:
        stmt = select(ClaimRecord).where(ClaimRecord.seq > seq).order_by(ClaimRecord.seq.asc())
        with self.sql_store.session() as sess:
            return [self._to_model(row) for row in sess.scalars(stmt).all()]

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


class SQLDependencyStore(DependencyStore):
    """Dependency repository over the ``claim_dependencies`` table."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()

    @staticmethod
    def _to_model(row: DependencyRecord) -> Dependency:
        return Dependency(
            claim_id=row.claim_id,
            depends_on_id=row.depends_on_id,
            type=DependencyType(row.type),
            created_at=_as_utc(row.created_at),
        )

    def add(self, dependency: Dependency) -> Dependency:
        with self.sql_store.session() as sess:
            existing = sess.scalar(
                select(DependencyRecord).where(
                    DependencyRecord.claim_id == dependency.claim_id,
                    DependencyRecord.depends_on_id == dependency.depends_on_id,
                    DependencyRecord.type == dependency.type.value,
                )
            )
            if existing is not None:
                return self._to_model(existing)
            sess.add(
                DependencyRecord(
                    claim_id=dependency.claim_id,
                    depends_on_id=dependency.depends_on_id,
                    type=dependency.type.value,
                    created_at=dependency.created_at,
                )
            )
        return dependency

    def dependents_of(self, claim_id: str) -> list[str]:
        stmt = (
            select(DependencyRecord.claim_id)
            .where(DependencyRecord.depends_on_id == claim_id)
            .order_by(DependencyRecord.id.asc())
        )
        with self.sql_store.session() as sess:
            ids = sess.scalars(stmt).all()
        return list(dict.fromkeys(ids))

    def dependencies_of(self, claim_id: str) -> list[Dependency]:
        stmt = select(DependencyRecord).where(DependencyRecord.claim_id == claim_id)
        with self.sql_store.session() as sess:
            return [self._to_model(row) for row in sess.scalars(stmt).all()]


class SQLCheckpointStore(CheckpointStore):
    """Checkpoint repository over the ``checkpoints`` table."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()

    @staticmethod
    def _to_model(row: CheckpointRecord) -> Checkpoint:
        return Checkpoint(
            id=row.checkpoint_id,
            owner_id=row.owner_id,
            label=row.label,
            description=row.description,
            kind=CheckpointKind(row.kind),
            state_hash=row.state_hash,
            claim_ids=tuple(row.claim_ids or []),
            snapshots=tuple(ClaimSnapshot.model_validate(item) for item in row.snapshots or []),
            watermark=row.watermark,
            created_at=_as_utc(row.created_at),
        )

    def add(self, checkpoint: Checkpoint) -> Checkpoint:
        with self.sql_store.session() as sess:
            sess.add(
                CheckpointRecord(
                    checkpoint_id=checkpoint.id,
                    owner_id=checkpoint.owner_id,
                    label=checkpoint.label,
                    description=checkpoint.description,
                    kind=checkpoint.kind.value,
                    state_hash=checkpoint.state_hash,
                    claim_ids=list(checkpoint.claim_ids),
                    snapshots=[snap.model_dump(mode="json") for snap in checkpoint.snapshots],
                    watermark=checkpoint.watermark,
                    created_at=checkpoint.created_at,
                )
            )
        return checkpoint

    def get(self, checkpoint_id: str) -> Checkpoint | None:
        with self.sql_store.session() as sess:
            row = sess.scalar(
                select(CheckpointRecord).where(CheckpointRecord.checkpoint_id == checkpoint_id)
            )
            return self._to_model(row) if row is not None else None

    def delete(self, checkpoint_id: str) -> bool:
        with self.sql_store.session() as sess:
            result = sess.execute(
                delete(CheckpointRecord).where(CheckpointRecord.checkpoint_id == checkpoint_id)
            )
            return bool(result.rowcount)

    def list_checkpoints(self, owner_id: str | None = None) -> list[Checkpoint]:
        stmt = select(CheckpointRecord).order_by(CheckpointRecord.id.desc())
        if owner_id is not None:
            stmt = stmt.where(CheckpointRecord.owner_id == owner_id)
        with self.sql_store.session() as sess:
            return [self._to_model(row) for row in sess.scalars(stmt).all()]
