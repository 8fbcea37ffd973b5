"""SQLAlchemy schemas for the persistent knowledge ledger."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Return UTC datetime for default timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base."""


class ClaimRecord(Base):
    """Knowledge claim table. The integer primary key doubles as creation order."""

    __tablename__ = "claims"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    statement: Mapped[str] = mapped_column(Text)
    domain: Mapped[str] = mapped_column(String(64), default="general")
    current_state: Mapped[str] = mapped_column(String(32), index=True)
    epistemic_branch: Mapped[str] = mapped_column(String(32), index=True)
    confidence_score: Mapped[int] = mapped_column(Integer, default=50)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    importance: Mapped[int] = mapped_column(Integer, default=50)
    priority_queue: Mapped[str] = mapped_column(String(8), default="WARM")
    kind: Mapped[str] = mapped_column(String(32), default="claim", index=True)
    owner_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    embedding: Mapped[list[float] | None] = mapped_column(JSON, nullable=True)
    audit_trail: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, index=True
    )
    invalidated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invalidated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    invalidation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class DependencyRecord(Base):
    """Typed dependency edge table. Cycles are not rejected."""

    __tablename__ = "claim_dependencies"
    __table_args__ = (UniqueConstraint("claim_id", "depends_on_id", "type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_id: Mapped[str] = mapped_column(String(64), index=True)
    depends_on_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(32), default="DERIVES_FROM")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class CheckpointRecord(Base):
    """Checkpoint table holding the frozen snapshot array."""

    __tablename__ = "checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    checkpoint_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(128), index=True)
    label: Mapped[str] = mapped_column(String(256))
    description: Mapped[str] = mapped_column(Text, default="")
    kind: Mapped[str] = mapped_column(String(32), default="MANUAL")
    state_hash: Mapped[str] = mapped_column(String(64), index=True)
    claim_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    snapshots: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    watermark: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
