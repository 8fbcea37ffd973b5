"""Ledger checkpoint and rollback manager."""

from __future__ import annotations

import hashlib
import logging
import uuid
from collections.abc import Iterable

from core.errors import AuthorizationError, NotFoundError
from memory.ledger import MemoryLedger
from memory.stores.base import CheckpointStore
from memory.types.checkpoints import Checkpoint, CheckpointKind, ClaimSnapshot, RollbackResult
from memory.types.claims import AuditEntry, ClaimState, LedgerAction, utc_now

logger = logging.getLogger("veritas.checkpoints")

ROLLBACK_AGENT = "ledger.rollback"


def compute_state_hash(claim_ids: Iterable[str]) -> str:
    """Identity hash of a claim-id set: order and duplicates do not matter."""
    payload = ",".join(sorted(set(claim_ids))).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:16]


class CheckpointManager:
    """Creates immutable claim snapshots and restores them on request."""

    def __init__(self, ledger: MemoryLedger, store: CheckpointStore) -> None:
        self.ledger = ledger
        self.store = store

    def create_checkpoint(
        self,
        owner_id: str,
        label: str,
        claim_ids: Iterable[str],
        *,
        description: str = "",
        kind: CheckpointKind = CheckpointKind.MANUAL,
    ) -> Checkpoint:
        """Snapshot the listed claims. Unknown ids are skipped."""
        with self.ledger.lock:
            requested = list(dict.fromkeys(claim_ids))
            snapshots: list[ClaimSnapshot] = []
            for claim_id in requested:
                claim = self.ledger.claims.get(claim_id)
                if claim is None:
                    logger.warning("Checkpoint %r skips unknown claim %s", label, claim_id)
                    continue
                snapshots.append(
                    ClaimSnapshot(
                        claim_id=claim.id,
                        statement=claim.statement,
                        state=claim.current_state,
                        branch=claim.epistemic_branch,
                        confidence=claim.confidence_score,
                        priority_queue=claim.priority_queue,
                        audit_trail_length=len(claim.audit_trail),
                    )
                )
            captured = [snap.claim_id for snap in snapshots]
            checkpoint = Checkpoint(
                id=uuid.uuid4().hex,
                owner_id=owner_id,
                label=label,
                description=description,
                kind=kind,
                state_hash=compute_state_hash(captured),
                claim_ids=tuple(captured),
                snapshots=tuple(snapshots),
                watermark=self.ledger.claims.last_seq(),
                created_at=utc_now(),
            )
            self.store.add(checkpoint)
        logger.info(
            "Checkpoint %s created owner=%s label=%r claims=%s kind=%s",
            checkpoint.id,
            owner_id,
            label,
            len(captured),
            kind.value,
        )
        return checkpoint

    def create_pre_cascade_checkpoint(self, owner_id: str, root_id: str) -> Checkpoint:
        """Snapshot a claim and all of its transitive dependents before a cascade."""
        affected = self.ledger.collect_cascade(root_id)
        return self.create_checkpoint(
            owner_id,
            f"Pre-cascade: {root_id}",
            affected,
            description=f"Automatic checkpoint before cascade invalidation from claim {root_id}",
            kind=CheckpointKind.PRE_CASCADE,
        )

    def get_checkpoint(self, checkpoint_id: str) -> Checkpoint:
        checkpoint = self.store.get(checkpoint_id)
        if checkpoint is None:
            raise NotFoundError("Checkpoint", checkpoint_id)
        return checkpoint

    def list_checkpoints(self, owner_id: str | None = None) -> list[Checkpoint]:
        return self.store.list_checkpoints(owner_id)

    def _authorize(self, checkpoint: Checkpoint, owner_id: str, operation: str) -> None:
        if checkpoint.owner_id != owner_id:
            logger.warning(
                "Rejected %s of checkpoint %s by non-owner %s", operation, checkpoint.id, owner_id
            )
            raise AuthorizationError(
                f"Unauthorized: checkpoint {checkpoint.id} belongs to a different owner",
                {"checkpoint_id": checkpoint.id, "operation": operation},
            )

    def rollback(self, checkpoint_id: str, requesting_owner_id: str) -> RollbackResult:
        """Deprecate claims created after the checkpoint, then restore its snapshots."""
        checkpoint = self.get_checkpoint(checkpoint_id)
        self._authorize(checkpoint, requesting_owner_id, "rollback")
        result = RollbackResult(checkpoint_id=checkpoint_id)
        if not checkpoint.snapshots:
            logger.warning("Checkpoint %s has no snapshots, nothing to roll back", checkpoint_id)
            return result

        with self.ledger.lock:
            for claim in self.ledger.claims.created_after(checkpoint.watermark):
                try:
                    self._deprecate(claim.id, checkpoint_id)
                    result.invalidated_count += 1
                except Exception as exc:
                    result.errors.append(f"Failed to deprecate claim {claim.id}: {exc}")
            for snapshot in checkpoint.snapshots:
                try:
                    self._restore(snapshot, checkpoint_id)
                    result.restored_count += 1
                except Exception as exc:
                    result.errors.append(f"Failed to restore claim {snapshot.claim_id}: {exc}")

        logger.info(
            "Rollback to %s complete: invalidated=%s restored=%s errors=%s",
            checkpoint_id,
            result.invalidated_count,
            result.restored_count,
            len(result.errors),
        )
        return result

    def _deprecate(self, claim_id: str, checkpoint_id: str) -> None:
        claim = self.ledger.get_claim(claim_id)
        now = utc_now()
        claim.audit_trail.append(
            AuditEntry(
                timestamp=now,
                action=LedgerAction.DEPRECATE,
                from_state=claim.current_state,
                to_state=ClaimState.DEPRECATED,
                trigger=f"ROLLBACK:{checkpoint_id}",
                agent=ROLLBACK_AGENT,
                reason=f"Deprecated by rollback to checkpoint {checkpoint_id}",
            )
        )
        claim.current_state = ClaimState.DEPRECATED
        if claim.invalidated_at is None:
            claim.invalidated_at = now
            claim.invalidated_by = ROLLBACK_AGENT
            claim.invalidation_reason = f"Deprecated by rollback to checkpoint {checkpoint_id}"
        claim.updated_at = now
        self.ledger.claims.save(claim)

    def _restore(self, snapshot: ClaimSnapshot, checkpoint_id: str) -> None:
        claim = self.ledger.get_claim(snapshot.claim_id)
        self.ledger.check_confidence(snapshot.branch, snapshot.confidence)
        now = utc_now()
        claim.audit_trail.append(
            AuditEntry(
                timestamp=now,
                action=LedgerAction.RESTORE,
                from_state=claim.current_state,
                to_state=snapshot.state,
                trigger=f"ROLLBACK:{checkpoint_id}",
                agent=ROLLBACK_AGENT,
                reason=f"Restored from checkpoint {checkpoint_id}",
                metadata={
                    "confidence": snapshot.confidence,
                    "branch": snapshot.branch.value,
                    "priority_queue": snapshot.priority_queue.value,
                },
            )
        )
        claim.current_state = snapshot.state
        claim.confidence_score = snapshot.confidence
        claim.epistemic_branch = snapshot.branch
        claim.priority_queue = snapshot.priority_queue
        if snapshot.state != ClaimState.DEPRECATED:
            claim.invalidated_at = None
            claim.invalidated_by = None
            claim.invalidation_reason = None
        claim.updated_at = now
        self.ledger.claims.save(claim)

    def delete_checkpoint(self, checkpoint_id: str, owner_id: str) -> None:
        """Owner-only hard delete."""
        checkpoint = self.get_checkpoint(checkpoint_id)
        self._authorize(checkpoint, owner_id, "delete")
        self.store.delete(checkpoint_id)
        logger.info("Checkpoint %s deleted by %s", checkpoint_id, owner_id)
