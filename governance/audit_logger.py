"""Structured JSONL audit logger for gate decisions and ledger administration."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from governance.trace import ValidationResult


class AuditLogger:
    """Writes audit records as JSON lines."""

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("veritas.audit")
        self.logger.setLevel(logging.INFO)

    @staticmethod
    def _hash_inputs(inputs: dict[str, Any]) -> str:
        payload = json.dumps(inputs, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def _write(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=True, default=str)
        with self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        self.logger.info(line)

    def log(
        self,
        action: str,
        actor: str,
        inputs: dict[str, Any],
        outcome: str,
        allowed: bool,
        reason: str = "",
    ) -> None:
        """Append one JSONL audit event."""
        self._write(
            {
                "timestamp": datetime.now(UTC).isoformat(),
                "action": action,
                "actor": actor,
                "inputs_hash": self._hash_inputs(inputs),
                "outcome": outcome,
                "allowed": allowed,
                "reason": reason,
            }
        )

    def log_validation(self, query: str, user_id: str, result: ValidationResult) -> None:
        """One line per gate decision, with the trace id for later lookup."""
        self._write(
            {
                "timestamp": datetime.now(UTC).isoformat(),
                "action": "validation",
                "actor": user_id,
                "request_id": result.trace.request_id,
                "trace_id": result.trace.id,
                "inputs_hash": self._hash_inputs({"query": query}),
                "outcome": result.trace.final_decision.value,
                "allowed": result.is_valid,
                "confidence": result.confidence,
                "reason": result.rejection_reason.value if result.rejection_reason else "",
                "steps": [f"{s.component}:{s.action}:{s.result.value}" for s in result.trace.steps],
            }
        )

    def log_ledger_event(
        self,
        action: str,
        actor: str,
        inputs: dict[str, Any],
        outcome: str,
        allowed: bool = True,
        reason: str = "",
    ) -> None:
        """Checkpoint, rollback, invalidation and fact review calls."""
        self.log(action=f"ledger.{action}", actor=actor, inputs=inputs, outcome=outcome, allowed=allowed, reason=reason)

    def read_events(self, limit: int | None = None) -> list[dict[str, Any]]:
        if not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            events = [json.loads(line) for line in fh if line.strip()]
        return events[-limit:] if limit else events
