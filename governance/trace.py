"""Validation trace and result types."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from memory.types.claims import utc_now
from memory.types.sources import Source

TRACE_VERSION = "1.0"


class RejectionReason(str, Enum):
    NO_SOURCE = "NO_SOURCE"
    CONTRADICTS_MEMORY = "CONTRADICTS_MEMORY"
    NO_CONSENSUS = "NO_CONSENSUS"
    FAILED_CRITIQUE = "FAILED_CRITIQUE"
    INSUFFICIENT_CONFIDENCE = "INSUFFICIENT_CONFIDENCE"
    CONTAMINATION_DETECTED = "CONTAMINATION_DETECTED"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.NO_SOURCE: "no verifiable source supports an answer",
    RejectionReason.CONTRADICTS_MEMORY: "the answer contradicts verified memory",
    RejectionReason.NO_CONSENSUS: "the council could not reach a consensus",
    RejectionReason.FAILED_CRITIQUE: "critical objections to the answer remain unresolved",
    RejectionReason.INSUFFICIENT_CONFIDENCE: "confidence is below the required 100%",
    RejectionReason.CONTAMINATION_DETECTED: "knowledge branches returned inconsistent confidence",
    RejectionReason.TIMEOUT: "the request ran out of time",
    RejectionReason.INTERNAL_ERROR: "an internal error occurred",
}


def unknown_message(reason: RejectionReason) -> str:
    return f"I do not know, because {REJECTION_MESSAGES[reason]}."


class StepResult(str, Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class Decision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ValidationStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_number: int
    component: str
    action: str
    result: StepResult
    details: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = 0


class ValidationTrace(BaseModel):
    """Immutable record of one gate run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    request_id: str
    steps: tuple[ValidationStep, ...] = ()
    final_decision: Decision
    processing_time_ms: int = 0
    version: str = TRACE_VERSION
    created_at: datetime = Field(default_factory=utc_now)


class ValidationResult(BaseModel):
    is_valid: bool
    confidence: int
    sources: list[Source] = Field(default_factory=list)
    trace: ValidationTrace
    rejection_reason: RejectionReason | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "confidence": self.confidence,
            "decision": self.trace.final_decision.value,
            "rejection_reason": self.rejection_reason.value if self.rejection_reason else None,
            "steps": [
                {"component": s.component, "action": s.action, "result": s.result.value}
                for s in self.trace.steps
            ],
        }
