"""Sequential validation gate: approve at 100% confidence or reject with a reason."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from typing import Any

from council.types import Deliberation, Severity, VerdictLabel
from governance.anchoring import AnchoringService
from governance.consistency import AlwaysConsistent, ConsistencyChecker
from governance.trace import (
    Decision,
    RejectionReason,
    StepResult,
    ValidationResult,
    ValidationStep,
    ValidationTrace,
)
from memory.types.sources import Source

logger = logging.getLogger("veritas.governance.gate")

PASSING_VERDICTS = frozenset({VerdictLabel.CONSENSUS, VerdictLabel.MAJORITY})
CONVERSATIONAL_CONFIDENCE = 80


class _TraceBuilder:
    def __init__(self) -> None:
        self.steps: list[ValidationStep] = []
        self._mark = time.perf_counter()

    def add(self, component: str, action: str, result: StepResult, **details: Any) -> None:
        now = time.perf_counter()
        self.steps.append(
            ValidationStep(
                step_number=len(self.steps) + 1,
                component=component,
                action=action,
                result=result,
                details=details,
                duration_ms=int((now - self._mark) * 1000),
            )
        )
        self._mark = now


class ValidationGate:
    """Runs the checks in order and stops at the first failure."""

    def __init__(
        self,
        anchoring: AnchoringService | None = None,
        consistency: ConsistencyChecker | None = None,
        minimum_confidence: int = 100,
    ) -> None:
        self.anchoring = anchoring or AnchoringService()
        self.consistency = consistency or AlwaysConsistent()
        self.minimum_confidence = minimum_confidence

    @staticmethod
    def effective_confidence(
        deliberation: Deliberation | None, content_confidence: int | None = None
    ) -> float:
        """Average council confidence, else the content's own confidence, else 100."""
        if deliberation is not None and deliberation.responses:
            return deliberation.average_confidence or 0.0
        if content_confidence is not None:
            return float(content_confidence)
        return 100.0

    def validate(
        self,
        content: str,
        deliberation: Deliberation | None = None,
        *,
        require_anchor: bool = True,
        candidate_sources: Sequence[Source] = (),
        content_confidence: int | None = None,
        request_id: str | None = None,
    ) -> ValidationResult:
        request_id = request_id or uuid.uuid4().hex
        start = time.perf_counter()
        trace = _TraceBuilder()

        def reject(reason: RejectionReason) -> ValidationResult:
            result = ValidationResult(
                is_valid=False,
                confidence=0,
                sources=[],
                trace=ValidationTrace(
                    request_id=request_id,
                    steps=tuple(trace.steps),
                    final_decision=Decision.REJECTED,
                    processing_time_ms=int((time.perf_counter() - start) * 1000),
                ),
                rejection_reason=reason,
            )
            logger.warning("Validation rejected request %s: %s", request_id, reason.value)
            return result

        report = self.anchoring.anchor(content, candidate_sources)
        if report.anchored:
            anchor_result = StepResult.PASS
        elif require_anchor:
            anchor_result = StepResult.FAIL
        else:
            anchor_result = StepResult.WARN
        trace.add(
            "ODIN",
            "source_anchoring_check",
            anchor_result,
            sourcesFound=len(report.sources),
            claimsFound=len(report.claims),
            required=require_anchor,
        )
        if anchor_result == StepResult.FAIL:
            return reject(RejectionReason.NO_SOURCE)

        consistency = self.consistency.check(content)
        trace.add(
            "MUNIN",
            "memory_consistency_check",
            StepResult.PASS if consistency.consistent else StepResult.FAIL,
            contradictions=len(consistency.contradictions),
            contradictedClaims=consistency.contradictions,
        )
        if not consistency.consistent:
            return reject(RejectionReason.CONTRADICTS_MEMORY)

        if deliberation is not None:
            verdict = deliberation.verdict
            passed = verdict.label in PASSING_VERDICTS
            trace.add(
                "TYR",
                "consensus_check",
                StepResult.PASS if passed else StepResult.FAIL,
                verdict=verdict.label.value,
                voteCounts=verdict.vote_counts,
            )
            if not passed:
                return reject(RejectionReason.NO_CONSENSUS)

            critical = [
                c for c in deliberation.challenges if c.severity == Severity.CRITICAL and not c.resolved
            ]
            trace.add(
                "LOKI",
                "challenge_resolution_check",
                StepResult.FAIL if critical else StepResult.PASS,
                totalChallenges=len(deliberation.challenges),
                unresolvedCritical=len(critical),
            )
            if critical:
                return reject(RejectionReason.FAILED_CRITIQUE)

        confidence = self.effective_confidence(deliberation, content_confidence)
        confident = confidence >= self.minimum_confidence
        trace.add(
            "ODIN",
            "confidence_threshold_check",
            StepResult.PASS if confident else StepResult.FAIL,
            confidence=round(confidence, 2),
            threshold=self.minimum_confidence,
        )
        if not confident:
            return reject(RejectionReason.INSUFFICIENT_CONFIDENCE)

        result = ValidationResult(
            is_valid=True,
            confidence=100,
            sources=report.sources,
            trace=ValidationTrace(
                request_id=request_id,
                steps=tuple(trace.steps),
                final_decision=Decision.APPROVED,
                processing_time_ms=int((time.perf_counter() - start) * 1000),
            ),
        )
        logger.info("Validation approved request %s with %s source(s)", request_id, len(report.sources))
        return result

    @staticmethod
    def conversational_bypass(request_id: str | None = None) -> ValidationResult:
        """Approval for small talk: no anchoring, fixed confidence, no sources."""
        request_id = request_id or uuid.uuid4().hex
        trace = ValidationTrace(
            request_id=request_id,
            steps=(
                ValidationStep(
                    step_number=1,
                    component="ROUTER",
                    action="conversational_bypass",
                    result=StepResult.PASS,
                    details={"reason": "query classified as conversational"},
                ),
            ),
            final_decision=Decision.APPROVED,
        )
        logger.info("Validation bypassed for conversational request %s", request_id)
        return ValidationResult(
            is_valid=True, confidence=CONVERSATIONAL_CONFIDENCE, sources=[], trace=trace
        )
