"""Query pipeline: route, branch lookup, deliberation, validation, ledger write."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from branches.base import BranchResult
from branches.registry import BranchRegistry
from core.progress import ProgressChannelRegistry, StreamEvent, StreamEventType
from core.router import QueryRouter, RouteDecision
from council.deliberation import CouncilEngine
from council.types import Deliberation
from governance.audit_logger import AuditLogger
from governance.trace import RejectionReason, ValidationResult, unknown_message
from governance.validation_gate import ValidationGate
from memory.checkpoints import CheckpointManager
from memory.facts.service import FactService
from memory.ledger import InvalidationResult, MemoryLedger
from memory.types.checkpoints import Checkpoint, CheckpointKind, RollbackResult
from memory.types.claims import (
    ClaimKind,
    DependencyType,
    EpistemicBranch,
    branch_for_confidence,
)
from memory.types.facts import Fact, PersistenceResult, VerificationLevel
from memory.types.sources import Source

logger = logging.getLogger("veritas.orchestrator")

Progress = Callable[[str, str], Awaitable[None]]
ANSWER_CHUNK_CHARS = 80


class QueryOptions(BaseModel):
    require_anchor: bool | None = None
    return_trace: bool = False
    max_time_ms: int | None = Field(default=None, gt=0)
    persist: bool = True


class QueryResponse(BaseModel):
    request_id: str
    answer: str | None
    is_verified: bool
    confidence: int
    sources: list[Source] = Field(default_factory=list)
    branch: EpistemicBranch | None = None
    rejection_reason: RejectionReason | None = None
    message: str = ""
    trace: dict[str, Any] | None = None
    processing_time_ms: int = 0


async def _silent(phase: str, text: str) -> None:
    return None


def chunk_text(text: str, size: int = ANSWER_CHUNK_CHARS) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)] or [""]


class Orchestrator:
    """Wires the pipeline stages together and fronts ledger administration."""

    def __init__(
        self,
        router: QueryRouter,
        branches: BranchRegistry,
        council: CouncilEngine,
        gate: ValidationGate,
        ledger: MemoryLedger,
        checkpoints: CheckpointManager,
        facts: FactService | None = None,
        audit: AuditLogger | None = None,
        progress: ProgressChannelRegistry | None = None,
        branch_timeout_s: float | None = None,
        fact_context_limit: int = 10,
    ) -> None:
        self.router = router
        self.branches = branches
        self.council = council
        self.gate = gate
        self.ledger = ledger
        self.checkpoints = checkpoints
        self.facts = facts
        self.audit = audit
        self.progress = progress or ProgressChannelRegistry()
        self.branch_timeout_s = branch_timeout_s
        self.fact_context_limit = fact_context_limit

    # -- query pipeline -------------------------------------------------

    async def process_query(
        self,
        query: str,
        user_id: str,
        session_id: str | None = None,
        options: QueryOptions | None = None,
        *,
        request_id: str | None = None,
        progress: Progress | None = None,
    ) -> QueryResponse:
        """Answer with 100% confidence and sources, or say "I do not know"."""
        options = options or QueryOptions()
        request_id = request_id or uuid.uuid4().hex
        emit = progress or _silent
        start = time.perf_counter()
        try:
            pipeline = self._run(query, user_id, session_id, options, request_id, emit, start)
            if options.max_time_ms:
                return await asyncio.wait_for(pipeline, timeout=options.max_time_ms / 1000)
            return await pipeline
        except asyncio.TimeoutError:
            logger.warning("Request %s exceeded %sms", request_id, options.max_time_ms)
            return self._unknown(request_id, RejectionReason.TIMEOUT, start)
        except Exception:
            logger.exception("Request %s failed", request_id)
            return self._unknown(request_id, RejectionReason.INTERNAL_ERROR, start)

    async def _run(
        self,
        query: str,
        user_id: str,
        session_id: str | None,
        options: QueryOptions,
        request_id: str,
        emit: Progress,
        start: float,
    ) -> QueryResponse:
        await emit("routing", "Classifying query")
        route = self.router.route(query)
        await emit("routing", f"Primary branch: {route.primary_branch.value}")

        context = self._fact_context(user_id, query)
        results = await self._query_branches(route, query, context, emit)
        primary = results.get(route.primary_branch) or BranchResult(branch=route.primary_branch)

        contaminated = [r for r in results.values() if not r.in_range]
        if not primary.in_range:
            logger.error(
                "Branch %s returned confidence %s outside its range",
                primary.branch.value,
                primary.confidence,
            )
            return self._unknown(request_id, RejectionReason.CONTAMINATION_DETECTED, start, route=route)
        for result in contaminated:
            logger.warning("Dropping %s result with out-of-range confidence", result.branch.value)
            results.pop(result.branch)

        deliberation: Deliberation | None = None
        if route.requires_deliberation or primary.is_empty:
            await emit("deliberating", "Consulting the council")
            deliberation = await self.council.deliberate(query, route.council_members, context, emit)
        content = deliberation.proposal if deliberation is not None else primary.content

        await emit("validating", "Running validation gate")
        if route.is_conversational and deliberation is not None and deliberation.responses:
            best = max(deliberation.responses, key=lambda r: r.confidence)
            content = best.content
            validation = self.gate.conversational_bypass(request_id)
        else:
            candidates = [s for r in results.values() for s in r.sources]
            if deliberation is not None:
                candidates += [s for r in deliberation.responses for s in r.sources]
            require_anchor = options.require_anchor
            if require_anchor is None:
                require_anchor = route.primary_branch == EpistemicBranch.HIGH_TRUST
            validation = self.gate.validate(
                content,
                deliberation,
                require_anchor=require_anchor,
                candidate_sources=candidates,
                content_confidence=primary.confidence if deliberation is None else None,
                request_id=request_id,
            )
        if self.audit is not None:
            self.audit.log_validation(query, user_id, validation)

        response = self._build_response(
            request_id, content, route, validation, results, deliberation, options, start
        )
        if options.persist:
            self._record_interaction(query, user_id, session_id, response, validation)
        logger.info(
            "Query %s processed: verified=%s confidence=%s in %sms",
            request_id,
            response.is_verified,
            response.confidence,
            response.processing_time_ms,
        )
        return response

    def _fact_context(self, user_id: str, query: str) -> str:
        if self.facts is None:
            return ""
        try:
            facts = self.facts.context_for_query(user_id, query, self.fact_context_limit)
        except Exception as exc:
            logger.warning("Fact context lookup failed for %s: %s", user_id, exc)
            return ""
        return self.facts.format_context(facts)

    async def _query_branch(self, branch: EpistemicBranch, query: str, context: str) -> BranchResult:
        adapter = self.branches.get(branch)
        if adapter is None:
            return BranchResult(branch=branch)
        call = adapter.query(query, context)
        if self.branch_timeout_s:
            return await asyncio.wait_for(call, timeout=self.branch_timeout_s)
        return await call

    async def _query_branches(
        self, route: RouteDecision, query: str, context: str, emit: Progress
    ) -> dict[EpistemicBranch, BranchResult]:
        wanted = list(dict.fromkeys([route.primary_branch, *route.secondary_branches]))
        await emit("searching", "Querying " + ", ".join(b.value for b in wanted))
        outcomes = await asyncio.gather(
            *(self._query_branch(b, query, context) for b in wanted), return_exceptions=True
        )
        results: dict[EpistemicBranch, BranchResult] = {}
        for branch, outcome in zip(wanted, outcomes):
            if isinstance(outcome, BranchResult):
                results[branch] = outcome
            elif isinstance(outcome, BaseException):
                logger.warning("Branch %s failed: %s", branch.value, outcome)
        return results

    def _build_response(
        self,
        request_id: str,
        content: str,
        route: RouteDecision,
        validation: ValidationResult,
        results: dict[EpistemicBranch, BranchResult],
        deliberation: Deliberation | None,
        options: QueryOptions,
        start: float,
    ) -> QueryResponse:
        if validation.is_valid:
            message = (
                "Conversational reply, not fact-checked."
                if route.is_conversational
                else "Verified answer backed by sources."
            )
        else:
            message = unknown_message(validation.rejection_reason or RejectionReason.INTERNAL_ERROR)
        trace = None
        if options.return_trace:
            trace = {
                "routing": route.to_dict(),
                "branches": {
                    b.value: {"confidence": r.confidence, "empty": r.is_empty, "sources": len(r.sources)}
                    for b, r in results.items()
                },
                "deliberation": deliberation.model_dump(mode="json") if deliberation else None,
                "validation": validation.summary(),
                "trace_id": validation.trace.id,
            }
        return QueryResponse(
            request_id=request_id,
            answer=content if validation.is_valid else None,
            is_verified=validation.is_valid,
            confidence=validation.confidence,
            sources=validation.sources,
            branch=route.primary_branch,
            rejection_reason=validation.rejection_reason,
            message=message,
            trace=trace,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
        )

    @staticmethod
    def _unknown(
        request_id: str,
        reason: RejectionReason,
        start: float,
        route: RouteDecision | None = None,
    ) -> QueryResponse:
        return QueryResponse(
            request_id=request_id,
            answer=None,
            is_verified=False,
            confidence=0,
            sources=[],
            branch=route.primary_branch if route else None,
            rejection_reason=reason,
            message=unknown_message(reason),
            processing_time_ms=int((time.perf_counter() - start) * 1000),
        )

    def _record_interaction(
        self,
        query: str,
        user_id: str,
        session_id: str | None,
        response: QueryResponse,
        validation: ValidationResult,
    ) -> None:
        """Store the exchange and its decision. Never affects the response."""
        branch = branch_for_confidence(response.confidence)
        tag = response.branch.value if response.branch else "none"
        try:
            interaction = self.ledger.create_claim(
                query,
                domain="interaction",
                tags=["interaction", tag],
                branch=branch,
                initial_confidence=response.confidence,
                importance=50,
                kind=ClaimKind.INTERACTION,
                owner_id=user_id,
                metadata={
                    "request_id": response.request_id,
                    "session_id": session_id,
                    "answer": response.answer,
                    "is_verified": response.is_verified,
                    "source_count": len(response.sources),
                },
                agent="orchestrator",
            )
            decision = self.ledger.create_claim(
                f"Validation {validation.trace.final_decision.value} for request {response.request_id}",
                domain="decision",
                tags=["decision", tag],
                branch=branch,
                initial_confidence=response.confidence,
                importance=50,
                kind=ClaimKind.DECISION,
                owner_id=user_id,
                metadata={
                    "request_id": response.request_id,
                    "is_valid": validation.is_valid,
                    "rejection_reason": (
                        validation.rejection_reason.value if validation.rejection_reason else None
                    ),
                    "trace_id": validation.trace.id,
                    "step_count": len(validation.trace.steps),
                },
                agent="orchestrator",
            )
            self.ledger.add_dependency(decision.id, interaction.id, DependencyType.DERIVES_FROM)
        except Exception as exc:
            logger.warning("Failed to record interaction %s: %s", response.request_id, exc)

    # -- streaming ------------------------------------------------------

    async def stream_query(
        self,
        query: str,
        user_id: str,
        session_id: str | None = None,
        options: QueryOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield thinking steps, answer chunks and the final response in order."""
        request_id = uuid.uuid4().hex
        channel = self.progress.open(request_id)

        async def produce() -> None:
            try:
                response = await self.process_query(
                    query,
                    user_id,
                    session_id,
                    options,
                    request_id=request_id,
                    progress=channel.thinking,
                )
                if response.answer:
                    for chunk in chunk_text(response.answer):
                        await channel.publish(
                            StreamEvent(type=StreamEventType.ANSWER_CHUNK, data={"text": chunk})
                        )
                await channel.publish(
                    StreamEvent(type=StreamEventType.FINAL, data=response.model_dump(mode="json"))
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Stream %s failed", request_id)
                await channel.publish(
                    StreamEvent(
                        type=StreamEventType.ERROR,
                        data={"request_id": request_id, "message": str(exc)},
                    )
                )
            finally:
                self.progress.close(request_id)

        task = asyncio.create_task(produce())
        try:
            async for event in channel.events():
                yield event
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    # -- ledger administration -------------------------------------------

    def _audit(
        self,
        action: str,
        actor: str,
        inputs: dict[str, Any],
        outcome: str,
        allowed: bool = True,
        reason: str = "",
    ) -> None:
        if self.audit is not None:
            self.audit.log_ledger_event(action, actor, inputs, outcome, allowed, reason)

    def create_checkpoint(
        self,
        owner_id: str,
        label: str,
        claim_ids: list[str],
        description: str = "",
    ) -> Checkpoint:
        checkpoint = self.checkpoints.create_checkpoint(
            owner_id, label, claim_ids, description=description, kind=CheckpointKind.MANUAL
        )
        self._audit(
            "checkpoint",
            owner_id,
            {"label": label, "claim_ids": claim_ids},
            f"created {checkpoint.id} ({len(checkpoint.snapshots)} snapshots)",
        )
        return checkpoint

    def rollback(self, checkpoint_id: str, requesting_owner_id: str) -> RollbackResult:
        inputs = {"checkpoint_id": checkpoint_id}
        try:
            result = self.checkpoints.rollback(checkpoint_id, requesting_owner_id)
        except Exception as exc:
            self._audit("rollback", requesting_owner_id, inputs, "refused", allowed=False, reason=str(exc))
            raise
        self._audit(
            "rollback",
            requesting_owner_id,
            inputs,
            f"invalidated={result.invalidated_count} restored={result.restored_count}",
            reason="; ".join(result.errors),
        )
        return result

    def delete_checkpoint(self, checkpoint_id: str, owner_id: str) -> None:
        inputs = {"checkpoint_id": checkpoint_id}
        try:
            self.checkpoints.delete_checkpoint(checkpoint_id, owner_id)
        except Exception as exc:
            self._audit("delete_checkpoint", owner_id, inputs, "refused", allowed=False, reason=str(exc))
            raise
        self._audit("delete_checkpoint", owner_id, inputs, "deleted")

    def invalidate(
        self,
        claim_id: str,
        invalidated_by: str,
        reason: str,
        cascade: bool = True,
        checkpoint_owner: str | None = None,
    ) -> InvalidationResult:
        """Invalidate a claim, optionally snapshotting the blast radius first."""
        if checkpoint_owner is not None:
            self.checkpoints.create_pre_cascade_checkpoint(checkpoint_owner, claim_id)
        result = self.ledger.invalidate(claim_id, invalidated_by, reason, cascade=cascade)
        self._audit(
            "invalidate",
            invalidated_by,
            {"claim_id": claim_id, "cascade": cascade},
            f"invalidated={result.invalidated_count}",
            reason=reason,
        )
        return result

    def verify_fact(self, fact_id: str, reviewer_id: str, approve: bool) -> Fact:
        if self.facts is None:
            raise RuntimeError("Fact service is not configured")
        fact = self.facts.verify_fact(fact_id, reviewer_id, approve)
        self._audit(
            "verify_fact",
            reviewer_id,
            {"fact_id": fact_id, "approve": approve},
            fact.trust_state.value,
        )
        return fact

    def persist_message(
        self,
        user_id: str,
        message: str,
        level: VerificationLevel = VerificationLevel.UNVERIFIED,
    ) -> PersistenceResult:
        if self.facts is None:
            raise RuntimeError("Fact service is not configured")
        return self.facts.persist_message(user_id, message, level)
