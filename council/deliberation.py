"""Council deliberation: concurrent fan-out, critique, verdict and proposal."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from council.critic import critique_all
from council.members import BaseMember, MemberRegistry
from council.types import CouncilResponse, Deliberation
from council.verdict import render_verdict, synthesize_proposal

logger = logging.getLogger("veritas.council")

ProgressCallback = Callable[[str, str], Awaitable[None]]


def build_prompt(query: str, context: str = "") -> str:
    if context:
        return f"{context}\n\nQuestion: {query}"
    return f"Question: {query}"


class CouncilEngine:
    """Runs one deliberation per call; holds no per-request state."""

    def __init__(
        self,
        registry: MemberRegistry,
        member_timeout_s: float | None = None,
        majority_threshold: float = 0.66,
        max_concurrency: int | None = None,
    ) -> None:
        self.registry = registry
        self.member_timeout_s = member_timeout_s
        self.majority_threshold = majority_threshold
        self.max_concurrency = max_concurrency

    async def _ask(
        self,
        member: BaseMember,
        prompt: str,
        semaphore: asyncio.Semaphore | None,
        progress: ProgressCallback | None,
    ) -> CouncilResponse:
        start = time.perf_counter()
        call = member.query(prompt)
        if self.member_timeout_s:
            call = asyncio.wait_for(call, timeout=self.member_timeout_s)
        if semaphore is not None:
            async with semaphore:
                reply = await call
        else:
            reply = await call
        response = CouncilResponse(
            member=member.name,
            content=reply.content,
            confidence=reply.confidence,
            reasoning=reply.reasoning,
            sources=reply.sources,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )
        if progress is not None:
            # A member that answered keeps its response even if the listener fails.
            try:
                await progress("deliberating", f"{member.name} responded with {reply.confidence}% confidence")
            except Exception as exc:
                logger.warning("Progress update for council member %s failed: %s", member.name, exc)
        return response

    async def collect(
        self,
        prompt: str,
        members: Sequence[BaseMember],
        progress: ProgressCallback | None = None,
    ) -> list[CouncilResponse]:
        """Ask every member concurrently; a failed member simply has no response."""
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        tasks = [self._ask(member, prompt, semaphore, progress) for member in members]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        responses: list[CouncilResponse] = []
        for member, result in zip(members, results):
            if isinstance(result, CouncilResponse):
                responses.append(result)
            elif isinstance(result, asyncio.TimeoutError):
                logger.warning("Council member %s timed out", member.name)
            elif isinstance(result, BaseException):
                logger.warning("Council member %s failed: %s", member.name, result)
        return responses

    async def deliberate(
        self,
        query: str,
        members: Sequence[str | BaseMember],
        context: str = "",
        progress: ProgressCallback | None = None,
    ) -> Deliberation:
        """Collect opinions, challenge them and render a verdict with a proposal."""
        start = time.perf_counter()
        resolved = [m for m in members if isinstance(m, BaseMember)]
        resolved += self.registry.resolve([m for m in members if isinstance(m, str)])
        if progress is not None:
            names = ", ".join(m.name for m in resolved) or "nobody"
            await progress("deliberating", f"Convening council: {names}")

        responses = await self.collect(build_prompt(query, context), resolved, progress)

        if progress is not None and responses:
            await progress("critiquing", f"Challenging {len(responses)} response(s)")
        challenges = critique_all(responses)
        verdict = render_verdict(responses, challenges, self.majority_threshold)
        proposal = synthesize_proposal(responses, verdict)
        deliberation = Deliberation(
            query=query,
            members=[m.name for m in resolved],
            responses=responses,
            challenges=challenges,
            verdict=verdict,
            proposal=proposal,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
        )
        if progress is not None:
            await progress("verdict", verdict.reasoning)
        logger.info(
            "Deliberation %s: %s/%s responded, verdict=%s, challenges=%s",
            deliberation.id,
            len(responses),
            len(resolved),
            verdict.label.value,
            len(challenges),
        )
        return deliberation
