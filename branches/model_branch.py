"""Model-backed HYPOTHESIS and UNVERIFIED branches."""

from __future__ import annotations

import logging

from branches.base import BaseBranch, BranchResult
from core.errors import EpistemicContaminationError
from council.members import parse_reply
from llm.base_llm import BaseLLM
from memory.types.claims import BRANCH_CONFIDENCE_RANGES, EpistemicBranch

logger = logging.getLogger("veritas.branches.model")

BRANCH_INSTRUCTIONS: dict[EpistemicBranch, str] = {
    EpistemicBranch.HYPOTHESIS: (
        "Give your best reasoned hypothesis. It will be labelled as a hypothesis, "
        "not a verified fact."
    ),
    EpistemicBranch.UNVERIFIED: (
        "Report what is commonly said about the topic, including recent or "
        "unconfirmed information. It will be labelled as unverified."
    ),
}


class ModelBranch(BaseBranch):
    """Asks a language model and pins its confidence into the branch band."""

    def __init__(self, branch: EpistemicBranch, llm: BaseLLM) -> None:
        if branch == EpistemicBranch.HIGH_TRUST:
            raise EpistemicContaminationError("model", branch.value)
        self.branch = branch
        self.llm = llm

    def build_messages(self, text: str, context: str = "") -> list[dict[str, str]]:
        user = f"{context}\n\nQuestion: {text}" if context else f"Question: {text}"
        system = (
            f"{BRANCH_INSTRUCTIONS[self.branch]} End with a line 'CONFIDENCE: <0-100>'."
        )
        return [{"role": "system", "content": system}, {"role": "user", "content": user}]

    async def query(self, text: str, context: str = "") -> BranchResult:
        reply = await self.llm.achat(self.build_messages(text, context))
        if not reply.strip():
            return self.empty()
        parsed = parse_reply(reply)
        low, high = BRANCH_CONFIDENCE_RANGES[self.branch]
        confidence = max(low, min(high, parsed.confidence))
        if confidence != parsed.confidence:
            logger.debug(
                "%s confidence %s pinned to %s", self.branch.value, parsed.confidence, confidence
            )
        return BranchResult(branch=self.branch, content=parsed.content, confidence=confidence)
