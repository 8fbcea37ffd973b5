"""Knowledge branch interface and result type."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from memory.types.claims import EpistemicBranch, confidence_in_range
from memory.types.sources import Source


class BranchResult(BaseModel):
    """Content produced by one knowledge branch for a query."""

    branch: EpistemicBranch
    content: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    sources: list[Source] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()

    @property
    def in_range(self) -> bool:
        """Whether the confidence respects the branch's band."""
        return self.is_empty or confidence_in_range(self.branch, self.confidence)


class BaseBranch(ABC):
    """One epistemic branch. Results from different branches are never merged."""

    branch: EpistemicBranch

    @abstractmethod
    async def query(self, text: str, context: str = "") -> BranchResult:
        """Answer from this branch only. Return empty content when nothing is known."""

    def empty(self) -> BranchResult:
        return BranchResult(branch=self.branch)
