"""Source citation model."""

from __future__ import annotations

from pydantic import BaseModel

from memory.types.claims import EpistemicBranch


class Source(BaseModel):
    """Traceable reference attached to an answer."""

    type: str
    identifier: str
    url: str = ""
    title: str = ""
    trust_score: int = 100
    branch: EpistemicBranch = EpistemicBranch.HIGH_TRUST

    @property
    def dedup_key(self) -> str:
        return f"{self.type}:{self.identifier}"
