"""Deliberation value types. Ephemeral unless embedded in a trace."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field

from memory.types.sources import Source


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class VerdictLabel(str, Enum):
    CONSENSUS = "CONSENSUS"
    MAJORITY = "MAJORITY"
    SPLIT = "SPLIT"
    DEADLOCK = "DEADLOCK"


class MemberReply(BaseModel):
    """Raw answer returned by a council member adapter."""

    content: str
    confidence: int = Field(ge=0, le=100)
    reasoning: str | None = None
    sources: list[Source] = Field(default_factory=list)


class CouncilResponse(BaseModel):
    member: str
    content: str
    confidence: int = Field(ge=0, le=100)
    reasoning: str | None = None
    sources: list[Source] = Field(default_factory=list)
    latency_ms: int = 0


class Challenge(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    target_member: str
    text: str
    severity: Severity
    resolved: bool = False
    target_claim: str | None = None


class Verdict(BaseModel):
    label: VerdictLabel
    vote_counts: dict[str, int] = Field(default_factory=dict)
    reasoning: str = ""
    dissent: list[str] = Field(default_factory=list)


class Deliberation(BaseModel):
    """Everything one council session produced."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    query: str
    members: list[str] = Field(default_factory=list)
    responses: list[CouncilResponse] = Field(default_factory=list)
    challenges: list[Challenge] = Field(default_factory=list)
    verdict: Verdict
    proposal: str
    processing_time_ms: int = 0

    @property
    def average_confidence(self) -> float | None:
        if not self.responses:
            return None
        return sum(r.confidence for r in self.responses) / len(self.responses)
