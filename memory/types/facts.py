"""User fact models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class FactType(str, Enum):
    IDENTITY = "IDENTITY"
    RELATIONSHIP = "RELATIONSHIP"
    PREFERENCE = "PREFERENCE"
    CONTEXT = "CONTEXT"
    GOAL = "GOAL"
    INSTRUCTION = "INSTRUCTION"
    DECLARATION = "DECLARATION"


FACT_IMPORTANCE: dict[FactType, int] = {
    FactType.IDENTITY: 100,
    FactType.RELATIONSHIP: 95,
    FactType.INSTRUCTION: 90,
    FactType.GOAL: 80,
    FactType.CONTEXT: 70,
    FactType.PREFERENCE: 60,
    FactType.DECLARATION: 50,
}


class TrustState(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VerificationLevel(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    TRUSTED = "trusted"
    ADMIN = "admin"
    CREATOR = "creator"


class ExtractedFact(BaseModel):
    """Fact candidate produced by the extractor, before trust assignment."""

    type: FactType
    content: str
    confidence: int
    keywords: list[str] = Field(default_factory=list)
    requires_verification: bool = False


class Fact(BaseModel):
    """Persisted fact backed by a knowledge claim of kind ``fact``."""

    id: str
    user_id: str
    type: FactType
    content: str
    trust_state: TrustState = TrustState.PENDING
    confidence: int
    keywords: list[str] = Field(default_factory=list)
    requires_verification: bool = False
    verified_by: str | None = None
    verified_at: datetime | None = None


class PersistenceResult(BaseModel):
    facts_extracted: int = 0
    facts_stored: int = 0
    facts_pending: int = 0
    stored_facts: list[Fact] = Field(default_factory=list)
