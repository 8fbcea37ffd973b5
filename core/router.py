"""Query classification and routing to branches and council members."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from memory.scoring import extract_keywords
from memory.types.claims import EpistemicBranch

logger = logging.getLogger("veritas.router")


class QueryType(str, Enum):
    FACTUAL = "factual"
    RESEARCH = "research"
    THEORETICAL = "theoretical"
    CREATIVE = "creative"
    CURRENT_EVENTS = "current_events"
    PROCEDURAL = "procedural"
    CONVERSATIONAL = "conversational"
    UNKNOWN = "unknown"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


FACTUAL_PATTERNS = _patterns(
    r"what is|what are|who is|who was|when did|where is|how many|how much",
    r"define|explain|describe",
    r"\d{4}.*happened|historical",
)
RESEARCH_PATTERNS = _patterns(
    r"research|study|studies|paper|journal|publication",
    r"according to|evidence|data shows",
)
CURRENT_EVENT_PATTERNS = _patterns(
    r"latest|recent|today|yesterday|this week|this month|current",
    r"news|update|happening|live",
)
CREATIVE_PATTERNS = _patterns(
    r"write|create|generate|compose|imagine|story|poem",
    r"design|brainstorm|suggest ideas",
)
CONTROVERSIAL_PATTERNS = _patterns(
    r"politics|political|election|vote",
    r"religion|religious|faith|belief",
    r"abortion|gun control|climate change debate",
)
CONVERSATIONAL_PATTERN = re.compile(
    r"^\s*(?:hi|hello|hey|yo|bonjour|salut|coucou|good\s+(?:morning|afternoon|evening|night)"
    r"|thanks|thank\s+you|merci|bye|goodbye|au\s+revoir|how\s+are\s+you|ça\s+va|ca\s+va"
    r"|nice\s+to\s+meet\s+you|ok|okay)\b[\s!.,?]*",
    re.IGNORECASE,
)
MAX_CONVERSATIONAL_WORDS = 8

TYPE_PATTERNS: dict[QueryType, tuple[re.Pattern[str], ...]] = {
    QueryType.CURRENT_EVENTS: CURRENT_EVENT_PATTERNS,
    QueryType.CREATIVE: CREATIVE_PATTERNS,
    QueryType.RESEARCH: RESEARCH_PATTERNS,
    QueryType.FACTUAL: FACTUAL_PATTERNS,
}

DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "science": ("physics", "chemistry", "biology", "science", "scientific", "experiment"),
    "mathematics": ("math", "calculate", "equation", "formula", "number", "algebra", "geometry"),
    "history": ("history", "historical", "century", "ancient", "war", "civilization"),
    "technology": ("computer", "software", "programming", "technology", "digital", "internet"),
    "medicine": ("medical", "health", "disease", "treatment", "doctor", "symptom"),
    "law": ("legal", "law", "court", "rights", "regulation", "contract"),
    "philosophy": ("philosophy", "ethics", "moral", "meaning", "existence"),
    "creative": ("art", "music", "literature", "creative", "design", "writing"),
    "logic": ("logic", "reasoning", "proof", "argument", "fallacy"),
}

_CLAUSE = re.compile(r"\b(?:and|or)\b")
_CONDITION = re.compile(r"\b(?:if|when)\b")
BASE_TOKENS = 1000
TOKEN_MULTIPLIER = {Complexity.SIMPLE: 1, Complexity.MODERATE: 2, Complexity.COMPLEX: 4}


@dataclass
class QueryClassification:
    type: QueryType
    domain: str
    complexity: Complexity
    requires_verification: bool
    requires_realtime: bool
    requires_multiple_sources: bool
    controversial: bool
    is_conversational: bool
    confidence: int
    keywords: list[str] = field(default_factory=list)


@dataclass
class RouteDecision:
    primary_branch: EpistemicBranch
    secondary_branches: list[EpistemicBranch]
    council_members: list[str]
    complexity: Complexity
    requires_deliberation: bool
    is_conversational: bool
    estimated_tokens: int
    classification: QueryClassification | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("classification", None)
        return data


def _matches(text: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def is_conversational(query: str) -> bool:
    """Greetings and small talk that carry no factual question."""
    text = query.strip()
    if not text or len(text.split()) > MAX_CONVERSATIONAL_WORDS:
        return False
    if not CONVERSATIONAL_PATTERN.match(text):
        return False
    return not _matches(text, FACTUAL_PATTERNS + RESEARCH_PATTERNS)


class QueryClassifier:
    """Keyword and pattern heuristics; no model call."""

    def classify(self, query: str) -> QueryClassification:
        text = query.lower().strip()
        conversational = is_conversational(text)
        query_type = QueryType.CONVERSATIONAL if conversational else self.classify_type(text)
        domain = self.classify_domain(text)
        complexity = self.classify_complexity(text)
        classification = QueryClassification(
            type=query_type,
            domain=domain,
            complexity=complexity,
            requires_verification=query_type in (QueryType.FACTUAL, QueryType.RESEARCH),
            requires_realtime=query_type == QueryType.CURRENT_EVENTS,
            requires_multiple_sources=complexity == Complexity.COMPLEX,
            controversial=_matches(text, CONTROVERSIAL_PATTERNS),
            is_conversational=conversational,
            confidence=self.type_confidence(text, query_type),
            keywords=extract_keywords(text),
        )
        logger.debug(
            "Query classified: type=%s (%s%%) domain=%s complexity=%s",
            query_type.value,
            classification.confidence,
            domain,
            complexity.value,
        )
        return classification

    @staticmethod
    def classify_type(text: str) -> QueryType:
        if _matches(text, CURRENT_EVENT_PATTERNS):
            return QueryType.CURRENT_EVENTS
        if _matches(text, CREATIVE_PATTERNS):
            return QueryType.CREATIVE
        if _matches(text, RESEARCH_PATTERNS):
            return QueryType.RESEARCH
        if _matches(text, FACTUAL_PATTERNS):
            return QueryType.FACTUAL
        if "theory" in text or "hypothesis" in text:
            return QueryType.THEORETICAL
        if "how to" in text or "steps to" in text:
            return QueryType.PROCEDURAL
        return QueryType.UNKNOWN

    @staticmethod
    def type_confidence(text: str, query_type: QueryType) -> int:
        """50 with no evidence, plus 25 per matching pattern group of the chosen type."""
        if query_type == QueryType.CONVERSATIONAL:
            return 100
        if query_type == QueryType.UNKNOWN:
            return 50
        patterns = TYPE_PATTERNS.get(query_type)
        if patterns is None:
            return 75
        hits = sum(1 for pattern in patterns if pattern.search(text))
        return min(100, 50 + 25 * hits)

    @staticmethod
    def classify_domain(text: str) -> str:
        for domain, keywords in DOMAIN_KEYWORDS.items():
            if any(keyword in text for keyword in keywords):
                return domain
        return "general"

    @staticmethod
    def classify_complexity(text: str) -> Complexity:
        word_count = len(text.split())
        multiple_clauses = bool(_CLAUSE.search(text))
        conditions = bool(_CONDITION.search(text))
        if word_count > 50 or (multiple_clauses and conditions):
            return Complexity.COMPLEX
        if word_count > 20 or multiple_clauses or conditions:
            return Complexity.MODERATE
        return Complexity.SIMPLE


class QueryRouter:
    """Turns a classification into a route decision."""

    def __init__(self, classifier: QueryClassifier | None = None, conversational_member: str = "KVASIR") -> None:
        self.classifier = classifier or QueryClassifier()
        self.conversational_member = conversational_member

    def route(self, query: str) -> RouteDecision:
        c = self.classifier.classify(query)
        if c.is_conversational:
            decision = RouteDecision(
                primary_branch=EpistemicBranch.HYPOTHESIS,
                secondary_branches=[],
                council_members=[self.conversational_member],
                complexity=Complexity.SIMPLE,
                requires_deliberation=True,
                is_conversational=True,
                estimated_tokens=BASE_TOKENS,
                classification=c,
            )
        else:
            primary = self.primary_branch(c)
            decision = RouteDecision(
                primary_branch=primary,
                secondary_branches=self.secondary_branches(c, primary),
                council_members=self.council_members(c),
                complexity=c.complexity,
                requires_deliberation=(
                    c.complexity == Complexity.COMPLEX or c.requires_multiple_sources or c.controversial
                ),
                is_conversational=False,
                estimated_tokens=BASE_TOKENS * TOKEN_MULTIPLIER[c.complexity],
                classification=c,
            )
        logger.info(
            "Route decision: primary=%s complexity=%s deliberation=%s conversational=%s",
            decision.primary_branch.value,
            decision.complexity.value,
            decision.requires_deliberation,
            decision.is_conversational,
        )
        return decision

    @staticmethod
    def primary_branch(c: QueryClassification) -> EpistemicBranch:
        if c.type == QueryType.FACTUAL and c.requires_verification:
            return EpistemicBranch.HIGH_TRUST
        if c.type in (QueryType.RESEARCH, QueryType.THEORETICAL):
            return EpistemicBranch.HYPOTHESIS
        if c.type == QueryType.CURRENT_EVENTS or c.requires_realtime:
            return EpistemicBranch.UNVERIFIED
        return EpistemicBranch.HIGH_TRUST

    @staticmethod
    def secondary_branches(c: QueryClassification, primary: EpistemicBranch) -> list[EpistemicBranch]:
        secondary: list[EpistemicBranch] = []
        if c.complexity == Complexity.COMPLEX:
            if primary != EpistemicBranch.HIGH_TRUST:
                secondary.append(EpistemicBranch.HIGH_TRUST)
            if primary != EpistemicBranch.HYPOTHESIS and c.type == QueryType.RESEARCH:
                secondary.append(EpistemicBranch.HYPOTHESIS)
        return secondary

    @staticmethod
    def council_members(c: QueryClassification) -> list[str]:
        members = ["KVASIR"]
        if c.domain in ("mathematics", "logic"):
            members.append("NORNES")
        if c.domain == "creative" or c.type == QueryType.CREATIVE:
            members.append("BRAGI")
        if c.domain in ("history", "general"):
            members.append("SAGA")
        if c.complexity == Complexity.COMPLEX:
            members.append("LOKI")
        members.append("TYR")
        return list(dict.fromkeys(members))
