"""Fact extraction from conversational messages: LLM first, regex table as fallback."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from llm.base_llm import BaseLLM
from llm.providers.mock_provider import MockProvider
from memory.scoring import extract_keywords
from memory.types.facts import ExtractedFact, FactType

logger = logging.getLogger("veritas.facts")


@dataclass(frozen=True)
class FactPattern:
    pattern: re.Pattern[str]
    type: FactType
    confidence: int
    requires_verification: bool


def _p(expr: str) -> re.Pattern[str]:
    return re.compile(expr, re.IGNORECASE)


# English and French phrasings. Group 1, when present, is the fact content.
FACT_PATTERNS: tuple[FactPattern, ...] = (
    FactPattern(
        _p(r"\b(?:je\s+(?:suis|m'appelle)|my\s+name\s+is|i\s+am)\s+([^.,!?]+)"),
        FactType.IDENTITY,
        90,
        True,
    ),
    FactPattern(
        _p(r"\b(?:je\s+suis\s+(?:ton|votre)\s+créateur|i\s+(?:am|'m)\s+your\s+creator)"),
        FactType.IDENTITY,
        95,
        True,
    ),
    FactPattern(_p(r"\b(?:appelle[s]?[\s-]moi|call\s+me)\s+([^.,!?]+)"), FactType.IDENTITY, 85, False),
    FactPattern(
        _p(
            r"\b(?:tu\s+es\s+(?:maintenant\s+)?(?:relié|connecté)\s+à"
            r"|you\s+are\s+(?:now\s+)?connected\s+to)\s+([^.,!?]+)"
        ),
        FactType.RELATIONSHIP,
        80,
        True,
    ),
    FactPattern(
        _p(r"\b(?:souviens[\s-]toi\s+(?:que|de)|remember\s+(?:that|to))\s+([^.,!?]+)"),
        FactType.INSTRUCTION,
        95,
        False,
    ),
    FactPattern(
        _p(r"(?:n'oublie\s+(?:pas|jamais)|\bdon't\s+forget)\s+([^.,!?]+)"),
        FactType.INSTRUCTION,
        95,
        False,
    ),
    FactPattern(
        _p(r"\b(?:retiens\s+(?:que|bien)|keep\s+in\s+mind)\s+([^.,!?]+)"),
        FactType.INSTRUCTION,
        90,
        False,
    ),
    FactPattern(
        _p(r"\b(?:je\s+(?:veux|souhaite|cherche\s+à)|i\s+want\s+to|my\s+goal\s+is)\s+([^.,!?]+)"),
        FactType.GOAL,
        85,
        False,
    ),
    FactPattern(
        _p(r"(?:l'(?:idée|objectif)\s+est\s+de|\bthe\s+(?:idea|goal)\s+is\s+to)\s+([^.,!?]+)"),
        FactType.GOAL,
        90,
        False,
    ),
    FactPattern(_p(r"\b(?:je\s+préfère|i\s+prefer)\s+([^.,!?]+)"), FactType.PREFERENCE, 80, False),
    FactPattern(
        _p(r"\b(?:voici\s+(?:la\s+)?(?:documentation|doc)|here\s+is\s+the\s+(?:documentation|doc))"),
        FactType.CONTEXT,
        100,
        False,
    ),
    FactPattern(
        _p(
            r"\b(?:tu\s+as\s+(?:tous?\s+)?(?:les?\s+)?(?:renseignements?|informations?)"
            r"|you\s+have\s+(?:all\s+)?the\s+info)"
        ),
        FactType.CONTEXT,
        85,
        False,
    ),
)

_MARKDOWN = re.compile(r"^#+\s|```|^\s*[-*]\s|\|.*\|", re.MULTILINE)

EXTRACTION_PROMPT = (
    "Extract durable facts the user states about themselves or the conversation. "
    "Categories: IDENTITY (who the user is), RELATIONSHIP (how the user relates to this "
    "assistant), PREFERENCE, CONTEXT (documentation or background), GOAL, INSTRUCTION "
    "(something to remember), DECLARATION (any other explicit statement of fact). "
    "Return ONLY a JSON array of objects with keys 'type', 'content', 'confidence' "
    "(integer 0-100) and 'requires_verification' (true for identity or relationship claims). "
    "Return [] when there is nothing to extract.\n"
    "Message: "
)


def is_large_context_block(message: str) -> bool:
    """Documentation-like paste: more than 20 lines containing markdown."""
    return len(message.split("\n")) > 20 and bool(_MARKDOWN.search(message))


def extract_with_patterns(message: str) -> list[ExtractedFact]:
    """Regex fallback. Lower recall, no external dependency."""
    facts: list[ExtractedFact] = []
    for fact_pattern in FACT_PATTERNS:
        match = fact_pattern.pattern.search(message)
        if not match:
            continue
        content = (match.group(1) if match.groups() and match.group(1) else match.group(0)).strip()
        facts.append(
            ExtractedFact(
                type=fact_pattern.type,
                content=content,
                confidence=fact_pattern.confidence,
                keywords=extract_keywords(content),
                requires_verification=fact_pattern.requires_verification,
            )
        )
        logger.debug("Fact extracted type=%s confidence=%s", fact_pattern.type.value, fact_pattern.confidence)
    if is_large_context_block(message):
        facts.append(
            ExtractedFact(
                type=FactType.CONTEXT,
                content=message,
                confidence=100,
                keywords=extract_keywords(message),
                requires_verification=False,
            )
        )
    return facts


class FactExtractor:
    """Extracts typed facts, preferring the configured LLM when one is available."""

    def __init__(self, llm: BaseLLM | None = None) -> None:
        self.llm = llm

    def _parse_llm_facts(self, response: str) -> list[ExtractedFact]:
        match = re.search(r"\[.*\]", response, re.DOTALL)
        if not match:
            raise ValueError("no JSON array in extractor response")
        parsed = json.loads(match.group())
        facts: list[ExtractedFact] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            content = item.get("content")
            if not content or not isinstance(content, str):
                continue
            try:
                fact_type = FactType(str(item.get("type", "DECLARATION")).upper())
            except ValueError:
                fact_type = FactType.DECLARATION
            confidence = int(max(0, min(100, float(item.get("confidence", 70)))))
            requires = item.get("requires_verification")
            if requires is None:
                requires = fact_type in (FactType.IDENTITY, FactType.RELATIONSHIP)
            facts.append(
                ExtractedFact(
                    type=fact_type,
                    content=content.strip(),
                    confidence=confidence,
                    keywords=extract_keywords(content),
                    requires_verification=bool(requires),
                )
            )
        return facts

    def extract(self, message: str) -> list[ExtractedFact]:
        """Return extracted facts; falls back to the pattern table on any LLM problem."""
        if not message.strip():
            return []
        if self.llm is None or isinstance(self.llm, MockProvider):
            return extract_with_patterns(message)
        try:
            response = self.llm.chat([{"role": "user", "content": EXTRACTION_PROMPT + message}])
            facts = self._parse_llm_facts(response)
        except Exception as exc:
            logger.warning("LLM fact extraction failed, using patterns: %s", exc)
            return extract_with_patterns(message)
        if is_large_context_block(message) and not any(f.type == FactType.CONTEXT for f in facts):
            facts.append(
                ExtractedFact(
                    type=FactType.CONTEXT,
                    content=message,
                    confidence=100,
                    keywords=extract_keywords(message),
                )
            )
        return facts
