"""Critic heuristics tests."""

from __future__ import annotations

from council.critic import critique, critique_all
from council.types import CouncilResponse, Severity
from memory.types.sources import Source


def response(content: str, confidence: int = 70, sources: list[Source] | None = None) -> CouncilResponse:
    return CouncilResponse(member="KVASIR", content=content, confidence=confidence, sources=sources or [])


def test_overconfidence_without_sources_is_high() -> None:
    challenge = critique(response("Short answer.", confidence=95))

    assert challenge is not None
    assert challenge.severity == Severity.HIGH
    assert "95%" in challenge.text


def test_sources_suppress_overconfidence_but_not_fallacies() -> None:
    source = Source(type="document", identifier="doc-1")
    challenge = critique(response("Obviously the answer is 4.", confidence=95, sources=[source]))

    assert challenge is not None
    assert challenge.severity == Severity.MEDIUM
    assert "common knowledge" in challenge.text


def test_absolute_language_needs_whole_words() -> None:
    assert critique(response("They always win.")) is not None
    assert critique(response("The hallway is wide.")) is None


def test_research_claims_without_sources_are_high() -> None:
    challenge = critique(response("According to the census the town grew."))

    assert challenge is not None
    assert challenge.severity == Severity.HIGH


def test_long_one_sided_answer_is_low() -> None:
    long_text = "word " * 50
    challenge = critique(response(long_text))

    assert challenge is not None
    assert challenge.severity == Severity.LOW
    assert critique(response(long_text + " However, there is nuance.")) is None


def test_critique_all_returns_at_most_one_challenge_per_response() -> None:
    responses = [
        response("Obviously experts say this is always true.", confidence=99),
        response("Fine answer."),
    ]
    challenges = critique_all(responses)

    assert len(challenges) == 1
    assert challenges[0].severity == Severity.HIGH
