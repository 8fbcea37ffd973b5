"""Query classification and routing tests."""

from __future__ import annotations

import pytest

from core.router import Complexity, QueryClassifier, QueryRouter, QueryType, is_conversational
from memory.types.claims import EpistemicBranch


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("What is the boiling point of water?", QueryType.FACTUAL),
        ("Latest news about the launch", QueryType.CURRENT_EVENTS),
        ("Write a poem about autumn", QueryType.CREATIVE),
        ("According to the journal, does coffee help?", QueryType.RESEARCH),
        ("Is string theory testable?", QueryType.THEORETICAL),
        ("hello!", QueryType.CONVERSATIONAL),
    ],
)
def test_query_types(query: str, expected: QueryType) -> None:
    assert QueryClassifier().classify(query).type == expected


def test_complexity_counts_whole_words_only() -> None:
    classify = QueryClassifier.classify_complexity

    assert classify("android orders") == Complexity.SIMPLE
    assert classify("cats and dogs") == Complexity.MODERATE
    assert classify("if it rains and snows") == Complexity.COMPLEX
    assert classify(" ".join(["word"] * 51)) == Complexity.COMPLEX


def test_conversational_detection() -> None:
    assert is_conversational("Hello")
    assert is_conversational("thanks, bye")
    assert not is_conversational("hello, what is the capital of France?")
    assert not is_conversational("hello there my friend how are you doing today then")
    assert not is_conversational("")


def test_conversational_route_uses_one_member() -> None:
    decision = QueryRouter(conversational_member="BRAGI").route("hi")

    assert decision.is_conversational is True
    assert decision.primary_branch == EpistemicBranch.HYPOTHESIS
    assert decision.council_members == ["BRAGI"]
    assert decision.requires_deliberation is True
    assert decision.estimated_tokens == 1000


def test_simple_factual_query_routes_to_high_trust_without_deliberation() -> None:
    decision = QueryRouter().route("What is the boiling point of water?")

    assert decision.primary_branch == EpistemicBranch.HIGH_TRUST
    assert decision.secondary_branches == []
    assert decision.council_members == ["KVASIR", "SAGA", "TYR"]
    assert decision.requires_deliberation is False
    assert "classification" not in decision.to_dict()


def test_complex_research_query_adds_high_trust_and_loki() -> None:
    decision = QueryRouter().route("research on sleep and if naps help")

    assert decision.primary_branch == EpistemicBranch.HYPOTHESIS
    assert decision.secondary_branches == [EpistemicBranch.HIGH_TRUST]
    assert decision.council_members == ["KVASIR", "SAGA", "LOKI", "TYR"]
    assert decision.requires_deliberation is True
    assert decision.estimated_tokens == 4000


def test_current_events_and_controversy() -> None:
    router = QueryRouter()

    assert router.route("latest headlines").primary_branch == EpistemicBranch.UNVERIFIED
    controversial = router.route("Who won the election?")
    assert controversial.requires_deliberation is True
    assert controversial.primary_branch == EpistemicBranch.HIGH_TRUST


def test_math_domain_brings_nornes() -> None:
    members = QueryRouter().route("calculate the equation for x").council_members

    assert members == ["KVASIR", "NORNES", "TYR"]


def test_classification_confidence_grows_with_pattern_evidence() -> None:
    classifier = QueryClassifier()

    assert classifier.classify("Who won the election?").confidence == 50
    assert classifier.classify("What is the boiling point of water?").confidence == 75
    assert classifier.classify("Explain what is entropy").confidence == 100
    assert classifier.classify("hello").confidence == 100
    assert classifier.classify("Is string theory testable?").confidence == 75
