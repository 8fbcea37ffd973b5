"""Verdict classification and proposal tests."""

from __future__ import annotations

from council.types import CouncilResponse, VerdictLabel
from council.verdict import (
    NO_CONSENSUS_PROPOSAL,
    count_votes,
    render_verdict,
    synthesize_proposal,
)


def response(member: str, content: str, confidence: int = 80) -> CouncilResponse:
    return CouncilResponse(member=member, content=content, confidence=confidence)


def test_no_responses_is_deadlock_with_fixed_proposal() -> None:
    verdict = render_verdict([], [])

    assert verdict.label == VerdictLabel.DEADLOCK
    assert verdict.reasoning == "No responses received from council members"
    assert synthesize_proposal([], verdict) == NO_CONSENSUS_PROPOSAL


def test_unanimous_position_is_consensus() -> None:
    responses = [response(m, "Water boils at 100 C at sea level.") for m in ("KVASIR", "SAGA", "TYR")]
    verdict = render_verdict(responses, [])

    assert verdict.label == VerdictLabel.CONSENSUS
    assert verdict.vote_counts == {"position_1": 3}
    assert verdict.dissent == []
    assert synthesize_proposal(responses, verdict).startswith("[CONSENSUS] Water boils")


def test_two_of_three_is_majority() -> None:
    responses = [
        response("KVASIR", "Answer A"),
        response("SAGA", "Answer A"),
        response("TYR", "Answer B"),
    ]
    assert render_verdict(responses, []).label == VerdictLabel.MAJORITY


def test_even_split_and_fragmented_votes() -> None:
    split = [response("KVASIR", "Answer A"), response("SAGA", "Answer B")]
    fragmented = [response("KVASIR", "A"), response("SAGA", "B"), response("TYR", "C")]

    assert render_verdict(split, []).label == VerdictLabel.SPLIT
    assert render_verdict(fragmented, []).label == VerdictLabel.DEADLOCK


def test_low_average_confidence_is_deadlock_even_when_unanimous() -> None:
    responses = [response(m, "Maybe.", confidence=40) for m in ("KVASIR", "TYR")]
    assert render_verdict(responses, []).label == VerdictLabel.DEADLOCK


def test_positions_compare_only_the_leading_characters() -> None:
    prefix = "x" * 100
    responses = [response("KVASIR", prefix + " tail one"), response("SAGA", prefix + " tail two")]

    assert count_votes(responses) == {"position_1": 2}


def test_dissent_lists_members_far_from_average() -> None:
    responses = [
        response("KVASIR", "Answer A", 100),
        response("SAGA", "Answer A", 100),
        response("TYR", "Answer B", 40),
    ]
    verdict = render_verdict(responses, [])

    assert verdict.label == VerdictLabel.MAJORITY
    assert len(verdict.dissent) == 1
    assert verdict.dissent[0].startswith("TYR:")
    assert synthesize_proposal(responses, verdict) == "[MAJORITY] Answer A"
