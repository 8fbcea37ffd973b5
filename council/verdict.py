"""Vote counting and verdict classification."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from council.types import Challenge, CouncilResponse, Severity, Verdict, VerdictLabel

logger = logging.getLogger("veritas.council.verdict")

POSITION_PREFIX_CHARS = 100
DEADLOCK_CONFIDENCE = 50
DISSENT_DEVIATION = 20
NO_CONSENSUS_PROPOSAL = "No consensus reached - insufficient responses from council members."


def group_by_position(responses: Sequence[CouncilResponse]) -> dict[str, list[CouncilResponse]]:
    """Responses sharing the same leading characters count as one position."""
    groups: dict[str, list[CouncilResponse]] = {}
    for response in responses:
        groups.setdefault(response.content[:POSITION_PREFIX_CHARS], []).append(response)
    return groups


def count_votes(responses: Sequence[CouncilResponse]) -> dict[str, int]:
    return {
        f"position_{idx}": len(members)
        for idx, members in enumerate(group_by_position(responses).values(), start=1)
    }


def classify(
    responses: Sequence[CouncilResponse],
    vote_counts: dict[str, int],
    majority_threshold: float = 0.66,
) -> VerdictLabel:
    total = sum(vote_counts.values())
    if total == 0 or not responses:
        return VerdictLabel.DEADLOCK
    average = sum(r.confidence for r in responses) / len(responses)
    if average < DEADLOCK_CONFIDENCE:
        return VerdictLabel.DEADLOCK
    ratio = max(vote_counts.values()) / total
    if ratio >= 1:
        return VerdictLabel.CONSENSUS
    if ratio >= majority_threshold:
        return VerdictLabel.MAJORITY
    if ratio >= 0.5:
        return VerdictLabel.SPLIT
    return VerdictLabel.DEADLOCK


def _reasoning(
    responses: Sequence[CouncilResponse], challenges: Sequence[Challenge], label: VerdictLabel
) -> str:
    average = sum(r.confidence for r in responses) / len(responses)
    text = (
        f"Verdict: {label.value}. {len(responses)} council members responded "
        f"with average confidence of {average:.0f}%."
    )
    unresolved = [c for c in challenges if not c.resolved]
    critical = [c for c in challenges if c.severity == Severity.CRITICAL]
    if unresolved:
        text += f" {len(unresolved)} unresolved challenges remain."
    if critical:
        text += f" WARNING: {len(critical)} critical challenges were raised."
    return text


def _dissent(responses: Sequence[CouncilResponse], label: VerdictLabel) -> list[str]:
    if label == VerdictLabel.CONSENSUS:
        return []
    average = sum(r.confidence for r in responses) / len(responses)
    return [
        f"{r.member}: {r.reasoning or r.content[:100]}"
        for r in responses
        if abs(r.confidence - average) > DISSENT_DEVIATION
    ]


def render_verdict(
    responses: Sequence[CouncilResponse],
    challenges: Sequence[Challenge],
    majority_threshold: float = 0.66,
) -> Verdict:
    """Classify council agreement and explain it."""
    if not responses:
        return Verdict(
            label=VerdictLabel.DEADLOCK,
            reasoning="No responses received from council members",
        )
    votes = count_votes(responses)
    label = classify(responses, votes, majority_threshold)
    verdict = Verdict(
        label=label,
        vote_counts=votes,
        reasoning=_reasoning(responses, challenges, label),
        dissent=_dissent(responses, label),
    )
    logger.info("Verdict rendered: %s votes=%s", label.value, votes)
    return verdict


def synthesize_proposal(responses: Sequence[CouncilResponse], verdict: Verdict) -> str:
    """Highest-confidence content, prefixed with the verdict label."""
    if not responses:
        return NO_CONSENSUS_PROPOSAL
    best = max(responses, key=lambda r: r.confidence)
    return f"[{verdict.label.value}] {best.content}"
