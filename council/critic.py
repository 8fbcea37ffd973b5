"""Adversarial critic: at most one challenge per council response."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from council.types import Challenge, CouncilResponse, Severity

logger = logging.getLogger("veritas.council.critic")

FALLACY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"everyone knows|obviously|clearly|it's obvious", re.IGNORECASE),
        "appeal to common knowledge",
    ),
    (re.compile(r"\b(?:always|never|all|none)\b", re.IGNORECASE), "absolute statement without nuance"),
    (re.compile(r"experts say|studies show", re.IGNORECASE), "appeal to vague authority"),
)

UNSUPPORTED_CLAIM = re.compile(
    r"according to|research shows|data indicates|statistics show", re.IGNORECASE
)

OVERCONFIDENCE_THRESHOLD = 90
LONG_RESPONSE_CHARS = 200


def critique(response: CouncilResponse) -> Challenge | None:
    """Run the heuristic checks in order and return the first challenge raised."""
    if response.confidence > OVERCONFIDENCE_THRESHOLD and not response.sources:
        return Challenge(
            target_member=response.member,
            text=(
                f"{response.member} claims {response.confidence}% confidence "
                "without providing sources"
            ),
            severity=Severity.HIGH,
            target_claim=response.content[:100],
        )

    for pattern, fallacy in FALLACY_PATTERNS:
        match = pattern.search(response.content)
        if match:
            return Challenge(
                target_member=response.member,
                text=f"Potential {fallacy} detected in response",
                severity=Severity.MEDIUM,
                target_claim=match.group(0),
            )

    if UNSUPPORTED_CLAIM.search(response.content) and not response.sources:
        return Challenge(
            target_member=response.member,
            text="Response makes claims about research/data without citing sources",
            severity=Severity.HIGH,
        )

    lowered = response.content.lower()
    if len(response.content) > LONG_RESPONSE_CHARS and "however" not in lowered and "although" not in lowered:
        return Challenge(
            target_member=response.member,
            text="Response may not consider alternative perspectives or edge cases",
            severity=Severity.LOW,
        )
    return None


def critique_all(responses: Iterable[CouncilResponse]) -> list[Challenge]:
    """Challenge each response independently."""
    challenges: list[Challenge] = []
    for response in responses:
        challenge = critique(response)
        if challenge is not None:
            logger.info(
                "Challenge for %s: %s (%s)",
                response.member,
                challenge.text,
                challenge.severity.value,
            )
            challenges.append(challenge)
    return challenges
