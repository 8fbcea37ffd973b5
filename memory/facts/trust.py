"""Trust assignment for submitted facts."""

from __future__ import annotations

from memory.types.facts import ExtractedFact, TrustState, VerificationLevel

AUTO_TRUSTED_LEVELS = frozenset(
    {VerificationLevel.CREATOR, VerificationLevel.ADMIN, VerificationLevel.TRUSTED}
)


def assign_trust(fact: ExtractedFact, level: VerificationLevel) -> TrustState:
    """Creator, admin and trusted submitters are believed; verified users only for
    facts that need no verification; unverified users never."""
    if level in AUTO_TRUSTED_LEVELS:
        return TrustState.VERIFIED
    if level == VerificationLevel.VERIFIED and not fact.requires_verification:
        return TrustState.VERIFIED
    return TrustState.PENDING
