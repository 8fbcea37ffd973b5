"""Exception hierarchy for caller mistakes and epistemic violations."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


class VeritasError(Exception):
    """Base error carrying a machine-readable code and detail mapping."""

    def __init__(self, message: str, code: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.timestamp = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": str(self),
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(VeritasError):
    """Runtime configuration is missing or malformed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class NotFoundError(VeritasError):
    """Unknown claim, checkpoint or fact id."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(VeritasError):
    """Requester does not own the resource it tries to mutate."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "FORBIDDEN", details)


class InvalidTransitionError(VeritasError):
    """Requested state change is not allowed by the claim or fact lifecycle."""

    def __init__(self, resource: str, from_state: str, to_state: str) -> None:
        super().__init__(
            f"Invalid {resource} transition: {from_state} -> {to_state}",
            "INVALID_TRANSITION",
            {"resource": resource, "from": from_state, "to": to_state},
        )


class EpistemicError(VeritasError):
    """Base class for branch separation violations."""


class ConfidenceOutOfRangeError(EpistemicError):
    """Confidence value does not belong to the branch it is attached to."""

    def __init__(self, confidence: float, branch: str, expected: tuple[int, int]) -> None:
        super().__init__(
            f"Confidence {confidence} out of range for branch {branch}",
            "CONFIDENCE_OUT_OF_RANGE",
            {
                "confidence": confidence,
                "branch": branch,
                "expected_range": {"min": expected[0], "max": expected[1]},
            },
        )


class EpistemicContaminationError(EpistemicError):
    """Content from one branch leaked into another."""

    def __init__(self, from_branch: str, to_branch: str) -> None:
        super().__init__(
            f"Attempted contamination from {from_branch} to {to_branch}",
            "EPISTEMIC_CONTAMINATION",
            {"from": from_branch, "to": to_branch},
        )
        self.from_branch = from_branch
        self.to_branch = to_branch
