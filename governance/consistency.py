"""Memory consistency checking between proposed content and the ledger."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class ConsistencyReport:
    contradictions: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.contradictions


class ConsistencyChecker(ABC):
    """Compares content against verified memory."""

    @abstractmethod
    def check(self, content: str) -> ConsistencyReport:
        """Return the ids of contradicted claims, if any."""


class AlwaysConsistent(ConsistencyChecker):
    """Default checker: reports no contradictions.

    Contradiction detection semantics are left to an injected checker.
    """

    def check(self, content: str) -> ConsistencyReport:
        return ConsistencyReport()
