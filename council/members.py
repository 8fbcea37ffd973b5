"""Council member adapters and the registry that resolves them by name."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from council.types import MemberReply
from llm.base_llm import BaseLLM

logger = logging.getLogger("veritas.council.members")

_CONFIDENCE_LINE = re.compile(r"^\s*CONFIDENCE\s*:\s*(\d{1,3})\s*%?\s*$", re.IGNORECASE | re.MULTILINE)
_REASONING_LINE = re.compile(r"^\s*REASONING\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)

ANSWER_FORMAT = (
    "Answer the question directly. Then add a line 'REASONING: <one sentence>' and a "
    "final line 'CONFIDENCE: <0-100>' stating how certain you are. Never claim 100 "
    "unless you can cite a verifiable source."
)

DEFAULT_STYLES: dict[str, str] = {
    "KVASIR": "You reason step by step from first principles.",
    "SAGA": "You answer from historical and encyclopedic knowledge.",
    "NORNES": "You answer with mathematical and logical rigour.",
    "BRAGI": "You answer creatively while staying truthful.",
    "LOKI": "You look for the weakest point of the obvious answer.",
    "TYR": "You arbitrate: give the most defensible, balanced answer.",
}


def parse_reply(text: str, default_confidence: int = 50) -> MemberReply:
    """Split a free-text model answer into content, reasoning and confidence."""
    confidence = default_confidence
    matches = _CONFIDENCE_LINE.findall(text)
    if matches:
        confidence = max(0, min(100, int(matches[-1])))
    reasoning_match = _REASONING_LINE.search(text)
    reasoning = reasoning_match.group(1).strip() if reasoning_match else None
    content = _REASONING_LINE.sub("", _CONFIDENCE_LINE.sub("", text)).strip()
    return MemberReply(content=content, confidence=confidence, reasoning=reasoning)


class BaseMember(ABC):
    """One independent opinion-generating collaborator."""

    name: str

    @abstractmethod
    async def query(self, prompt: str) -> MemberReply:
        """Answer a prompt. Raise on failure; the council drops failed members."""


class LLMMember(BaseMember):
    """Council member backed by a chat model and a reasoning-style instruction."""

    def __init__(
        self,
        name: str,
        llm: BaseLLM,
        style: str = "",
        default_confidence: int = 50,
    ) -> None:
        self.name = name
        self.llm = llm
        self.style = style or DEFAULT_STYLES.get(name, "")
        self.default_confidence = default_confidence

    def build_messages(self, prompt: str) -> list[dict[str, str]]:
        system = f"You are {self.name}, a member of a deliberation council. {self.style} {ANSWER_FORMAT}"
        return [{"role": "system", "content": system.strip()}, {"role": "user", "content": prompt}]

    async def query(self, prompt: str) -> MemberReply:
        text = await self.llm.achat(self.build_messages(prompt))
        if not text.strip():
            raise ValueError(f"{self.name} returned an empty answer")
        return parse_reply(text, self.default_confidence)


class MemberRegistry:
    """Resolves council members by their tag."""

    def __init__(self, members: Iterable[BaseMember] = ()) -> None:
        self._members: dict[str, BaseMember] = {}
        for member in members:
            self.register(member)

    def register(self, member: BaseMember) -> None:
        self._members[member.name.upper()] = member

    def get(self, name: str) -> BaseMember | None:
        return self._members.get(name.upper())

    def resolve(self, names: Sequence[str]) -> list[BaseMember]:
        """Known members in request order; unknown tags are logged and skipped."""
        resolved: list[BaseMember] = []
        seen: set[str] = set()
        for name in names:
            key = name.upper()
            if key in seen:
                continue
            seen.add(key)
            member = self._members.get(key)
            if member is None:
                logger.warning("Council member %s is not registered", name)
                continue
            resolved.append(member)
        return resolved


def build_council(
    config: dict[str, Any],
    llm_builder: Callable[[str | None], BaseLLM],
) -> MemberRegistry:
    """Build the member registry from the ``council.members`` config section."""
    members_cfg: dict[str, Any] = config.get("council", {}).get("members", {})
    if not members_cfg:
        members_cfg = {name: {} for name in DEFAULT_STYLES}
    registry = MemberRegistry()
    for name, member_cfg in members_cfg.items():
        member_cfg = member_cfg or {}
        if not member_cfg.get("enabled", True):
            continue
        registry.register(
            LLMMember(
                name=name.upper(),
                llm=llm_builder(member_cfg.get("provider")),
                style=member_cfg.get("style", ""),
                default_confidence=int(member_cfg.get("default_confidence", 50)),
            )
        )
    return registry
