"""Collaborator stubs and builders shared by the tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

from branches.base import BaseBranch, BranchResult
from council.members import BaseMember
from council.types import MemberReply
from memory.checkpoints import CheckpointManager
from memory.ledger import MemoryLedger
from memory.stores.sql_store import SQLCheckpointStore, SQLClaimStore, SQLDependencyStore, SQLStore
from memory.types.claims import EpistemicBranch
from memory.types.sources import Source


class StubMember(BaseMember):
    def __init__(
        self,
        name: str,
        content: str = "Paris is the capital of France.",
        confidence: int = 100,
        sources: list[Source] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.content = content
        self.confidence = confidence
        self.sources = sources or []
        self.delay = delay
        self.error = error
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def query(self, prompt: str) -> MemberReply:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return MemberReply(content=self.content, confidence=self.confidence, sources=self.sources)


class StubBranch(BaseBranch):
    def __init__(
        self,
        branch: EpistemicBranch,
        content: str = "",
        confidence: int = 0,
        sources: list[Source] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.branch = branch
        self.content = content
        self.confidence = confidence
        self.sources = sources or []
        self.error = error

    async def query(self, text: str, context: str = "") -> BranchResult:
        if self.error is not None:
            raise self.error
        return BranchResult(
            branch=self.branch, content=self.content, confidence=self.confidence, sources=self.sources
        )


def verified_source(identifier: str = "doc-1") -> Source:
    return Source(type="document", identifier=identifier, title=f"Document {identifier}")


def build_sql_ledger(tmp_path: Path) -> tuple[MemoryLedger, CheckpointManager]:
    store = SQLStore(db_path=tmp_path / "veritas.db")
    store.create_all()
    ledger = MemoryLedger(claims=SQLClaimStore(store), dependencies=SQLDependencyStore(store))
    return ledger, CheckpointManager(ledger, SQLCheckpointStore(store))
