"""End-to-end pipeline tests with stub branches and council members."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from branches.base import BaseBranch
from branches.high_trust import HighTrustBranch, load_corpus
from branches.registry import BranchRegistry
from core.errors import AuthorizationError
from core.orchestrator import Orchestrator, QueryOptions, chunk_text
from core.router import QueryRouter, RouteDecision
from council.deliberation import CouncilEngine
from council.members import BaseMember, MemberRegistry
from governance.audit_logger import AuditLogger
from governance.trace import RejectionReason
from governance.validation_gate import ValidationGate
from memory.checkpoints import CheckpointManager
from memory.embedding import HashEmbedder
from memory.facts.extractor import FactExtractor
from memory.facts.service import FactService
from memory.ledger import MemoryLedger
from memory.types.checkpoints import CheckpointKind
from memory.types.claims import ClaimKind, DependencyType, EpistemicBranch
from memory.types.facts import VerificationLevel
from tests.helpers import StubBranch, StubMember, verified_source

CORPUS = load_corpus(
    [
        {
            "identifier": "si-brochure-2019",
            "title": "SI Brochure",
            "content": "The speed of light in vacuum is exactly 299792458 metres per second.",
        }
    ]
)


class BrokenRouter(QueryRouter):
    def route(self, query: str) -> RouteDecision:
        raise RuntimeError("router exploded")


def build(
    ledger: MemoryLedger,
    checkpoints: CheckpointManager,
    branches: Sequence[BaseBranch] = (),
    members: Sequence[BaseMember] = (),
    **kwargs,
) -> Orchestrator:
    registry = BranchRegistry()
    for branch in branches:
        registry.register(branch)
    return Orchestrator(
        kwargs.pop("router", QueryRouter()),
        registry,
        CouncilEngine(MemberRegistry(members)),
        ValidationGate(),
        ledger,
        checkpoints,
        **kwargs,
    )


def council(content: str, confidence: int = 100, sources=None, delay: float = 0.0) -> list[StubMember]:
    return [
        StubMember(name, content=content, confidence=confidence, sources=sources, delay=delay)
        for name in ("KVASIR", "SAGA", "TYR")
    ]


def test_chunk_text_splits_and_keeps_empty_answers() -> None:
    assert chunk_text("abcdef", size=4) == ["abcd", "ef"]
    assert chunk_text("") == [""]


@pytest.mark.asyncio
async def test_unsourced_factual_answer_is_unknown(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    members = council("Water boils at 100 degrees Celsius at sea level.", confidence=40)
    orchestrator = build(ledger, checkpoints, [HighTrustBranch()], members)

    response = await orchestrator.process_query("What is the boiling point of water?", "alice")

    assert response.answer is None
    assert response.is_verified is False
    assert response.confidence == 0
    assert response.sources == []
    assert response.rejection_reason == RejectionReason.NO_SOURCE
    assert response.message.startswith("I do not know, because")
    assert all(m.calls == 1 for m in members)


@pytest.mark.asyncio
async def test_corpus_match_is_verified_without_deliberation(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    members = council("irrelevant")
    orchestrator = build(ledger, checkpoints, [HighTrustBranch(corpus=CORPUS)], members)

    response = await orchestrator.process_query(
        "What is the speed of light in vacuum?", "alice", options=QueryOptions(return_trace=True)
    )

    assert response.is_verified is True
    assert response.confidence == 100
    assert "299792458" in response.answer
    assert [s.identifier for s in response.sources] == ["si-brochure-2019"]
    assert response.branch == EpistemicBranch.HIGH_TRUST
    assert response.trace["deliberation"] is None
    assert response.trace["validation"]["is_valid"] is True
    assert all(m.calls == 0 for m in members)


@pytest.mark.asyncio
async def test_sourced_unanimous_council_is_verified(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    source = verified_source("atlas")
    members = council("Paris is the capital of France.", sources=[source])
    orchestrator = build(ledger, checkpoints, [HighTrustBranch()], members)

    response = await orchestrator.process_query("What is the capital of France?", "alice")

    assert response.is_verified is True
    assert "Paris" in response.answer
    assert [s.identifier for s in response.sources] == ["atlas"]


@pytest.mark.asyncio
async def test_greeting_bypasses_the_gate(ledger: MemoryLedger, checkpoints: CheckpointManager) -> None:
    greeter = StubMember("KVASIR", content="Hello! How can I help?", confidence=90)
    orchestrator = build(ledger, checkpoints, members=[greeter])

    response = await orchestrator.process_query("hello", "alice")

    assert response.is_verified is True
    assert response.answer == "Hello! How can I help?"
    assert response.confidence == 80
    assert response.sources == []
    assert response.message == "Conversational reply, not fact-checked."


@pytest.mark.asyncio
async def test_interaction_and_decision_are_recorded(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    orchestrator = build(ledger, checkpoints, [HighTrustBranch(corpus=CORPUS)])

    response = await orchestrator.process_query(
        "What is the speed of light in vacuum?", "alice", session_id="s-1"
    )

    [interaction] = ledger.list_claims(kind=ClaimKind.INTERACTION)
    [decision] = ledger.list_claims(kind=ClaimKind.DECISION)
    assert interaction.statement == "What is the speed of light in vacuum?"
    assert interaction.owner_id == "alice"
    assert interaction.metadata["request_id"] == response.request_id
    assert interaction.metadata["session_id"] == "s-1"
    assert interaction.epistemic_branch == EpistemicBranch.HIGH_TRUST
    assert decision.metadata["is_valid"] is True
    assert [c.id for c in ledger.get_dependents(interaction.id)] == [decision.id]
    assert ledger.dependencies.dependencies_of(decision.id)[0].type == DependencyType.DERIVES_FROM


@pytest.mark.asyncio
async def test_persist_false_skips_the_ledger(ledger: MemoryLedger, checkpoints: CheckpointManager) -> None:
    orchestrator = build(ledger, checkpoints, [HighTrustBranch(corpus=CORPUS)])

    await orchestrator.process_query(
        "What is the speed of light in vacuum?", "alice", options=QueryOptions(persist=False)
    )

    assert ledger.list_claims() == []


@pytest.mark.asyncio
async def test_ledger_failure_does_not_change_the_answer(
    ledger: MemoryLedger, checkpoints: CheckpointManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(ledger, "create_claim", boom)
    orchestrator = build(ledger, checkpoints, [HighTrustBranch(corpus=CORPUS)])

    response = await orchestrator.process_query("What is the speed of light in vacuum?", "alice")

    assert response.is_verified is True


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_error(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    orchestrator = build(ledger, checkpoints, router=BrokenRouter())

    response = await orchestrator.process_query("anything", "alice")

    assert response.rejection_reason == RejectionReason.INTERNAL_ERROR
    assert response.answer is None
    assert response.branch is None


@pytest.mark.asyncio
async def test_out_of_range_primary_is_contamination(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    tainted = StubBranch(EpistemicBranch.HIGH_TRUST, content="probably true", confidence=90)
    orchestrator = build(ledger, checkpoints, [tainted])

    response = await orchestrator.process_query("What is the speed of light in vacuum?", "alice")

    assert response.rejection_reason == RejectionReason.CONTAMINATION_DETECTED
    assert response.answer is None
    assert response.branch == EpistemicBranch.HIGH_TRUST


@pytest.mark.asyncio
async def test_out_of_range_secondary_is_dropped(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    branches = [
        StubBranch(EpistemicBranch.HYPOTHESIS, content="Naps may help.", confidence=70),
        StubBranch(EpistemicBranch.HIGH_TRUST, content="fake certainty", confidence=40),
    ]
    orchestrator = build(ledger, checkpoints, branches)

    response = await orchestrator.process_query(
        "research on sleep and if naps help", "alice", options=QueryOptions(return_trace=True)
    )

    assert response.rejection_reason != RejectionReason.CONTAMINATION_DETECTED
    assert set(response.trace["branches"]) == {"HYPOTHESIS"}


@pytest.mark.asyncio
async def test_failing_branch_falls_back_to_the_council(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    members = council("Paris is the capital of France.", sources=[verified_source()])
    broken = StubBranch(EpistemicBranch.HIGH_TRUST, error=RuntimeError("index offline"))
    orchestrator = build(ledger, checkpoints, [broken], members)

    response = await orchestrator.process_query("What is the capital of France?", "alice")

    assert response.is_verified is True
    assert all(m.calls == 1 for m in members)


@pytest.mark.asyncio
async def test_slow_pipeline_times_out(ledger: MemoryLedger, checkpoints: CheckpointManager) -> None:
    members = council("Paris is the capital of France.", delay=1.0)
    orchestrator = build(ledger, checkpoints, [HighTrustBranch()], members)

    response = await orchestrator.process_query(
        "What is the capital of France?", "alice", options=QueryOptions(max_time_ms=50)
    )

    assert response.rejection_reason == RejectionReason.TIMEOUT
    assert response.answer is None


@pytest.mark.asyncio
async def test_verified_facts_reach_the_council_prompt(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    facts = FactService(ledger, HashEmbedder(dimension=128), FactExtractor())
    facts.persist_message("alice", "My name is Alice", VerificationLevel.CREATOR)
    members = council("Paris is the capital of France.", confidence=40)
    orchestrator = build(ledger, checkpoints, [HighTrustBranch()], members, facts=facts)

    await orchestrator.process_query("What is the capital of France?", "alice")

    assert "Known facts about the user:" in members[0].prompts[0]
    assert "Alice" in members[0].prompts[0]


def test_ledger_administration_is_audited(
    ledger: MemoryLedger, checkpoints: CheckpointManager, tmp_path: Path
) -> None:
    audit = AuditLogger(tmp_path / "audit.jsonl")
    orchestrator = build(ledger, checkpoints, audit=audit)
    root = ledger.create_claim("root")
    child = ledger.create_claim("child")
    ledger.add_dependency(child.id, root.id)

    checkpoint = orchestrator.create_checkpoint("alice", "manual", [root.id])
    with pytest.raises(AuthorizationError):
        orchestrator.rollback(checkpoint.id, "mallory")
    result = orchestrator.invalidate(root.id, "reviewer", "retracted", checkpoint_owner="alice")
    orchestrator.rollback(checkpoint.id, "alice")

    events = audit.read_events()
    assert [e["action"] for e in events] == [
        "ledger.checkpoint",
        "ledger.rollback",
        "ledger.invalidate",
        "ledger.rollback",
    ]
    assert events[1]["allowed"] is False
    assert result.invalidated_count == 2
    kinds = {c.kind for c in checkpoints.list_checkpoints("alice")}
    assert kinds == {CheckpointKind.MANUAL, CheckpointKind.PRE_CASCADE}


def test_fact_operations_require_a_fact_service(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    orchestrator = build(ledger, checkpoints)

    with pytest.raises(RuntimeError):
        orchestrator.persist_message("alice", "My name is Alice")
    with pytest.raises(RuntimeError):
        orchestrator.verify_fact("fact-1", "admin", approve=True)
