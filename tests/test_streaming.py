"""Progress channel and streaming pipeline tests."""

from __future__ import annotations

import pytest

from branches.high_trust import HighTrustBranch, load_corpus
from branches.registry import BranchRegistry
from core.orchestrator import Orchestrator
from core.progress import (
    ChannelError,
    ProgressChannel,
    ProgressChannelRegistry,
    StreamEvent,
    StreamEventType,
)
from core.router import QueryRouter
from council.deliberation import CouncilEngine
from council.members import MemberRegistry
from governance.validation_gate import ValidationGate
from memory.checkpoints import CheckpointManager
from memory.ledger import MemoryLedger
from tests.helpers import StubMember

CORPUS = load_corpus(
    [
        {
            "identifier": "si-brochure-2019",
            "title": "SI Brochure",
            "content": "The speed of light in vacuum is exactly 299792458 metres per second.",
        }
    ]
)


def build(ledger: MemoryLedger, checkpoints: CheckpointManager, *members: StubMember) -> Orchestrator:
    branches = BranchRegistry()
    branches.register(HighTrustBranch(corpus=CORPUS))
    return Orchestrator(
        QueryRouter(),
        branches,
        CouncilEngine(MemberRegistry(members)),
        ValidationGate(),
        ledger,
        checkpoints,
    )


@pytest.mark.asyncio
async def test_channel_allows_one_consumer_and_one_close() -> None:
    channel = ProgressChannel("req-1")
    await channel.thinking("routing", "Classifying query")
    events = channel.events()

    first = await events.__anext__()
    assert first.data == {"phase": "routing", "text": "Classifying query"}
    with pytest.raises(ChannelError):
        await channel.events().__anext__()

    assert channel.close() is True
    assert channel.close() is False
    with pytest.raises(ChannelError):
        await channel.publish(StreamEvent(type=StreamEventType.FINAL))
    with pytest.raises(StopAsyncIteration):
        await events.__anext__()


@pytest.mark.asyncio
async def test_consumer_drains_a_full_queue_after_close() -> None:
    channel = ProgressChannel("req-2", maxsize=2)
    await channel.thinking("a", "one")
    await channel.thinking("b", "two")
    channel.close()

    phases = [event.data["phase"] async for event in channel.events()]

    assert phases == ["a", "b"]


def test_registry_rejects_duplicate_ids_and_forgets_closed_channels() -> None:
    registry = ProgressChannelRegistry()
    channel = registry.open("req-3")

    with pytest.raises(ChannelError):
        registry.open("req-3")
    assert registry.get("req-3") is channel

    registry.close("req-3")
    registry.close("req-3")
    assert len(registry) == 0
    assert channel.closed is True


@pytest.mark.asyncio
async def test_stream_yields_thinking_then_chunks_then_final(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    orchestrator = build(ledger, checkpoints)

    events = [e async for e in orchestrator.stream_query("What is the speed of light in vacuum?", "alice")]

    types = [e.type for e in events]
    first_chunk = types.index(StreamEventType.ANSWER_CHUNK)
    assert set(types[:first_chunk]) == {StreamEventType.THINKING}
    assert events[0].data["phase"] == "routing"
    assert types[-1] == StreamEventType.FINAL
    assert types.count(StreamEventType.FINAL) == 1
    chunks = "".join(e.data["text"] for e in events if e.type == StreamEventType.ANSWER_CHUNK)
    assert chunks == events[-1].data["answer"]
    assert events[-1].data["is_verified"] is True
    assert len(orchestrator.progress) == 0


@pytest.mark.asyncio
async def test_rejected_stream_has_no_answer_chunks(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    orchestrator = build(ledger, checkpoints)

    events = [e async for e in orchestrator.stream_query("What is the boiling point of water?", "alice")]

    assert StreamEventType.ANSWER_CHUNK not in [e.type for e in events]
    assert events[-1].data["answer"] is None
    assert events[-1].data["rejection_reason"] == "NO_SOURCE"


@pytest.mark.asyncio
async def test_producer_failure_is_reported_as_error_event(
    ledger: MemoryLedger, checkpoints: CheckpointManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    orchestrator = build(ledger, checkpoints)

    async def broken(*args, **kwargs):
        raise RuntimeError("pipeline down")

    monkeypatch.setattr(orchestrator, "process_query", broken)

    events = [e async for e in orchestrator.stream_query("anything", "alice")]

    assert [e.type for e in events] == [StreamEventType.ERROR]
    assert events[0].data["message"] == "pipeline down"
    assert len(orchestrator.progress) == 0


@pytest.mark.asyncio
async def test_early_consumer_exit_cancels_the_producer(
    ledger: MemoryLedger, checkpoints: CheckpointManager
) -> None:
    slow = StubMember("KVASIR", content="Hi there!", confidence=90, delay=5.0)
    orchestrator = build(ledger, checkpoints, slow)

    stream = orchestrator.stream_query("hello", "alice")
    first = await stream.__anext__()
    await stream.aclose()

    assert first.type == StreamEventType.THINKING
    assert len(orchestrator.progress) == 0
    assert ledger.list_claims() == []
