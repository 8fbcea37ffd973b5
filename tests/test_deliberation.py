"""Council fan-out and member parsing tests."""

from __future__ import annotations

import pytest

from council.deliberation import CouncilEngine
from council.members import LLMMember, MemberRegistry, parse_reply
from council.types import VerdictLabel
from llm.providers.mock_provider import MockProvider
from tests.helpers import StubMember


def test_parse_reply_extracts_confidence_and_reasoning() -> None:
    reply = parse_reply("The answer is 42.\nREASONING: arithmetic\nCONFIDENCE: 85")

    assert reply.content == "The answer is 42."
    assert reply.reasoning == "arithmetic"
    assert reply.confidence == 85
    assert parse_reply("CONFIDENCE: 150").confidence == 100
    assert parse_reply("No marker here.", default_confidence=33).confidence == 33


@pytest.mark.asyncio
async def test_failed_and_slow_members_are_dropped() -> None:
    registry = MemberRegistry(
        [
            StubMember("KVASIR"),
            StubMember("SAGA"),
            StubMember("LOKI", error=RuntimeError("backend down")),
            StubMember("TYR", delay=1.0),
        ]
    )
    engine = CouncilEngine(registry, member_timeout_s=0.05)

    deliberation = await engine.deliberate("Capital of France?", ["KVASIR", "SAGA", "LOKI", "TYR"])

    assert sorted(r.member for r in deliberation.responses) == ["KVASIR", "SAGA"]
    assert deliberation.members == ["KVASIR", "SAGA", "LOKI", "TYR"]
    assert deliberation.verdict.label == VerdictLabel.CONSENSUS
    assert deliberation.proposal == "[CONSENSUS] Paris is the capital of France."


@pytest.mark.asyncio
async def test_unknown_members_are_skipped_and_empty_council_deadlocks() -> None:
    engine = CouncilEngine(MemberRegistry())

    deliberation = await engine.deliberate("Anything?", ["NOBODY"])

    assert deliberation.members == []
    assert deliberation.verdict.label == VerdictLabel.DEADLOCK
    assert deliberation.average_confidence is None


@pytest.mark.asyncio
async def test_progress_callback_sees_each_phase() -> None:
    events: list[tuple[str, str]] = []

    async def record(phase: str, text: str) -> None:
        events.append((phase, text))

    engine = CouncilEngine(MemberRegistry([StubMember("KVASIR"), StubMember("TYR")]))
    await engine.deliberate("Capital of France?", ["KVASIR", "TYR"], progress=record)

    phases = [phase for phase, _ in events]
    assert phases[0] == "deliberating"
    assert phases.count("deliberating") == 3
    assert "critiquing" in phases
    assert phases[-1] == "verdict"


@pytest.mark.asyncio
async def test_llm_member_answers_greetings_with_mock_provider() -> None:
    member = LLMMember("KVASIR", MockProvider())

    reply = await member.query("Question: hello there")

    assert reply.content.startswith("Hello!")
    assert reply.confidence == 90


@pytest.mark.asyncio
async def test_failing_progress_listener_does_not_drop_member_responses() -> None:
    engine = CouncilEngine(MemberRegistry([StubMember("KVASIR"), StubMember("SAGA")]))

    async def broken_listener(phase: str, text: str) -> None:
        if "responded" in text:
            raise RuntimeError("listener gone")

    members = engine.registry.resolve(["KVASIR", "SAGA"])

    responses = await engine.collect("Question: Capital of France?", members, broken_listener)

    assert sorted(r.member for r in responses) == ["KVASIR", "SAGA"]
