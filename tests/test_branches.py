"""Branch adapter tests."""

from __future__ import annotations

import pytest

from branches.high_trust import HighTrustBranch, load_corpus
from branches.model_branch import ModelBranch
from branches.registry import build_branches
from core.errors import EpistemicContaminationError
from llm.base_llm import BaseLLM
from llm.providers.mock_provider import MockProvider
from memory.ledger import MemoryLedger
from memory.types.claims import EpistemicBranch


def mock_llm(provider: str | None) -> BaseLLM:
    return MockProvider()


@pytest.mark.asyncio
async def test_model_branch_pins_confidence_into_its_band() -> None:
    hypothesis = await ModelBranch(EpistemicBranch.HYPOTHESIS, MockProvider()).query("Why is the sky blue?")
    unverified = await ModelBranch(EpistemicBranch.UNVERIFIED, MockProvider()).query("Why is the sky blue?")

    assert hypothesis.confidence == 50
    assert unverified.confidence == 40
    assert "CONFIDENCE" not in hypothesis.content
    assert hypothesis.sources == []


def test_model_branch_cannot_be_high_trust() -> None:
    with pytest.raises(EpistemicContaminationError):
        ModelBranch(EpistemicBranch.HIGH_TRUST, MockProvider())


def test_load_corpus_skips_incomplete_entries() -> None:
    corpus = load_corpus([{"identifier": "a", "content": "text"}, {"identifier": "b"}, {"content": "x"}])

    assert [entry.identifier for entry in corpus] == ["a"]
    assert corpus[0].title == "a"


@pytest.mark.asyncio
async def test_high_trust_branch_cites_verified_ledger_claims(ledger: MemoryLedger) -> None:
    claim = ledger.create_claim(
        "The Eiffel Tower is in Paris", domain="landmarks", branch=EpistemicBranch.HIGH_TRUST
    )
    ledger.create_claim("The Eiffel Tower might be repainted", branch=EpistemicBranch.HYPOTHESIS)
    branch = HighTrustBranch(ledger=ledger)

    result = await branch.query("Where is the Eiffel Tower?")

    assert result.confidence == 100
    assert [s.identifier for s in result.sources] == [claim.id]
    assert result.sources[0].type == "ledger"
    assert "repainted" not in result.content

    ledger.invalidate(claim.id, "reviewer", "moved")
    assert (await branch.query("Where is the Eiffel Tower?")).is_empty


@pytest.mark.asyncio
async def test_high_trust_branch_returns_nothing_below_overlap() -> None:
    branch = HighTrustBranch(
        corpus=load_corpus([{"identifier": "c", "content": "The speed of light is constant."}])
    )

    assert (await branch.query("Who painted the Mona Lisa?")).is_empty


def test_build_branches_honours_enabled_flags(ledger: MemoryLedger) -> None:
    config = {"branches": {"unverified": {"enabled": False}}}

    registry = build_branches(config, mock_llm, ledger=ledger)

    assert registry.branches() == [EpistemicBranch.HIGH_TRUST, EpistemicBranch.HYPOTHESIS]
    assert EpistemicBranch.UNVERIFIED not in registry
