"""Fact extraction, trust assignment and review tests."""

from __future__ import annotations

from typing import Any

import pytest

from core.errors import InvalidTransitionError
from llm.base_llm import BaseLLM, LLMUnavailableError
from memory.embedding import HashEmbedder, OpenAIEmbedder
from memory.facts.extractor import FactExtractor, extract_with_patterns
from memory.facts.service import FactService
from memory.facts.trust import assign_trust
from memory.ledger import MemoryLedger
from memory.types.claims import ClaimKind, ClaimState, EpistemicBranch
from memory.types.facts import ExtractedFact, FactType, TrustState, VerificationLevel


class JsonLLM(BaseLLM):
    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        return (
            'Sure: [{"type": "PREFERENCE", "content": "likes green tea", "confidence": 88, '
            '"requires_verification": false}]'
        )


class BrokenLLM(BaseLLM):
    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        raise LLMUnavailableError("no key")


def build_service(ledger: MemoryLedger, llm: BaseLLM | None = None) -> FactService:
    return FactService(ledger, HashEmbedder(dimension=128), FactExtractor(llm))


@pytest.mark.parametrize(
    ("level", "requires_verification", "expected"),
    [
        (VerificationLevel.CREATOR, True, TrustState.VERIFIED),
        (VerificationLevel.ADMIN, True, TrustState.VERIFIED),
        (VerificationLevel.TRUSTED, True, TrustState.VERIFIED),
        (VerificationLevel.VERIFIED, False, TrustState.VERIFIED),
        (VerificationLevel.VERIFIED, True, TrustState.PENDING),
        (VerificationLevel.UNVERIFIED, False, TrustState.PENDING),
    ],
)
def test_trust_assignment(level: VerificationLevel, requires_verification: bool, expected: TrustState) -> None:
    fact = ExtractedFact(
        type=FactType.IDENTITY, content="Alice", confidence=90, requires_verification=requires_verification
    )
    assert assign_trust(fact, level) == expected


def test_pattern_fallback_handles_english_and_french() -> None:
    facts = extract_with_patterns("My name is Alice. I prefer short answers.")
    by_type = {f.type: f for f in facts}

    assert by_type[FactType.IDENTITY].content == "Alice"
    assert by_type[FactType.IDENTITY].requires_verification is True
    assert by_type[FactType.PREFERENCE].content == "short answers"

    french = extract_with_patterns("Souviens-toi que le rapport est dû vendredi")
    assert french[0].type == FactType.INSTRUCTION


def test_large_markdown_paste_becomes_one_context_fact() -> None:
    paste = "# Title\n" + "\n".join(f"- item {i}" for i in range(25))

    facts = extract_with_patterns(paste)

    assert [f.type for f in facts] == [FactType.CONTEXT]
    assert facts[0].confidence == 100


def test_extractor_prefers_llm_and_falls_back_on_failure() -> None:
    assert FactExtractor(JsonLLM()).extract("anything")[0].content == "likes green tea"
    fallback = FactExtractor(BrokenLLM()).extract("My name is Bob")
    assert fallback[0].type == FactType.IDENTITY


def test_persist_message_stores_facts_as_hypothesis_claims(ledger: MemoryLedger) -> None:
    service = build_service(ledger)

    result = service.persist_message("alice", "My name is Alice. I prefer short answers.")

    assert result.facts_extracted == 2
    assert result.facts_stored == 2
    assert result.facts_pending == 2
    claim = ledger.get_claim(result.stored_facts[0].id)
    assert claim.kind == ClaimKind.FACT
    assert claim.epistemic_branch == EpistemicBranch.HYPOTHESIS
    assert 50 <= claim.confidence_score <= 99
    assert claim.embedding is not None


def test_verify_fact_is_forward_only(ledger: MemoryLedger) -> None:
    service = build_service(ledger)
    fact = service.persist_message("alice", "My name is Alice").stored_facts[0]

    approved = service.verify_fact(fact.id, "admin", approve=True)

    assert approved.trust_state == TrustState.VERIFIED
    assert approved.verified_by == "admin"
    assert ledger.get_claim(fact.id).current_state == ClaimState.VERIFIED
    with pytest.raises(InvalidTransitionError):
        service.verify_fact(fact.id, "admin", approve=False)

    other = service.persist_message("alice", "I prefer tea").stored_facts[0]
    rejected = service.verify_fact(other.id, "admin", approve=False)
    assert rejected.trust_state == TrustState.REJECTED
    assert ledger.get_claim(other.id).current_state == ClaimState.DEPRECATED


def test_context_for_query_returns_identity_and_similar_verified_facts(ledger: MemoryLedger) -> None:
    service = build_service(ledger)
    service.persist_message("alice", "My name is Alice", VerificationLevel.CREATOR)
    service.persist_message("alice", "I prefer jazz music", VerificationLevel.TRUSTED)
    service.persist_message("alice", "I prefer jazz concerts")
    service.persist_message("bob", "I prefer jazz music", VerificationLevel.TRUSTED)

    facts = service.context_for_query("alice", "recommend some jazz music")

    assert facts[0].type == FactType.IDENTITY
    assert [f.content for f in facts[1:]] == ["jazz music"]
    assert all(f.trust_state == TrustState.VERIFIED for f in facts)
    assert service.format_context(facts).startswith("Known facts about the user:")
    assert service.list_facts("alice", trust_state=TrustState.PENDING)[0].content == "jazz concerts"


def test_pending_and_rejected_facts_never_crowd_out_verified_ones(ledger: MemoryLedger) -> None:
    service = build_service(ledger)
    service.persist_message("alice", "My name is Alice", VerificationLevel.CREATOR)
    service.persist_message("alice", "I prefer jazz and blues", VerificationLevel.TRUSTED)
    service.persist_message("alice", "I prefer jazz")
    service.persist_message("alice", "I prefer jazz!")
    disliked = service.persist_message("alice", "I prefer smooth jazz").stored_facts[0]
    service.verify_fact(disliked.id, "admin", approve=False)

    facts = service.context_for_query("alice", "jazz", limit=2)

    contents = [f.content for f in facts]
    assert contents == ["Alice", "jazz and blues"]
    assert "jazz" not in contents
    assert "smooth jazz" not in contents
    assert all(f.trust_state == TrustState.VERIFIED for f in facts)


def test_openai_embedder_without_key_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(LLMUnavailableError):
        OpenAIEmbedder(dimension=8).embed("jazz")
