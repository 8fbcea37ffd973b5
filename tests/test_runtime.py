"""Configuration, audit log and runtime wiring tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from core.errors import ConfigurationError
from core.policy_runtime import load_effective_config, load_yaml, merge_dicts, validate_config
from core.runtime import RuntimeBuilder
from governance.audit_logger import AuditLogger
from governance.validation_gate import ValidationGate
from memory.types.claims import ClaimKind

REPO_ROOT = Path(__file__).resolve().parents[1]

CORPUS = [
    {
        "identifier": "si-brochure-2019",
        "title": "SI Brochure",
        "content": "The speed of light in vacuum is exactly 299792458 metres per second.",
    }
]


def test_shipped_config_loads_and_nests_sections() -> None:
    config = load_effective_config(REPO_ROOT)

    assert config["models"]["llm"]["active_provider"] == "mock"
    assert config["council"]["voting_threshold"] == 0.66
    assert "KVASIR" in config["council"]["members"]
    assert config["memory"]["backend"] == "sqlite"


def test_merge_dicts_is_recursive() -> None:
    merged = merge_dicts({"a": {"b": 1, "c": 2}, "d": 3}, {"a": {"b": 5}})

    assert merged == {"a": {"b": 5, "c": 2}, "d": 3}


def test_non_mapping_yaml_is_a_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_yaml(path)
    assert load_yaml(tmp_path / "missing.yaml") == {}


@pytest.mark.parametrize(
    "config",
    [
        {"council": {"voting_threshold": 0.5}},
        {"council": {"voting_threshold": 1.2}},
        {"memory": {"embedding_dimension": 0}},
        {"timeouts": {"member_s": 0}},
    ],
)
def test_invalid_settings_are_rejected(config: dict[str, Any]) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        validate_config(config)
    assert excinfo.value.code == "CONFIGURATION_ERROR"


def test_audit_logger_writes_hashed_jsonl(tmp_path: Path) -> None:
    audit = AuditLogger(tmp_path / "logs" / "audit.jsonl")
    result = ValidationGate().validate("text", require_anchor=True, request_id="req-1")

    audit.log_validation("secret question", "alice", result)
    audit.log_ledger_event("checkpoint", "alice", {"label": "x"}, "created")

    events = audit.read_events()
    assert events[0]["action"] == "validation"
    assert events[0]["request_id"] == "req-1"
    assert events[0]["outcome"] == "REJECTED"
    assert events[0]["reason"] == "NO_SOURCE"
    assert "secret question" not in (tmp_path / "logs" / "audit.jsonl").read_text(encoding="utf-8")
    assert len(events[0]["inputs_hash"]) == 64
    assert [e["action"] for e in audit.read_events(limit=1)] == ["ledger.checkpoint"]


@pytest.mark.asyncio
async def test_runtime_with_in_memory_backend_answers_greetings(tmp_path: Path) -> None:
    bundle = RuntimeBuilder(root=tmp_path, overrides={"memory": {"backend": "memory"}}).build()

    response = await bundle.orchestrator.process_query("hello", "alice")

    assert response.is_verified is True
    assert response.confidence == 80
    assert response.answer.startswith("Hello!")
    assert not (tmp_path / "data" / "veritas.db").exists()


@pytest.mark.asyncio
async def test_runtime_with_sqlite_backend_persists_and_audits(tmp_path: Path) -> None:
    overrides = {"branches": {"high_trust": {"corpus": CORPUS}}}
    bundle = RuntimeBuilder(root=tmp_path, overrides=overrides).build()

    response = await bundle.orchestrator.process_query("What is the speed of light in vacuum?", "alice")

    assert response.is_verified is True
    assert (tmp_path / "data" / "veritas.db").exists()
    reopened = RuntimeBuilder(root=tmp_path, overrides=overrides).build()
    assert len(reopened.ledger.list_claims(kind=ClaimKind.INTERACTION)) == 1
    assert bundle.audit.read_events()[-1]["action"] == "validation"


def test_runtime_rejects_invalid_overrides(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        RuntimeBuilder(root=tmp_path, overrides={"council": {"voting_threshold": 2}}).build()
