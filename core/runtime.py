"""Runtime wiring: builds every component from the effective configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from branches.registry import BranchRegistry, build_branches
from core.orchestrator import Orchestrator
from core.policy_runtime import (
    ensure_runtime_dirs,
    load_effective_config,
    merge_dicts,
    validate_config,
)
from core.progress import ProgressChannelRegistry
from core.router import QueryRouter
from council.deliberation import CouncilEngine
from council.members import build_council
from governance.audit_logger import AuditLogger
from governance.validation_gate import ValidationGate
from llm.base_llm import BaseLLM
from llm.llm_factory import build_llm
from memory.checkpoints import CheckpointManager
from memory.embedding import build_embedder
from memory.facts.extractor import FactExtractor
from memory.facts.service import FactService
from memory.ledger import MemoryLedger
from memory.stores.graph_store import GraphStore
from memory.stores.memory_store import InMemoryCheckpointStore, InMemoryClaimStore
from memory.stores.sql_store import (
    SQLCheckpointStore,
    SQLClaimStore,
    SQLDependencyStore,
    SQLStore,
)


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    paths: dict[str, Path]
    llm: BaseLLM
    ledger: MemoryLedger
    checkpoints: CheckpointManager
    facts: FactService
    branches: BranchRegistry
    audit: AuditLogger
    orchestrator: Orchestrator


class RuntimeBuilder:
    """Creates and wires runtime components for CLI and library use."""

    def __init__(self, root: Path | None = None, overrides: dict[str, Any] | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self.overrides = overrides or {}

    def _config(self) -> dict[str, Any]:
        config = merge_dicts(load_effective_config(self.root), self.overrides)
        validate_config(config)
        return config

    def build(self) -> RuntimeBundle:
        config = self._config()
        paths = ensure_runtime_dirs(self.root, config)
        configure_logging(config)

        ledger, checkpoints = self._ledger(config, paths)

        @lru_cache(maxsize=None)
        def llm_for(provider: str | None) -> BaseLLM:
            return build_llm(config=config, provider=provider)

        llm = llm_for(None)
        facts = FactService(
            ledger=ledger,
            embedder=build_embedder(config),
            extractor=FactExtractor(llm=llm),
            similarity_threshold=float(config.get("memory", {}).get("similarity_threshold", 0.3)),
        )
        branches = build_branches(config, llm_for, ledger=ledger)
        timeouts = config.get("timeouts", {})
        council = CouncilEngine(
            registry=build_council(config, llm_for),
            member_timeout_s=timeouts.get("member_s"),
            majority_threshold=float(config.get("council", {}).get("voting_threshold", 0.66)),
            max_concurrency=config.get("council", {}).get("max_concurrency"),
        )
        audit = AuditLogger(paths["audit_log_path"])
        orchestrator = Orchestrator(
            router=QueryRouter(
                conversational_member=config.get("council", {}).get("conversational_member", "KVASIR")
            ),
            branches=branches,
            council=council,
            gate=ValidationGate(),
            ledger=ledger,
            checkpoints=checkpoints,
            facts=facts,
            audit=audit,
            progress=ProgressChannelRegistry(
                maxsize=int(config.get("streaming", {}).get("queue_size", 100))
            ),
            branch_timeout_s=timeouts.get("branch_s"),
            fact_context_limit=int(config.get("memory", {}).get("fact_context_limit", 10)),
        )
        return RuntimeBundle(
            config=config,
            paths=paths,
            llm=llm,
            ledger=ledger,
            checkpoints=checkpoints,
            facts=facts,
            branches=branches,
            audit=audit,
            orchestrator=orchestrator,
        )

    @staticmethod
    def _ledger(config: dict[str, Any], paths: dict[str, Path]) -> tuple[MemoryLedger, CheckpointManager]:
        backend = config.get("memory", {}).get("backend", "sqlite")
        if backend == "memory":
            ledger = MemoryLedger(claims=InMemoryClaimStore(), dependencies=GraphStore())
            return ledger, CheckpointManager(ledger, InMemoryCheckpointStore())
        sql_store = SQLStore(paths["db_path"])
        sql_store.create_all()
        ledger = MemoryLedger(claims=SQLClaimStore(sql_store), dependencies=SQLDependencyStore(sql_store))
        return ledger, CheckpointManager(ledger, SQLCheckpointStore(sql_store))


def configure_logging(config: dict[str, Any]) -> None:
    logging_cfg = config.get("logging", {})
    logging.basicConfig(
        level=str(logging_cfg.get("level", "WARNING")).upper(),
        format=logging_cfg.get("format", "%(asctime)s %(levelname)s %(name)s: %(message)s"),
    )
