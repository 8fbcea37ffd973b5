"""Branch registry keyed by epistemic branch, plus default wiring."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from branches.base import BaseBranch
from branches.high_trust import HighTrustBranch, load_corpus
from branches.model_branch import ModelBranch
from llm.base_llm import BaseLLM
from memory.ledger import MemoryLedger
from memory.types.claims import EpistemicBranch


class BranchRegistry:
    """At most one adapter per branch."""

    def __init__(self) -> None:
        self._branches: dict[EpistemicBranch, BaseBranch] = {}

    def register(self, adapter: BaseBranch) -> None:
        self._branches[adapter.branch] = adapter

    def get(self, branch: EpistemicBranch) -> BaseBranch | None:
        return self._branches.get(branch)

    def __contains__(self, branch: object) -> bool:
        return branch in self._branches

    def branches(self) -> list[EpistemicBranch]:
        return list(self._branches)


def build_branches(
    config: dict[str, Any],
    llm_builder: Callable[[str | None], BaseLLM],
    ledger: MemoryLedger | None = None,
) -> BranchRegistry:
    """Wire the three branches from the ``branches`` config section."""
    branches_cfg = config.get("branches", {})
    registry = BranchRegistry()

    high_cfg = branches_cfg.get("high_trust", {})
    if high_cfg.get("enabled", True):
        registry.register(
            HighTrustBranch(
                corpus=load_corpus(high_cfg.get("corpus", [])),
                ledger=ledger if high_cfg.get("use_ledger", True) else None,
                min_overlap=float(high_cfg.get("min_overlap", 0.5)),
                max_results=int(high_cfg.get("max_results", 3)),
            )
        )
    for branch, key in (
        (EpistemicBranch.HYPOTHESIS, "hypothesis"),
        (EpistemicBranch.UNVERIFIED, "unverified"),
    ):
        branch_cfg = branches_cfg.get(key, {})
        if branch_cfg.get("enabled", True):
            registry.register(ModelBranch(branch, llm_builder(branch_cfg.get("provider"))))
    return registry
