"""Shared fixtures."""

from __future__ import annotations

import pytest

from memory.checkpoints import CheckpointManager
from memory.ledger import MemoryLedger
from memory.stores.graph_store import GraphStore
from memory.stores.memory_store import InMemoryCheckpointStore, InMemoryClaimStore


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger(claims=InMemoryClaimStore(), dependencies=GraphStore())


@pytest.fixture
def checkpoints(ledger: MemoryLedger) -> CheckpointManager:
    return CheckpointManager(ledger, InMemoryCheckpointStore())
