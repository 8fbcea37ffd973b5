"""In-process dependency graph store."""

from __future__ import annotations

from collections import defaultdict

from memory.stores.base import DependencyStore
from memory.types.claims import Dependency


class GraphStore(DependencyStore):
    """Adjacency lists in both directions; duplicate edges are ignored."""

    def __init__(self) -> None:
        self.edges: list[Dependency] = []
        self._dependents: dict[str, list[str]] = defaultdict(list)
        self._outgoing: dict[str, list[Dependency]] = defaultdict(list)

    def add(self, dependency: Dependency) -> Dependency:
        for existing in self._outgoing[dependency.claim_id]:
            if existing.depends_on_id == dependency.depends_on_id and existing.type == dependency.type:
                return existing
        self.edges.append(dependency)
        self._outgoing[dependency.claim_id].append(dependency)
        if dependency.claim_id not in self._dependents[dependency.depends_on_id]:
            self._dependents[dependency.depends_on_id].append(dependency.claim_id)
        return dependency

    def dependents_of(self, claim_id: str) -> list[str]:
        return list(self._dependents.get(claim_id, []))

    def dependencies_of(self, claim_id: str) -> list[Dependency]:
        return list(self._outgoing.get(claim_id, []))
