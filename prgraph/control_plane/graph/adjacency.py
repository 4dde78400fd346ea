"""Direction-aware adjacency over hard branch dependencies.

An edge ``A -> B`` of type ``branch_dependency`` means "A depends on B": A is
based on B's branch, so B has to merge first. ``successors`` therefore returns
the changes a node depends on, and ``predecessors`` returns the changes that
depend on it. All graph components read direction through this class.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prgraph.control_plane.errors import UnknownNodeError
from prgraph.control_plane.models.graph_contracts import (
    BRANCH_DEPENDENCY,
    ChangeNode,
    RelationshipEdge,
)


class BranchAdjacency:
    def __init__(self, node_ids: Sequence[str], edges: Iterable[RelationshipEdge]) -> None:
        self.node_ids: list[str] = list(node_ids)
        self._successors: dict[str, list[str]] = {node_id: [] for node_id in self.node_ids}
        self._predecessors: dict[str, list[str]] = {node_id: [] for node_id in self.node_ids}
        for edge in edges:
            if edge.type != BRANCH_DEPENDENCY:
                continue
            if edge.source not in self._successors:
                raise UnknownNodeError(edge.source)
            if edge.target not in self._successors:
                raise UnknownNodeError(edge.target)
            self._successors[edge.source].append(edge.target)
            self._predecessors[edge.target].append(edge.source)

    @classmethod
    def from_nodes(
        cls, nodes: Sequence[ChangeNode], edges: Iterable[RelationshipEdge]
    ) -> "BranchAdjacency":
        return cls([node.id for node in nodes], edges)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._successors

    def successors(self, node_id: str) -> list[str]:
        """Changes that ``node_id`` depends on."""
        self._require(node_id)
        return list(self._successors[node_id])

    def predecessors(self, node_id: str) -> list[str]:
        """Changes that depend on ``node_id``."""
        self._require(node_id)
        return list(self._predecessors[node_id])

    def in_degree(self, node_id: str) -> int:
        """Number of unmerged dependencies still holding ``node_id`` back."""
        self._require(node_id)
        return len(self._successors[node_id])

    def _require(self, node_id: str) -> None:
        if node_id not in self._successors:
            raise UnknownNodeError(node_id)
