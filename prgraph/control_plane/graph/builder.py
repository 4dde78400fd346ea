"""Assemble a dependency graph from one snapshot of open changes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.graph.cycles import find_cycles
from prgraph.control_plane.graph.ordering import PriorityKey, order_nodes, unordered_ids
from prgraph.control_plane.graph.relationships import (
    DEFAULT_SEMANTIC_THRESHOLD,
    detect_relationships,
)
from prgraph.control_plane.models.graph_contracts import ChangeNode, DependencyGraph

logger = logging.getLogger(__name__)


def build_dependency_graph(
    repository_id: str,
    nodes: Sequence[ChangeNode],
    *,
    semantic_threshold: float = DEFAULT_SEMANTIC_THRESHOLD,
    priority: PriorityKey | None = None,
    generated_at: datetime | None = None,
) -> DependencyGraph:
    node_list = list(nodes)
    seen: set[str] = set()
    for node in node_list:
        if node.id in seen:
            raise ValueError(f"duplicate_node:{node.id}")
        seen.add(node.id)

    edges = detect_relationships(node_list, semantic_threshold=semantic_threshold)
    adjacency = BranchAdjacency.from_nodes(node_list, edges)
    cycles = find_cycles(adjacency)
    merge_order = order_nodes(node_list, adjacency, priority=priority)
    graph = DependencyGraph(
        repository_id=repository_id,
        nodes=node_list,
        edges=edges,
        cycles=cycles,
        merge_order=merge_order,
        unordered_ids=unordered_ids(node_list, merge_order),
        generated_at=generated_at or datetime.now(timezone.utc),
    )
    logger.info(
        "Built dependency graph for %s: %d nodes, %d edges, %d cycles",
        repository_id,
        len(graph.nodes),
        len(graph.edges),
        len(graph.cycles),
    )
    return graph
