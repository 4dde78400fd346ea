"""Merge-order planning via topological sort with pluggable tie-breaks."""

from __future__ import annotations

import heapq
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.models.graph_contracts import RISK_ORDER, ChangeNode, RelationshipEdge


PriorityKey = Callable[[ChangeNode, BranchAdjacency], Any]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def risk_priority(node: ChangeNode, adjacency: BranchAdjacency) -> int:
    """Lower risk merges first."""
    del adjacency
    return RISK_ORDER.get(node.risk_level, RISK_ORDER["medium"])


def age_priority(node: ChangeNode, adjacency: BranchAdjacency) -> float:
    """Oldest change merges first; undated changes go last."""
    del adjacency
    if node.created_at is None:
        return float("inf")
    created_at = node.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (created_at - _EPOCH).total_seconds()


def fan_out_priority(node: ChangeNode, adjacency: BranchAdjacency) -> int:
    """Changes with the most dependents merge first."""
    return -len(adjacency.predecessors(node.id))


PRIORITY_KEYS: dict[str, PriorityKey] = {
    "risk": risk_priority,
    "age": age_priority,
    "fan_out": fan_out_priority,
}


def get_priority_key(name: str) -> PriorityKey:
    key = PRIORITY_KEYS.get(name)
    if key is None:
        raise ValueError(f"unknown_order_priority:{name}")
    return key


def plan_merge_order(
    nodes: Sequence[ChangeNode],
    edges: Sequence[RelationshipEdge],
    priority: PriorityKey | None = None,
) -> list[str]:
    return order_nodes(nodes, BranchAdjacency.from_nodes(nodes, edges), priority=priority)


def order_nodes(
    nodes: Sequence[ChangeNode],
    adjacency: BranchAdjacency,
    priority: PriorityKey | None = None,
) -> list[str]:
    """Kahn's algorithm over branch dependencies.

    Among ready nodes the one with the smallest priority key is taken next,
    ties broken by input position. Nodes held back by a cycle never become
    ready and are left out of the result.
    """

    key = priority or risk_priority
    position = {node.id: index for index, node in enumerate(nodes)}
    by_id = {node.id: node for node in nodes}
    remaining = {node.id: adjacency.in_degree(node.id) for node in nodes}

    ready: list[tuple[Any, int, str]] = []
    for node in nodes:
        if remaining[node.id] == 0:
            heapq.heappush(ready, (key(node, adjacency), position[node.id], node.id))

    order: list[str] = []
    while ready:
        _, _, current = heapq.heappop(ready)
        order.append(current)
        for dependent in adjacency.predecessors(current):
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(
                    ready,
                    (key(by_id[dependent], adjacency), position[dependent], dependent),
                )
    return order


def unordered_ids(nodes: Sequence[ChangeNode], order: Sequence[str]) -> list[str]:
    placed = set(order)
    return [node.id for node in nodes if node.id not in placed]
