"""Circular branch-dependency detection."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.models.graph_contracts import ChangeNode, RelationshipEdge


def detect_cycles(
    nodes: Sequence[ChangeNode], edges: Sequence[RelationshipEdge]
) -> list[list[str]]:
    return find_cycles(BranchAdjacency.from_nodes(nodes, edges))


def find_cycles(adjacency: BranchAdjacency) -> list[list[str]]:
    """Depth-first search from every unvisited node, in node order.

    A cycle is recorded each time the search reaches a node that is still on
    the current path. Cycles found from different roots are not deduplicated,
    so overlapping reports are possible.

    The search never re-enters a visited node, so a node whose only way back
    to itself runs through an earlier search tree is missed. A second pass
    adds one shortest cycle through every such node.
    """

    cycles: list[list[str]] = []
    visited: set[str] = set()

    for root in adjacency.node_ids:
        if root in visited:
            continue
        path: list[str] = [root]
        on_path: set[str] = {root}
        visited.add(root)
        stack: list[tuple[str, list[str], int]] = [(root, adjacency.successors(root), 0)]

        while stack:
            node_id, neighbors, cursor = stack[-1]
            if cursor >= len(neighbors):
                stack.pop()
                path.pop()
                on_path.discard(node_id)
                continue
            stack[-1] = (node_id, neighbors, cursor + 1)
            neighbor = neighbors[cursor]
            if neighbor not in visited:
                visited.add(neighbor)
                on_path.add(neighbor)
                path.append(neighbor)
                stack.append((neighbor, adjacency.successors(neighbor), 0))
            elif neighbor in on_path:
                cycles.append(path[path.index(neighbor) :])

    covered = cycle_members(cycles)
    for node_id in adjacency.node_ids:
        if node_id in covered:
            continue
        cycle = shortest_cycle_through(node_id, adjacency)
        if cycle:
            cycles.append(cycle)
            covered.update(cycle)

    return cycles


def shortest_cycle_through(node_id: str, adjacency: BranchAdjacency) -> list[str]:
    """Breadth-first path from ``node_id`` back to itself, or an empty list."""
    parents: dict[str, str] = {}
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.successors(current):
            if neighbor == node_id:
                path = [current]
                while path[-1] != node_id:
                    path.append(parents[path[-1]])
                return list(reversed(path))
            if neighbor not in parents:
                parents[neighbor] = current
                queue.append(neighbor)
    return []


def cycle_members(cycles: Sequence[Sequence[str]]) -> set[str]:
    return {node_id for cycle in cycles for node_id in cycle}
