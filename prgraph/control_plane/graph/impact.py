"""Per-change impact analysis over a built dependency graph.

Direction follows branch edges. ``directly_blocks`` lists the changes built on
top of this change's branch (its dependents), which cannot merge before it.
``blocked_by`` lists the changes this one is based on, which must merge first.
"""

from __future__ import annotations

from collections import deque

from prgraph.control_plane.errors import NotFoundError
from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.models.graph_contracts import (
    ChangeNode,
    DependencyGraph,
    ImpactAnalysis,
)


DIRECT_WEIGHT = 3.0
TRANSITIVE_WEIGHT = 1.0
BLOCKED_BY_PENALTY = 0.5
SCORE_SCALE = 10.0
HIGH_IMPACT_DIRECT_BLOCKS = 2


def analyze_impact(change_id: str, graph: DependencyGraph) -> ImpactAnalysis:
    node = graph.get_node(change_id)
    if node is None:
        raise NotFoundError("Change", change_id)

    adjacency = BranchAdjacency.from_nodes(graph.nodes, graph.edges)
    blocked_by = _unique(adjacency.successors(change_id))
    directly_blocks = _unique(adjacency.predecessors(change_id))
    reachable = transitive_dependents(change_id, adjacency)
    direct_set = set(directly_blocks)
    transitively_blocks = [node_id for node_id in reachable if node_id not in direct_set]

    if change_id in graph.merge_order:
        position = graph.merge_order.index(change_id) + 1
    else:
        position = len(graph.nodes)

    return ImpactAnalysis(
        change_id=change_id,
        directly_blocks=directly_blocks,
        transitively_blocks=transitively_blocks,
        blocked_by=blocked_by,
        impact_score=impact_score(
            len(directly_blocks), len(transitively_blocks), len(blocked_by)
        ),
        merge_order_position=position,
        recommendations=_recommendations(
            node,
            in_cycle=graph.in_cycle(change_id),
            directly_blocks=directly_blocks,
            blocked_by=blocked_by,
        ),
    )


def transitive_dependents(change_id: str, adjacency: BranchAdjacency) -> list[str]:
    """Breadth-first closure of everything that depends on ``change_id``."""
    visited: set[str] = {change_id}
    reached: list[str] = []
    queue = deque([change_id])
    while queue:
        current = queue.popleft()
        for dependent in adjacency.predecessors(current):
            if dependent in visited:
                continue
            visited.add(dependent)
            reached.append(dependent)
            queue.append(dependent)
    return reached


def impact_score(direct_blocks: int, transitive_blocks: int, blocked_by: int) -> float:
    raw = (
        direct_blocks * DIRECT_WEIGHT
        + transitive_blocks * TRANSITIVE_WEIGHT
        - blocked_by * BLOCKED_BY_PENALTY
    )
    return max(0.0, min(100.0, raw * SCORE_SCALE))


def _recommendations(
    node: ChangeNode,
    *,
    in_cycle: bool,
    directly_blocks: list[str],
    blocked_by: list[str],
) -> list[str]:
    recommendations: list[str] = []
    if blocked_by:
        recommendations.append(f"Wait for {len(blocked_by)} blocking PR(s) to merge first")
    if len(directly_blocks) > HIGH_IMPACT_DIRECT_BLOCKS:
        recommendations.append("High-impact PR - consider expedited review")
    if node.risk_level in {"high", "critical"}:
        recommendations.append("High-risk PR - ensure thorough review before merge")
    if in_cycle:
        recommendations.append(
            "Part of circular dependency - coordinate manually with dependent PR authors"
        )
    if not directly_blocks and not blocked_by:
        recommendations.append("Independent PR - safe to merge at any time")
    return recommendations


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))
