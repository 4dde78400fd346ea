"""Typed relationship detection between concurrently open changes."""

from __future__ import annotations

from collections.abc import Sequence

from prgraph.control_plane.models.graph_contracts import (
    BRANCH_DEPENDENCY,
    EXPLICIT,
    FILE_CONFLICT,
    SEMANTIC_DEPENDENCY,
    ChangeNode,
    RelationshipEdge,
)


FILE_CONFLICT_SATURATION = 10
DEFAULT_SEMANTIC_THRESHOLD = 0.3


def detect_relationships(
    nodes: Sequence[ChangeNode],
    *,
    semantic_threshold: float = DEFAULT_SEMANTIC_THRESHOLD,
) -> list[RelationshipEdge]:
    """Derive branch, file, semantic and explicit edges for a snapshot.

    Every pass is quadratic in the number of nodes; open-PR counts are small.
    """

    edges: list[RelationshipEdge] = []
    edges.extend(_branch_edges(nodes))
    edges.extend(_file_conflict_edges(nodes))
    edges.extend(_semantic_edges(nodes, edges, threshold=semantic_threshold))
    edges.extend(_explicit_edges(nodes, edges))
    return edges


def _branch_edges(nodes: Sequence[ChangeNode]) -> list[RelationshipEdge]:
    edges: list[RelationshipEdge] = []
    for node_a in nodes:
        if not node_a.base_branch:
            continue
        for node_b in nodes:
            if node_a.id == node_b.id:
                continue
            if node_a.base_branch == node_b.branch:
                edges.append(
                    RelationshipEdge(
                        source=node_a.id,
                        target=node_b.id,
                        type=BRANCH_DEPENDENCY,
                        strength=1.0,
                        description=(
                            f"{node_a.label()} is based on {node_b.label()}'s branch"
                        ),
                    )
                )
    return edges


def conflicting_files(files_a: Sequence[str], files_b: Sequence[str]) -> list[str]:
    return sorted(set(files_a) & set(files_b))


def _file_conflict_edges(nodes: Sequence[ChangeNode]) -> list[RelationshipEdge]:
    edges: list[RelationshipEdge] = []
    for index, node_a in enumerate(nodes):
        for node_b in nodes[index + 1 :]:
            conflict_files = conflicting_files(node_a.files_changed, node_b.files_changed)
            if not conflict_files:
                continue
            edges.append(
                RelationshipEdge(
                    source=node_a.id,
                    target=node_b.id,
                    type=FILE_CONFLICT,
                    strength=min(len(conflict_files) / FILE_CONFLICT_SATURATION, 1.0),
                    description=f"{len(conflict_files)} file(s) modified by both PRs",
                    conflict_files=conflict_files,
                )
            )
    return edges


def module_set(files: Sequence[str]) -> set[str]:
    """Containing directories of ``files``; root-level files have no module."""
    modules: set[str] = set()
    for path in files:
        parent, separator, _ = path.rpartition("/")
        if separator and parent:
            modules.add(parent)
    return modules


def semantic_overlap(files_a: Sequence[str], files_b: Sequence[str]) -> float:
    if not files_a or not files_b:
        return 0.0
    modules_a = module_set(files_a)
    modules_b = module_set(files_b)
    total = max(len(modules_a), len(modules_b))
    if total == 0:
        return 0.0
    return len(modules_a & modules_b) / total


def _connected_pairs(edges: Sequence[RelationshipEdge]) -> set[frozenset[str]]:
    return {frozenset((edge.source, edge.target)) for edge in edges}


def _semantic_edges(
    nodes: Sequence[ChangeNode],
    existing: Sequence[RelationshipEdge],
    *,
    threshold: float,
) -> list[RelationshipEdge]:
    connected = _connected_pairs(existing)
    edges: list[RelationshipEdge] = []
    for index, node_a in enumerate(nodes):
        for node_b in nodes[index + 1 :]:
            if frozenset((node_a.id, node_b.id)) in connected:
                continue
            overlap = semantic_overlap(node_a.files_changed, node_b.files_changed)
            if overlap <= threshold:
                continue
            edges.append(
                RelationshipEdge(
                    source=node_a.id,
                    target=node_b.id,
                    type=SEMANTIC_DEPENDENCY,
                    strength=min(overlap, 1.0),
                    description="PRs modify related code areas",
                )
            )
    return edges


def _explicit_edges(
    nodes: Sequence[ChangeNode], existing: Sequence[RelationshipEdge]
) -> list[RelationshipEdge]:
    by_number = {node.number: node for node in nodes if node.number}
    branch_pairs = {
        (edge.source, edge.target) for edge in existing if edge.type == BRANCH_DEPENDENCY
    }
    edges: list[RelationshipEdge] = []
    seen: set[tuple[str, str]] = set()
    for node in nodes:
        for number in node.depends_on:
            target = by_number.get(number)
            if target is None or target.id == node.id:
                continue
            pair = (node.id, target.id)
            if pair in branch_pairs or pair in seen:
                continue
            seen.add(pair)
            edges.append(
                RelationshipEdge(
                    source=node.id,
                    target=target.id,
                    type=EXPLICIT,
                    strength=1.0,
                    description=f"{node.label()} declares a dependency on {target.label()}",
                )
            )
    return edges
