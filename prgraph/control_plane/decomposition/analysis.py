"""Decompose one change into clusters and order them like pull requests."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from prgraph.control_plane.decomposition.semantic import semantic_clusters
from prgraph.control_plane.decomposition.strategies import directory_clusters, size_clusters
from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.graph.cycles import cycle_members, find_cycles
from prgraph.control_plane.graph.ordering import order_nodes
from prgraph.control_plane.models.decomposition_contracts import (
    Cluster,
    DecompositionAnalysis,
    DecompositionRisk,
    FileChange,
    Strategy,
)
from prgraph.control_plane.models.graph_contracts import (
    BRANCH_DEPENDENCY,
    ChangeNode,
    RelationshipEdge,
)
from prgraph.execution_plane.llm.providers import LLMProvider
from prgraph.shared.settings import GraphSettings

logger = logging.getLogger(__name__)

MAX_COMFORTABLE_CLUSTERS = 5
LARGE_CHANGE_LINES = 1000


def decompose_files(
    files: Sequence[FileChange],
    strategy: Strategy,
    *,
    settings: GraphSettings | None = None,
    provider: LLMProvider | None = None,
    context: dict[str, Any] | None = None,
) -> DecompositionAnalysis:
    config = settings or GraphSettings()
    file_list = list(files)

    clusters: list[Cluster] | None = None
    dropped: list[FileChange] = []
    used: Strategy = strategy
    if strategy == "semantic":
        clusters = (
            semantic_clusters(file_list, provider, context=context, timeout_s=config.llm_timeout_s)
            if file_list
            else []
        )
    if strategy == "size":
        clusters = size_clusters(
            file_list,
            max_lines=config.max_lines_per_cluster,
            min_files=config.min_files_per_cluster,
        )
    if clusters is None:
        used = "directory"
        clusters, dropped = directory_clusters(
            file_list, min_files=config.min_files_per_cluster
        )

    nodes, edges = cluster_graph(clusters)
    adjacency = BranchAdjacency.from_nodes(nodes, edges)
    cycles = find_cycles(adjacency)
    merge_order = order_nodes(nodes, adjacency)
    risks = identify_risks(clusters, cycles)
    logger.info(
        "Decomposed %d files into %d clusters via %s (requested %s)",
        len(file_list),
        len(clusters),
        used,
        strategy,
    )
    return DecompositionAnalysis(
        strategy=used,
        requested_strategy=strategy,
        fallback_used=used != strategy,
        clusters=clusters,
        unclustered_files=[file.path for file in dropped],
        cycles=cycles,
        merge_order=merge_order,
        risks=risks,
        recommendations=recommend(file_list, clusters, risks, dropped),
    )


def cluster_graph(clusters: Sequence[Cluster]) -> tuple[list[ChangeNode], list[RelationshipEdge]]:
    """Express clusters as change nodes joined by hard dependencies."""

    known = {cluster.id for cluster in clusters}
    nodes = [
        ChangeNode(
            id=cluster.id,
            title=cluster.name,
            risk_level=cluster.risk,
            files_changed=[file.path for file in cluster.files],
        )
        for cluster in clusters
    ]
    edges = [
        RelationshipEdge(
            source=cluster.id,
            target=dependency,
            type=BRANCH_DEPENDENCY,
            strength=1.0,
            description=f"{cluster.name} builds on {dependency}",
        )
        for cluster in clusters
        for dependency in cluster.dependencies
        if dependency in known
    ]
    return nodes, edges


def identify_risks(
    clusters: Sequence[Cluster], cycles: Sequence[Sequence[str]]
) -> list[DecompositionRisk]:
    risks: list[DecompositionRisk] = []
    if cycles:
        members = cycle_members(cycles)
        risks.append(
            DecompositionRisk(
                type="dependency_cycle",
                severity="high",
                description="Circular dependency detected between clusters",
                affected_clusters=[cluster.id for cluster in clusters if cluster.id in members],
                mitigation="Consider merging tightly coupled clusters",
            )
        )

    for cluster in clusters:
        if cluster.risk == "high":
            risks.append(
                DecompositionRisk(
                    type="semantic_split",
                    severity="medium",
                    description=f'High-risk changes in cluster "{cluster.name}"',
                    affected_clusters=[cluster.id],
                    mitigation="Ensure thorough review and testing before merge",
                )
            )

    owners: dict[str, list[str]] = {}
    for cluster in clusters:
        for file in cluster.files:
            owners.setdefault(file.path, []).append(cluster.id)
    for path, cluster_ids in owners.items():
        if len(cluster_ids) > 1:
            risks.append(
                DecompositionRisk(
                    type="merge_conflict",
                    severity="medium",
                    description=f"File {path} is modified in multiple clusters",
                    affected_clusters=cluster_ids,
                    mitigation="Merge clusters in dependency order to minimize conflicts",
                )
            )
    return risks


def recommend(
    files: Sequence[FileChange],
    clusters: Sequence[Cluster],
    risks: Sequence[DecompositionRisk],
    dropped: Sequence[FileChange],
) -> list[str]:
    recommendations: list[str] = []
    if len(clusters) <= 1:
        recommendations.append("This PR is small enough that splitting may not be necessary")
    if len(clusters) > MAX_COMFORTABLE_CLUSTERS:
        recommendations.append("Consider if all these changes need to be in the same PR")
    if sum(file.total_lines for file in files) > LARGE_CHANGE_LINES:
        recommendations.append("Large PR: strongly recommend splitting for easier review")
    if any(risk.type == "dependency_cycle" for risk in risks):
        recommendations.append("Resolve circular dependencies before splitting")
    if any(risk.type == "merge_conflict" for risk in risks):
        recommendations.append("Follow the suggested merge order to minimize conflicts")
    high_risk = [cluster.name for cluster in clusters if cluster.risk == "high"]
    if high_risk:
        recommendations.append(
            f"High-risk clusters ({', '.join(high_risk)}) should be reviewed first"
        )
    if dropped:
        recommendations.append(
            f"{len(dropped)} file(s) were too isolated to form a cluster; "
            "add them to the closest related split"
        )
    return recommendations
