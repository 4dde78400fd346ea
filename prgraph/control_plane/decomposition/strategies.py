"""Structural clustering strategies for splitting one large change."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prgraph.control_plane.models.decomposition_contracts import (
    Cluster,
    ClusterType,
    FileChange,
    estimate_review_minutes,
)


ROOT_GROUP = "root"


def top_level_segment(path: str) -> str:
    head, separator, _ = path.partition("/")
    return head if separator and head else ROOT_GROUP


def infer_cluster_type(directory: str) -> ClusterType:
    lowered = directory.lower()
    if "test" in lowered or "spec" in lowered:
        return "test"
    if "doc" in lowered:
        return "docs"
    if "config" in lowered or lowered.startswith("."):
        return "config"
    return "feature"


def affected_modules(files: Sequence[FileChange]) -> list[str]:
    return sorted({top_level_segment(file.path) for file in files})


def directory_clusters(
    files: Sequence[FileChange], *, min_files: int = 2
) -> tuple[list[Cluster], list[FileChange]]:
    """Group files by top-level directory.

    Returns the clusters and the files left out because their group was
    smaller than ``min_files`` while other groups existed.
    """

    groups: dict[str, list[FileChange]] = {}
    for file in files:
        groups.setdefault(top_level_segment(file.path), []).append(file)

    clusters: list[Cluster] = []
    dropped: list[FileChange] = []
    for directory, members in groups.items():
        if len(members) < min_files and len(groups) > 1:
            dropped.extend(members)
            continue
        clusters.append(
            Cluster(
                id=f"cluster-dir-{len(clusters)}",
                name=f"{directory} changes",
                description=f"Changes in the {directory} directory",
                type=infer_cluster_type(directory),
                files=list(members),
                risk="low",
                estimated_review_minutes=estimate_review_minutes(members),
                semantic_labels=[directory],
                affected_modules=[directory],
            )
        )
    return clusters, dropped


def size_clusters(
    files: Sequence[FileChange], *, max_lines: int = 500, min_files: int = 2
) -> list[Cluster]:
    """Greedily pack the largest files first into batches kept under ``max_lines``.

    A batch is closed once it holds ``min_files`` files and the next file
    would bring it to the cap. Every batch depends on the previous one.
    """

    ordered = sorted(files, key=lambda file: file.total_lines, reverse=True)
    batches: list[list[FileChange]] = []
    current: list[FileChange] = []
    current_lines = 0
    for file in ordered:
        if current_lines + file.total_lines >= max_lines and len(current) >= min_files:
            batches.append(current)
            current = []
            current_lines = 0
        current.append(file)
        current_lines += file.total_lines
    if current:
        batches.append(current)

    clusters: list[Cluster] = []
    for index, members in enumerate(batches):
        clusters.append(
            Cluster(
                id=f"cluster-size-{index}",
                name=f"Batch {index + 1}",
                description=f"Size-based grouping batch {index + 1}",
                type="mixed",
                files=members,
                dependencies=[f"cluster-size-{index - 1}"] if index > 0 else [],
                risk="medium",
                estimated_review_minutes=estimate_review_minutes(members),
                affected_modules=affected_modules(members),
            )
        )
    return link_dependents(clusters)


def clusters_from_model_output(
    output: dict[str, Any], files: Sequence[FileChange]
) -> list[Cluster]:
    """Repair validated model output into clusters over the real file list.

    Unknown paths and dangling dependency names are dropped, empty clusters
    are discarded, and files the model did not assign land in a trailing
    catch-all cluster.
    """

    by_path = {file.path: file for file in files}
    kept: list[tuple[dict[str, Any], list[FileChange]]] = []
    for row in output.get("clusters", []):
        members = [by_path[path] for path in dict.fromkeys(row.get("files", [])) if path in by_path]
        if members:
            kept.append((row, members))

    id_by_name: dict[str, str] = {}
    for index, (row, _) in enumerate(kept):
        id_by_name.setdefault(str(row["name"]), f"cluster-{index}")

    clusters: list[Cluster] = []
    assigned: set[str] = set()
    for index, (row, members) in enumerate(kept):
        cluster_id = f"cluster-{index}"
        dependencies = [
            id_by_name[name]
            for name in dict.fromkeys(str(dep) for dep in row.get("dependencies", []))
            if name in id_by_name and id_by_name[name] != cluster_id
        ]
        assigned.update(file.path for file in members)
        clusters.append(
            Cluster(
                id=cluster_id,
                name=str(row["name"]).strip() or cluster_id,
                description=str(row.get("description", "")),
                type=row.get("type", "mixed"),
                files=members,
                dependencies=dependencies,
                risk=row.get("risk", "medium"),
                estimated_review_minutes=estimate_review_minutes(members),
                semantic_labels=[str(label) for label in row.get("semanticLabels", [])],
                affected_modules=affected_modules(members),
            )
        )

    leftovers = [file for file in files if file.path not in assigned]
    if clusters and leftovers:
        clusters.append(
            Cluster(
                id=f"cluster-{len(clusters)}",
                name="Remaining changes",
                description="Files not assigned to any semantic cluster",
                type="mixed",
                files=leftovers,
                risk="medium",
                estimated_review_minutes=estimate_review_minutes(leftovers),
                affected_modules=affected_modules(leftovers),
            )
        )
    return link_dependents(clusters)


def link_dependents(clusters: list[Cluster]) -> list[Cluster]:
    dependents: dict[str, list[str]] = {cluster.id: [] for cluster in clusters}
    for cluster in clusters:
        for dependency in cluster.dependencies:
            if dependency in dependents and cluster.id not in dependents[dependency]:
                dependents[dependency].append(cluster.id)
    return [
        cluster.model_copy(update={"dependents": dependents[cluster.id]}) for cluster in clusters
    ]
