"""Draft split pull requests and their merge queue from a decomposition."""

from __future__ import annotations

from prgraph.control_plane.models.decomposition_contracts import (
    Cluster,
    DecompositionAnalysis,
    MergeQueueItem,
    SplitDraft,
    SplitPlan,
)
from prgraph.control_plane.models.graph_contracts import ChangeNode


def plan_split(change: ChangeNode, analysis: DecompositionAnalysis, body: str = "") -> SplitPlan:
    """One draft per cluster, queued in the analysed merge order.

    Clusters left out of the merge order (cyclic) are queued last in their
    original order.
    """

    if len(analysis.clusters) <= 1:
        return SplitPlan()

    by_id = {cluster.id: cluster for cluster in analysis.clusters}
    ordered_ids = list(analysis.merge_order) + [
        cluster.id for cluster in analysis.clusters if cluster.id not in analysis.merge_order
    ]
    total = len(ordered_ids)
    head = change.branch or f"pr-{change.number}"
    split_ids = {
        cluster_id: f"split-{change.number}-{index}"
        for index, cluster_id in enumerate(ordered_ids, start=1)
    }

    drafts: list[SplitDraft] = []
    queue: list[MergeQueueItem] = []
    for index, cluster_id in enumerate(ordered_ids, start=1):
        cluster = by_id[cluster_id]
        blocked_by = [split_ids[dep] for dep in cluster.dependencies if dep in split_ids]
        drafts.append(
            SplitDraft(
                id=split_ids[cluster_id],
                parent_number=change.number,
                cluster_id=cluster.id,
                cluster_name=cluster.name,
                branch=f"{head}-split-{index}",
                title=split_title(change.title, cluster, index, total),
                body=split_body(change, cluster, index, total, original_body=body),
                files=list(cluster.files),
                dependencies=blocked_by,
            )
        )
        queue.append(
            MergeQueueItem(
                split_id=split_ids[cluster_id],
                order=index,
                status="blocked" if blocked_by else "ready",
                blocked_by=blocked_by,
            )
        )
    return SplitPlan(drafts=drafts, merge_queue=queue)


def split_title(original_title: str, cluster: Cluster, part: int, total: int) -> str:
    prefix = f"[{part}/{total}]"
    if not original_title:
        return f"{prefix} {cluster.name}"
    if original_title.lower() in cluster.name.lower():
        return f"{prefix} {original_title}"
    return f"{prefix} {original_title} - {cluster.name}"


def split_body(
    change: ChangeNode, cluster: Cluster, part: int, total: int, *, original_body: str = ""
) -> str:
    lines = [
        f"## Part {part} of {total}: {cluster.name}",
        "",
        f"> This PR is part of a split from #{change.number}",
        "",
        "### Description",
        cluster.description,
        "",
        "### Changes",
        *[
            f"- `{file.path}` ({file.status}, +{file.additions}/-{file.deletions})"
            for file in cluster.files
        ],
        "",
        f"### Risk Level: {cluster.risk}",
        f"### Estimated Review Time: {cluster.estimated_review_minutes} minutes",
    ]
    if cluster.dependencies:
        lines.extend(["", "### Dependencies", f"Depends on: {', '.join(cluster.dependencies)}"])
    if original_body:
        lines.extend(["", "---", "", "### Original PR Description", original_body])
    return "\n".join(lines)
