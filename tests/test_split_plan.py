from __future__ import annotations

from prgraph.control_plane.decomposition.analysis import decompose_files
from prgraph.control_plane.decomposition.split_plan import plan_split, split_title
from prgraph.control_plane.models.decomposition_contracts import Cluster, FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode


def _big_change() -> ChangeNode:
    return ChangeNode(id="org/repo#7", number=7, title="Big change", branch="feature/big")


def test_split_plan_follows_cluster_merge_order() -> None:
    files = [FileChange(path=f"src/f{index}.py", additions=100) for index in range(12)]
    analysis = decompose_files(files, "size")

    plan = plan_split(_big_change(), analysis, body="Original description")

    assert [draft.id for draft in plan.drafts] == ["split-7-1", "split-7-2", "split-7-3"]
    assert [draft.branch for draft in plan.drafts] == [
        "feature/big-split-1",
        "feature/big-split-2",
        "feature/big-split-3",
    ]
    assert plan.drafts[0].title == "[1/3] Big change - Batch 1"
    assert plan.drafts[1].dependencies == ["split-7-1"]
    assert "> This PR is part of a split from #7" in plan.drafts[0].body
    assert "### Original PR Description\nOriginal description" in plan.drafts[0].body
    assert [(item.order, item.status) for item in plan.merge_queue] == [
        (1, "ready"),
        (2, "blocked"),
        (3, "blocked"),
    ]
    assert plan.merge_queue[2].blocked_by == ["split-7-2"]


def test_single_cluster_needs_no_split() -> None:
    analysis = decompose_files([FileChange(path="src/a.py"), FileChange(path="src/b.py")], "directory")

    plan = plan_split(_big_change(), analysis)

    assert plan.drafts == []
    assert plan.merge_queue == []


def test_split_title_variants() -> None:
    cluster = Cluster(id="cluster-0", name="Big change tests")

    assert split_title("Big change", cluster, 2, 3) == "[2/3] Big change"
    assert split_title("", cluster, 1, 1) == "[1/1] Big change tests"
    assert split_title("Other", cluster, 1, 2) == "[1/2] Other - Big change tests"
