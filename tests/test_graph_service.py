from __future__ import annotations

import pytest

from prgraph.control_plane.errors import NotFoundError, UpstreamUnavailableError
from prgraph.control_plane.github.github_connector_inmemory import InMemoryGitHubConnector
from prgraph.control_plane.models.decomposition_contracts import FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode
from prgraph.control_plane.orchestration.arena import GraphArena
from prgraph.control_plane.orchestration.graph_service import GraphService
from prgraph.shared.settings import GraphSettings


def _change(repo: str, number: int, branch: str, base: str = "main", **extra) -> ChangeNode:
    return ChangeNode(
        id=f"{repo}#{number}",
        number=number,
        title=extra.pop("title", f"Change {number}"),
        branch=branch,
        base_branch=base,
        **extra,
    )


def _service() -> tuple[GraphService, InMemoryGitHubConnector]:
    connector = InMemoryGitHubConnector()
    connector.add_change(
        _change("org/repo", 1, "feat-a", title="Models", risk_level="low", files_changed=["src/core/models.py"])
    )
    connector.add_change(
        _change("org/repo", 2, "feat-b", base="feat-a", title="API", files_changed=["src/api/routes.py"])
    )
    connector.add_change(
        _change("org/repo", 3, "feat-c", files_changed=["src/core/models.py", "docs/guide.md"])
    )
    connector.add_change(_change("org/loop", 1, "x", base="y", title="Left"))
    connector.add_change(_change("org/loop", 2, "y", base="x", title="Right"))
    return GraphService(connector), connector


class BrokenConnector:
    def list_open_changes(self, repo: str) -> list[ChangeNode]:
        raise RuntimeError("socket closed")

    def get_change(self, change_id: str) -> ChangeNode | None:
        raise RuntimeError("socket closed")

    def get_file_list(self, change_id: str) -> list[FileChange]:
        raise RuntimeError("socket closed")


def test_build_graph_is_cached_per_repository() -> None:
    service, connector = _service()

    first = service.build_graph("org/repo")
    second = service.build_graph("org/repo")
    assert second == first
    assert connector.list_calls["org/repo"] == 1

    service.build_graph("org/repo", refresh=True)
    assert connector.list_calls["org/repo"] == 2
    assert first.merge_order == ["org/repo#1", "org/repo#2", "org/repo#3"]


def test_arena_entries_expire() -> None:
    now = [0.0]
    arena = GraphArena(ttl_s=10, clock=lambda: now[0])
    connector = _service()[1]
    service = GraphService(connector, arena=arena)

    first = service.build_graph("org/repo")
    now[0] = 9.0
    assert service.build_graph("org/repo") == first
    assert connector.list_calls["org/repo"] == 1
    now[0] = 10.0
    assert service.build_graph("org/repo").merge_order == first.merge_order
    assert connector.list_calls["org/repo"] == 2
    assert len(arena) == 1

    arena.invalidate("org/repo")
    assert len(arena) == 0


def test_mutating_a_returned_graph_leaves_the_cache_intact() -> None:
    service, connector = _service()

    built = service.build_graph("org/repo")
    built.merge_order.append("org/repo#99")
    cached = service.build_graph("org/repo")
    cached.merge_order.clear()

    assert service.build_graph("org/repo").merge_order == ["org/repo#1", "org/repo#2", "org/repo#3"]
    assert connector.list_calls["org/repo"] == 1


def test_zero_ttl_disables_caching() -> None:
    _, connector = _service()
    service = GraphService(connector, settings=GraphSettings(graph_ttl_s=0))

    service.build_graph("org/repo")
    service.build_graph("org/repo")

    assert connector.list_calls["org/repo"] == 2


def test_merge_order_report_reasons() -> None:
    service, _ = _service()

    report = service.get_merge_order("org/repo")

    assert report.has_conflicts is False
    assert [(entry.number, entry.reason) for entry in report.order] == [
        (1, "Blocks 1 other PR(s)"),
        (2, "Standard priority"),
        (3, "Standard priority"),
    ]


def test_merge_order_report_with_cycle() -> None:
    service, _ = _service()

    report = service.get_merge_order("org/loop")

    assert report.has_conflicts is True
    assert report.order == []
    assert report.conflict_details == ["Circular dependency detected: PR #1 → PR #2 → PR #1"]


def test_check_merge_conflicts_reports_blockers_and_warnings() -> None:
    service, _ = _service()

    dependent = service.check_merge_conflicts("org/repo#2")
    base = service.check_merge_conflicts("org/repo#1")
    looped = service.check_merge_conflicts("org/loop#1")

    assert dependent.can_merge is False
    assert dependent.blockers == ["Blocked by PR #1 (Models)"]
    assert dependent.warnings == []
    assert base.can_merge is True
    assert base.warnings == ["Potential conflict with PR #3: src/core/models.py"]
    assert looped.blockers == [
        "Blocked by PR #2 (Right)",
        "Part of a circular dependency - manual resolution required",
    ]


def test_check_merge_conflicts_mentions_declared_dependencies() -> None:
    connector = InMemoryGitHubConnector()
    connector.add_change(_change("org/deps", 1, "a", files_changed=["a/x.py"]))
    connector.add_change(_change("org/deps", 2, "b", files_changed=["b/y.py"], depends_on=[1]))

    check = GraphService(connector).check_merge_conflicts("org/deps#2")

    assert check.can_merge is True
    assert check.warnings == ["Declared dependency on PR #1 is still open"]


def test_impact_and_simulation_through_service() -> None:
    service, _ = _service()

    impact = service.get_impact_analysis("org/repo#1")
    simulation = service.simulate_merge("org/repo#1")

    assert impact.directly_blocks == ["org/repo#2"]
    assert [row.number for row in simulation.unblocked] == [2]
    assert simulation.new_critical_path == ["org/repo#2", "org/repo#3"]


def test_unknown_and_malformed_change_ids_are_not_found() -> None:
    service, _ = _service()

    with pytest.raises(NotFoundError):
        service.get_impact_analysis("org/repo#99")
    with pytest.raises(NotFoundError):
        service.simulate_merge("not a ref")
    with pytest.raises(NotFoundError):
        service.decompose("org/repo#99")


def test_upstream_failures_surface_as_unavailable() -> None:
    service, connector = _service()
    connector.unavailable_repos.add("org/repo")

    with pytest.raises(UpstreamUnavailableError) as excinfo:
        service.get_merge_order("org/repo")
    assert excinfo.value.reason_code == "github_unavailable"

    broken = GraphService(BrokenConnector())
    with pytest.raises(UpstreamUnavailableError) as excinfo:
        broken.build_graph("org/repo")
    assert excinfo.value.reason_code == "provider_failed"


def test_decompose_builds_split_plan() -> None:
    connector = InMemoryGitHubConnector()
    connector.add_change(
        _change("org/big", 4, "feature/big", title="Big"),
        files=[
            FileChange(path="src/a.py", additions=100),
            FileChange(path="src/b.py", additions=50),
            FileChange(path="tests/test_a.py", additions=30),
            FileChange(path="tests/test_b.py", additions=20),
        ],
    )

    report = GraphService(connector).decompose("org/big#4")

    assert report.strategy == "directory"
    assert [cluster.type for cluster in report.clusters] == ["feature", "test"]
    assert report.merge_order == ["cluster-dir-0", "cluster-dir-1"]
    assert [draft.title for draft in report.split_plan.drafts] == [
        "[1/2] Big - src changes",
        "[2/2] Big - tests changes",
    ]
    assert [item.status for item in report.split_plan.merge_queue] == ["ready", "ready"]


def test_decompose_honours_requested_strategy() -> None:
    connector = InMemoryGitHubConnector()
    connector.add_change(
        _change("org/big", 5, "feature/wide"),
        files=[FileChange(path=f"pkg/f{index}.py", additions=100) for index in range(12)],
    )
    service = GraphService(connector, settings=GraphSettings(default_strategy="semantic"))

    sized = service.decompose("org/big#5", strategy="size")
    fallback = service.decompose("org/big#5")

    assert sized.strategy == "size"
    assert len(sized.clusters) == 3
    assert fallback.strategy == "directory"
    assert fallback.fallback_used is True


def test_decompose_report_lists_dropped_files_and_cluster_cycles() -> None:
    connector = InMemoryGitHubConnector()
    connector.add_change(
        _change("org/big", 6, "feature/layout", title="Layout"),
        files=[
            FileChange(path="src/a.py", additions=10),
            FileChange(path="src/b.py", additions=10),
            FileChange(path="docs/guide.md", additions=5),
            FileChange(path="docs/api.md", additions=5),
            FileChange(path="setup.py", additions=2),
        ],
    )

    report = GraphService(connector).decompose("org/big#6", strategy="directory")

    assert [cluster.name for cluster in report.clusters] == ["src changes", "docs changes"]
    assert report.unclustered_files == ["setup.py"]
    assert report.cycles == []
    assert report.model_dump()["unclustered_files"] == ["setup.py"]
