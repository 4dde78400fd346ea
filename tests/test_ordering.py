from __future__ import annotations

from datetime import datetime, timezone

import pytest

from prgraph.control_plane.graph.builder import build_dependency_graph
from prgraph.control_plane.graph.ordering import (
    age_priority,
    fan_out_priority,
    get_priority_key,
    plan_merge_order,
)
from prgraph.control_plane.models.graph_contracts import ChangeNode


def _change(number: int, branch: str, base: str = "main", **extra) -> ChangeNode:
    return ChangeNode(
        id=f"org/repo#{number}", number=number, branch=branch, base_branch=base, **extra
    )


def _diamond() -> list[ChangeNode]:
    return [
        _change(4, "top", base="left"),
        _change(2, "left", base="root"),
        _change(3, "right", base="root"),
        _change(1, "root"),
        _change(5, "top-2", base="right"),
    ]


def test_merge_order_respects_every_branch_dependency() -> None:
    graph = build_dependency_graph("org/repo", _diamond())
    position = {change_id: index for index, change_id in enumerate(graph.merge_order)}

    assert len(graph.merge_order) == len(graph.nodes)
    for edge in graph.edges_of_type("branch_dependency"):
        assert position[edge.target] < position[edge.source]


def test_linear_chain_orders_base_first() -> None:
    nodes = [
        _change(3, "feat-c", base="feat-b"),
        _change(1, "feat-a"),
        _change(2, "feat-b", base="feat-a"),
    ]

    graph = build_dependency_graph("org/repo", nodes)

    assert graph.merge_order == ["org/repo#1", "org/repo#2", "org/repo#3"]


def test_independent_changes_are_all_placed() -> None:
    nodes = [_change(1, "a"), _change(2, "b"), _change(3, "c")]

    assert plan_merge_order(nodes, []) == ["org/repo#1", "org/repo#2", "org/repo#3"]


def test_lower_risk_merges_first_among_ready_changes() -> None:
    nodes = [
        _change(1, "a", risk_level="critical"),
        _change(2, "b", risk_level="high"),
        _change(3, "c", risk_level="low"),
        _change(4, "d"),
    ]

    assert plan_merge_order(nodes, []) == [
        "org/repo#3",
        "org/repo#4",
        "org/repo#2",
        "org/repo#1",
    ]


def test_age_priority_prefers_oldest_and_puts_undated_last() -> None:
    nodes = [
        _change(1, "a", created_at=datetime(2026, 3, 1, tzinfo=timezone.utc)),
        _change(2, "b"),
        _change(3, "c", created_at=datetime(2026, 1, 1)),
    ]

    assert plan_merge_order(nodes, [], priority=age_priority) == [
        "org/repo#3",
        "org/repo#1",
        "org/repo#2",
    ]


def test_fan_out_priority_prefers_changes_with_more_dependents() -> None:
    nodes = [
        _change(1, "lonely"),
        _change(2, "hub"),
        _change(3, "x", base="hub"),
        _change(4, "y", base="hub"),
    ]
    graph = build_dependency_graph("org/repo", nodes, priority=fan_out_priority)

    assert graph.merge_order == ["org/repo#2", "org/repo#1", "org/repo#3", "org/repo#4"]


def test_building_twice_gives_identical_results() -> None:
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    first = build_dependency_graph("org/repo", _diamond(), generated_at=stamp)
    second = build_dependency_graph("org/repo", _diamond(), generated_at=stamp)

    assert first.model_dump() == second.model_dump()


def test_unknown_priority_name_is_rejected() -> None:
    assert get_priority_key("age") is age_priority
    with pytest.raises(ValueError, match="unknown_order_priority:newest"):
        get_priority_key("newest")
