from __future__ import annotations

import pytest

from prgraph.control_plane.errors import NotFoundError
from prgraph.control_plane.graph.builder import build_dependency_graph
from prgraph.control_plane.graph.simulation import simulate_merge
from prgraph.control_plane.models.graph_contracts import ChangeNode


def _change(number: int, branch: str, base: str = "main") -> ChangeNode:
    return ChangeNode(id=f"org/repo#{number}", number=number, branch=branch, base_branch=base)


def test_merging_chain_root_unblocks_next_change() -> None:
    graph = build_dependency_graph(
        "org/repo",
        [_change(1, "feat-a"), _change(2, "feat-b", "feat-a"), _change(3, "feat-c", "feat-b")],
    )

    simulation = simulate_merge("org/repo#1", graph)

    assert [node.id for node in simulation.unblocked] == ["org/repo#2"]
    assert simulation.new_order == ["org/repo#2", "org/repo#3"]
    assert simulation.resolved_cycles == []


def test_merging_cycle_member_resolves_the_cycle() -> None:
    graph = build_dependency_graph("org/repo", [_change(1, "x", "y"), _change(2, "y", "x")])

    simulation = simulate_merge("org/repo#1", graph)

    assert simulation.resolved_cycles == [["org/repo#1", "org/repo#2"]]
    assert simulation.new_order == ["org/repo#2"]
    assert [node.id for node in simulation.unblocked] == ["org/repo#2"]


def test_simulation_does_not_modify_the_graph() -> None:
    graph = build_dependency_graph("org/repo", [_change(1, "a"), _change(2, "b", "a")])
    before = graph.model_dump()

    simulate_merge("org/repo#1", graph)

    assert graph.model_dump() == before


def test_simulating_unknown_change_raises() -> None:
    graph = build_dependency_graph("org/repo", [_change(1, "a")])

    with pytest.raises(NotFoundError):
        simulate_merge("org/repo#2", graph)
