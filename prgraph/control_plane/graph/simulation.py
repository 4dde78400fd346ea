"""What-if projection of merging one change out of the graph."""

from __future__ import annotations

from prgraph.control_plane.errors import NotFoundError
from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.graph.ordering import PriorityKey, plan_merge_order
from prgraph.control_plane.models.graph_contracts import DependencyGraph, MergeSimulation


def simulate_merge(
    change_id: str,
    graph: DependencyGraph,
    priority: PriorityKey | None = None,
) -> MergeSimulation:
    if graph.get_node(change_id) is None:
        raise NotFoundError("Change", change_id)

    adjacency = BranchAdjacency.from_nodes(graph.nodes, graph.edges)
    dependents = set(adjacency.predecessors(change_id))
    unblocked = [node for node in graph.nodes if node.id in dependents]

    remaining_nodes = [node for node in graph.nodes if node.id != change_id]
    remaining_edges = [
        edge for edge in graph.edges if change_id not in (edge.source, edge.target)
    ]
    return MergeSimulation(
        change_id=change_id,
        unblocked=unblocked,
        new_order=plan_merge_order(remaining_nodes, remaining_edges, priority=priority),
        resolved_cycles=[list(cycle) for cycle in graph.cycles if change_id in cycle],
    )
