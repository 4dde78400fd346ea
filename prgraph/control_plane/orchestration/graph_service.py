"""Library entry points: build, analyse, order, check, simulate and decompose."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from prgraph.control_plane.decomposition.analysis import decompose_files
from prgraph.control_plane.decomposition.split_plan import plan_split
from prgraph.control_plane.errors import NotFoundError, PRGraphError, UpstreamUnavailableError
from prgraph.control_plane.github.github_connector import ChangeRecordProvider, split_change_ref
from prgraph.control_plane.graph.adjacency import BranchAdjacency
from prgraph.control_plane.graph.builder import build_dependency_graph
from prgraph.control_plane.graph.impact import analyze_impact
from prgraph.control_plane.graph.ordering import PriorityKey, get_priority_key
from prgraph.control_plane.graph.simulation import simulate_merge
from prgraph.control_plane.models.decomposition_contracts import DecompositionReport, Strategy
from prgraph.control_plane.models.graph_contracts import (
    EXPLICIT,
    FILE_CONFLICT,
    SEMANTIC_DEPENDENCY,
    ChangeNode,
    DependencyGraph,
    ImpactAnalysis,
    MergeCheck,
    MergeOrderEntry,
    MergeOrderReport,
    MergeSimulationReport,
    UnblockedChange,
)
from prgraph.control_plane.orchestration.arena import GraphArena
from prgraph.execution_plane.llm.providers import LLMProvider
from prgraph.shared.settings import GraphSettings

logger = logging.getLogger(__name__)

MAX_LISTED_CONFLICT_FILES = 3


class GraphService:
    def __init__(
        self,
        connector: ChangeRecordProvider,
        *,
        settings: GraphSettings | None = None,
        provider: LLMProvider | None = None,
        arena: GraphArena | None = None,
        priority: PriorityKey | None = None,
    ) -> None:
        self.connector = connector
        self.settings = settings or GraphSettings()
        self.provider = provider
        self.arena = arena if arena is not None else GraphArena(ttl_s=self.settings.graph_ttl_s)
        self.priority = priority or get_priority_key(self.settings.order_priority)

    def build_graph(self, repository_id: str, *, refresh: bool = False) -> DependencyGraph:
        if not refresh:
            cached = self.arena.get(repository_id)
            if cached is not None:
                return cached

        changes = self._call_connector(
            "list_open_changes",
            repository_id,
            lambda: self.connector.list_open_changes(repository_id),
        )
        graph = build_dependency_graph(
            repository_id,
            changes,
            semantic_threshold=self.settings.semantic_overlap_threshold,
            priority=self.priority,
        )
        self.arena.put(repository_id, graph)
        return graph

    def get_impact_analysis(self, change_id: str) -> ImpactAnalysis:
        graph, _ = self._graph_for_change(change_id)
        return analyze_impact(change_id, graph)

    def get_merge_order(self, repository_id: str) -> MergeOrderReport:
        graph = self.build_graph(repository_id)
        if graph.cycles:
            return MergeOrderReport(
                repository_id=repository_id,
                has_conflicts=True,
                conflict_details=[describe_cycle(cycle, graph) for cycle in graph.cycles],
            )

        adjacency = BranchAdjacency.from_nodes(graph.nodes, graph.edges)
        order: list[MergeOrderEntry] = []
        for change_id in graph.merge_order:
            node = graph.get_node(change_id)
            dependents = len(adjacency.predecessors(change_id))
            if dependents:
                reason = f"Blocks {dependents} other PR(s)"
            elif node is not None and node.risk_level == "low":
                reason = "Low risk, safe to merge"
            else:
                reason = "Standard priority"
            order.append(
                MergeOrderEntry(id=change_id, number=node.number if node else 0, reason=reason)
            )
        return MergeOrderReport(repository_id=repository_id, order=order)

    def check_merge_conflicts(self, change_id: str) -> MergeCheck:
        graph, _ = self._graph_for_change(change_id)
        adjacency = BranchAdjacency.from_nodes(graph.nodes, graph.edges)
        blockers: list[str] = []
        warnings: list[str] = []

        for dependency_id in dict.fromkeys(adjacency.successors(change_id)):
            dependency = graph.get_node(dependency_id)
            if dependency is not None and dependency.status != "merged":
                blockers.append(f"Blocked by {dependency.label()} ({dependency.title})")

        for edge in graph.edges:
            if change_id not in (edge.source, edge.target):
                continue
            other_id = edge.target if edge.source == change_id else edge.source
            other = graph.get_node(other_id)
            if other is None:
                continue
            if edge.type == FILE_CONFLICT:
                listed = ", ".join(edge.conflict_files[:MAX_LISTED_CONFLICT_FILES])
                suffix = "..." if len(edge.conflict_files) > MAX_LISTED_CONFLICT_FILES else ""
                warnings.append(f"Potential conflict with {other.label()}: {listed}{suffix}")
            elif edge.type == SEMANTIC_DEPENDENCY:
                warnings.append(f"{other.label()} modifies related code areas")
            elif edge.type == EXPLICIT and edge.source == change_id:
                warnings.append(f"Declared dependency on {other.label()} is still open")

        if graph.in_cycle(change_id):
            blockers.append("Part of a circular dependency - manual resolution required")

        return MergeCheck(
            change_id=change_id,
            can_merge=not blockers,
            blockers=blockers,
            warnings=warnings,
        )

    def simulate_merge(self, change_id: str) -> MergeSimulationReport:
        graph, _ = self._graph_for_change(change_id)
        simulation = simulate_merge(change_id, graph, priority=self.priority)
        return MergeSimulationReport(
            change_id=change_id,
            unblocked=[
                UnblockedChange(id=node.id, number=node.number, title=node.title)
                for node in simulation.unblocked
            ],
            new_critical_path=simulation.new_order,
            resolved_cycles=simulation.resolved_cycles,
        )

    def decompose(self, change_id: str, strategy: Strategy | None = None) -> DecompositionReport:
        change = self._call_connector(
            "get_change", change_id, lambda: self.connector.get_change(change_id)
        )
        if change is None:
            raise NotFoundError("Change", change_id)
        files = self._call_connector(
            "get_file_list", change_id, lambda: self.connector.get_file_list(change_id)
        )
        analysis = decompose_files(
            files,
            strategy or self.settings.default_strategy,
            settings=self.settings,
            provider=self.provider,
            context={"title": change.title, "body": change.body, "branch": change.branch},
        )
        return DecompositionReport(
            change_id=change_id,
            strategy=analysis.strategy,
            fallback_used=analysis.fallback_used,
            clusters=analysis.clusters,
            merge_order=analysis.merge_order,
            risks=analysis.risks,
            recommendations=analysis.recommendations,
            unclustered_files=analysis.unclustered_files,
            cycles=analysis.cycles,
            split_plan=plan_split(change, analysis, body=change.body),
        )

    def _graph_for_change(self, change_id: str) -> tuple[DependencyGraph, ChangeNode]:
        parsed = split_change_ref(change_id)
        if parsed is None:
            raise NotFoundError("Change", change_id)
        graph = self.build_graph(parsed[0])
        node = graph.get_node(change_id)
        if node is None:
            raise NotFoundError("Change", change_id)
        return graph, node

    def _call_connector(
        self, operation: str, subject: str, call: Callable[[], Any]
    ) -> Any:
        try:
            return call()
        except PRGraphError:
            raise
        except Exception as exc:  # connector boundary
            logger.warning("Connector %s failed for %s: %s", operation, subject, exc)
            raise UpstreamUnavailableError(
                f"Change records unavailable for {subject}", reason_code="provider_failed"
            ) from exc


def describe_cycle(cycle: list[str], graph: DependencyGraph) -> str:
    labels = []
    for node_id in cycle:
        node = graph.get_node(node_id)
        labels.append(node.label() if node is not None else node_id)
    if labels:
        labels.append(labels[0])
    return f"Circular dependency detected: {' → '.join(labels)}"
