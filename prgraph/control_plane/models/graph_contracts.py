"""Pydantic contracts for PR dependency graphs and their derived reports."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


ChangeStatus = Literal["open", "closed", "merged", "draft"]
RiskLevel = Literal["low", "medium", "high", "critical"]
EdgeType = Literal["branch_dependency", "file_conflict", "semantic_dependency", "explicit"]

BRANCH_DEPENDENCY: EdgeType = "branch_dependency"
FILE_CONFLICT: EdgeType = "file_conflict"
SEMANTIC_DEPENDENCY: EdgeType = "semantic_dependency"
EXPLICIT: EdgeType = "explicit"

RISK_ORDER: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class ChangeNode(BaseModel):
    """One open pull request (or one proposed cluster) in a dependency graph."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    number: int = Field(default=0, ge=0)
    title: str = ""
    branch: str = ""
    base_branch: str = ""
    author: str = ""
    status: ChangeStatus = "open"
    risk_level: RiskLevel = "medium"
    created_at: datetime | None = None
    files_changed: list[str] = Field(default_factory=list)
    depends_on: list[int] = Field(default_factory=list)
    body: str = ""

    @field_validator("files_changed")
    @classmethod
    def _dedupe_files(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(path for path in value if path))

    def label(self) -> str:
        return f"PR #{self.number}" if self.number else self.id


class RelationshipEdge(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    type: EdgeType
    strength: float = Field(ge=0.0, le=1.0)
    description: str = ""
    conflict_files: list[str] = Field(default_factory=list)


class DependencyGraph(BaseModel):
    """Aggregate built from one snapshot of open changes."""

    model_config = ConfigDict(extra="forbid")

    repository_id: str
    nodes: list[ChangeNode] = Field(default_factory=list)
    edges: list[RelationshipEdge] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
    merge_order: list[str] = Field(default_factory=list)
    unordered_ids: list[str] = Field(default_factory=list)
    generated_at: datetime | None = None

    def get_node(self, node_id: str) -> ChangeNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def in_cycle(self, node_id: str) -> bool:
        return any(node_id in cycle for cycle in self.cycles)

    def edges_of_type(self, edge_type: EdgeType) -> list[RelationshipEdge]:
        return [edge for edge in self.edges if edge.type == edge_type]


class ImpactAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    change_id: str
    directly_blocks: list[str] = Field(default_factory=list)
    transitively_blocks: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list)
    impact_score: float = Field(ge=0.0, le=100.0)
    merge_order_position: int = Field(ge=0)
    recommendations: list[str] = Field(default_factory=list)


class MergeSimulation(BaseModel):
    """Read-side projection of the graph after one change is removed."""

    model_config = ConfigDict(extra="forbid")

    change_id: str
    unblocked: list[ChangeNode] = Field(default_factory=list)
    new_order: list[str] = Field(default_factory=list)
    resolved_cycles: list[list[str]] = Field(default_factory=list)


class MergeOrderEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    number: int = 0
    reason: str = ""


class MergeOrderReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repository_id: str
    order: list[MergeOrderEntry] = Field(default_factory=list)
    has_conflicts: bool = False
    conflict_details: list[str] = Field(default_factory=list)


class MergeCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    change_id: str
    can_merge: bool
    blockers: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class UnblockedChange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    number: int = 0
    title: str = ""


class MergeSimulationReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    change_id: str
    unblocked: list[UnblockedChange] = Field(default_factory=list)
    new_critical_path: list[str] = Field(default_factory=list)
    resolved_cycles: list[list[str]] = Field(default_factory=list)
