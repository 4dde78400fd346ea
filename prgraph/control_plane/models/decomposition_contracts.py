"""Pydantic contracts for splitting one oversized PR into ordered clusters."""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Strategy = Literal["directory", "size", "semantic"]
ClusterType = Literal["feature", "bugfix", "refactor", "docs", "test", "config", "mixed"]
ClusterRisk = Literal["low", "medium", "high"]
FileStatus = Literal["added", "modified", "deleted", "renamed"]
RiskKind = Literal["dependency_cycle", "merge_conflict", "test_isolation", "semantic_split"]

LINES_PER_REVIEW_MINUTE = 50
MIN_REVIEW_MINUTES = 5


class FileChange(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    path: str = Field(min_length=1)
    status: FileStatus = "modified"
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)

    @property
    def total_lines(self) -> int:
        return self.additions + self.deletions


def estimate_review_minutes(files: list[FileChange]) -> int:
    total_lines = sum(file.total_lines for file in files)
    return max(MIN_REVIEW_MINUTES, math.ceil(total_lines / LINES_PER_REVIEW_MINUTE))


class Cluster(BaseModel):
    """A file-granular sub-unit of one change, orderable like a PR."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    type: ClusterType = "mixed"
    files: list[FileChange] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)
    risk: ClusterRisk = "low"
    estimated_review_minutes: int = Field(default=MIN_REVIEW_MINUTES, ge=0)
    semantic_labels: list[str] = Field(default_factory=list)
    affected_modules: list[str] = Field(default_factory=list)

    @property
    def total_lines(self) -> int:
        return sum(file.total_lines for file in self.files)


class DecompositionRisk(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: RiskKind
    severity: ClusterRisk
    description: str
    affected_clusters: list[str] = Field(default_factory=list)
    mitigation: str = ""


class DecompositionAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    strategy: Strategy
    requested_strategy: Strategy
    fallback_used: bool = False
    clusters: list[Cluster] = Field(default_factory=list)
    unclustered_files: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
    merge_order: list[str] = Field(default_factory=list)
    risks: list[DecompositionRisk] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class SplitDraft(BaseModel):
    """Proposed pull request for one cluster; nothing is created on GitHub."""

    model_config = ConfigDict(extra="forbid")

    id: str
    parent_number: int = 0
    cluster_id: str
    cluster_name: str
    branch: str
    title: str
    body: str
    files: list[FileChange] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class MergeQueueItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    split_id: str
    order: int = Field(ge=1)
    status: Literal["ready", "blocked"] = "ready"
    blocked_by: list[str] = Field(default_factory=list)


class SplitPlan(BaseModel):
    model_config = ConfigDict(extra="forbid")

    drafts: list[SplitDraft] = Field(default_factory=list)
    merge_queue: list[MergeQueueItem] = Field(default_factory=list)


class DecompositionReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    change_id: str
    strategy: Strategy
    fallback_used: bool = False
    clusters: list[Cluster] = Field(default_factory=list)
    merge_order: list[str] = Field(default_factory=list)
    risks: list[DecompositionRisk] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    unclustered_files: list[str] = Field(default_factory=list)
    cycles: list[list[str]] = Field(default_factory=list)
    split_plan: SplitPlan = Field(default_factory=SplitPlan)
