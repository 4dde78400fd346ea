"""Shared runtime settings for graph building and PR decomposition."""

from __future__ import annotations

import os
from dataclasses import dataclass


STRATEGIES = ("directory", "size", "semantic")
ORDER_PRIORITIES = ("risk", "age", "fan_out")


@dataclass(frozen=True)
class GraphSettings:
    """Tunables for relationship detection, ordering, and clustering."""

    min_files_per_cluster: int = 2
    max_lines_per_cluster: int = 500
    semantic_overlap_threshold: float = 0.3
    llm_timeout_s: float = 30.0
    graph_ttl_s: float = 60.0
    fetch_workers: int = 4
    default_strategy: str = "directory"
    order_priority: str = "risk"

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "GraphSettings":
        source = os.environ if env is None else env
        default_strategy = _clean(source.get("PRGRAPH_DEFAULT_STRATEGY")) or "directory"
        if default_strategy not in STRATEGIES:
            raise ValueError(f"unknown_strategy:{default_strategy}")
        order_priority = _clean(source.get("PRGRAPH_ORDER_PRIORITY")) or "risk"
        if order_priority not in ORDER_PRIORITIES:
            raise ValueError(f"unknown_order_priority:{order_priority}")
        return cls(
            min_files_per_cluster=max(1, int(source.get("PRGRAPH_MIN_CLUSTER_FILES", "2"))),
            max_lines_per_cluster=max(1, int(source.get("PRGRAPH_MAX_CLUSTER_LINES", "500"))),
            semantic_overlap_threshold=float(
                source.get("PRGRAPH_SEMANTIC_OVERLAP_THRESHOLD", "0.3")
            ),
            llm_timeout_s=max(1.0, float(source.get("PRGRAPH_LLM_TIMEOUT_S", "30"))),
            graph_ttl_s=max(0.0, float(source.get("PRGRAPH_GRAPH_TTL_S", "60"))),
            fetch_workers=max(1, int(source.get("PRGRAPH_FETCH_WORKERS", "4"))),
            default_strategy=default_strategy,
            order_priority=order_priority,
        )


def get_graph_settings(env: dict[str, str] | None = None) -> GraphSettings:
    """Build graph settings from environment variables."""

    return GraphSettings.from_env(env)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip().lower()
    return stripped or None
