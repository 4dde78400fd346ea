"""LLM-backed clustering with a structural fallback."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from prgraph.control_plane.decomposition.strategies import clusters_from_model_output
from prgraph.control_plane.errors import MalformedUpstreamResponseError, UpstreamUnavailableError
from prgraph.control_plane.models.decomposition_contracts import Cluster, FileChange
from prgraph.execution_plane.llm.capabilities import PR_DECOMPOSITION
from prgraph.execution_plane.llm.providers import LLMProvider
from prgraph.execution_plane.llm.service import run_capability

logger = logging.getLogger(__name__)


def semantic_clusters(
    files: Sequence[FileChange],
    provider: LLMProvider | None,
    *,
    context: dict[str, Any] | None = None,
    timeout_s: float = 30.0,
) -> list[Cluster] | None:
    """Ask the completion service for clusters.

    Returns None when the service is missing, fails, or answers with output
    that does not survive validation; callers then fall back to a
    structural strategy.
    """

    if provider is None:
        logger.warning("No completion provider configured; semantic decomposition unavailable")
        return None

    details = context or {}
    files_summary = "\n".join(
        f"- {file.path} ({file.status}, +{file.additions}/-{file.deletions})" for file in files
    )
    try:
        result = run_capability(
            PR_DECOMPOSITION,
            input_payload={"files": [file.model_dump(mode="json") for file in files]},
            prompt_values={
                "title": details.get("title") or "Untitled",
                "body": details.get("body") or "No description",
                "branch": details.get("branch") or "unknown",
                "file_count": len(files),
                "files_summary": files_summary,
            },
            provider=provider,
            timeout_s=timeout_s,
        )
    except (UpstreamUnavailableError, MalformedUpstreamResponseError) as exc:
        logger.warning(
            "Semantic decomposition failed (%s); falling back to directory strategy",
            exc.reason_code,
        )
        return None

    if not result.ok:
        logger.warning(
            "Semantic decomposition output rejected (%s); falling back to directory strategy",
            ", ".join(f"{row['code']}@{row['path']}" for row in result.errors[:3]),
        )
        return None

    clusters = clusters_from_model_output(result.output, files)
    if not clusters:
        logger.warning("Semantic decomposition produced no usable clusters; falling back")
        return None
    return clusters
