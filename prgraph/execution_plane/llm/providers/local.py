"""Deterministic local provider adapter used as safe default."""

from __future__ import annotations

import json
from typing import Any

from prgraph.execution_plane.llm.capabilities import PR_DECOMPOSITION
from prgraph.execution_plane.llm.providers.base import LLMProvider, LLMRequest, LLMResponse


_TEST_MARKERS = ("test", "spec")
_DOC_MARKERS = ("doc",)
_CONFIG_MARKERS = ("config", ".github", "deploy")


class LocalLLMProvider(LLMProvider):
    """Answers known capabilities with rule-based output in the model's JSON shape."""

    name = "local"

    def run(self, request: LLMRequest) -> LLMResponse:
        if request.capability_id == PR_DECOMPOSITION:
            output = self._run_pr_decomposition(request)
        else:
            raise ValueError(f"unsupported_local_capability:{request.capability_id}")
        return LLMResponse(
            raw_text=json.dumps(output, sort_keys=True),
            model="deterministic-rule-engine",
            provider=self.name,
            usage={"input_tokens": 0, "output_tokens": 0, "total_tokens": 0},
        )

    def _run_pr_decomposition(self, request: LLMRequest) -> dict[str, Any]:
        groups: dict[str, list[str]] = {}
        for row in request.input_payload.get("files", []):
            path = str(row.get("path", "")).strip() if isinstance(row, dict) else ""
            if not path:
                continue
            module = path.rpartition("/")[0] or "root"
            groups.setdefault(module, []).append(path)

        clusters: list[dict[str, Any]] = []
        code_names: list[str] = []
        for module in sorted(groups):
            cluster_type = _classify(module)
            name = f"{module} changes"
            clusters.append(
                {
                    "name": name,
                    "description": f"Changes under {module}",
                    "type": cluster_type,
                    "files": sorted(groups[module]),
                    "semanticLabels": [segment for segment in module.split("/") if segment],
                    "risk": "low" if cluster_type in {"docs", "test"} else "medium",
                    "dependencies": [],
                }
            )
            if cluster_type not in {"docs", "test"}:
                code_names.append(name)

        for cluster in clusters:
            if cluster["type"] == "test":
                cluster["dependencies"] = list(code_names)

        return {
            "clusters": clusters,
            "mergeOrder": [cluster["name"] for cluster in clusters],
            "risks": [],
            "recommendations": [],
        }


def _classify(module: str) -> str:
    lowered = module.lower()
    if any(marker in lowered for marker in _TEST_MARKERS):
        return "test"
    if any(marker in lowered for marker in _DOC_MARKERS):
        return "docs"
    if any(marker in lowered for marker in _CONFIG_MARKERS):
        return "config"
    return "feature"
