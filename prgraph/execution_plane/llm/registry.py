"""Capability registry mapping IDs to prompt templates, schemas, and guardrails."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from prgraph.execution_plane.llm.capabilities import PR_DECOMPOSITION


_SCHEMA_DIR = Path(__file__).resolve().parents[2] / "schema" / "llm"


@dataclass(frozen=True)
class CapabilityDefinition:
    capability_id: str
    system_prompt: str
    prompt_template: str
    output_schema: dict[str, Any]
    guardrails: dict[str, Any]
    temperature: float = 0.3
    max_tokens: int = 3000


def _load_schema(filename: str) -> dict[str, Any]:
    return json.loads((_SCHEMA_DIR / filename).read_text())


CAPABILITY_REGISTRY: dict[str, CapabilityDefinition] = {
    PR_DECOMPOSITION: CapabilityDefinition(
        capability_id=PR_DECOMPOSITION,
        system_prompt=(
            "You are a PR decomposition specialist.\n"
            "PR Title: {title}\n"
            "PR Description: {body}\n"
            "Branch: {branch}\n"
            "Files changed: {file_count}"
        ),
        prompt_template=(
            "Analyze this PR and suggest how to split it into logical, independently "
            "reviewable clusters.\n\n"
            "Files changed:\n{files_summary}\n\n"
            "Guidelines:\n"
            "1. Each cluster should be a cohesive unit (related functionality)\n"
            "2. Minimize dependencies between clusters\n"
            "3. Keep clusters small enough for easy review (ideally <10 files, <300 lines)\n"
            "4. Consider file types (tests with their code, configs together)\n"
            "5. Identify any dependencies between clusters by cluster name\n\n"
            'Respond with a JSON object with keys "clusters" (each with name, description, '
            "type, files, semanticLabels, risk, dependencies), "
            '"mergeOrder", "risks" and "recommendations". '
            "Respond with ONLY the JSON object."
        ),
        output_schema=_load_schema("pr_decomposition.schema.json"),
        guardrails={"read_only": True, "require_files": True},
    ),
}


def get_capability_definition(capability_id: str) -> CapabilityDefinition:
    capability = CAPABILITY_REGISTRY.get(capability_id)
    if capability is None:
        raise ValueError(f"unknown_capability:{capability_id}")
    return capability
