"""Capability runner with a validate-or-fallback boundary for model output."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from typing import Any

from prgraph.control_plane.errors import MalformedUpstreamResponseError
from prgraph.execution_plane.llm.providers import (
    HTTPCompletionProvider,
    LLMProvider,
    LLMRequest,
    LocalLLMProvider,
)
from prgraph.execution_plane.llm.registry import get_capability_definition


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass(frozen=True)
class CapabilityResult:
    """Either a schema-valid output object or the errors explaining why not."""

    capability_id: str
    output: dict[str, Any] = field(default_factory=dict)
    errors: list[dict[str, str]] = field(default_factory=list)
    provider: str = ""
    model: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> dict[str, Any]:
        if self.errors:
            raise MalformedUpstreamResponseError(self.capability_id, errors=self.errors)
        return self.output


def strip_code_fences(raw_text: str) -> str:
    text = raw_text.strip()
    if text.startswith("{"):
        return text
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _parse_output_json_only(raw_text: str) -> tuple[dict[str, Any], list[dict[str, str]]]:
    if not raw_text.strip():
        return {}, [{"path": "$", "code": "JSON_EMPTY", "message": "model output is empty"}]
    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        return {}, [
            {
                "path": "$",
                "code": "JSON_PARSE",
                "message": f"model output is not valid JSON: {exc.msg}",
            }
        ]
    if not isinstance(parsed, dict):
        return {}, [
            {
                "path": "$",
                "code": "JSON_TYPE",
                "message": "model output must be a JSON object",
            }
        ]
    return parsed, []


def _validate_json_schema(payload: Any, schema: dict[str, Any], *, path: str = "$") -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []

    schema_type = schema.get("type")
    if schema_type == "object":
        if not isinstance(payload, dict):
            return [{"path": path, "code": "SCHEMA_TYPE", "message": "value must be an object"}]

        for key in sorted(schema.get("required", [])):
            if key not in payload:
                errors.append(
                    {
                        "path": f"{path}.{key}",
                        "code": "SCHEMA_REQUIRED",
                        "message": f"'{key}' is a required property",
                    }
                )

        properties = schema.get("properties", {})
        additional_properties = schema.get("additionalProperties", True)
        for key in sorted(payload.keys()):
            key_path = f"{path}.{key}"
            if key in properties:
                errors.extend(_validate_json_schema(payload[key], properties[key], path=key_path))
            elif additional_properties is False:
                errors.append(
                    {
                        "path": key_path,
                        "code": "SCHEMA_ADDITIONAL_PROPERTY",
                        "message": "additional properties are not allowed",
                    }
                )
        return errors

    if schema_type == "array":
        if not isinstance(payload, list):
            return [{"path": path, "code": "SCHEMA_TYPE", "message": "value must be an array"}]
        item_schema = schema.get("items")
        if isinstance(item_schema, dict):
            for index, item in enumerate(payload):
                errors.extend(_validate_json_schema(item, item_schema, path=f"{path}[{index}]"))
        return errors

    if schema_type == "string" and not isinstance(payload, str):
        return [{"path": path, "code": "SCHEMA_TYPE", "message": "value must be a string"}]

    if schema_type == "number" and (
        isinstance(payload, bool) or not isinstance(payload, (int, float))
    ):
        return [{"path": path, "code": "SCHEMA_TYPE", "message": "value must be a number"}]

    enum_values = schema.get("enum")
    if isinstance(enum_values, list) and payload not in enum_values:
        errors.append(
            {
                "path": path,
                "code": "SCHEMA_ENUM",
                "message": f"value must be one of {enum_values}",
            }
        )
    return errors


def parse_capability_output(capability_id: str, raw_text: str) -> CapabilityResult:
    """Strip fences, parse JSON, and check it against the capability schema."""

    definition = get_capability_definition(capability_id)
    parsed, parse_errors = _parse_output_json_only(strip_code_fences(raw_text))
    if parse_errors:
        return CapabilityResult(capability_id=capability_id, errors=parse_errors)
    schema_errors = _validate_json_schema(parsed, definition.output_schema)
    errors = sorted(schema_errors, key=lambda row: (row["code"], row["path"]))
    return CapabilityResult(
        capability_id=capability_id,
        output={} if errors else parsed,
        errors=errors,
    )


def run_capability(
    capability_id: str,
    input_payload: dict[str, Any],
    prompt_values: dict[str, Any],
    provider: LLMProvider,
    *,
    timeout_s: float = 30.0,
) -> CapabilityResult:
    """Execute a named capability through the provider interface.

    Transport failures propagate as UpstreamUnavailableError; malformed output
    comes back as a failed CapabilityResult for the caller to fall back on.
    """

    definition = get_capability_definition(capability_id)
    if definition.guardrails.get("require_files") and not input_payload.get("files"):
        raise ValueError(f"capability_guardrail_failed:{capability_id}:missing_files")

    request = LLMRequest(
        capability_id=capability_id,
        system_prompt=definition.system_prompt.format(**prompt_values),
        prompt=definition.prompt_template.format(**prompt_values),
        input_payload=input_payload,
        timeout_s=timeout_s,
        temperature=definition.temperature,
        max_tokens=definition.max_tokens,
    )
    response = provider.run(request)
    result = parse_capability_output(capability_id, response.raw_text)
    return CapabilityResult(
        capability_id=capability_id,
        output=result.output,
        errors=result.errors,
        provider=response.provider,
        model=response.model,
    )


def build_provider_from_env(env: dict[str, str] | None = None) -> LLMProvider | None:
    env_map = os.environ if env is None else env
    provider_type = (env_map.get("PRGRAPH_LLM_PROVIDER") or "none").strip().lower()
    if provider_type == "none":
        return None
    if provider_type == "local":
        return LocalLLMProvider()
    if provider_type == "http":
        base_url = (env_map.get("PRGRAPH_LLM_BASE_URL") or "").strip()
        if not base_url:
            raise ValueError("PRGRAPH_LLM_BASE_URL is required for the http provider")
        return HTTPCompletionProvider(
            base_url=base_url,
            model=(env_map.get("PRGRAPH_LLM_MODEL") or "gpt-4o-mini").strip(),
            api_key=(env_map.get("PRGRAPH_LLM_API_KEY") or "").strip() or None,
        )
    raise ValueError(f"unknown_provider:{provider_type}")
