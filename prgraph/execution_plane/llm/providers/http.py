"""OpenAI-compatible chat-completions provider over requests."""

from __future__ import annotations

from typing import Any

import requests

from prgraph.control_plane.errors import MalformedUpstreamResponseError, UpstreamUnavailableError
from prgraph.execution_plane.llm.providers.base import LLMProvider, LLMRequest, LLMResponse


class HTTPCompletionProvider(LLMProvider):
    name = "http"

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.session = session or requests.Session()

    def run(self, request: LLMRequest) -> LLMResponse:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body = {
            "model": self.model,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.prompt},
            ],
        }
        try:
            response = self.session.request(
                method="POST",
                url=f"{self.base_url}/chat/completions",
                headers=headers,
                json=body,
                timeout=request.timeout_s,
            )
        except requests.Timeout as exc:
            raise UpstreamUnavailableError(
                f"Completion request timed out after {request.timeout_s}s",
                reason_code="llm_timeout",
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(
                f"Completion service unreachable: {exc}", reason_code="llm_unreachable"
            ) from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise UpstreamUnavailableError(
                f"Completion service returned HTTP {response.status_code}",
                reason_code="llm_unavailable",
                retry_after_s=_retry_after(response.headers or {}),
            )
        if response.status_code >= 400:
            raise UpstreamUnavailableError(
                f"Completion service rejected request with HTTP {response.status_code}",
                reason_code="llm_rejected",
            )

        try:
            payload = response.json() if response.content else {}
        except ValueError as exc:
            raise MalformedUpstreamResponseError(
                request.capability_id,
                errors=[
                    {
                        "path": "$",
                        "code": "RESPONSE_JSON",
                        "message": "completion response is not JSON",
                    }
                ],
            ) from exc
        content = _message_content(payload)
        if content is None:
            raise MalformedUpstreamResponseError(
                request.capability_id,
                errors=[
                    {
                        "path": "$.choices[0].message.content",
                        "code": "RESPONSE_SHAPE",
                        "message": "completion response has no message content",
                    }
                ],
            )
        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        return LLMResponse(
            raw_text=content,
            model=str(payload.get("model") or self.model),
            provider=self.name,
            usage={
                "input_tokens": int(usage.get("prompt_tokens", 0) or 0),
                "output_tokens": int(usage.get("completion_tokens", 0) or 0),
                "total_tokens": int(usage.get("total_tokens", 0) or 0),
            },
        )


def _message_content(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


def _retry_after(headers: Any) -> float | None:
    value = headers.get("Retry-After") if hasattr(headers, "get") else None
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
