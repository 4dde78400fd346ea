"""Provider interface and normalized request/response contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class LLMRequest:
    """Normalized completion request independent of vendor-specific SDKs."""

    capability_id: str
    system_prompt: str
    prompt: str
    input_payload: dict[str, Any] = field(default_factory=dict)
    timeout_s: float = 30.0
    temperature: float = 0.3
    max_tokens: int = 3000


@dataclass(frozen=True)
class LLMResponse:
    """Raw completion text plus provider bookkeeping."""

    raw_text: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)


class LLMProvider(Protocol):
    """Text-completion service used by semantic decomposition."""

    name: str

    def run(self, request: LLMRequest) -> LLMResponse:
        """Execute a request, raising UpstreamUnavailableError on transport failure."""
