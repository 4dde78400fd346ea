"""Provider adapters for capability execution."""

from prgraph.execution_plane.llm.providers.base import LLMProvider, LLMRequest, LLMResponse
from prgraph.execution_plane.llm.providers.http import HTTPCompletionProvider
from prgraph.execution_plane.llm.providers.local import LocalLLMProvider

__all__ = [
    "HTTPCompletionProvider",
    "LLMProvider",
    "LLMRequest",
    "LLMResponse",
    "LocalLLMProvider",
]
