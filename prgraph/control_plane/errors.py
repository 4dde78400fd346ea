"""Error taxonomy shared by the graph engine and its orchestration layer."""

from __future__ import annotations

from typing import Any


class PRGraphError(RuntimeError):
    """Base error carrying a stable reason code for callers and the CLI."""

    def __init__(self, message: str, reason_code: str) -> None:
        super().__init__(message)
        self.reason_code = reason_code

    def as_dict(self) -> dict[str, Any]:
        return {"error": str(self), "reason_code": self.reason_code}


class NotFoundError(PRGraphError):
    def __init__(self, resource: str, identifier: str = "") -> None:
        message = f"{resource} '{identifier}' not found" if identifier else f"{resource} not found"
        super().__init__(message, reason_code="not_found")
        self.resource = resource
        self.identifier = identifier

    def as_dict(self) -> dict[str, Any]:
        payload = super().as_dict()
        payload["resource"] = self.resource
        payload["identifier"] = self.identifier
        return payload


class UpstreamUnavailableError(PRGraphError):
    """Raised when GitHub or the completion service fails or times out."""

    def __init__(
        self,
        message: str,
        reason_code: str = "upstream_unavailable",
        retry_after_s: float | None = None,
    ) -> None:
        super().__init__(message, reason_code=reason_code)
        self.retry_after_s = retry_after_s


class MalformedUpstreamResponseError(PRGraphError):
    """Raised when an upstream payload cannot be parsed into the expected shape."""

    def __init__(self, capability_id: str, *, errors: list[dict[str, str]]) -> None:
        super().__init__(
            f"capability_output_validation_failed:{capability_id}",
            reason_code="malformed_upstream_response",
        )
        self.capability_id = capability_id
        self.errors = errors

    def as_dict(self) -> dict[str, Any]:
        payload = super().as_dict()
        payload["capability_id"] = self.capability_id
        payload["validation"] = {"errors": self.errors}
        return payload


class UnknownNodeError(ValueError):
    """An edge or lookup referenced a node id that is not part of the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"unknown_node:{node_id}")
        self.node_id = node_id
