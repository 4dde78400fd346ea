"""Route typed graph requests to the matching service operation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from prgraph.control_plane.models.request_contracts import (
    AnalyzeRequest,
    BuildGraphRequest,
    DecomposeRequest,
    MergeCheckRequest,
    MergeOrderRequest,
    SimulateRequest,
    parse_graph_request,
)
from prgraph.control_plane.orchestration.graph_service import GraphService


def dispatch(service: GraphService, request: BaseModel) -> BaseModel:
    if isinstance(request, BuildGraphRequest):
        return service.build_graph(request.repository_id)
    if isinstance(request, MergeOrderRequest):
        return service.get_merge_order(request.repository_id)
    if isinstance(request, AnalyzeRequest):
        return service.get_impact_analysis(request.change_id)
    if isinstance(request, MergeCheckRequest):
        return service.check_merge_conflicts(request.change_id)
    if isinstance(request, SimulateRequest):
        return service.simulate_merge(request.change_id)
    if isinstance(request, DecomposeRequest):
        return service.decompose(request.change_id, strategy=request.strategy)
    raise TypeError(f"unsupported_request:{type(request).__name__}")


def dispatch_payload(service: GraphService, payload: dict[str, Any]) -> dict[str, Any]:
    """Validate a raw ``{"kind": ...}`` payload, run it, and return JSON-ready output."""

    request = parse_graph_request(payload)
    return dispatch(service, request).model_dump(mode="json")
