"""Tagged request variants accepted by the graph service dispatcher."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from prgraph.control_plane.models.decomposition_contracts import Strategy


class BuildGraphRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["build_graph"] = "build_graph"
    repository_id: str = Field(min_length=3)


class MergeOrderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["merge_order"] = "merge_order"
    repository_id: str = Field(min_length=3)


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["analyze"] = "analyze"
    change_id: str = Field(min_length=1)


class MergeCheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["merge_check"] = "merge_check"
    change_id: str = Field(min_length=1)


class SimulateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["simulate"] = "simulate"
    change_id: str = Field(min_length=1)


class DecomposeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["decompose"] = "decompose"
    change_id: str = Field(min_length=1)
    strategy: Strategy | None = None


GraphRequest = Annotated[
    Union[
        BuildGraphRequest,
        MergeOrderRequest,
        AnalyzeRequest,
        MergeCheckRequest,
        SimulateRequest,
        DecomposeRequest,
    ],
    Field(discriminator="kind"),
]

_REQUEST_ADAPTER: TypeAdapter[Any] = TypeAdapter(GraphRequest)


def parse_graph_request(payload: dict[str, Any]) -> Any:
    """Validate a raw payload into its typed request variant."""

    return _REQUEST_ADAPTER.validate_python(payload)
