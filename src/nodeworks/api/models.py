"""Pydantic request and response models for the Nodeworks API.

These models define the JSON schema for every API endpoint. FastAPI uses
them for request validation, serialisation and OpenAPI documentation.

Models
------
GraphSnapshot
    Request body for ``POST /api/workflows/run`` (re-exported from
    :mod:`nodeworks.core.persistence`).
RunResponse
    Run outcome plus the updated graph.
NodeKindInfo
    One entry of ``GET /api/node-kinds``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from nodeworks.core.nodes import NodeKind
from nodeworks.core.persistence import GraphSnapshot, PortModel
from nodeworks.core.runner import RunStatus

__all__ = [
    "GraphSnapshot",
    "HealthResponse",
    "HistoryResponse",
    "NodeKindInfo",
    "RunResponse",
    "TemplateSummary",
]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    service: str = Field(..., description="Configured generation service name.")
    services: list[str] = Field(default_factory=list, description="Registered services.")


class NodeKindInfo(BaseModel):
    """Description of one node kind, as produced by the node registry.

    Attributes:
        kind: Kind identifier (e.g. ``"PADDING"``).
        title: Default node title.
        category: ``Source``, ``Transform``, ``Generative`` or ``Output``.
        description: One-line description.
        inputs: Input ports for the default mode.
        outputs: Output ports.
        modes: Available modes for moded kinds (empty otherwise).
    """

    kind: NodeKind
    title: str
    category: str
    description: str
    inputs: list[PortModel]
    outputs: list[PortModel]
    modes: list[str] = Field(default_factory=list)


class TemplateSummary(BaseModel):
    id: str
    title: str
    description: str


class RunResponse(BaseModel):
    """Outcome of ``POST /api/workflows/run``.

    Attributes:
        status: ``completed`` or ``failed``.
        executed: Ids of nodes that succeeded, in execution order.
        failed_node_id: Node that halted the run, if any.
        error: Halting error message, if any.
        excluded: Nodes left out of the order by a cycle.
        graph: The graph after the run, with embedded binaries stripped.
            Preview nodes carry their ``image_url``/``text`` display payload.
    """

    status: RunStatus
    executed: list[str] = Field(default_factory=list)
    failed_node_id: str | None = None
    error: str | None = None
    excluded: list[str] = Field(default_factory=list)
    graph: GraphSnapshot


class HistoryResponse(BaseModel):
    images: list[str] = Field(default_factory=list, description="Image URLs, newest first.")
