"""Graph snapshot persistence.

A snapshot is a plain JSON-compatible tree of nodes, ports and connections,
validated on load with the :class:`GraphSnapshot` pydantic model. Large
binary payloads (embedded images and result caches) are stripped before
saving and must be re-supplied after a reload:

- ``base64_image`` / ``mime_type``: uploaded images
- ``base64_bg`` / ``mime_type_bg``: annotation backgrounds
- ``base64_image_output`` / ``mime_type_output``: produced images
- ``cache``: generative result caches

Loading prunes connections that reference missing nodes or ports, so a
hand-edited or partially written snapshot still yields a valid graph.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .graph import Connection, WorkflowGraph
from .nodes import Node, NodeKind, NodeStatus
from .payloads import GenerationResult, ImagePayload, TextPayload
from .ports import DataType, Port, PortDirection
from .registry import NodeRegistry

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

BINARY_DATA_KEYS: frozenset[str] = frozenset(
    {
        "base64_image",
        "mime_type",
        "base64_bg",
        "mime_type_bg",
        "base64_image_output",
        "mime_type_output",
        "cache",
    }
)


class PortModel(BaseModel):
    id: str
    direction: PortDirection
    data_type: DataType = DataType.ANY
    label: str | None = None


class NodeModel(BaseModel):
    id: str
    kind: NodeKind
    title: str
    position: tuple[float, float] = (0.0, 0.0)
    inputs: list[PortModel] = Field(default_factory=list)
    outputs: list[PortModel] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    status: NodeStatus = NodeStatus.IDLE
    width: int = 256
    height: int | None = None
    min_width: int = 256
    min_height: int | None = None
    resizable: bool = True


class ConnectionModel(BaseModel):
    id: str
    from_node_id: str
    from_port_id: str
    to_node_id: str
    to_port_id: str


class GraphSnapshot(BaseModel):
    """Serialized form of a :class:`WorkflowGraph`."""

    version: int = SNAPSHOT_VERSION
    nodes: list[NodeModel] = Field(default_factory=list)
    connections: list[ConnectionModel] = Field(default_factory=list)
    view_transform: dict[str, float] | None = None


def to_plain(value: Any) -> Any:
    """Convert payload objects inside node data into JSON-compatible values."""
    if isinstance(value, GenerationResult):
        return {**asdict(value.image), "text": value.text}
    if isinstance(value, (ImagePayload, TextPayload)):
        return asdict(value)
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def _node_to_model(node: Node, strip_binary: bool) -> NodeModel:
    data = {
        key: value
        for key, value in node.data.items()
        if not (strip_binary and key in BINARY_DATA_KEYS)
    }
    return NodeModel(
        id=node.id,
        kind=node.kind,
        title=node.title,
        position=node.position,
        inputs=[PortModel(**port.to_dict()) for port in node.inputs],
        outputs=[PortModel(**port.to_dict()) for port in node.outputs],
        data=to_plain(data),
        status=node.status,
        width=node.width,
        height=node.height,
        min_width=node.min_width,
        min_height=node.min_height,
        resizable=node.resizable,
    )


def graph_to_snapshot(
    graph: WorkflowGraph,
    strip_binary: bool = True,
    view_transform: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Serialize a graph to a plain tree.

    Args:
        graph: Graph to serialize
        strip_binary: Drop embedded images and caches (see module docstring)
        view_transform: Optional canvas pan/zoom to store alongside

    Returns:
        dict: JSON-compatible snapshot
    """
    snapshot = GraphSnapshot(
        nodes=[_node_to_model(node, strip_binary) for node in graph.nodes],
        connections=[ConnectionModel(**connection.to_dict()) for connection in graph.connections],
        view_transform=view_transform,
    )
    return snapshot.model_dump(mode="json")


def graph_from_snapshot(
    snapshot: dict[str, Any] | GraphSnapshot,
    registry: NodeRegistry | None = None,
) -> WorkflowGraph:
    """Rebuild a graph from a snapshot tree.

    Raises:
        pydantic.ValidationError: If the tree does not match :class:`GraphSnapshot`
        ValueError: If two nodes share an id
    """
    if not isinstance(snapshot, GraphSnapshot):
        snapshot = GraphSnapshot.model_validate(snapshot)

    graph = WorkflowGraph(registry)
    for model in snapshot.nodes:
        graph.add_node(
            Node(
                id=model.id,
                kind=model.kind,
                title=model.title,
                position=model.position,
                inputs=[Port(**port.model_dump()) for port in model.inputs],
                outputs=[Port(**port.model_dump()) for port in model.outputs],
                data=dict(model.data),
                status=model.status,
                width=model.width,
                height=model.height,
                min_width=model.min_width,
                min_height=model.min_height,
                resizable=model.resizable,
            )
        )
    for model in snapshot.connections:
        graph.add_connection(Connection(**model.model_dump()))

    before = len(graph.connections)
    graph.prune_connections()
    if len(graph.connections) < before:
        logger.warning(f"Dropped {before - len(graph.connections)} dangling connection(s) on load")
    return graph


def save_snapshot(path: Path, graph: WorkflowGraph, strip_binary: bool = True) -> None:
    """Write a graph snapshot to a JSON file (2-space indented)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(graph_to_snapshot(graph, strip_binary=strip_binary), handle, indent=2)
    logger.info(f"Saved workflow snapshot to {path}")


def load_snapshot(path: Path, registry: NodeRegistry | None = None) -> WorkflowGraph:
    with open(path, encoding="utf-8") as handle:
        raw = json.load(handle)
    return graph_from_snapshot(raw, registry)
