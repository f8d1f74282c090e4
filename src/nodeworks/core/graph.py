"""In-memory workflow graph: the node set, the connection set and their invariants.

Invariants enforced on every mutation:

1. An input port accepts at most one incoming connection. Connecting into an
   occupied input replaces the existing connection.
2. A connection is valid only when the port data types are compatible.
3. Self-loops are rejected when connecting. Snapshots that contain one still
   load; the scheduler leaves such nodes out of the order.
4. Connections referencing a removed node or port are pruned immediately, so
   the connection set is always a subset of existing port pairs.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .errors import WiringError
from .nodes import Node, NodeKind, NodeStatus
from .ports import Port, PortDirection, compatible
from .registry import NodeRegistry, new_node_id, node_registry

logger = logging.getLogger(__name__)


def new_connection_id() -> str:
    return f"conn-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Connection:
    """A directed edge from one node's output port to another node's input port."""

    id: str
    from_node_id: str
    from_port_id: str
    to_node_id: str
    to_port_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "from_node_id": self.from_node_id,
            "from_port_id": self.from_port_id,
            "to_node_id": self.to_node_id,
            "to_port_id": self.to_port_id,
        }


class WorkflowGraph:
    """Holds the nodes and connections of one workflow.

    Nodes keep their insertion order; the scheduler uses it to break ties
    between nodes that become ready at the same time.
    """

    def __init__(self, registry: NodeRegistry | None = None) -> None:
        self.registry = registry or node_registry
        self._nodes: dict[str, Node] = {}
        self._connections: list[Connection] = []

    # -- nodes -------------------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def connections(self) -> tuple[Connection, ...]:
        return tuple(self._connections)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def add_node(self, node: Node) -> Node:
        if node.id in self._nodes:
            raise ValueError(f"Node '{node.id}' already exists")
        port_ids = [port.id for port in node.inputs + node.outputs]
        if len(port_ids) != len(set(port_ids)):
            raise ValueError(f"Node '{node.id}' has duplicate port ids")
        self._nodes[node.id] = node
        return node

    def create_node(
        self,
        kind: NodeKind | str,
        position: tuple[float, float] = (0.0, 0.0),
        node_id: str | None = None,
    ) -> Node:
        return self.add_node(self.registry.create_node(kind, position, node_id=node_id))

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found")
        return node

    def remove_node(self, node_id: str) -> None:
        self.remove_nodes([node_id])

    def remove_nodes(self, node_ids: Iterable[str]) -> None:
        for node_id in node_ids:
            self._nodes.pop(node_id, None)
        self.prune_connections()

    def update_node_data(self, node_id: str, patch: Mapping[str, Any]) -> None:
        """Shallow-merge ``patch`` into a node's data.

        The reserved ``status`` key sets :attr:`Node.status` instead of being
        stored in ``data``. Updates for unknown nodes are ignored, since a
        node may be deleted while a run is publishing results.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return
        patch = dict(patch)
        if "status" in patch:
            node.status = NodeStatus(patch.pop("status"))
        node.data.update(patch)

    def replace_input_ports(self, node_id: str, ports: Iterable[Port]) -> None:
        """Replace a node's entire input port list and prune orphaned connections."""
        node = self.require_node(node_id)
        ports = list(ports)
        if any(port.direction is not PortDirection.INPUT for port in ports):
            raise WiringError("Replacement ports must all be inputs")
        port_ids = [port.id for port in ports + node.outputs]
        if len(port_ids) != len(set(port_ids)):
            raise WiringError(f"Duplicate port ids on node '{node_id}'")
        node.inputs = ports
        self.prune_connections()

    def set_mode(self, node_id: str, mode: str) -> None:
        """Switch a moded node (the image generator) and swap in its input ports."""
        node = self.require_node(node_id)
        template = self.registry.get_template(node.kind)
        if template.mode_inputs is None:
            raise WiringError(f"{node.kind.value} nodes have no modes")
        try:
            ports = template.input_ports(mode)
        except ValueError as e:
            raise WiringError(str(e)) from e
        self.replace_input_ports(node_id, ports)
        node.data["mode"] = mode
        logger.debug(f"Node {node_id} switched to mode '{mode}'")

    def duplicate_node(
        self,
        node_id: str,
        offset: tuple[float, float] = (30.0, 30.0),
        include_cache: bool = False,
    ) -> Node:
        """Clone a node (without connections) next to the original.

        The clone gets a deep copy of ``data`` minus the result cache, unless
        ``include_cache`` is set. Status resets to idle.
        """
        source = self.require_node(node_id)
        data = {key: value for key, value in source.data.items() if key != "cache"}
        data = copy.deepcopy(data)
        if "cache" in source.data:
            data["cache"] = copy.deepcopy(source.data["cache"]) if include_cache else {}
        clone = copy.copy(source)
        clone.id = new_node_id()
        clone.position = (source.position[0] + offset[0], source.position[1] + offset[1])
        clone.inputs = list(source.inputs)
        clone.outputs = list(source.outputs)
        clone.data = data
        clone.status = NodeStatus.IDLE
        return self.add_node(clone)

    # -- connections -------------------------------------------------------

    def can_connect(
        self,
        from_node_id: str,
        from_port_id: str,
        to_node_id: str,
        to_port_id: str,
    ) -> tuple[bool, str | None]:
        if from_node_id == to_node_id:
            return False, "Cannot connect a node to itself."

        source_node = self._nodes.get(from_node_id)
        target_node = self._nodes.get(to_node_id)
        if source_node is None or target_node is None:
            return False, "One of the nodes does not exist."

        source = source_node.get_port(from_port_id)
        target = target_node.get_port(to_port_id)
        if source is None or target is None:
            return False, "One of the ports does not exist."

        if source.direction is not PortDirection.OUTPUT:
            return False, "Source port must be an output."
        if target.direction is not PortDirection.INPUT:
            return False, "Target port must be an input."

        if not compatible(source.data_type, target.data_type):
            return (
                False,
                f"Incompatible port data types: {source.data_type.value} -> "
                f"{target.data_type.value}.",
            )

        return True, None

    def connect(
        self,
        from_node_id: str,
        from_port_id: str,
        to_node_id: str,
        to_port_id: str,
        connection_id: str | None = None,
    ) -> Connection:
        """Create a connection, replacing any existing one into the same input.

        Raises
        ------
        WiringError
            If the connection is invalid; the graph is left unchanged
        """
        ok, reason = self.can_connect(from_node_id, from_port_id, to_node_id, to_port_id)
        if not ok:
            raise WiringError(reason)

        connection = Connection(
            id=connection_id or new_connection_id(),
            from_node_id=from_node_id,
            from_port_id=from_port_id,
            to_node_id=to_node_id,
            to_port_id=to_port_id,
        )
        self._connections = [
            existing
            for existing in self._connections
            if not (existing.to_node_id == to_node_id and existing.to_port_id == to_port_id)
        ]
        self._connections.append(connection)
        return connection

    def add_connection(self, connection: Connection) -> None:
        """Insert a connection without validation (snapshot loading).

        Call :meth:`prune_connections` afterwards to restore invariant 4.
        """
        self._connections.append(connection)

    def disconnect(self, connection_id: str) -> None:
        self._connections = [c for c in self._connections if c.id != connection_id]

    def get_connection(self, connection_id: str) -> Connection | None:
        return next((c for c in self._connections if c.id == connection_id), None)

    def incoming(self, node_id: str) -> tuple[Connection, ...]:
        return tuple(c for c in self._connections if c.to_node_id == node_id)

    def outgoing(self, node_id: str) -> tuple[Connection, ...]:
        return tuple(c for c in self._connections if c.from_node_id == node_id)

    def validate_connections(self) -> None:
        """Re-check every connection against invariants 1 to 3.

        Connections inserted with :meth:`add_connection` bypass validation;
        call this before executing a graph received from outside.

        Raises
        ------
        WiringError
            Naming the first offending connection
        """
        occupied: set[tuple[str, str]] = set()
        for connection in self._connections:
            ok, reason = self.can_connect(
                connection.from_node_id,
                connection.from_port_id,
                connection.to_node_id,
                connection.to_port_id,
            )
            if not ok:
                raise WiringError(f"Connection '{connection.id}': {reason}")
            target = (connection.to_node_id, connection.to_port_id)
            if target in occupied:
                raise WiringError(
                    f"Connection '{connection.id}': input '{connection.to_port_id}' on node "
                    f"'{connection.to_node_id}' already has a connection."
                )
            occupied.add(target)

    def prune_connections(self) -> None:
        """Drop connections whose endpoints no longer exist."""
        kept = []
        for connection in self._connections:
            source = self._nodes.get(connection.from_node_id)
            target = self._nodes.get(connection.to_node_id)
            if source is None or target is None:
                continue
            if source.output_port(connection.from_port_id) is None:
                continue
            if target.input_port(connection.to_port_id) is None:
                continue
            kept.append(connection)

        removed = len(self._connections) - len(kept)
        if removed:
            logger.debug(f"Pruned {removed} dangling connection(s)")
        self._connections = kept

    # -- editing helpers ---------------------------------------------------

    def insert_node(
        self,
        kind: NodeKind | str,
        position: tuple[float, float],
        from_node_id: str,
        from_port_id: str,
    ) -> Node:
        """Create a node at the open end of a dangling connection.

        When the dangling end is an output, the new node's first compatible
        input is wired to it; when it is an input, the new node's first
        compatible output feeds it. If no port is compatible the node is
        still added, unconnected.
        """
        origin = self.require_node(from_node_id)
        origin_port = origin.get_port(from_port_id)
        if origin_port is None:
            raise WiringError(f"Port '{from_port_id}' does not exist on node '{from_node_id}'")

        node = self.create_node(kind, position)
        if origin_port.direction is PortDirection.OUTPUT:
            port = next(
                (p for p in node.inputs if compatible(origin_port.data_type, p.data_type)),
                None,
            )
            if port is not None:
                self.connect(from_node_id, from_port_id, node.id, port.id)
        else:
            port = next(
                (p for p in node.outputs if compatible(p.data_type, origin_port.data_type)),
                None,
            )
            if port is not None:
                self.connect(node.id, port.id, from_node_id, from_port_id)
        return node

    def splice_node(
        self,
        connection_id: str,
        kind: NodeKind | str,
        position: tuple[float, float],
    ) -> Node:
        """Insert a new node in the middle of an existing connection.

        Both new edges are validated before anything changes, so a kind that
        cannot sit on this edge raises :class:`WiringError` and leaves the
        graph untouched.
        """
        connection = self.get_connection(connection_id)
        if connection is None:
            raise WiringError(f"Connection '{connection_id}' does not exist")

        source_port = self.require_node(connection.from_node_id).output_port(
            connection.from_port_id
        )
        target_port = self.require_node(connection.to_node_id).input_port(connection.to_port_id)

        candidate = self.registry.create_node(kind, position)
        new_input = next(
            (p for p in candidate.inputs if compatible(source_port.data_type, p.data_type)),
            None,
        )
        new_output = next(
            (p for p in candidate.outputs if compatible(p.data_type, target_port.data_type)),
            None,
        )
        if new_input is None or new_output is None:
            raise WiringError(
                f"{candidate.kind.value} cannot be inserted between "
                f"{source_port.data_type.value} and {target_port.data_type.value} ports."
            )

        self.add_node(candidate)
        self.disconnect(connection_id)
        self.connect(connection.from_node_id, connection.from_port_id, candidate.id, new_input.id)
        self.connect(candidate.id, new_output.id, connection.to_node_id, connection.to_port_id)
        return candidate
