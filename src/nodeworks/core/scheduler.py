"""Execution ordering for workflow graphs (Kahn's algorithm)."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Sequence

from .errors import CycleError
from .graph import Connection
from .nodes import Node

logger = logging.getLogger(__name__)


def topological_order(nodes: Sequence[Node], connections: Iterable[Connection]) -> list[Node]:
    """Order nodes so that every node comes after all of its upstream nodes.

    Ties between nodes that become ready together are broken first-in
    first-out, seeded in the order of ``nodes``, so the result is
    deterministic.

    Members of a cycle never reach in-degree zero and are left out of the
    result, together with everything downstream of them. Connections whose
    endpoints are not in ``nodes`` are ignored.

    Args:
        nodes: Nodes in their canonical (insertion) order
        connections: Edges between those nodes

    Returns:
        list[Node]: Nodes in execution order
    """
    by_id = {node.id: node for node in nodes}
    in_degree = {node.id: 0 for node in nodes}
    successors: dict[str, list[str]] = {node.id: [] for node in nodes}

    for connection in connections:
        if connection.from_node_id not in by_id or connection.to_node_id not in by_id:
            continue
        in_degree[connection.to_node_id] += 1
        successors[connection.from_node_id].append(connection.to_node_id)

    queue = deque(node for node in nodes if in_degree[node.id] == 0)
    order: list[Node] = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for successor_id in successors[node.id]:
            in_degree[successor_id] -= 1
            if in_degree[successor_id] == 0:
                queue.append(by_id[successor_id])

    return order


def unscheduled_nodes(nodes: Sequence[Node], order: Sequence[Node]) -> list[str]:
    """Return ids of nodes missing from ``order``, in node order."""
    scheduled = {node.id for node in order}
    return [node.id for node in nodes if node.id not in scheduled]


def execution_order(nodes: Sequence[Node], connections: Iterable[Connection]) -> list[Node]:
    """Strict variant of :func:`topological_order`.

    Raises:
        CycleError: If any node could not be scheduled
    """
    order = topological_order(nodes, connections)
    if len(order) < len(nodes):
        excluded = unscheduled_nodes(nodes, order)
        logger.error(f"Cycle detected; unschedulable nodes: {excluded}")
        raise CycleError(excluded)
    return order
