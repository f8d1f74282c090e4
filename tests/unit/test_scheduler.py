"""Tests for nodeworks.core.scheduler - Kahn ordering and cycle handling."""

from __future__ import annotations

import pytest

from nodeworks.core.errors import CycleError
from nodeworks.core.graph import Connection
from nodeworks.core.nodes import NodeKind
from nodeworks.core.scheduler import execution_order, topological_order, unscheduled_nodes


def _edge(source: str, target: str) -> Connection:
    return Connection(f"{source}->{target}", source, "image-output", target, "image-input")


@pytest.fixture
def chain(graph):
    for node_id in ("a", "b", "c", "d"):
        graph.create_node(NodeKind.CROP_IMAGE, node_id=node_id)
    return graph


class TestTopologicalOrder:
    """topological_order() on acyclic and cyclic graphs."""

    def test_every_edge_respected(self, chain):
        """Each node appears after all of its upstream nodes."""
        edges = [_edge("d", "b"), _edge("b", "a"), _edge("c", "a")]
        order = [node.id for node in topological_order(chain.nodes, edges)]
        for edge in edges:
            assert order.index(edge.from_node_id) < order.index(edge.to_node_id)

    def test_ties_are_first_in_first_out(self, chain):
        """Independent nodes keep insertion order."""
        order = topological_order(chain.nodes, [])
        assert [node.id for node in order] == ["a", "b", "c", "d"]

    def test_fan_out_order_follows_edge_order(self, chain):
        """Successors released by one node are queued in edge order."""
        edges = [_edge("a", "d"), _edge("a", "b"), _edge("a", "c")]
        order = topological_order(chain.nodes, edges)
        assert [node.id for node in order] == ["a", "d", "b", "c"]

    def test_cycle_members_excluded(self, graph):
        """A -> B -> A plus isolated C orders only C."""
        for node_id in ("a", "b", "c"):
            graph.create_node(NodeKind.CROP_IMAGE, node_id=node_id)
        edges = [_edge("a", "b"), _edge("b", "a")]
        order = topological_order(graph.nodes, edges)
        assert [node.id for node in order] == ["c"]
        assert unscheduled_nodes(graph.nodes, order) == ["a", "b"]

    def test_downstream_of_cycle_excluded(self, chain):
        """Nodes fed by a cycle never become ready either."""
        edges = [_edge("a", "b"), _edge("b", "a"), _edge("b", "c")]
        order = topological_order(chain.nodes, edges)
        assert [node.id for node in order] == ["d"]

    def test_self_loop_excluded(self, chain):
        """A self-loop from a loaded snapshot keeps that node out of the order."""
        order = topological_order(chain.nodes, [_edge("b", "b")])
        assert "b" not in [node.id for node in order]

    def test_unknown_endpoints_ignored(self, chain):
        """Edges naming nodes outside the set do not affect the order."""
        order = topological_order(chain.nodes, [_edge("ghost", "a"), _edge("b", "ghost")])
        assert [node.id for node in order] == ["a", "b", "c", "d"]


class TestExecutionOrder:
    """The strict variant."""

    def test_acyclic_returns_order(self, chain):
        """Without cycles it behaves like topological_order()."""
        order = execution_order(chain.nodes, [_edge("c", "a")])
        assert [node.id for node in order] == ["b", "c", "d", "a"]

    def test_cycle_raises_with_ids(self, chain):
        """CycleError lists every unschedulable node."""
        with pytest.raises(CycleError) as excinfo:
            execution_order(chain.nodes, [_edge("a", "b"), _edge("b", "a"), _edge("b", "c")])
        assert excinfo.value.node_ids == ["a", "b", "c"]
        assert "a, b, c" in str(excinfo.value)
