"""Tests for nodeworks.core.graph - the graph store and its wiring invariants.

Tests cover:
- Connection validation (types, directions, self-loops, missing ports).
- The single-inbound-edge invariant.
- Cascade pruning on node removal and port replacement.
- Mode switching, duplication, insertion and splicing helpers.
"""

from __future__ import annotations

import pytest

from nodeworks.core.errors import WiringError
from nodeworks.core.graph import Connection, WorkflowGraph
from nodeworks.core.nodes import NodeKind, NodeStatus
from nodeworks.core.ports import DataType, Port


@pytest.fixture
def edit_graph(graph: WorkflowGraph) -> WorkflowGraph:
    """Loader + prompt feeding a generator in edit mode."""
    graph.create_node(NodeKind.IMAGE_LOADER, node_id="load")
    graph.create_node(NodeKind.PROMPT, node_id="prompt")
    graph.create_node(NodeKind.IMAGE_GENERATOR, node_id="gen")
    graph.set_mode("gen", "edit")
    graph.create_node(NodeKind.PREVIEW, node_id="preview")
    graph.connect("load", "image-output", "gen", "image-input", connection_id="c-image")
    graph.connect("prompt", "prompt-output", "gen", "prompt-input", connection_id="c-prompt")
    graph.connect("gen", "result-output", "preview", "result-input", connection_id="c-result")
    return graph


class TestNodes:
    """Adding, looking up and updating nodes."""

    def test_insertion_order_preserved(self, graph):
        """nodes lists nodes in insertion order."""
        for node_id in ("c", "a", "b"):
            graph.create_node(NodeKind.PROMPT, node_id=node_id)
        assert [node.id for node in graph.nodes] == ["c", "a", "b"]

    def test_duplicate_id_rejected(self, graph):
        """Two nodes cannot share an id."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        with pytest.raises(ValueError):
            graph.create_node(NodeKind.PROMPT, node_id="p")

    def test_require_node_missing(self, graph):
        """require_node() raises KeyError for unknown ids."""
        with pytest.raises(KeyError):
            graph.require_node("nope")

    def test_update_node_data_routes_status(self, graph):
        """The status key sets Node.status and is not stored in data."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        graph.update_node_data("p", {"status": "loading", "text": "hello"})
        node = graph.get_node("p")
        assert node.status is NodeStatus.LOADING
        assert node.data == {"text": "hello"}

    def test_update_unknown_node_ignored(self, graph):
        """Updating a deleted node is a no-op."""
        graph.update_node_data("ghost", {"status": "success"})
        assert len(graph) == 0


class TestConnect:
    """connect() validation."""

    def test_valid_connection(self, edit_graph):
        """A compatible output-to-input edge is stored."""
        assert len(edit_graph.connections) == 3
        assert edit_graph.get_connection("c-image").to_port_id == "image-input"

    def test_incompatible_types_rejected(self, graph):
        """Text cannot connect to an image input, and the graph is unchanged."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        with pytest.raises(WiringError, match="Incompatible"):
            graph.connect("p", "prompt-output", "crop", "image-input")
        assert graph.connections == ()

    def test_any_output_connects_to_text_input(self, graph):
        """The generator's any-typed output can feed a text input."""
        graph.create_node(NodeKind.IMAGE_GENERATOR, node_id="g1")
        graph.create_node(NodeKind.IMAGE_GENERATOR, node_id="g2")
        graph.connect("g1", "result-output", "g2", "prompt-input")
        assert len(graph.connections) == 1

    def test_self_loop_rejected(self, graph):
        """A node cannot be connected to itself."""
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        with pytest.raises(WiringError, match="itself"):
            graph.connect("crop", "image-output", "crop", "image-input")

    def test_wrong_direction_rejected(self, graph):
        """The source must be an output and the target an input."""
        graph.create_node(NodeKind.CROP_IMAGE, node_id="a")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="b")
        with pytest.raises(WiringError, match="output"):
            graph.connect("a", "image-input", "b", "image-input")
        with pytest.raises(WiringError, match="input"):
            graph.connect("a", "image-output", "b", "image-output")

    def test_missing_port_rejected(self, graph):
        """Unknown nodes or ports are rejected."""
        graph.create_node(NodeKind.CROP_IMAGE, node_id="a")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="b")
        with pytest.raises(WiringError):
            graph.connect("a", "nope", "b", "image-input")
        with pytest.raises(WiringError):
            graph.connect("a", "image-output", "zzz", "image-input")

    def test_can_connect_reports_reason(self, graph):
        """can_connect() returns a reason instead of raising."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        ok, reason = graph.can_connect("p", "prompt-output", "crop", "image-input")
        assert ok is False
        assert "text -> image" in reason

    def test_second_connection_replaces_first(self, graph):
        """Connecting into an occupied input replaces the existing edge."""
        graph.create_node(NodeKind.SOLID_COLOR, node_id="red")
        graph.create_node(NodeKind.SOLID_COLOR, node_id="blue")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        first = graph.connect("red", "image-output", "crop", "image-input")
        second = graph.connect("blue", "image-output", "crop", "image-input")
        assert second in graph.connections
        assert first not in graph.connections
        assert len(graph.incoming("crop")) == 1

    def test_disconnect(self, edit_graph):
        """disconnect() removes one edge by id."""
        edit_graph.disconnect("c-prompt")
        assert edit_graph.get_connection("c-prompt") is None
        assert len(edit_graph.connections) == 2

    def test_validate_connections(self, graph):
        """validate_connections() catches unvalidated edges added directly."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        graph.add_connection(Connection("bad", "p", "prompt-output", "crop", "image-input"))
        with pytest.raises(WiringError, match="bad"):
            graph.validate_connections()

    def test_validate_connections_duplicate_inbound(self, graph):
        """Two edges into one input fail validation."""
        graph.create_node(NodeKind.SOLID_COLOR, node_id="a")
        graph.create_node(NodeKind.SOLID_COLOR, node_id="b")
        graph.create_node(NodeKind.CROP_IMAGE, node_id="crop")
        graph.add_connection(Connection("c1", "a", "image-output", "crop", "image-input"))
        graph.add_connection(Connection("c2", "b", "image-output", "crop", "image-input"))
        with pytest.raises(WiringError, match="already has a connection"):
            graph.validate_connections()


class TestPruning:
    """Cascade deletion and port replacement."""

    def test_remove_node_prunes_its_connections(self, edit_graph):
        """Deleting a node removes its edges and leaves other inputs untouched."""
        edit_graph.remove_node("prompt")
        ids = {c.id for c in edit_graph.connections}
        assert ids == {"c-image", "c-result"}
        assert edit_graph.incoming("gen")[0].from_node_id == "load"

    def test_remove_nodes(self, edit_graph):
        """Removing several nodes prunes every touching edge."""
        edit_graph.remove_nodes(["load", "preview"])
        assert [c.id for c in edit_graph.connections] == ["c-prompt"]

    def test_set_mode_prunes_removed_ports(self, edit_graph):
        """Switching to generate mode drops the image input and its edge."""
        edit_graph.set_mode("gen", "generate")
        node = edit_graph.get_node("gen")
        assert [p.id for p in node.inputs] == ["prompt-input"]
        assert node.data["mode"] == "generate"
        assert edit_graph.get_connection("c-image") is None
        assert edit_graph.get_connection("c-prompt") is not None

    def test_set_mode_keeps_surviving_ports(self, edit_graph):
        """Switching edit -> mix keeps the image and prompt edges."""
        edit_graph.set_mode("gen", "mix")
        assert {c.id for c in edit_graph.incoming("gen")} == {"c-image", "c-prompt"}

    def test_set_mode_errors(self, edit_graph):
        """Unknown modes and unmoded kinds raise WiringError."""
        with pytest.raises(WiringError):
            edit_graph.set_mode("gen", "upscale")
        with pytest.raises(WiringError):
            edit_graph.set_mode("prompt", "edit")

    def test_replace_input_ports_rejects_outputs(self, edit_graph):
        """Replacement lists may only hold input ports."""
        with pytest.raises(WiringError):
            edit_graph.replace_input_ports("gen", [Port.output("x", DataType.TEXT)])

    def test_prune_connections_after_raw_insert(self, graph):
        """prune_connections() drops edges to missing nodes."""
        graph.create_node(NodeKind.PROMPT, node_id="p")
        graph.add_connection(Connection("dangling", "p", "prompt-output", "gone", "prompt-input"))
        graph.prune_connections()
        assert graph.connections == ()


class TestEditingHelpers:
    """duplicate_node(), insert_node() and splice_node()."""

    def test_duplicate_resets_cache_and_status(self, edit_graph):
        """A duplicate gets new id, offset position, empty cache and idle status."""
        gen = edit_graph.get_node("gen")
        gen.data["cache"] = {"key": "value"}
        gen.status = NodeStatus.SUCCESS
        clone = edit_graph.duplicate_node("gen")
        assert clone.id != "gen"
        assert clone.position == (30.0, 30.0)
        assert clone.data["cache"] == {}
        assert clone.data["mode"] == "edit"
        assert clone.status is NodeStatus.IDLE
        assert edit_graph.incoming(clone.id) == ()

    def test_duplicate_can_copy_cache(self, edit_graph):
        """include_cache=True copies the cache without sharing it."""
        edit_graph.get_node("gen").data["cache"] = {"key": "value"}
        clone = edit_graph.duplicate_node("gen", include_cache=True)
        assert clone.data["cache"] == {"key": "value"}
        clone.data["cache"]["other"] = 1
        assert "other" not in edit_graph.get_node("gen").data["cache"]

    def test_insert_node_from_output(self, graph):
        """Dropping a dangling image output creates and wires a crop node."""
        graph.create_node(NodeKind.SOLID_COLOR, node_id="color")
        crop = graph.insert_node(NodeKind.CROP_IMAGE, (200, 0), "color", "image-output")
        (connection,) = graph.incoming(crop.id)
        assert connection.from_node_id == "color"
        assert connection.to_port_id == "image-input"

    def test_insert_node_from_input(self, graph):
        """Dropping a dangling text input creates and wires a prompt source."""
        graph.create_node(NodeKind.IMAGE_GENERATOR, node_id="gen")
        prompt = graph.insert_node(NodeKind.PROMPT, (0, 0), "gen", "prompt-input")
        (connection,) = graph.incoming("gen")
        assert connection.from_node_id == prompt.id
        assert connection.from_port_id == "prompt-output"

    def test_splice_node(self, graph):
        """Splicing a pad into color -> preview yields color -> pad -> preview."""
        graph.create_node(NodeKind.SOLID_COLOR, node_id="color")
        graph.create_node(NodeKind.PREVIEW, node_id="preview")
        edge = graph.connect("color", "image-output", "preview", "result-input")
        pad = graph.splice_node(edge.id, NodeKind.PADDING, (100, 0))
        assert graph.get_connection(edge.id) is None
        assert graph.incoming(pad.id)[0].from_node_id == "color"
        assert graph.outgoing(pad.id)[0].to_node_id == "preview"

    def test_splice_incompatible_kind_leaves_graph_unchanged(self, graph):
        """A kind without a matching input and output cannot be spliced."""
        graph.create_node(NodeKind.SOLID_COLOR, node_id="color")
        graph.create_node(NodeKind.PREVIEW, node_id="preview")
        edge = graph.connect("color", "image-output", "preview", "result-input")
        with pytest.raises(WiringError):
            graph.splice_node(edge.id, NodeKind.PROMPT, (0, 0))
        assert len(graph) == 2
        assert graph.connections == (edge,)
