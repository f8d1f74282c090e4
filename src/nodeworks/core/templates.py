"""Built-in starter workflows.

Each template is built through the regular :class:`WorkflowGraph` API, so a
template can never violate the wiring invariants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .graph import WorkflowGraph
from .nodes import NodeKind
from .registry import NodeRegistry


@dataclass(frozen=True)
class WorkflowTemplate:
    id: str
    title: str
    description: str
    build: Callable[[WorkflowGraph], None]

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title, "description": self.description}


def _standard_edit(graph: WorkflowGraph) -> None:
    graph.create_node(NodeKind.IMAGE_LOADER, (20, 140), node_id="node-1")
    graph.create_node(NodeKind.PROMPT, (20, 370), node_id="node-2")
    graph.create_node(NodeKind.IMAGE_GENERATOR, (310, 250), node_id="node-3")
    graph.set_mode("node-3", "edit")
    graph.create_node(NodeKind.PREVIEW, (600, 100), node_id="node-4")

    graph.connect("node-1", "image-output", "node-3", "image-input", connection_id="conn-1")
    graph.connect("node-2", "prompt-output", "node-3", "prompt-input", connection_id="conn-2")
    graph.connect("node-3", "result-output", "node-4", "result-input", connection_id="conn-3")


def _product_backdrop(graph: WorkflowGraph) -> None:
    background = graph.create_node(NodeKind.SOLID_COLOR, (20, 50), node_id="bg-color")
    background.title = "Background Color"
    graph.update_node_data("bg-color", {"color": "#ffffff", "aspect_ratio": "1:1"})

    prompt = graph.create_node(NodeKind.PROMPT, (20, 280), node_id="prod-prompt")
    prompt.title = "Product Prompt"
    graph.update_node_data(
        "prod-prompt",
        {"text": "A luxury watch sitting on this background with realistic shadows."},
    )

    graph.create_node(NodeKind.IMAGE_GENERATOR, (350, 150), node_id="prod-gen")
    graph.set_mode("prod-gen", "edit")
    preview = graph.create_node(NodeKind.PREVIEW, (650, 50), node_id="prod-prev")
    preview.title = "Studio Preview"

    graph.connect("bg-color", "image-output", "prod-gen", "image-input", connection_id="c1")
    graph.connect("prod-prompt", "prompt-output", "prod-gen", "prompt-input", connection_id="c2")
    graph.connect("prod-gen", "result-output", "prod-prev", "result-input", connection_id="c3")


def _image_describer(graph: WorkflowGraph) -> None:
    graph.create_node(NodeKind.IMAGE_LOADER, (50, 150), node_id="node-1")
    graph.create_node(NodeKind.IMAGE_DESCRIBER, (350, 150), node_id="node-2")
    preview = graph.create_node(NodeKind.PREVIEW, (650, 150), node_id="node-3")
    preview.title = "Analysis Preview"

    graph.connect("node-1", "image-output", "node-2", "image-input", connection_id="conn-1")
    graph.connect("node-2", "text-output", "node-3", "result-input", connection_id="conn-2")


def _aspect_ratio_fix(graph: WorkflowGraph) -> None:
    source = graph.create_node(NodeKind.IMAGE_LOADER, (50, 150), node_id="pad-load")
    source.title = "Source Image"
    graph.create_node(NodeKind.PADDING, (350, 150), node_id="pad-node")
    preview = graph.create_node(NodeKind.PREVIEW, (650, 100), node_id="pad-prev")
    preview.title = "Final Post"

    graph.connect("pad-load", "image-output", "pad-node", "image-input", connection_id="pc1")
    graph.connect("pad-node", "image-output", "pad-prev", "result-input", connection_id="pc2")


WORKFLOW_TEMPLATES: dict[str, WorkflowTemplate] = {
    template.id: template
    for template in (
        WorkflowTemplate(
            "standard-edit",
            "Standard Image Edit",
            "The standard workflow for modifying existing images.",
            _standard_edit,
        ),
        WorkflowTemplate(
            "product-backdrop",
            "Product Studio",
            "Replace backgrounds with a solid color and regenerate the scene.",
            _product_backdrop,
        ),
        WorkflowTemplate(
            "image-describer",
            "Visual Describer",
            "Analyze image contents and get detailed descriptions.",
            _image_describer,
        ),
        WorkflowTemplate(
            "aspect-ratio-fix",
            "Social Media Padding",
            "Pad images to square or 9:16 for social media posts.",
            _aspect_ratio_fix,
        ),
    )
}


def list_workflow_templates() -> list[dict[str, str]]:
    return [template.summary() for template in WORKFLOW_TEMPLATES.values()]


def build_template(template_id: str, registry: NodeRegistry | None = None) -> WorkflowGraph:
    """Build a fresh graph from a built-in template.

    Raises:
        KeyError: If ``template_id`` is not a built-in template
    """
    try:
        template = WORKFLOW_TEMPLATES[template_id]
    except KeyError:
        raise KeyError(f"Workflow template '{template_id}' not found") from None
    graph = WorkflowGraph(registry)
    template.build(graph)
    return graph
