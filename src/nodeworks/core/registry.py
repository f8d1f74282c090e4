"""Node registry and factory.

The registry is the single source of truth for what ports and defaults each
node kind has. The graph store, the compatibility filter used when inserting
a node at the open end of a dangling connection, and the executors all rely on
the shapes produced here.

Usage Example
-------------
    >>> from nodeworks.core.registry import node_registry
    >>> from nodeworks.core.nodes import NodeKind
    >>>
    >>> node = node_registry.create_node(NodeKind.PADDING, position=(120, 80))
    >>> [port.id for port in node.inputs]
    ['image-input']
    >>>
    >>> # Kinds that can accept a dangling text output
    >>> node_registry.compatible_kinds("text", "output")
    [<NodeKind.IMAGE_GENERATOR: 'IMAGE_GENERATOR'>, <NodeKind.PREVIEW: 'PREVIEW'>]
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import UnknownNodeKindError
from .nodes import Node, NodeKind
from .ports import DataType, Port, PortDirection, compatible

logger = logging.getLogger(__name__)

# Generator modes and the input ports each one requires
GENERATOR_MODE_INPUTS: dict[str, tuple[Port, ...]] = {
    "generate": (Port.input("prompt-input", DataType.TEXT, "Prompt"),),
    "edit": (
        Port.input("image-input", DataType.IMAGE, "Image"),
        Port.input("prompt-input", DataType.TEXT, "Prompt"),
    ),
    "mix": (
        Port.input("image-input", DataType.IMAGE, "Source"),
        Port.input("reference-input", DataType.IMAGE, "Reference"),
        Port.input("prompt-input", DataType.TEXT, "Prompt"),
    ),
    "style": (
        Port.input("reference-input", DataType.IMAGE, "Style"),
        Port.input("prompt-input", DataType.TEXT, "Prompt"),
    ),
    "reference": (
        Port.input("reference-input", DataType.IMAGE, "Reference"),
        Port.input("prompt-input", DataType.TEXT, "Prompt"),
    ),
}

# Joint positions in percent of the pose canvas
DEFAULT_POSE_JOINTS: dict[str, dict[str, float]] = {
    "head": {"x": 50, "y": 15},
    "neck": {"x": 50, "y": 25},
    "left_shoulder": {"x": 40, "y": 30},
    "right_shoulder": {"x": 60, "y": 30},
    "left_elbow": {"x": 35, "y": 45},
    "right_elbow": {"x": 65, "y": 45},
    "left_wrist": {"x": 30, "y": 60},
    "right_wrist": {"x": 70, "y": 60},
    "torso": {"x": 50, "y": 55},
    "left_hip": {"x": 45, "y": 60},
    "right_hip": {"x": 55, "y": 60},
    "left_knee": {"x": 45, "y": 75},
    "right_knee": {"x": 55, "y": 75},
    "left_ankle": {"x": 45, "y": 90},
    "right_ankle": {"x": 55, "y": 90},
}


def new_node_id() -> str:
    return f"node-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class NodeTemplate:
    """Describes how to instantiate a node of one kind.

    ``mode_inputs`` is set for kinds whose input list depends on a mode held
    in ``data["mode"]``; ``inputs`` is then the list for ``default_mode``.
    """

    kind: NodeKind
    title: str
    category: str
    description: str
    inputs: Sequence[Port] = field(default_factory=tuple)
    outputs: Sequence[Port] = field(default_factory=tuple)
    default_data: Mapping[str, Any] = field(default_factory=dict)
    width: int = 256
    height: int | None = None
    min_width: int = 256
    min_height: int | None = None
    resizable: bool = True
    mode_inputs: Mapping[str, Sequence[Port]] | None = None
    default_mode: str | None = None

    def input_ports(self, mode: str | None = None) -> list[Port]:
        if self.mode_inputs is None or mode is None:
            return list(self.inputs)
        if mode not in self.mode_inputs:
            available = ", ".join(self.mode_inputs)
            raise ValueError(f"Unknown mode '{mode}' for {self.kind.value}. Available: {available}")
        return list(self.mode_inputs[mode])

    def instantiate(self, node_id: str, position: tuple[float, float]) -> Node:
        return Node(
            id=node_id,
            kind=self.kind,
            title=self.title,
            position=(float(position[0]), float(position[1])),
            inputs=self.input_ports(self.default_mode),
            outputs=list(self.outputs),
            data=copy.deepcopy(dict(self.default_data)),
            width=self.width,
            height=self.height,
            min_width=self.min_width,
            min_height=self.min_height,
            resizable=self.resizable,
        )

    def get_info(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "inputs": [port.to_dict() for port in self.input_ports(self.default_mode)],
            "outputs": [port.to_dict() for port in self.outputs],
            "modes": list(self.mode_inputs) if self.mode_inputs else [],
        }


_IMAGE_OUT = Port.output("image-output", DataType.IMAGE)
_IMAGE_IN = Port.input("image-input", DataType.IMAGE)

_TEMPLATES: list[NodeTemplate] = [
    NodeTemplate(
        kind=NodeKind.IMAGE_LOADER,
        title="Load Image",
        category="Source",
        description="Provides an uploaded image (or an image file on disk).",
        outputs=(_IMAGE_OUT,),
        height=220,
        min_height=220,
    ),
    NodeTemplate(
        kind=NodeKind.PROMPT,
        title="Prompt",
        category="Source",
        description="Free text prompt.",
        outputs=(Port.output("prompt-output", DataType.TEXT),),
        default_data={"text": ""},
    ),
    NodeTemplate(
        kind=NodeKind.PROMPT_STYLER,
        title="Prompt Styler",
        category="Transform",
        description="Applies a named style from a style library to a base prompt.",
        outputs=(Port.output("styler-output", DataType.TEXT),),
        default_data={"user_prompt": "", "style_file": "Basic", "style_name": "none"},
        height=250,
        min_height=250,
    ),
    NodeTemplate(
        kind=NodeKind.IMAGE_GENERATOR,
        title="Image Engine",
        category="Generative",
        description="Generates, edits, mixes or restyles images with the generation service.",
        outputs=(Port.output("result-output", DataType.ANY),),
        default_data={"mode": "generate", "cache": {}},
        resizable=False,
        mode_inputs=GENERATOR_MODE_INPUTS,
        default_mode="generate",
    ),
    NodeTemplate(
        kind=NodeKind.IMAGE_STITCHER,
        title="Stitch Images",
        category="Transform",
        description="Places two images side by side or stacked.",
        inputs=(
            Port.input("image-input-1", DataType.IMAGE),
            Port.input("image-input-2", DataType.IMAGE),
        ),
        outputs=(_IMAGE_OUT,),
        default_data={"stitch_mode": "horizontal"},
        height=180,
        min_height=180,
    ),
    NodeTemplate(
        kind=NodeKind.IMAGE_DESCRIBER,
        title="Describe Image",
        category="Generative",
        description="Describes an image as text with the generation service.",
        inputs=(_IMAGE_IN,),
        outputs=(Port.output("text-output", DataType.TEXT),),
        default_data={"describe_mode": "normal", "cache": {}},
        height=180,
        min_height=180,
    ),
    NodeTemplate(
        kind=NodeKind.SOLID_COLOR,
        title="Solid Color",
        category="Source",
        description="A flat colour canvas at a chosen aspect ratio.",
        outputs=(_IMAGE_OUT,),
        default_data={"color": "#06b6d4", "aspect_ratio": "1:1"},
        height=160,
        min_height=160,
    ),
    NodeTemplate(
        kind=NodeKind.CROP_IMAGE,
        title="Crop Image",
        category="Transform",
        description="Crops an image to an aspect ratio.",
        inputs=(_IMAGE_IN,),
        outputs=(_IMAGE_OUT,),
        default_data={"aspect_ratio": "1:1", "direction": "center"},
        height=200,
        min_height=200,
    ),
    NodeTemplate(
        kind=NodeKind.PADDING,
        title="Add Padding",
        category="Transform",
        description="Pads an image with a colour to reach an aspect ratio.",
        inputs=(_IMAGE_IN,),
        outputs=(_IMAGE_OUT,),
        default_data={"aspect_ratio": "1:1", "direction": "center", "color": "#000000"},
        height=260,
        min_height=260,
    ),
    NodeTemplate(
        kind=NodeKind.POSE,
        title="Pose Guide",
        category="Source",
        description="A posable skeleton rendered to an image.",
        outputs=(_IMAGE_OUT,),
        default_data={"output_mode": "skeleton", "joints": DEFAULT_POSE_JOINTS},
        width=320,
        height=480,
        min_width=200,
        min_height=300,
    ),
    NodeTemplate(
        kind=NodeKind.SKETCH,
        title="Hand Sketch",
        category="Source",
        description="A freehand drawing rendered to an image.",
        outputs=(_IMAGE_OUT,),
        default_data={"elements": []},
        width=320,
        height=400,
        min_width=200,
        min_height=250,
    ),
    NodeTemplate(
        kind=NodeKind.ANNOTATION,
        title="Image Annotation",
        category="Source",
        description="Drawing elements composited over an uploaded image.",
        outputs=(_IMAGE_OUT,),
        default_data={"elements": []},
        width=400,
        height=500,
        min_width=300,
        min_height=300,
    ),
    NodeTemplate(
        kind=NodeKind.PREVIEW,
        title="Result Preview",
        category="Output",
        description="Displays an image and/or text result.",
        inputs=(Port.input("result-input", DataType.ANY),),
        height=220,
        min_height=220,
    ),
]


class NodeRegistry:
    """Registry of node templates keyed by kind.

    Notes
    -----
    - Adding a kind requires registering both a template here and an executor
      in ``nodeworks.core.executors``; ``ExecutorRegistry.missing_kinds``
      reports any gap.
    - Registering an existing kind overwrites it with a warning.
    """

    def __init__(self, templates: Sequence[NodeTemplate] = ()) -> None:
        self._templates: dict[NodeKind, NodeTemplate] = {}
        for template in templates:
            self.register(template)

    def register(self, template: NodeTemplate) -> None:
        if template.kind in self._templates:
            logger.warning(f"Node kind '{template.kind.value}' is already registered, overwriting")
        self._templates[template.kind] = template
        logger.debug(f"Registered node kind: {template.kind.value}")

    def get_template(self, kind: NodeKind | str) -> NodeTemplate:
        """Look up the template for a kind.

        Raises
        ------
        UnknownNodeKindError
            If the kind is not registered
        """
        try:
            return self._templates[NodeKind(kind)]
        except (KeyError, ValueError):
            raise UnknownNodeKindError(kind) from None

    def create_node(
        self,
        kind: NodeKind | str,
        position: tuple[float, float] = (0.0, 0.0),
        node_id: str | None = None,
    ) -> Node:
        """Create a node of ``kind`` with its canonical ports and default data.

        Args:
            kind: Node kind to create
            position: Canvas position of the new node
            node_id: Explicit id (a fresh unique id is generated when omitted)

        Returns
        -------
        Node
            The new node, in ``idle`` status

        Raises
        ------
        UnknownNodeKindError
            If ``kind`` is not registered
        """
        template = self.get_template(kind)
        return template.instantiate(node_id or new_node_id(), position)

    def input_ports(self, kind: NodeKind | str, mode: str | None = None) -> list[Port]:
        return self.get_template(kind).input_ports(mode)

    def list_kinds(self) -> list[NodeKind]:
        return list(self._templates)

    def list_templates(self) -> list[NodeTemplate]:
        return list(self._templates.values())

    def compatible_kinds(
        self,
        data_type: DataType | str,
        direction: PortDirection | str = PortDirection.OUTPUT,
    ) -> list[NodeKind]:
        """List kinds that may be inserted at the open end of a dangling connection.

        Args:
            data_type: Data type of the port the connection was dragged from
            direction: Direction of that port. A dangling output needs a kind
                with a compatible input; a dangling input needs a kind with a
                compatible output.

        Returns
        -------
        list[NodeKind]
            Matching kinds in registration order
        """
        data_type = DataType(data_type)
        direction = PortDirection(direction)

        kinds = []
        for template in self._templates.values():
            if direction is PortDirection.OUTPUT:
                candidates = template.input_ports(template.default_mode)
            else:
                candidates = list(template.outputs)
            if any(compatible(data_type, port.data_type) for port in candidates):
                kinds.append(template.kind)
        return kinds


# Global node registry
node_registry = NodeRegistry(_TEMPLATES)
