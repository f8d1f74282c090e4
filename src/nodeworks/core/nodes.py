"""Node primitives: kinds, status and the node record itself."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .ports import Port


class NodeKind(str, Enum):
    IMAGE_LOADER = "IMAGE_LOADER"
    PROMPT = "PROMPT"
    PROMPT_STYLER = "PROMPT_STYLER"
    IMAGE_GENERATOR = "IMAGE_GENERATOR"
    IMAGE_STITCHER = "IMAGE_STITCHER"
    IMAGE_DESCRIBER = "IMAGE_DESCRIBER"
    SOLID_COLOR = "SOLID_COLOR"
    CROP_IMAGE = "CROP_IMAGE"
    PADDING = "PADDING"
    POSE = "POSE"
    SKETCH = "SKETCH"
    ANNOTATION = "ANNOTATION"
    PREVIEW = "PREVIEW"


class NodeStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Node:
    """A unit of computation in the workflow graph.

    ``data`` holds kind-specific parameters and results. Execution only ever
    mutates ``data`` and ``status``; see ``nodeworks.core.executors.base`` for
    the reserved keys.
    """

    id: str
    kind: NodeKind
    title: str
    position: tuple[float, float] = (0.0, 0.0)
    inputs: list[Port] = field(default_factory=list)
    outputs: list[Port] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    status: NodeStatus = NodeStatus.IDLE
    width: int = 256
    height: int | None = None
    min_width: int = 256
    min_height: int | None = None
    resizable: bool = True

    def get_port(self, port_id: str) -> Port | None:
        for port in self.inputs + self.outputs:
            if port.id == port_id:
                return port
        return None

    def input_port(self, port_id: str) -> Port | None:
        return next((port for port in self.inputs if port.id == port_id), None)

    def output_port(self, port_id: str) -> Port | None:
        return next((port for port in self.outputs if port.id == port_id), None)

    @property
    def error(self) -> str | None:
        return self.data.get("error")
