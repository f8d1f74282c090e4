"""Executors for kinds without inputs: loaders, prompts and rendered canvases."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from PIL import Image, UnidentifiedImageError

from .. import imaging
from ..config import NodeworksConfig
from ..errors import MalformedPayloadError, MissingInputError
from ..nodes import Node, NodeKind
from ..payloads import ImagePayload, TextPayload
from ..registry import DEFAULT_POSE_JOINTS
from ..styles import StyleLibrary
from .base import ExecutionResult, NodeExecutor, image_result

logger = logging.getLogger(__name__)


class ImageLoaderExecutor(NodeExecutor):
    """Emits the uploaded image, or reads ``image_path`` from disk.

    ``image_path`` is resolved against ``config.data_dir``; paths that land
    outside it are rejected without touching the file system.
    """

    kind = NodeKind.IMAGE_LOADER

    def __init__(self, config: NodeworksConfig) -> None:
        self.config = config

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        data = node.data
        if data.get("base64_image") and data.get("mime_type"):
            payload = ImagePayload(data["base64_image"], data["mime_type"])
        elif data.get("image_path"):
            payload = self._read_file(str(data["image_path"]))
        else:
            raise MissingInputError("No image loaded.")
        return ExecutionResult(outputs={"image-output": payload})

    def _resolve(self, image_path: str) -> Path:
        root = Path(self.config.data_dir).resolve()
        path = (root / image_path).resolve()
        if not path.is_relative_to(root):
            logger.warning(f"Rejected image path outside the data directory: {image_path}")
            raise MalformedPayloadError("Image path must be inside the data directory.")
        return path

    def _read_file(self, image_path: str) -> ImagePayload:
        path = self._resolve(image_path)
        if not path.is_file():
            raise MissingInputError(f"Image file not found: {image_path}")
        try:
            with Image.open(path) as image:
                mime_type = Image.MIME.get(image.format or "", "application/octet-stream")
        except (UnidentifiedImageError, OSError) as e:
            raise MalformedPayloadError(f"Could not read image file: {image_path}") from e
        return ImagePayload.from_bytes(path.read_bytes(), mime_type)


class PromptExecutor(NodeExecutor):
    kind = NodeKind.PROMPT

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        return ExecutionResult(outputs={"prompt-output": TextPayload(node.data.get("text", ""))})


class PromptStylerExecutor(NodeExecutor):
    """Applies a named style from a YAML style library to the node's prompt."""

    kind = NodeKind.PROMPT_STYLER

    def __init__(self, library: StyleLibrary) -> None:
        self.library = library

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        text = self.library.apply(
            node.data.get("user_prompt", ""),
            node.data.get("style_file", "Basic"),
            node.data.get("style_name", "none"),
        )
        return ExecutionResult(outputs={"styler-output": TextPayload(text)})


class SolidColorExecutor(NodeExecutor):
    kind = NodeKind.SOLID_COLOR

    def __init__(self, config: NodeworksConfig) -> None:
        self.config = config

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        image = imaging.solid_color(
            node.data.get("color", "#06b6d4"),
            node.data.get("aspect_ratio", "1:1"),
            self.config.canvas_size,
        )
        return image_result(image)


class PoseExecutor(NodeExecutor):
    kind = NodeKind.POSE

    def __init__(self, config: NodeworksConfig) -> None:
        self.config = config

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        image = imaging.render_pose(
            node.data.get("joints") or DEFAULT_POSE_JOINTS,
            self.config.render_size,
            node.data.get("output_mode", "skeleton"),
        )
        return image_result(image)


class SketchExecutor(NodeExecutor):
    kind = NodeKind.SKETCH

    def __init__(self, config: NodeworksConfig) -> None:
        self.config = config

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        size = self.config.render_size
        return image_result(imaging.render_elements(node.data.get("elements") or [], (size, size)))


class AnnotationExecutor(NodeExecutor):
    """Composites drawing elements over the node's background image."""

    kind = NodeKind.ANNOTATION

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        data = node.data
        if not (data.get("base64_bg") and data.get("mime_type_bg")):
            raise MissingInputError("Missing background image.")
        background = ImagePayload(data["base64_bg"], data["mime_type_bg"]).open()
        image = imaging.render_elements(
            data.get("elements") or [], background.size, background=background
        )
        return image_result(image)
