"""Executors for image-to-image transforms: crop, pad and stitch."""

from __future__ import annotations

from typing import Any, Mapping

from .. import imaging
from ..nodes import Node, NodeKind
from .base import ExecutionResult, NodeExecutor, image_result, passthrough_result, require_image


class CropExecutor(NodeExecutor):
    kind = NodeKind.CROP_IMAGE

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        payload = require_image(inputs, "image-input", "Missing image input.")
        image = imaging.crop_to_ratio(
            payload.open(),
            node.data.get("aspect_ratio", "1:1"),
            node.data.get("direction", "center"),
        )
        return image_result(image)


class PadExecutor(NodeExecutor):
    """Pads to an aspect ratio; an image already at that ratio passes through untouched."""

    kind = NodeKind.PADDING

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        payload = require_image(inputs, "image-input", "Missing image input.")
        aspect_ratio = node.data.get("aspect_ratio", "1:1")
        image = payload.open()
        if imaging.matches_ratio(image, imaging.parse_aspect_ratio(aspect_ratio)):
            return passthrough_result(payload)

        padded = imaging.pad_to_ratio(
            image,
            aspect_ratio,
            node.data.get("color", "#000000"),
            node.data.get("direction", "center"),
        )
        return image_result(padded)


class StitchExecutor(NodeExecutor):
    kind = NodeKind.IMAGE_STITCHER

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        message = "Missing one or both image inputs."
        first = require_image(inputs, "image-input-1", message)
        second = require_image(inputs, "image-input-2", message)
        image = imaging.stitch(first.open(), second.open(), node.data.get("stitch_mode", "horizontal"))
        return image_result(image)
