"""Executors that call the generation service.

Both executors are coroutines and consult the node's result cache before
calling out. With ``config.use_cache`` disabled the lookup is skipped but the
fresh result is still stored, so turning the cache back on reuses it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..cache import CACHE_KEY, cache_lookup, cache_with, fingerprint
from ..config import NodeworksConfig
from ..errors import GenerationServiceError, MissingInputError
from ..nodes import Node, NodeKind
from ..payloads import GenerationResult, ImagePayload, TextPayload
from ..services import DescribeMode, GenerationService
from .base import ExecutionResult, NodeExecutor, require_image, require_text

logger = logging.getLogger(__name__)


class ImageGeneratorExecutor(NodeExecutor):
    """Runs one of the generator modes against the generation service.

    Modes and their required inputs:

    - ``generate``: prompt
    - ``edit``: image, prompt
    - ``mix``: image (source), reference, prompt
    - ``style``: reference, prompt
    - ``reference``: reference, prompt
    """

    kind = NodeKind.IMAGE_GENERATOR

    def __init__(self, service: GenerationService, config: NodeworksConfig) -> None:
        self.service = service
        self.config = config

    async def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        mode = node.data.get("mode") or "generate"
        prompt = require_text(inputs, "prompt-input", "Missing prompt input.")
        images = self._gather_images(mode, inputs)

        key = fingerprint(mode, images, prompt)
        if self.config.use_cache:
            cached = cache_lookup(node, key)
            if cached is not None:
                return ExecutionResult(outputs={"result-output": cached})

        logger.info(f"Node {node.id}: calling generation service ({mode})")
        result = await self._call(mode, images, prompt)
        if not isinstance(result, GenerationResult):
            raise GenerationServiceError("Generation service returned no image.")

        return ExecutionResult(
            outputs={"result-output": result},
            data_patch={CACHE_KEY: cache_with(node, key, result)},
        )

    @staticmethod
    def _gather_images(mode: str, inputs: Mapping[str, Any]) -> list[ImagePayload]:
        if mode == "generate":
            return []
        if mode == "edit":
            return [require_image(inputs, "image-input", "Missing image input for edit mode.")]
        if mode == "mix":
            message = "Missing one or both image inputs."
            return [
                require_image(inputs, "image-input", message),
                require_image(inputs, "reference-input", message),
            ]
        if mode in ("style", "reference"):
            return [require_image(inputs, "reference-input", "Missing reference image input.")]
        raise MissingInputError(f"Unknown generator mode '{mode}'.")

    async def _call(self, mode: str, images: list[ImagePayload], prompt: str) -> GenerationResult:
        if mode == "generate":
            return await self.service.generate_image(prompt)
        if mode == "edit":
            image = images[0]
            return await self.service.edit_image(image.base64_image, image.mime_type, prompt)
        if mode == "mix":
            return await self.service.mix_images(images[0], images[1], prompt)
        if mode == "style":
            return await self.service.generate_with_style(images[0], prompt)
        return await self.service.generate_with_reference(images[0], prompt)


class ImageDescriberExecutor(NodeExecutor):
    kind = NodeKind.IMAGE_DESCRIBER

    def __init__(self, service: GenerationService, config: NodeworksConfig) -> None:
        self.service = service
        self.config = config

    async def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        payload = require_image(inputs, "image-input", "Missing image input.")
        describe_mode = node.data.get("describe_mode") or DescribeMode.NORMAL.value

        key = fingerprint(f"describe:{describe_mode}", [payload])
        text = cache_lookup(node, key) if self.config.use_cache else None
        patch: dict[str, Any] = {}
        if text is None:
            logger.info(f"Node {node.id}: describing image ({describe_mode})")
            text = await self.service.describe_image(
                payload.base64_image, payload.mime_type, describe_mode
            )
            patch[CACHE_KEY] = cache_with(node, key, text)

        patch["text"] = text
        return ExecutionResult(outputs={"text-output": TextPayload(text)}, data_patch=patch)
