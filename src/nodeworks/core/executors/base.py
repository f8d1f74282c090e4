"""Executor interface and registry.

An executor turns one node plus its gathered inputs into output values. It
never mutates the node: changes to ``node.data`` are returned as a
``data_patch`` which the runner publishes through its update callback.

Reserved data keys written through patches
------------------------------------------
- ``cache``: fingerprint to cached result (generative kinds)
- ``text``: description text (describer)
- ``image_url`` / ``text``: display payload (preview)
- ``base64_image_output`` / ``mime_type_output``: last produced image
  (transform and rendered source kinds)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Mapping

from PIL import Image

from ..errors import MissingInputError, UnknownNodeKindError
from ..nodes import Node, NodeKind
from ..payloads import ImagePayload, normalize_image_input, normalize_text_input
from ..registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """What a node produced.

    Attributes:
        outputs: Output port id to value
        data_patch: Shallow patch for ``node.data``
    """

    outputs: dict[str, Any] = field(default_factory=dict)
    data_patch: dict[str, Any] = field(default_factory=dict)


class NodeExecutor(ABC):
    """Executes nodes of one kind.

    ``execute`` may return an :class:`ExecutionResult` directly or an
    awaitable resolving to one; the runner awaits the latter.
    """

    kind: NodeKind

    @abstractmethod
    def execute(
        self, node: Node, inputs: Mapping[str, Any]
    ) -> ExecutionResult | Awaitable[ExecutionResult]:
        pass


class ExecutorRegistry:
    """Maps each node kind to its executor."""

    def __init__(self) -> None:
        self._executors: dict[NodeKind, NodeExecutor] = {}

    def register(self, executor: NodeExecutor) -> None:
        if executor.kind in self._executors:
            logger.warning(f"Executor for '{executor.kind.value}' is already registered, overwriting")
        self._executors[executor.kind] = executor

    def get(self, kind: NodeKind | str) -> NodeExecutor:
        try:
            return self._executors[NodeKind(kind)]
        except (KeyError, ValueError):
            raise UnknownNodeKindError(kind) from None

    def __contains__(self, kind: object) -> bool:
        return kind in self._executors

    def missing_kinds(self, registry: NodeRegistry) -> list[NodeKind]:
        """Kinds known to ``registry`` that have no executor."""
        return [kind for kind in registry.list_kinds() if kind not in self._executors]


def require_image(inputs: Mapping[str, Any], port_id: str, message: str) -> ImagePayload:
    payload = normalize_image_input(inputs.get(port_id))
    if payload is None:
        raise MissingInputError(message)
    return payload


def require_text(inputs: Mapping[str, Any], port_id: str, message: str) -> str:
    text = normalize_text_input(inputs.get(port_id))
    if not text:
        raise MissingInputError(message)
    return text


def image_result(image: Image.Image, port_id: str = "image-output") -> ExecutionResult:
    """Encode a rendered image as PNG on ``port_id`` and mirror it into the node data."""
    payload = ImagePayload.from_image(image, "PNG")
    return passthrough_result(payload, port_id)


def passthrough_result(payload: ImagePayload, port_id: str = "image-output") -> ExecutionResult:
    return ExecutionResult(
        outputs={port_id: payload},
        data_patch={
            "base64_image_output": payload.base64_image,
            "mime_type_output": payload.mime_type,
        },
    )
