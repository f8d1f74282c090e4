"""Executors for output-only kinds."""

from __future__ import annotations

from typing import Any, Mapping

from ..nodes import Node, NodeKind
from ..payloads import to_display
from .base import ExecutionResult, NodeExecutor


class PreviewExecutor(NodeExecutor):
    """Reshapes whatever arrives on ``result-input`` into ``{image_url, text}``.

    An unconnected preview clears both fields.
    """

    kind = NodeKind.PREVIEW

    def execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        return ExecutionResult(data_patch=to_display(inputs.get("result-input")))
