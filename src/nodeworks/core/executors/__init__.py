"""Node executors, one per node kind.

Usage Example
-------------
    >>> from nodeworks.core.config import config
    >>> from nodeworks.core.executors import build_executor_registry
    >>> from nodeworks.core.registry import node_registry
    >>> from nodeworks.core.services import service_registry
    >>>
    >>> service = service_registry.instantiate(config.default_service, config)
    >>> executors = build_executor_registry(service, config)
    >>> executors.missing_kinds(node_registry)
    []
"""

from __future__ import annotations

from nodeworks.core.config import NodeworksConfig
from nodeworks.core.executors.base import (
    ExecutionResult,
    ExecutorRegistry,
    NodeExecutor,
    image_result,
    passthrough_result,
    require_image,
    require_text,
)
from nodeworks.core.executors.generative import ImageDescriberExecutor, ImageGeneratorExecutor
from nodeworks.core.executors.sinks import PreviewExecutor
from nodeworks.core.executors.sources import (
    AnnotationExecutor,
    ImageLoaderExecutor,
    PoseExecutor,
    PromptExecutor,
    PromptStylerExecutor,
    SketchExecutor,
    SolidColorExecutor,
)
from nodeworks.core.executors.transforms import CropExecutor, PadExecutor, StitchExecutor
from nodeworks.core.services import GenerationService
from nodeworks.core.styles import StyleLibrary


def build_executor_registry(
    service: GenerationService,
    config: NodeworksConfig,
    styles: StyleLibrary | None = None,
) -> ExecutorRegistry:
    """Build the standard executor table for every built-in kind.

    Args:
        service: Generation service used by the generator and describer
        config: Configuration (canvas sizes, cache flag, styles and data directories)
        styles: Style library (defaults to one over ``config.styles_dir``)

    Returns:
        ExecutorRegistry: Registry covering all built-in kinds
    """
    registry = ExecutorRegistry()
    for executor in (
        ImageLoaderExecutor(config),
        PromptExecutor(),
        PromptStylerExecutor(styles or StyleLibrary(config.styles_dir)),
        ImageGeneratorExecutor(service, config),
        StitchExecutor(),
        ImageDescriberExecutor(service, config),
        SolidColorExecutor(config),
        CropExecutor(),
        PadExecutor(),
        PoseExecutor(config),
        SketchExecutor(config),
        AnnotationExecutor(),
        PreviewExecutor(),
    ):
        registry.register(executor)
    return registry


__all__ = [
    "ExecutionResult",
    "ExecutorRegistry",
    "NodeExecutor",
    "build_executor_registry",
    "image_result",
    "passthrough_result",
    "require_image",
    "require_text",
]
