"""Nodeworks - node-based image workflow engine."""

__version__ = "0.1.0"

from nodeworks.core.config import NodeworksConfig, config
from nodeworks.core.graph import WorkflowGraph
from nodeworks.core.runner import WorkflowRunner
from nodeworks.core.services import GenerationService, service_registry

# Import adapters to ensure they're registered
from nodeworks.core.adapters import GeminiService  # noqa: F401

__all__ = [
    "GenerationService",
    "NodeworksConfig",
    "WorkflowGraph",
    "WorkflowRunner",
    "config",
    "service_registry",
]
