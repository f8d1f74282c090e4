"""Core workflow engine for Nodeworks.

This package holds everything needed to build and execute a workflow graph
without the HTTP layer:

- **Graph model** (ports.py, nodes.py, registry.py, graph.py): typed ports,
  the node factory and the graph store with its wiring invariants
- **Scheduling and execution** (scheduler.py, runner.py, executors/):
  Kahn ordering, the fail-fast run controller and one executor per node kind
- **Generation** (services.py, adapters/, cache.py): the abstract generation
  service, the bundled Gemini adapter and the per-node result cache
- **Support** (payloads.py, imaging.py, styles.py, history.py,
  persistence.py, templates.py, config.py, errors.py)

Usage Example
-------------
    import asyncio

    from nodeworks.core import (
        InMemoryHistory,
        NodeKind,
        WorkflowGraph,
        WorkflowRunner,
        build_executor_registry,
        config,
        service_registry,
    )

    graph = WorkflowGraph()
    color = graph.create_node(NodeKind.SOLID_COLOR)
    preview = graph.create_node(NodeKind.PREVIEW, (300, 0))
    graph.connect(color.id, "image-output", preview.id, "result-input")

    service = service_registry.instantiate(config.default_service, config)
    runner = WorkflowRunner(graph, build_executor_registry(service, config), InMemoryHistory())
    result = asyncio.run(runner.run())
"""

# Import adapters to ensure they're registered
from nodeworks.core.adapters import GeminiService  # noqa: F401
from nodeworks.core.config import NodeworksConfig, config
from nodeworks.core.errors import (
    CycleError,
    GenerationServiceError,
    MalformedPayloadError,
    MissingInputError,
    NodeworksError,
    StyleNotFoundError,
    UnknownNodeKindError,
    WiringError,
)
from nodeworks.core.executors import ExecutorRegistry, build_executor_registry
from nodeworks.core.graph import Connection, WorkflowGraph
from nodeworks.core.history import HistorySink, InMemoryHistory
from nodeworks.core.nodes import Node, NodeKind, NodeStatus
from nodeworks.core.ports import DataType, Port, PortDirection, compatible
from nodeworks.core.registry import NodeRegistry, node_registry
from nodeworks.core.runner import RunResult, RunStatus, WorkflowRunner
from nodeworks.core.services import GenerationService, service_registry

__all__ = [
    "Connection",
    "CycleError",
    "DataType",
    "ExecutorRegistry",
    "GenerationService",
    "GenerationServiceError",
    "HistorySink",
    "InMemoryHistory",
    "MalformedPayloadError",
    "MissingInputError",
    "Node",
    "NodeKind",
    "NodeRegistry",
    "NodeStatus",
    "NodeworksConfig",
    "NodeworksError",
    "Port",
    "PortDirection",
    "RunResult",
    "RunStatus",
    "StyleNotFoundError",
    "UnknownNodeKindError",
    "WiringError",
    "WorkflowGraph",
    "WorkflowRunner",
    "build_executor_registry",
    "compatible",
    "config",
    "node_registry",
    "service_registry",
]
