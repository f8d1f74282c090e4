"""Run controller: executes a workflow graph once, node by node.

Execution is strictly sequential in topological order. The only suspension
points are the awaits inside generative executors. The first failing node
halts the run; nodes after it keep whatever status they had before.

Usage Example
-------------
    >>> runner = WorkflowRunner(graph, executors, history=InMemoryHistory())
    >>> result = asyncio.run(runner.run())
    >>> result.status
    <RunStatus.COMPLETED: 'completed'>
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from .config import NodeworksConfig, config as default_config
from .errors import CycleError, GenerationServiceError, NodeworksError
from .executors.base import ExecutionResult, ExecutorRegistry
from .graph import Connection, WorkflowGraph
from .history import HistorySink
from .nodes import Node, NodeStatus
from .payloads import image_url_for
from .scheduler import topological_order, unscheduled_nodes

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, Mapping[str, Any]], None]


class RunStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunResult:
    """Outcome of one call to :meth:`WorkflowRunner.run`.

    Attributes:
        status: completed, failed, or skipped (a run was already in flight)
        executed: Ids of nodes that finished successfully, in order
        failed_node_id: Id of the node that halted the run, if any
        error: Message of the halting error (node failure or cycle)
        outputs: Recorded outputs, node id to ``{port_id: value}``
        excluded: Ids of nodes left out of the order by a cycle
    """

    status: RunStatus
    executed: list[str] = field(default_factory=list)
    failed_node_id: str | None = None
    error: str | None = None
    outputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    excluded: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETED


class WorkflowRunner:
    """Executes a :class:`WorkflowGraph` with a table of executors.

    Args:
        graph: Graph to execute
        executors: Kind to executor table
        history: Sink receiving every image produced by the run
        config: Configuration (``fail_on_cycle``, ``generation_timeout``)
        on_update: Callback publishing ``(node_id, patch)``; defaults to
            ``graph.update_node_data``
    """

    def __init__(
        self,
        graph: WorkflowGraph,
        executors: ExecutorRegistry,
        history: HistorySink | None = None,
        config: NodeworksConfig | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self.graph = graph
        self.executors = executors
        self.history = history
        self.config = config or default_config
        self.on_update = on_update or graph.update_node_data
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> RunResult:
        """Execute every schedulable node once.

        A call made while another run is in flight returns a ``skipped``
        result without touching the graph.
        """
        if self._running:
            logger.warning("Workflow run already in progress, ignoring new run request")
            return RunResult(status=RunStatus.SKIPPED)

        self._running = True
        try:
            return await self._run()
        finally:
            self._running = False

    async def _run(self) -> RunResult:
        nodes = self.graph.nodes
        connections = self.graph.connections
        order = topological_order(nodes, connections)
        excluded = unscheduled_nodes(nodes, order)

        if excluded:
            if self.config.fail_on_cycle:
                message = str(CycleError(excluded))
                logger.error(message)
                for node_id in excluded:
                    self.on_update(node_id, {"status": NodeStatus.ERROR, "error": message})
                return RunResult(status=RunStatus.FAILED, error=message, excluded=excluded)
            logger.warning(f"Skipping {len(excluded)} node(s) caught in a cycle: {excluded}")

        logger.info(f"Running workflow: {len(order)} node(s)")
        outputs: dict[str, dict[str, Any]] = {}
        executed: list[str] = []

        for node in order:
            inputs = self._gather_inputs(node, connections, outputs)
            self.on_update(node.id, {"status": NodeStatus.LOADING, "error": None})
            try:
                result = await self._execute(node, inputs)
            except Exception as e:
                message = str(e) or "Unknown error"
                if isinstance(e, NodeworksError):
                    logger.error(f"Node {node.id} ({node.kind.value}) failed: {message}")
                else:
                    logger.exception(f"Node {node.id} ({node.kind.value}) raised an unexpected error")
                self.on_update(node.id, {"status": NodeStatus.ERROR, "error": message})
                return RunResult(
                    status=RunStatus.FAILED,
                    executed=executed,
                    failed_node_id=node.id,
                    error=message,
                    outputs=outputs,
                    excluded=excluded,
                )

            if result.data_patch:
                self.on_update(node.id, result.data_patch)
            outputs[node.id] = dict(result.outputs)
            self.on_update(node.id, {"status": NodeStatus.SUCCESS})
            executed.append(node.id)
            self._emit_history(result)

        logger.info(f"Workflow run completed: {len(executed)} node(s) executed")
        return RunResult(
            status=RunStatus.COMPLETED,
            executed=executed,
            outputs=outputs,
            excluded=excluded,
        )

    @staticmethod
    def _gather_inputs(
        node: Node,
        connections: Iterable[Connection],
        outputs: Mapping[str, Mapping[str, Any]],
    ) -> dict[str, Any]:
        inputs = {}
        for connection in connections:
            if connection.to_node_id != node.id:
                continue
            value = outputs.get(connection.from_node_id, {}).get(connection.from_port_id)
            if value is not None:
                inputs[connection.to_port_id] = value
        return inputs

    async def _execute(self, node: Node, inputs: Mapping[str, Any]) -> ExecutionResult:
        executor = self.executors.get(node.kind)
        result = executor.execute(node, inputs)
        if not inspect.isawaitable(result):
            return result

        timeout = self.config.generation_timeout
        if timeout is None:
            return await result
        try:
            return await asyncio.wait_for(result, timeout)
        except asyncio.TimeoutError:
            raise GenerationServiceError(f"Generation timed out after {timeout:g} seconds.") from None

    def _emit_history(self, result: ExecutionResult) -> None:
        if self.history is None:
            return
        urls = [image_url_for(value) for value in result.outputs.values()]
        urls.append(result.data_patch.get("image_url"))
        for url in urls:
            if url:
                self.history.add(url)
