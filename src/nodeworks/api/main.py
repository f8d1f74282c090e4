"""Nodeworks - FastAPI Application.

This module is the single entry point for the web application. It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is stateless apart from the image history and the result
caches:

- **Workflows** are posted as graph snapshots and executed in-process by
  :class:`~nodeworks.core.runner.WorkflowRunner`; the response carries the
  graph after the run.
- **The generation service** is instantiated once at startup from
  ``config.default_service`` and shared by every run.
- **History** is an in-memory, de-duplicated list of every image produced.
- **Result caches** are kept per node id on the server, since snapshots
  leave them out; a graph posted again reuses earlier generations.
- Only one run executes at a time; a run posted while another is in flight
  is rejected with 409.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/api/health``               Version and configured service
GET       ``/api/node-kinds``           Node kinds, optional compatibility filter
GET       ``/api/templates``            Built-in workflow templates
GET       ``/api/templates/{id}``       Snapshot of one template
POST      ``/api/workflows/run``        Execute a posted workflow snapshot
GET       ``/api/history``              Images produced so far
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    nodeworks

Direct invocation::

    python -m nodeworks.api.main
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from nodeworks import __version__
from nodeworks.api.models import (
    GraphSnapshot,
    HealthResponse,
    HistoryResponse,
    NodeKindInfo,
    RunResponse,
    TemplateSummary,
)
from nodeworks.core.cache import NodeCacheStore
from nodeworks.core.config import config
from nodeworks.core.errors import WiringError
from nodeworks.core.executors import build_executor_registry
from nodeworks.core.history import InMemoryHistory
from nodeworks.core.persistence import graph_from_snapshot, graph_to_snapshot
from nodeworks.core.ports import DataType, PortDirection
from nodeworks.core.registry import node_registry
from nodeworks.core.runner import WorkflowRunner
from nodeworks.core.services import service_registry
from nodeworks.core.templates import build_template, list_workflow_templates

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifecycle - generation service setup.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Instantiates the configured generation service, the executor table
        built on it, the image history, the per-node result caches and the run
        lock, and stores them on ``app.state``. Services connect lazily, so
        no credentials are needed until the first generative node runs.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    service = service_registry.instantiate(config.default_service, config)
    app.state.service = service
    app.state.executors = build_executor_registry(service, config)
    app.state.history = InMemoryHistory(limit=config.history_limit)
    app.state.node_caches = NodeCacheStore()
    app.state.run_lock = asyncio.Lock()
    logger.info(f"Generation service '{config.default_service}' ready.")

    yield


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Nodeworks",
    description="Node-based image workflow engine.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so an editor front end can be served from a
# different port during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health() -> HealthResponse:
    return HealthResponse(
        version=__version__,
        service=config.default_service,
        services=service_registry.list_available(),
    )


@app.get("/api/node-kinds")
async def list_node_kinds(
    data_type: DataType | None = Query(default=None),
    direction: PortDirection = Query(default=PortDirection.OUTPUT),
) -> list[NodeKindInfo]:
    """Return node kind descriptions.

    Args:
        data_type: When given, only kinds that can sit at the open end of a
            dangling connection of this type are returned.
        direction: Direction of the dangling port (default ``output``).

    Returns:
        List of node kind descriptions in registration order.
    """
    if data_type is None:
        kinds = node_registry.list_kinds()
    else:
        kinds = node_registry.compatible_kinds(data_type, direction)
    return [NodeKindInfo(**node_registry.get_template(kind).get_info()) for kind in kinds]


@app.get("/api/templates")
async def list_templates() -> list[TemplateSummary]:
    return [TemplateSummary(**summary) for summary in list_workflow_templates()]


@app.get("/api/templates/{template_id}")
async def get_template(template_id: str) -> GraphSnapshot:
    """Return the snapshot of a built-in workflow template.

    Raises:
        HTTPException: 404 if the template does not exist.
    """
    try:
        graph = build_template(template_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Template not found") from None
    return GraphSnapshot.model_validate(graph_to_snapshot(graph))


@app.post("/api/workflows/run")
async def run_workflow(snapshot: GraphSnapshot) -> RunResponse:
    """Execute a workflow snapshot and return the graph after the run.

    Node failures do not produce an HTTP error: the response has
    ``status="failed"`` and the failing node carries its message.

    Args:
        snapshot: The workflow to execute, including embedded images.

    Returns:
        :class:`RunResponse` with the run outcome and updated graph.

    Raises:
        HTTPException: 409 if a run is already in progress; 422 if the
            snapshot contains duplicate node ids or invalid connections.
    """
    lock: asyncio.Lock = app.state.run_lock
    if lock.locked():
        raise HTTPException(status_code=409, detail="A workflow run is already in progress")

    async with lock:
        try:
            graph = graph_from_snapshot(snapshot)
            graph.validate_connections()
        except (ValueError, ValidationError, WiringError) as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

        node_caches: NodeCacheStore = app.state.node_caches
        node_caches.restore(graph)
        runner = WorkflowRunner(graph, app.state.executors, app.state.history, config)
        result = await runner.run()
        node_caches.collect(graph)

    return RunResponse(
        status=result.status,
        executed=result.executed,
        failed_node_id=result.failed_node_id,
        error=result.error,
        excluded=result.excluded,
        graph=GraphSnapshot.model_validate(graph_to_snapshot(graph)),
    )


@app.get("/api/history")
async def get_history() -> HistoryResponse:
    return HistoryResponse(images=app.state.history.entries)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~nodeworks.core.config.config`
    (``NODEWORKS_SERVER_HOST``, ``NODEWORKS_SERVER_PORT``,
    ``NODEWORKS_LOG_LEVEL``). Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``nodeworks`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "nodeworks.api.main:app",
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
