"""Per-node result cache for the generative executors.

Results are keyed by a fingerprint of the operation mode, the raw bytes of
every input image and the prompt. The cache map lives in
``node.data["cache"]`` so it travels with the node, is unbounded, and is
dropped by snapshot persistence. :class:`NodeCacheStore` carries the maps
across graphs that are rebuilt from snapshots for every run.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Any, Iterable

from .nodes import Node
from .payloads import ImagePayload

if TYPE_CHECKING:
    from .graph import WorkflowGraph

logger = logging.getLogger(__name__)

CACHE_KEY = "cache"


def fingerprint(mode: str, payloads: Iterable[ImagePayload], prompt: str = "") -> str:
    """SHA-256 over mode, image bytes and prompt.

    Each part is length-prefixed so that no two different inputs can produce
    the same byte stream.
    """
    digest = hashlib.sha256()

    def feed(part: bytes) -> None:
        digest.update(len(part).to_bytes(8, "big"))
        digest.update(part)

    feed(mode.encode("utf-8"))
    for payload in payloads:
        feed(payload.mime_type.encode("utf-8"))
        feed(payload.to_bytes())
    feed(prompt.encode("utf-8"))
    return digest.hexdigest()


def cache_lookup(node: Node, key: str) -> Any | None:
    entries = node.data.get(CACHE_KEY) or {}
    hit = entries.get(key)
    if hit is not None:
        logger.debug(f"Cache hit for node {node.id} ({key[:12]})")
    return hit


def cache_with(node: Node, key: str, value: Any) -> dict[str, Any]:
    """Return a copy of the node's cache map with ``key`` set.

    The copy is applied through the executor's data patch rather than by
    mutating ``node.data`` directly.
    """
    entries = dict(node.data.get(CACHE_KEY) or {})
    entries[key] = value
    return entries


class NodeCacheStore:
    """Keeps per-node result caches across graphs rebuilt from snapshots.

    Snapshots leave the ``cache`` map behind, so a graph posted again starts
    with empty caches. The store remembers each node's map by node id and
    puts it back before the next run. A reused id with new inputs misses on
    its fingerprint.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def restore(self, graph: WorkflowGraph) -> None:
        """Replace every node's cache map with the stored one, if any."""
        for node in graph.nodes:
            saved = self._entries.get(node.id)
            if saved:
                node.data[CACHE_KEY] = dict(saved)
            else:
                node.data.pop(CACHE_KEY, None)

    def collect(self, graph: WorkflowGraph) -> None:
        """Remember the non-empty cache maps left on the graph's nodes."""
        for node in graph.nodes:
            entries = node.data.get(CACHE_KEY)
            if entries:
                self._entries[node.id] = dict(entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
