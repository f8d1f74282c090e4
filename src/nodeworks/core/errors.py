"""Exception taxonomy for the Nodeworks engine.

Wiring errors are raised synchronously when a graph mutation is attempted and
never leave the graph in a partially modified state. Every other error is an
execution error: the runner captures it on the failing node and halts the run.
"""

from __future__ import annotations

from collections.abc import Iterable


class NodeworksError(Exception):
    """Base class for all engine errors.

    The message is intended to be displayed directly to the user, so it is
    stored verbatim on the failing node.
    """

    pass


class WiringError(NodeworksError):
    """A proposed connection or port mutation is invalid."""

    pass


class UnknownNodeKindError(NodeworksError, KeyError):
    """The node factory was asked for a kind it does not know."""

    def __init__(self, kind: object) -> None:
        self.kind = kind
        super().__init__(f"Unknown node type: {kind}")

    def __str__(self) -> str:
        # KeyError wraps its message in quotes; keep it human-readable
        return self.args[0]


class MissingInputError(NodeworksError):
    """A node reached execution without a required upstream value."""

    pass


class StyleNotFoundError(MissingInputError):
    """A prompt style file or style name could not be resolved."""

    pass


class MalformedPayloadError(NodeworksError):
    """An input claims to be an image or text but cannot be decoded."""

    pass


class GenerationServiceError(NodeworksError):
    """The external generation capability failed or returned nothing usable."""

    pass


class CycleError(NodeworksError):
    """The connection set contains a cycle, so some nodes can never run.

    Attributes:
        node_ids: Ids of every node left out of the execution order (cycle
            members and anything downstream of them).
    """

    def __init__(self, node_ids: Iterable[str]) -> None:
        self.node_ids = list(node_ids)
        super().__init__(f"Cycle detected involving nodes: {', '.join(self.node_ids)}")
