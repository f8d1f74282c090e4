"""History sink: where the runner reports every image a run produced."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class HistorySink(Protocol):
    def add(self, image_url: str) -> None: ...


class InMemoryHistory:
    """Append-only image history, newest first.

    Adding an image URL that is already present is a no-op, so re-running an
    unchanged workflow does not grow the history. With ``limit`` set, the
    oldest entries are dropped once the history is full.
    """

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        self._entries: list[str] = []

    def add(self, image_url: str) -> None:
        if not image_url or image_url in self._entries:
            return
        self._entries.insert(0, image_url)
        if self.limit is not None and len(self._entries) > self.limit:
            del self._entries[self.limit :]
        logger.debug(f"History now holds {len(self._entries)} image(s)")

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, image_url: object) -> bool:
        return image_url in self._entries
