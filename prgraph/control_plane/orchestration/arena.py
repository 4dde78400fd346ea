"""Per-repository graph cache owned by the orchestration layer."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from prgraph.control_plane.models.graph_contracts import DependencyGraph


@dataclass(frozen=True)
class ArenaEntry:
    graph: DependencyGraph
    built_at: float


class GraphArena:
    """Holds the last graph built for each repository for ``ttl_s`` seconds.

    A ttl of zero disables caching. Entries are replaced wholesale. The arena
    stores and hands out deep copies, so callers may mutate the graphs they
    receive without touching the cached entry.
    """

    def __init__(self, ttl_s: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = max(0.0, float(ttl_s))
        self._clock = clock
        self._entries: dict[str, ArenaEntry] = {}
        self._lock = threading.Lock()

    def get(self, repository_id: str) -> DependencyGraph | None:
        if self.ttl_s == 0:
            return None
        with self._lock:
            entry = self._entries.get(repository_id)
            if entry is None:
                return None
            if self._clock() - entry.built_at >= self.ttl_s:
                del self._entries[repository_id]
                return None
            return entry.graph.model_copy(deep=True)

    def put(self, repository_id: str, graph: DependencyGraph) -> None:
        if self.ttl_s == 0:
            return
        with self._lock:
            self._entries[repository_id] = ArenaEntry(
                graph=graph.model_copy(deep=True), built_at=self._clock()
            )

    def invalidate(self, repository_id: str | None = None) -> None:
        with self._lock:
            if repository_id is None:
                self._entries.clear()
            else:
                self._entries.pop(repository_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
