# geonav/runtime/resources.py
import json
import threading
from collections.abc import Callable, Hashable
from functools import lru_cache
from typing import Any

from geonav.domain.entities.graph import Graph
from geonav.domain.errors import GraphLoadError
from geonav.domain.navigation.nav_graph_store import load_graph_blob


@lru_cache(maxsize=8)
def load_graph_from_path(file: str, max_straight_edge_distance: float = 45.0) -> Graph:
    """Read a serialized graph blob (JSON) and load it; cached per file."""
    try:
        with open(file, encoding="utf-8") as f:
            blob = json.load(f)
    except json.JSONDecodeError as exc:
        raise GraphLoadError(f"graph file {file!r} is not valid JSON") from exc
    return load_graph_blob(blob, max_straight_edge_distance=max_straight_edge_distance)


class NavigationCache:
    """Build-once store for expensive navigation structures.

    The lock is held while the factory runs, so concurrent callers asking for
    the same key wait for the first build instead of starting their own. A
    failing factory leaves nothing cached.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: dict[Hashable, Any] = {}
        self.builds = 0

    def get_or_build(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if key not in self._items:
                self._items[key] = factory()
                self.builds += 1
            return self._items[key]

    def invalidate(self, key: Hashable | None = None) -> None:
        with self._lock:
            if key is None:
                self._items.clear()
            else:
                self._items.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items
