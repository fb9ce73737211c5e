# geonav/domain/navigation/nav_spatial_index.py
import math
from collections.abc import Callable

import numpy as np

from geonav.app.protocols import NearestNodeIndex
from geonav.domain.entities.geography import Bounds, PlanePoint
from geonav.domain.entities.graph import Graph, GraphNode

NodeFilter = Callable[[GraphNode], bool]


class GridSpatialIndex(NearestNodeIndex):
    """Uniform grid over node positions.

    A query scans the query cell, then square rings of cells around it. A node
    in ring ``r`` is at least ``(r - 1) * cell_size`` away, so the scan stops
    once the best candidate beats that bound for the next ring.
    """

    def __init__(
        self,
        graph: Graph,
        *,
        bounds: Bounds | None = None,
        cell_size: float = 45.0,
        padding: float = 0.1,
        node_filter: NodeFilter | None = None,
    ):
        if not cell_size > 0:
            raise ValueError(f"cell_size must be > 0, got {cell_size}")
        nodes = [n for n in graph.nodes_by_id.values() if node_filter is None or node_filter(n)]
        self.cell_size = float(cell_size)
        self._ids = [n.id for n in nodes]
        self._xy = np.array([[n.position.x, n.position.y] for n in nodes], dtype=float).reshape(
            -1, 2
        )
        self._cells: dict[tuple[int, int], list[int]] = {}
        self.bounds: Bounds | None = None
        if not nodes:
            self.cols = self.rows = 0
            return

        extent = Bounds.around((n.position for n in nodes), padding)
        if bounds is not None:
            # supplied bounds may be stale; the grid must still cover every node
            extent = Bounds(
                min(bounds.min_x, extent.min_x),
                min(bounds.min_y, extent.min_y),
                max(bounds.max_x, extent.max_x),
                max(bounds.max_y, extent.max_y),
            )
        self.bounds = extent
        self.cols = max(1, math.ceil(extent.width / self.cell_size))
        self.rows = max(1, math.ceil(extent.height / self.cell_size))

        origin = np.array([extent.min_x, extent.min_y])
        ij = np.floor((self._xy - origin) / self.cell_size).astype(int)
        ij[:, 0] = np.clip(ij[:, 0], 0, self.cols - 1)
        ij[:, 1] = np.clip(ij[:, 1], 0, self.rows - 1)
        for k, (i, j) in enumerate(ij.tolist()):
            self._cells.setdefault((i, j), []).append(k)

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    # --------------- queries -----------------------------

    def _cell_of(self, p: PlanePoint) -> tuple[int, int]:
        return (
            math.floor((p.x - self.bounds.min_x) / self.cell_size),
            math.floor((p.y - self.bounds.min_y) / self.cell_size),
        )

    def _ring(self, ci: int, cj: int, r: int):
        if r == 0:
            yield ci, cj
            return
        i0, i1 = max(ci - r, 0), min(ci + r, self.cols - 1)
        for j in (cj - r, cj + r):
            if 0 <= j < self.rows:
                for i in range(i0, i1 + 1):
                    yield i, j
        j0, j1 = max(cj - r + 1, 0), min(cj + r - 1, self.rows - 1)
        for i in (ci - r, ci + r):
            if 0 <= i < self.cols:
                for j in range(j0, j1 + 1):
                    yield i, j

    def nearest_with_distance(
        self, p: PlanePoint, max_radius: float | None = None
    ) -> tuple[str, float] | None:
        if not self._ids or not p.is_finite:
            return None
        limit = math.inf if max_radius is None else max_radius
        ci, cj = self._cell_of(p)
        # rings closer than the grid itself hold no cells
        r_min = max(0, -ci, ci - (self.cols - 1), -cj, cj - (self.rows - 1))
        r_max = max(ci, self.cols - 1 - ci, cj, self.rows - 1 - cj)

        best: tuple[float, str] | None = None
        for r in range(r_min, r_max + 1):
            lower = max(0.0, (r - 1) * self.cell_size)
            if lower > limit or (best is not None and best[0] < lower):
                break
            for cell in self._ring(ci, cj, r):
                for k in self._cells.get(cell, ()):
                    x, y = self._xy[k]
                    d = math.hypot(float(x) - p.x, float(y) - p.y)
                    if d > limit:
                        continue
                    cand = (d, self._ids[k])
                    if best is None or cand < best:
                        best = cand
        if best is None:
            return None
        return best[1], best[0]

    def nearest(self, p: PlanePoint, max_radius: float | None = None) -> str | None:
        hit = self.nearest_with_distance(p, max_radius)
        return None if hit is None else hit[0]

    def contains(self, p: PlanePoint, margin: float = 0.0) -> bool:
        return self.bounds is not None and self.bounds.contains(p, margin)


def build_spatial_index(
    graph: Graph,
    bounds: Bounds | None = None,
    cell_size: float = 45.0,
    padding: float = 0.1,
    node_filter: NodeFilter | None = None,
) -> GridSpatialIndex:
    return GridSpatialIndex(
        graph,
        bounds=bounds if bounds is not None else graph.bounds,
        cell_size=cell_size,
        padding=padding,
        node_filter=node_filter,
    )
