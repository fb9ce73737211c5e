from collections.abc import Callable
from typing import Protocol, runtime_checkable

from geonav.domain.entities.geography import GeoPoint, PlanePoint
from geonav.domain.entities.graph import Graph
from geonav.domain.entities.route import PathResult

CancelCheck = Callable[[], bool]


# ------------- Navigation --------------------
@runtime_checkable
class CoordinateTransform(Protocol):
    """
    Responsibilities:
    • Map GPS (lat/lon) onto the map canvas and back.
    • Report how well the fitted model matches its calibration pairs.
    Units: degrees for GeoPoints; canvas units for PlanePoints.
    """

    kind: str

    def to_plane(self, p: GeoPoint) -> PlanePoint: ...
    def to_geo(self, p: PlanePoint) -> GeoPoint: ...
    def covers(self, p: GeoPoint) -> bool: ...


@runtime_checkable
class NearestNodeIndex(Protocol):
    """
    Responsibilities:
      • Snap an arbitrary plane point to the closest graph node.
      • Never raise on empty graphs or far-away points; answer None instead.
    """

    def nearest(self, p: PlanePoint, max_radius: float | None = None) -> str | None: ...
    def nearest_with_distance(
        self, p: PlanePoint, max_radius: float | None = None
    ) -> tuple[str, float] | None: ...
    def contains(self, p: PlanePoint, margin: float = 0.0) -> bool: ...


@runtime_checkable
class RoutePlanner(Protocol):
    """
    Responsibilities:
      • Compute a path between two plane points over one graph.
      • Report failures as PathResult statuses, not exceptions.
    """

    graph: Graph

    def find_path(
        self, a: PlanePoint, b: PlanePoint, *, should_cancel: CancelCheck | None = None
    ) -> PathResult: ...
    def route_nodes(
        self, start: str, goal: str, *, should_cancel: CancelCheck | None = None
    ) -> PathResult: ...


@runtime_checkable
class NavigationHooks(Protocol):
    def calibrated(self, *, kind: str, residual) -> None: ...
    def graph_loaded(self, *, name: str, stats) -> None: ...
    def index_built(self, *, name: str, nodes: int, cells: int, cell_size: float) -> None: ...
    def route(self, result: PathResult, *, query: str) -> None: ...
    def error(self, *, stage: str, exc: BaseException, **extra) -> None: ...
