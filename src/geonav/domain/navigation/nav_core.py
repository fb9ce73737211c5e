# geonav/domain/navigation/nav_core.py
from dataclasses import dataclass, field

from geonav.app.protocols import (
    CancelCheck,
    CoordinateTransform,
    NavigationHooks,
    NearestNodeIndex,
    RoutePlanner,
)
from geonav.domain.entities.geography import GeoPoint, PlanePoint, haversine_m
from geonav.domain.entities.graph import Graph
from geonav.domain.entities.route import PathResult
from geonav.domain.navigation.nav_bridge import Endpoint, IndoorOutdoorBridge
from geonav.runtime.hooks import NoopHooks


@dataclass
class NavigationService:
    transform: CoordinateTransform
    graph: Graph
    index: NearestNodeIndex
    pathfinder: RoutePlanner
    bridge: IndoorOutdoorBridge
    hooks: NavigationHooks = field(default_factory=NoopHooks)

    def to_plane(self, p: GeoPoint) -> PlanePoint:
        return self.transform.to_plane(p)

    def to_geo(self, p: PlanePoint) -> GeoPoint:
        return self.transform.to_geo(p)

    def covers(self, p: GeoPoint) -> bool:
        return self.transform.covers(p)

    def distance_m(self, a: GeoPoint, b: GeoPoint) -> float:
        return haversine_m(a, b)

    def find_path(
        self, a: PlanePoint, b: PlanePoint, *, should_cancel: CancelCheck | None = None
    ) -> PathResult:
        result = self.pathfinder.find_path(a, b, should_cancel=should_cancel)
        self.hooks.route(result, query="plane")
        return result

    def find_path_geo(
        self, a: GeoPoint, b: GeoPoint, *, should_cancel: CancelCheck | None = None
    ) -> PathResult:
        result = self.pathfinder.find_path(
            self.to_plane(a), self.to_plane(b), should_cancel=should_cancel
        )
        self.hooks.route(result, query="geo")
        return result

    def find_cross_building_path(
        self,
        origin: Endpoint,
        destination: Endpoint,
        *,
        accessible_only: bool = False,
        should_cancel: CancelCheck | None = None,
    ) -> PathResult:
        result = self.bridge.find_cross_building_path(
            origin, destination, accessible_only=accessible_only, should_cancel=should_cancel
        )
        self.hooks.route(result, query="cross_building")
        return result

    def route_to_geo(self, result: PathResult) -> tuple[GeoPoint, ...]:
        return result.to_geo(self.transform)
