# geonav/domain/navigation/nav_bridge.py
"""Routes that cross building boundaries.

Each building gets one indoor network: every floor graph loaded with node ids
namespaced ``"<floor_id>/<node_id>"``, plus hop edges between floors through
connection points. Outdoor and indoor legs are spliced at entrances; an
entrance has an outdoor GPS position and an indoor position on its floor.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, fields, replace
from types import MappingProxyType

from geonav.app.protocols import CancelCheck, CoordinateTransform
from geonav.domain.entities.building import Building, ConnectionPoint, Entrance, Floor
from geonav.domain.entities.geography import GeoPoint, PlanePoint
from geonav.domain.entities.graph import Graph, GraphEdge, LoadStats, StraightEdge
from geonav.domain.entities.route import OUTDOOR, PathResult, RouteStatus, RouteStep, Space
from geonav.domain.errors import BuildingDataError
from geonav.domain.navigation.nav_graph_store import load_graph
from geonav.domain.navigation.nav_pathfinders import SNAP_RADIUS, GraphPathfinder
from geonav.domain.navigation.nav_spatial_index import GridSpatialIndex, build_spatial_index

FLOOR_CHANGE_COST = 50.0
CONNECTION_SNAP_RADIUS = 100.0


@dataclass(frozen=True)
class OutdoorEndpoint:
    point: PlanePoint

    @classmethod
    def from_geo(cls, geo: GeoPoint, transform: CoordinateTransform) -> "OutdoorEndpoint":
        return cls(transform.to_plane(geo))


@dataclass(frozen=True)
class IndoorEndpoint:
    building_id: str
    floor_id: str
    point: PlanePoint  # floor-plan coordinates

    @classmethod
    def from_poi(cls, building: Building, poi_id: str) -> "IndoorEndpoint":
        poi = building.poi(poi_id)
        if poi is None:
            raise BuildingDataError(
                f"unknown point of interest {poi_id!r}", details={"building": building.id}
            )
        return cls(building.id, poi.floor_id, poi.position)


Endpoint = OutdoorEndpoint | IndoorEndpoint


def _check_building(building: Building) -> None:
    floor_ids = [f.id for f in building.floors]
    if not floor_ids:
        raise BuildingDataError(f"building {building.id!r} has no floors")
    if len(set(floor_ids)) != len(floor_ids):
        raise BuildingDataError(
            f"building {building.id!r} has duplicate floor ids", details={"floors": floor_ids}
        )
    known = set(floor_ids)
    for f in building.floors:
        if f.building_id != building.id:
            raise BuildingDataError(
                f"floor {f.id!r} belongs to building {f.building_id!r}, not {building.id!r}"
            )
        for cp in f.connection_points:
            if cp.floor_id != f.id:
                raise BuildingDataError(
                    f"connection point {cp.id!r} is listed on floor {f.id!r} "
                    f"but placed on {cp.floor_id!r}"
                )
            if cp.connects_to_floor_id == f.id:
                raise BuildingDataError(
                    f"connection point {cp.id!r} leads back to its own floor {f.id!r}"
                )
            if cp.connects_to_floor_id is not None and cp.connects_to_floor_id not in known:
                raise BuildingDataError(
                    f"connection point {cp.id!r} leads to unknown floor "
                    f"{cp.connects_to_floor_id!r}",
                    details={"building": building.id},
                )
    poi_ids: set[str] = set()
    for f in building.floors:
        for poi in f.pois:
            if poi.floor_id != f.id:
                raise BuildingDataError(
                    f"point of interest {poi.id!r} is listed on floor {f.id!r} "
                    f"but placed on {poi.floor_id!r}"
                )
            if poi.id in poi_ids:
                raise BuildingDataError(
                    f"duplicate point of interest {poi.id!r}", details={"building": building.id}
                )
            poi_ids.add(poi.id)
    for e in building.entrances:
        if e.building_id != building.id:
            raise BuildingDataError(
                f"entrance {e.id!r} belongs to building {e.building_id!r}, not {building.id!r}"
            )
        if e.floor_id not in known:
            raise BuildingDataError(
                f"entrance {e.id!r} is on unknown floor {e.floor_id!r}",
                details={"building": building.id},
            )


def _partner(cp: ConnectionPoint, target: Floor) -> ConnectionPoint | None:
    """Same name first, then same kind, on the floor the connection leads to."""
    same_name = [c for c in target.connection_points if c.name == cp.name]
    same_kind = [c for c in target.connection_points if c.kind == cp.kind]
    return (same_name or same_kind or [None])[0]


def _sum_stats(stats: Iterable[LoadStats]) -> LoadStats:
    total = {f.name: 0 for f in fields(LoadStats)}
    for s in stats:
        for f in fields(LoadStats):
            total[f.name] += getattr(s, f.name)
    return LoadStats(**total)


class IndoorNetwork:
    """All floors of one building merged into a single searchable graph."""

    def __init__(
        self,
        building: Building,
        *,
        floor_change_cost: float = FLOOR_CHANGE_COST,
        connection_snap_radius: float = CONNECTION_SNAP_RADIUS,
        snap_radius: float = SNAP_RADIUS,
        accessible_only: bool = False,
        cell_size: float = 45.0,
    ):
        _check_building(building)
        self.building, self.accessible_only = building, accessible_only
        self.snap_radius = snap_radius

        nodes: dict = {}
        adjacency: dict[str, list[GraphEdge]] = {}
        floor_stats = []
        for floor in building.ordered_floors():
            # floor plans are drawn by hand with straight corridors: keep long edges
            g = load_graph(
                floor.nodes,
                floor.edges,
                floor_id=floor.id,
                id_prefix=f"{floor.id}/",
                max_straight_edge_distance=math.inf,
            )
            nodes.update(g.nodes_by_id)
            adjacency.update({k: list(v) for k, v in g.adjacency.items()})
            floor_stats.append(g.stats)

        plain = Graph(MappingProxyType(dict(nodes)), MappingProxyType({}))
        self.floor_index: dict[str, GridSpatialIndex] = {
            f.id: build_spatial_index(
                plain, cell_size=cell_size, node_filter=lambda n, fid=f.id: n.floor_id == fid
            )
            for f in building.floors
        }

        self.hops = 0
        self.skipped_connections: list[str] = []
        linked: set[tuple[str, str]] = set()
        for floor in building.ordered_floors():
            for cp in floor.connection_points:
                if cp.connects_to_floor_id is None:
                    continue
                if accessible_only and not cp.is_accessible:
                    continue
                target = building.floor(cp.connects_to_floor_id)
                partner = _partner(cp, target)
                if accessible_only and partner is not None and not partner.is_accessible:
                    self.skipped_connections.append(cp.id)
                    continue
                here = self.floor_index[floor.id].nearest_with_distance(
                    cp.position, connection_snap_radius
                )
                there = self.floor_index[target.id].nearest_with_distance(
                    partner.position if partner else cp.position, connection_snap_radius
                )
                if here is None or there is None:
                    self.skipped_connections.append(cp.id)
                    continue
                (a, da), (b, db) = here, there
                if (a, b) in linked:
                    continue
                cost = floor_change_cost + da + db
                adjacency[a].append(StraightEdge(b, cost, street=cp.name or cp.kind))
                adjacency[b].append(StraightEdge(a, cost, street=cp.name or cp.kind))
                linked.update({(a, b), (b, a)})
                self.hops += 1

        stats = replace(_sum_stats(floor_stats), edges=sum(len(v) for v in adjacency.values()))
        self.graph = Graph(
            nodes_by_id=MappingProxyType(nodes),
            adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
            stats=stats,
        )
        self.planner = GraphPathfinder(
            self.graph,
            build_spatial_index(self.graph, cell_size=cell_size),
            algorithm="dijkstra",
            snap_radius=snap_radius,
        )

    def route(
        self,
        floor_a: str,
        pa: PlanePoint,
        floor_b: str,
        pb: PlanePoint,
        *,
        should_cancel: CancelCheck | None = None,
    ) -> PathResult:
        ia, ib = self.floor_index.get(floor_a), self.floor_index.get(floor_b)
        if ia is None or ib is None:
            missing = floor_a if ia is None else floor_b
            return PathResult.failed(
                RouteStatus.NOT_FOUND, f"unknown floor {missing!r} in {self.building.id!r}"
            )
        sa = ia.nearest_with_distance(pa, self.snap_radius)
        sb = ib.nearest_with_distance(pb, self.snap_radius)
        if sa is None or sb is None:
            return PathResult.failed(RouteStatus.NOT_FOUND, "unreachable/off-graph: indoor point")
        res = self.planner.route_nodes(sa[0], sb[0], should_cancel=should_cancel)
        steps = tuple(
            RouteStep(Space.indoor(s.space.floor_id, self.building.id), s.point) for s in res.steps
        )
        return replace(res, steps=steps, start_snap_distance=sa[1], end_snap_distance=sb[1])


# ------------- Splicing --------------------------


def _splice(*parts: Sequence[RouteStep]) -> tuple[RouteStep, ...]:
    out: list[RouteStep] = []
    for part in parts:
        for s in part:
            if not out or out[-1] != s:
                out.append(s)
    return tuple(out)


def _stop(result: PathResult) -> bool:
    return result.status is RouteStatus.CANCELLED


class IndoorOutdoorBridge:
    def __init__(
        self,
        *,
        outdoor: GraphPathfinder,
        transform: CoordinateTransform,
        buildings: Sequence[Building] = (),
        floor_change_cost: float = FLOOR_CHANGE_COST,
        connection_snap_radius: float = CONNECTION_SNAP_RADIUS,
        cell_size: float = 45.0,
    ):
        self.outdoor, self.transform = outdoor, transform
        self.buildings = {b.id: b for b in buildings}
        if len(self.buildings) != len(buildings):
            raise BuildingDataError("duplicate building ids")
        kw = dict(
            floor_change_cost=floor_change_cost,
            connection_snap_radius=connection_snap_radius,
            snap_radius=outdoor.snap_radius,
            cell_size=cell_size,
        )
        self.networks = {b.id: IndoorNetwork(b, **kw) for b in buildings}
        self.accessible_networks = {
            b.id: IndoorNetwork(b, accessible_only=True, **kw) for b in buildings
        }
        self.entrance_points = {
            e.id: transform.to_plane(e.geo) for b in buildings for e in b.entrances
        }

    def _network(self, building_id: str, accessible_only: bool) -> IndoorNetwork | None:
        nets = self.accessible_networks if accessible_only else self.networks
        return nets.get(building_id)

    def _usable(self, building_id: str, accessible_only: bool) -> list[Entrance]:
        return [e for e in self.buildings[building_id].entrances if e.usable(accessible_only)]

    def _candidates(
        self, building_id: str, accessible_only: bool, near: PlanePoint
    ) -> list[Entrance]:
        usable = self._usable(building_id, accessible_only)
        return sorted(usable, key=lambda e: (self.entrance_points[e.id].distance_to(near), e.id))

    # --------------- legs -----------------------------

    def _outdoor_leg(self, a: PlanePoint, b: PlanePoint, should_cancel) -> PathResult:
        return self.outdoor.find_path(a, b, should_cancel=should_cancel)

    def _gap(self, result: PathResult, end: bool, p: PlanePoint) -> float:
        node = result.end_node if end else result.start_node
        return self.outdoor.graph.node_point(node).distance_to(p)

    def _entry(self, e: Entrance) -> tuple[RouteStep, RouteStep]:
        return RouteStep(OUTDOOR, self.entrance_points[e.id]), RouteStep(
            Space.indoor(e.floor_id, e.building_id), e.indoor
        )

    @staticmethod
    def _indoor_gap(net: IndoorNetwork, node: str, p: PlanePoint) -> float:
        return net.graph.node_point(node).distance_to(p)

    def _combine(self, legs: Sequence[PathResult], steps, distance: float, entrances) -> PathResult:
        return PathResult(
            status=RouteStatus.FOUND,
            steps=steps,
            distance=distance,
            start_node=legs[0].start_node,
            end_node=legs[-1].end_node,
            start_snap_distance=legs[0].start_snap_distance,
            end_snap_distance=legs[-1].end_snap_distance,
            algorithm="bridge",
            expanded=sum(r.expanded for r in legs),
            entrance_ids=tuple(e.id for e in entrances),
        )

    # --------------- queries -----------------------------

    def find_cross_building_path(
        self,
        origin: Endpoint,
        destination: Endpoint,
        *,
        accessible_only: bool = False,
        should_cancel: CancelCheck | None = None,
    ) -> PathResult:
        for ep in (origin, destination):
            if isinstance(ep, IndoorEndpoint) and ep.building_id not in self.buildings:
                return PathResult.failed(
                    RouteStatus.NOT_FOUND, f"unknown building {ep.building_id!r}"
                )
            if isinstance(ep, OutdoorEndpoint) and not self.outdoor.index.contains(
                ep.point, margin=self.outdoor.snap_radius
            ):
                return PathResult.failed(
                    RouteStatus.OUT_OF_BOUNDS,
                    f"point ({ep.point.x:.1f}, {ep.point.y:.1f}) is off the map",
                )

        if isinstance(origin, OutdoorEndpoint) and isinstance(destination, OutdoorEndpoint):
            return self._outdoor_leg(origin.point, destination.point, should_cancel)
        if isinstance(origin, IndoorEndpoint) and isinstance(destination, IndoorEndpoint):
            if origin.building_id == destination.building_id:
                net = self._network(origin.building_id, accessible_only)
                return net.route(
                    origin.floor_id,
                    origin.point,
                    destination.floor_id,
                    destination.point,
                    should_cancel=should_cancel,
                )
            return self._between_buildings(origin, destination, accessible_only, should_cancel)
        if isinstance(origin, OutdoorEndpoint):
            return self._into_building(origin, destination, accessible_only, should_cancel)
        return self._out_of_building(origin, destination, accessible_only, should_cancel)

    def _no_entrance(self, building_id: str, accessible_only: bool) -> PathResult:
        what = "open accessible" if accessible_only else "open"
        return PathResult.failed(
            RouteStatus.NO_ACCESSIBLE_ENTRANCE, f"building {building_id!r} has no {what} entrance"
        )

    def _into_building(self, origin, dest, accessible_only, should_cancel) -> PathResult:
        net = self._network(dest.building_id, accessible_only)
        candidates = self._candidates(dest.building_id, accessible_only, origin.point)
        if not candidates:
            return self._no_entrance(dest.building_id, accessible_only)
        for e in candidates:
            out = self._outdoor_leg(origin.point, self.entrance_points[e.id], should_cancel)
            if _stop(out):
                return out
            if not out.ok:
                continue
            ind = net.route(
                e.floor_id, e.indoor, dest.floor_id, dest.point, should_cancel=should_cancel
            )
            if _stop(ind):
                return ind
            if not ind.ok:
                continue
            distance = (
                out.distance
                + self._gap(out, True, self.entrance_points[e.id])
                + self._indoor_gap(net, ind.start_node, e.indoor)
                + ind.distance
            )
            steps = _splice(out.steps, self._entry(e), ind.steps)
            return self._combine([out, ind], steps, distance, [e])
        return PathResult.failed(
            RouteStatus.NOT_FOUND, f"no entrance of {dest.building_id!r} is reachable"
        )

    def _out_of_building(self, origin, dest, accessible_only, should_cancel) -> PathResult:
        net = self._network(origin.building_id, accessible_only)
        candidates = self._candidates(origin.building_id, accessible_only, dest.point)
        if not candidates:
            return self._no_entrance(origin.building_id, accessible_only)
        for e in candidates:
            ind = net.route(
                origin.floor_id, origin.point, e.floor_id, e.indoor, should_cancel=should_cancel
            )
            if _stop(ind):
                return ind
            if not ind.ok:
                continue
            out = self._outdoor_leg(self.entrance_points[e.id], dest.point, should_cancel)
            if _stop(out):
                return out
            if not out.ok:
                continue
            distance = (
                ind.distance
                + self._indoor_gap(net, ind.end_node, e.indoor)
                + self._gap(out, False, self.entrance_points[e.id])
                + out.distance
            )
            steps = _splice(ind.steps, self._entry(e)[::-1], out.steps)
            return self._combine([ind, out], steps, distance, [e])
        return PathResult.failed(
            RouteStatus.NOT_FOUND, f"no entrance of {origin.building_id!r} is reachable"
        )

    def _between_buildings(self, origin, dest, accessible_only, should_cancel) -> PathResult:
        net_a = self._network(origin.building_id, accessible_only)
        net_b = self._network(dest.building_id, accessible_only)
        exits = self._usable(origin.building_id, accessible_only)
        entries = self._usable(dest.building_id, accessible_only)
        if not exits:
            return self._no_entrance(origin.building_id, accessible_only)
        if not entries:
            return self._no_entrance(dest.building_id, accessible_only)

        pts = self.entrance_points
        pairs = sorted(
            ((x, n) for x in exits for n in entries),
            key=lambda xn: (pts[xn[0].id].distance_to(pts[xn[1].id]), xn[0].id, xn[1].id),
        )
        for x, n in pairs:
            ind_a = net_a.route(
                origin.floor_id, origin.point, x.floor_id, x.indoor, should_cancel=should_cancel
            )
            if _stop(ind_a):
                return ind_a
            if not ind_a.ok:
                continue
            out = self._outdoor_leg(pts[x.id], pts[n.id], should_cancel)
            if _stop(out):
                return out
            if not out.ok:
                continue
            ind_b = net_b.route(
                n.floor_id, n.indoor, dest.floor_id, dest.point, should_cancel=should_cancel
            )
            if _stop(ind_b):
                return ind_b
            if not ind_b.ok:
                continue
            distance = (
                ind_a.distance
                + self._indoor_gap(net_a, ind_a.end_node, x.indoor)
                + self._gap(out, False, pts[x.id])
                + out.distance
                + self._gap(out, True, pts[n.id])
                + self._indoor_gap(net_b, ind_b.start_node, n.indoor)
                + ind_b.distance
            )
            steps = _splice(
                ind_a.steps, self._entry(x)[::-1], out.steps, self._entry(n), ind_b.steps
            )
            return self._combine([ind_a, out, ind_b], steps, distance, [x, n])
        return PathResult.failed(
            RouteStatus.NOT_FOUND,
            f"no entrance pair links {origin.building_id!r} and {dest.building_id!r}",
        )
