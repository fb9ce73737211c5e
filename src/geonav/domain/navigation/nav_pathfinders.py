# geonav/domain/navigation/nav_pathfinders.py
import heapq
import itertools
import math
from dataclasses import replace

from geonav.app.protocols import CancelCheck, NearestNodeIndex, RoutePlanner
from geonav.domain.entities.geography import PlanePoint
from geonav.domain.entities.graph import Graph, GraphEdge, PredefinedRoute
from geonav.domain.entities.route import PathResult, RouteStatus, RouteStep, Space

SNAP_RADIUS = 500.0
PREDEFINED_TOLERANCE = 2.0


def polyline_length(points) -> float:
    return sum(a.distance_to(b) for a, b in zip(points, points[1:]))


class GraphPathfinder(RoutePlanner):
    def __init__(
        self,
        graph: Graph,
        index: NearestNodeIndex,
        *,
        algorithm: str = "astar",
        snap_radius: float = SNAP_RADIUS,
        predefined_tolerance: float = PREDEFINED_TOLERANCE,
    ):
        if algorithm not in ("astar", "dijkstra"):
            raise ValueError(f"Unknown search algorithm {algorithm!r}")
        self.graph, self.index = graph, index
        self.snap_radius, self.predefined_tolerance = snap_radius, predefined_tolerance
        floors = {n.floor_id for n in graph.nodes_by_id.values()}
        # plane distance is not a lower bound across floors or with short-cut edges
        heuristic_ok = graph.stats.inconsistent_edges == 0 and len(floors) <= 1
        self.algorithm = "astar" if algorithm == "astar" and heuristic_ok else "dijkstra"

    def _space(self, node_id: str) -> Space:
        return Space.of(self.graph.node(node_id).floor_id)

    # --------------- point queries -----------------------------

    def find_path(
        self, a: PlanePoint, b: PlanePoint, *, should_cancel: CancelCheck | None = None
    ) -> PathResult:
        if len(self.graph) == 0:
            return PathResult.failed(RouteStatus.NOT_FOUND, "unreachable/off-graph: empty graph")
        for name, p in (("origin", a), ("destination", b)):
            if not self.index.contains(p, margin=self.snap_radius):
                return PathResult.failed(
                    RouteStatus.OUT_OF_BOUNDS, f"{name} ({p.x:.1f}, {p.y:.1f}) is off the map"
                )
        sa = self.index.nearest_with_distance(a, self.snap_radius)
        sb = self.index.nearest_with_distance(b, self.snap_radius)
        if sa is None or sb is None:
            which = "origin" if sa is None else "destination"
            return PathResult.failed(
                RouteStatus.NOT_FOUND,
                f"unreachable/off-graph: no node within {self.snap_radius:g} of the {which}",
            )
        snap = {
            "start_snap_distance": sa[1],
            "end_snap_distance": sb[1],
        }

        route = self.predefined_route(sa[0], sb[0])
        if route is not None:
            space = self._space(sa[0])
            return PathResult(
                status=RouteStatus.FOUND,
                steps=tuple(RouteStep(space, q) for q in route.points),
                distance=polyline_length(route.points),
                start_node=sa[0],
                end_node=sb[0],
                algorithm="predefined",
                **snap,
            )
        return replace(self.route_nodes(sa[0], sb[0], should_cancel=should_cancel), **snap)

    def predefined_route(self, start: str, goal: str) -> PredefinedRoute | None:
        if start == goal or not self.graph.predefined_routes:
            return None
        for r in self.graph.predefined_routes:
            if (r.from_id, r.to_id) == (start, goal):
                return r
            if (r.from_id, r.to_id) == (goal, start):
                return r.reversed()
        ps, pg = self.graph.node_point(start), self.graph.node_point(goal)
        tol = self.predefined_tolerance
        for r in self.graph.predefined_routes:
            first, last = r.points[0], r.points[-1]
            if first.distance_to(ps) <= tol and last.distance_to(pg) <= tol:
                return r
            if last.distance_to(ps) <= tol and first.distance_to(pg) <= tol:
                return r.reversed()
        return None

    # --------------- node search -----------------------------

    def route_nodes(
        self, start: str, goal: str, *, should_cancel: CancelCheck | None = None
    ) -> PathResult:
        G = self.graph
        if start not in G.nodes_by_id or goal not in G.nodes_by_id:
            return PathResult.failed(RouteStatus.NOT_FOUND, "unknown start or goal node")
        if start == goal:
            return PathResult(
                status=RouteStatus.FOUND,
                steps=(RouteStep(self._space(start), G.node_point(start)),),
                start_node=start,
                end_node=goal,
                algorithm=self.algorithm,
            )

        goal_pt = G.node_point(goal)
        if self.algorithm == "astar":

            def h(n: str) -> float:
                return G.node_point(n).distance_to(goal_pt)

        else:

            def h(n: str) -> float:
                return 0.0

        dist: dict[str, float] = {start: 0.0}
        prev: dict[str, tuple[str, GraphEdge]] = {}
        closed: set[str] = set()
        seq = itertools.count()
        heap = [(h(start), next(seq), start)]
        expanded = 0
        while heap:
            if should_cancel is not None and should_cancel():
                return PathResult.failed(
                    RouteStatus.CANCELLED,
                    "search cancelled",
                    start_node=start,
                    end_node=goal,
                    algorithm=self.algorithm,
                    expanded=expanded,
                )
            _, _, u = heapq.heappop(heap)
            if u in closed:
                continue
            closed.add(u)
            expanded += 1
            if u == goal:
                break
            du = dist[u]
            for e in G.edges(u):
                if e.to in closed:
                    continue
                nd = du + e.distance
                old = dist.get(e.to, math.inf)
                if nd < old:
                    dist[e.to] = nd
                    prev[e.to] = (u, e)
                    heapq.heappush(heap, (nd + h(e.to), next(seq), e.to))
                elif nd == old and e.has_geometry and not prev[e.to][1].has_geometry:
                    prev[e.to] = (u, e)

        if goal not in closed:
            return PathResult.failed(
                RouteStatus.NOT_FOUND,
                "no path",
                start_node=start,
                end_node=goal,
                algorithm=self.algorithm,
                expanded=expanded,
            )
        return PathResult(
            status=RouteStatus.FOUND,
            steps=self._reconstruct(start, goal, prev),
            distance=dist[goal],
            start_node=start,
            end_node=goal,
            algorithm=self.algorithm,
            expanded=expanded,
        )

    def _reconstruct(self, start: str, goal: str, prev) -> tuple[RouteStep, ...]:
        chain: list[tuple[str, GraphEdge]] = []
        v = goal
        while v != start:
            u, e = prev[v]
            chain.append((u, e))
            v = u
        chain.reverse()

        steps = [RouteStep(self._space(start), self.graph.node_point(start))]
        for _, e in chain:
            space = self._space(e.to)
            pts = e.points if e.has_geometry else (self.graph.node_point(e.to),)
            for q in pts:
                step = RouteStep(space, q)
                # a floor change at the same x/y is a real step
                if steps[-1] != step:
                    steps.append(step)
        return tuple(steps)


def find_path(
    graph: Graph,
    index: NearestNodeIndex,
    a: PlanePoint,
    b: PlanePoint,
    *,
    algorithm: str = "astar",
    snap_radius: float = SNAP_RADIUS,
    predefined_tolerance: float = PREDEFINED_TOLERANCE,
    should_cancel: CancelCheck | None = None,
) -> PathResult:
    planner = GraphPathfinder(
        graph,
        index,
        algorithm=algorithm,
        snap_radius=snap_radius,
        predefined_tolerance=predefined_tolerance,
    )
    return planner.find_path(a, b, should_cancel=should_cancel)
