# tests/navigation/test_pathfinders.py
import itertools
import math

import pytest

from geonav.domain.entities.geography import PlanePoint
from geonav.domain.entities.route import OUTDOOR, RouteStatus
from geonav.domain.navigation.nav_graph_store import load_graph
from geonav.domain.navigation.nav_pathfinders import GraphPathfinder, find_path
from geonav.domain.navigation.nav_spatial_index import build_spatial_index

EXPENSIVE = (("1_1", "1_2"), 100.0)


def _grid(n=5, step=10.0):
    nodes = {f"{i}_{j}": {"x": i * step, "y": j * step} for i in range(n) for j in range(n)}
    edges = {k: [] for k in nodes}
    for i, j in itertools.product(range(n), range(n)):
        for di, dj in ((1, 0), (0, 1)):
            if i + di < n and j + dj < n:
                a, b = f"{i}_{j}", f"{i + di}_{j + dj}"
                d = EXPENSIVE[1] if {a, b} == set(EXPENSIVE[0]) else step
                edges[a].append({"to": b, "distance": d})
                edges[b].append({"to": a, "distance": d})
    return load_graph(nodes, edges, max_straight_edge_distance=1000.0)


def _bellman_ford(graph, start):
    dist = {k: math.inf for k in graph.nodes_by_id}
    dist[start] = 0.0
    for _ in range(len(dist)):
        changed = False
        for u, es in graph.adjacency.items():
            for e in es:
                if dist[u] + e.distance < dist[e.to]:
                    dist[e.to] = dist[u] + e.distance
                    changed = True
        if not changed:
            break
    return dist


@pytest.fixture
def grid():
    return _grid()


def _planner(graph, **kw):
    return GraphPathfinder(graph, build_spatial_index(graph), **kw)


@pytest.mark.parametrize("algorithm", ["astar", "dijkstra"])
def test_matches_brute_force(grid, algorithm):
    planner = _planner(grid, algorithm=algorithm)
    assert planner.algorithm == algorithm
    for start in grid.nodes_by_id:
        truth = _bellman_ford(grid, start)
        for goal in grid.nodes_by_id:
            res = planner.route_nodes(start, goal)
            assert res.ok
            assert abs(res.distance - truth[goal]) < 1e-9
            assert res.points[0] == grid.node_point(start)
            assert res.points[-1] == grid.node_point(goal)


def test_expensive_edge_is_avoided(grid):
    res = _planner(grid).route_nodes("1_1", "1_2")
    assert res.distance == 30.0
    assert len(res.points) == 4


def test_steps_have_no_repeats_and_are_outdoor(grid):
    res = _planner(grid).find_path(PlanePoint(1, 1), PlanePoint(39, 41))
    assert res.ok
    assert res.start_node == "0_0" and res.end_node == "4_4"
    assert abs(res.start_snap_distance - math.hypot(1, 1)) < 1e-12
    assert all(a != b for a, b in zip(res.points, res.points[1:]))
    assert res.spaces() == [OUTDOOR]


def test_disconnected_is_not_found():
    g = load_graph(
        {"a": {"x": 0, "y": 0}, "b": {"x": 10, "y": 0}, "c": {"x": 30, "y": 0}},
        {"a": [{"to": "b", "distance": 10}], "b": [{"to": "a", "distance": 10}]},
    )
    res = find_path(g, build_spatial_index(g), PlanePoint(0, 0), PlanePoint(30, 0))
    assert res.status is RouteStatus.NOT_FOUND
    assert res.reason == "no path"
    assert res.steps == ()


def test_one_way_edges_are_respected():
    g = load_graph(
        {"a": {"x": 0, "y": 0}, "b": {"x": 10, "y": 0}},
        {"a": [{"to": "b", "distance": 10}]},
    )
    planner = _planner(g)
    assert planner.route_nodes("a", "b").ok
    assert planner.route_nodes("b", "a").status is RouteStatus.NOT_FOUND


@pytest.fixture
def line_with_route():
    nodes = {"a": {"x": 0, "y": 0}, "b": {"x": 10, "y": 0}, "c": {"x": 20, "y": 0}}
    edges = {
        "a": [{"to": "b", "distance": 10}],
        "b": [{"to": "a", "distance": 10}, {"to": "c", "distance": 10}],
        "c": [{"to": "b", "distance": 10}],
    }
    routes = [{"fromId": "a", "toId": "c", "path": [[0, 0], [5, 5], [20, 0]]}]
    return load_graph(nodes, edges, routes)


def test_predefined_route_forward_and_reversed(line_with_route):
    planner = _planner(line_with_route)
    fwd = planner.find_path(PlanePoint(0, 0), PlanePoint(20, 0))
    assert fwd.algorithm == "predefined"
    assert fwd.points == (PlanePoint(0, 0), PlanePoint(5, 5), PlanePoint(20, 0))

    back = planner.find_path(PlanePoint(20, 0), PlanePoint(0, 0))
    assert back.algorithm == "predefined"
    assert back.points == (PlanePoint(20, 0), PlanePoint(5, 5), PlanePoint(0, 0))
    assert abs(back.distance - (math.hypot(5, 5) + math.hypot(15, 5))) < 1e-9


def test_predefined_route_matched_by_endpoint_tolerance():
    nodes = {"a": {"x": 0, "y": 0}, "b": {"x": 10, "y": 0}, "c": {"x": 20, "y": 0}}
    edges = {"a": [{"to": "b", "distance": 10}], "b": [{"to": "c", "distance": 10}]}
    # stored against a -> b, but its geometry runs between a and c
    routes = [{"fromId": "a", "toId": "b", "path": [[0.5, 0], [10, 3], [19.5, 0.5]]}]
    planner = _planner(load_graph(nodes, edges, routes))
    res = planner.find_path(PlanePoint(0, 0), PlanePoint(20, 0))
    assert res.algorithm == "predefined"
    assert res.points[1] == PlanePoint(10, 3)

    strict = _planner(load_graph(nodes, edges, routes), predefined_tolerance=0.1)
    assert strict.find_path(PlanePoint(0, 0), PlanePoint(20, 0)).algorithm == "astar"


def test_geometric_edge_wins_equal_cost_tie():
    nodes = {
        "s": {"x": 0, "y": 0},
        "m1": {"x": 5, "y": 5},
        "m2": {"x": 5, "y": -5},
        "t": {"x": 10, "y": 0},
    }
    edges = {
        "s": [{"to": "m1", "distance": 10}, {"to": "m2", "distance": 10}],
        "m1": [{"to": "t", "distance": 10}],
        "m2": [{"to": "t", "distance": 10, "points": [[5, -5], [7, -4], [10, 0]]}],
    }
    g = load_graph(nodes, edges)
    for algorithm in ("astar", "dijkstra"):
        res = _planner(g, algorithm=algorithm).route_nodes("s", "t")
        assert res.distance == 20.0
        assert res.points == (
            PlanePoint(0, 0),
            PlanePoint(5, -5),
            PlanePoint(7, -4),
            PlanePoint(10, 0),
        )


def test_cancellation(grid):
    planner = _planner(grid)
    res = planner.route_nodes("0_0", "4_4", should_cancel=lambda: True)
    assert res.status is RouteStatus.CANCELLED
    assert res.expanded == 0

    polls = itertools.count()
    res = planner.route_nodes("0_0", "4_4", should_cancel=lambda: next(polls) >= 3)
    assert res.status is RouteStatus.CANCELLED
    assert 0 < res.expanded <= 3
    # the graph is untouched; the next query succeeds
    assert planner.route_nodes("0_0", "4_4").distance == 80.0


def test_out_of_bounds(grid):
    planner = _planner(grid, snap_radius=500.0)
    res = planner.find_path(PlanePoint(10_000, 10_000), PlanePoint(0, 0))
    assert res.status is RouteStatus.OUT_OF_BOUNDS


def test_snap_failure_is_not_found():
    g = load_graph({"a": {"x": 0, "y": 0}, "b": {"x": 1000, "y": 1000}}, {})
    planner = _planner(g, snap_radius=100.0)
    res = planner.find_path(PlanePoint(500, 500), PlanePoint(0, 0))
    assert res.status is RouteStatus.NOT_FOUND
    assert res.reason.startswith("unreachable/off-graph")


def test_empty_graph_is_not_found():
    g = load_graph({}, {})
    res = _planner(g).find_path(PlanePoint(0, 0), PlanePoint(1, 1))
    assert res.status is RouteStatus.NOT_FOUND


def test_same_node_is_a_single_point(grid):
    res = _planner(grid).find_path(PlanePoint(0, 0), PlanePoint(1, 0))
    assert res.ok
    assert res.points == (PlanePoint(0, 0),)
    assert res.distance == 0.0


def test_heuristic_disabled_when_unsafe():
    inconsistent = load_graph(
        {"a": {"x": 0, "y": 0}, "b": {"x": 30, "y": 0}}, {"a": [{"to": "b", "distance": 5}]}
    )
    assert _planner(inconsistent).algorithm == "dijkstra"

    floors = load_graph(
        {"G/a": {"x": 0, "y": 0, "floorId": "G"}, "L1/a": {"x": 0, "y": 0, "floorId": "L1"}},
        {},
    )
    assert _planner(floors).algorithm == "dijkstra"


def test_unknown_algorithm_rejected(grid):
    with pytest.raises(ValueError):
        _planner(grid, algorithm="bfs")
