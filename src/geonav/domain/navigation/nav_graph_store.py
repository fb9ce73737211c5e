# geonav/domain/navigation/nav_graph_store.py
import math
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import numpy as np
from pydantic import ValidationError

from geonav.config.models import RawBoundsModel, RawEdgeModel, RawNodeModel, RawRouteModel
from geonav.domain.entities.geography import Bounds, PlanePoint
from geonav.domain.entities.graph import (
    GeometricEdge,
    Graph,
    GraphEdge,
    GraphNode,
    LoadStats,
    PredefinedRoute,
    StraightEdge,
)
from geonav.domain.errors import GraphLoadError

MAX_STRAIGHT_EDGE_DISTANCE = 45.0


def _validate(model, raw: Any, where: str):
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise GraphLoadError(
            f"malformed {where}", details={"where": where, "errors": exc.errors()}
        ) from exc


def _iter_raw_nodes(raw_nodes: Mapping[str, Any] | Sequence[Any]):
    if isinstance(raw_nodes, Mapping):
        for key, raw in raw_nodes.items():
            yield str(key), raw
        return
    for i, raw in enumerate(raw_nodes):
        node_id = raw.get("id") if isinstance(raw, Mapping) else None
        if node_id is None:
            raise GraphLoadError(f"node #{i} has no id", details={"where": f"nodes[{i}]"})
        yield str(node_id), raw


def _load_nodes(raw_nodes, floor_id: str | None, prefix: str) -> dict[str, GraphNode]:
    nodes: dict[str, GraphNode] = {}
    for key, raw in _iter_raw_nodes(raw_nodes):
        m = _validate(RawNodeModel, raw, f"node {key!r}")
        node_id = prefix + key
        if node_id in nodes:
            raise GraphLoadError(f"duplicate node id {key!r}", details={"where": f"node {key!r}"})
        nodes[node_id] = GraphNode(
            id=node_id,
            position=PlanePoint(m.x, m.y),
            floor_id=floor_id if floor_id is not None else m.floor_id,
        )
    return nodes


def _make_edge(m: RawEdgeModel, prefix: str) -> GraphEdge:
    if m.points is not None and len(m.points) >= 2:
        pts = tuple(PlanePoint(p.x, p.y) for p in m.points)
        return GeometricEdge(prefix + m.to, m.distance, pts, m.street)
    return StraightEdge(prefix + m.to, m.distance, m.street)


def load_graph(
    raw_nodes: Mapping[str, Any] | Sequence[Any],
    raw_edges: Mapping[str, Sequence[Any]],
    predefined_routes: Sequence[Any] | None = None,
    *,
    max_straight_edge_distance: float = MAX_STRAIGHT_EDGE_DISTANCE,
    floor_id: str | None = None,
    id_prefix: str = "",
    bounds: Bounds | None = None,
) -> Graph:
    """Validate raw nodes/edges and build an immutable, cleaned Graph.

    Cleanup drops self-loops, duplicate edges (same target and distance to
    1e-2), straight edges longer than ``max_straight_edge_distance`` and edges
    touching unknown nodes; each rule is counted in ``Graph.stats``.
    Malformed input raises GraphLoadError, nothing is half-loaded.
    """
    nodes = _load_nodes(raw_nodes, floor_id, id_prefix)
    if not isinstance(raw_edges, Mapping):
        raise GraphLoadError("adjacency must be a mapping of node id -> edge list")

    adjacency: dict[str, list[GraphEdge]] = {nid: [] for nid in nodes}
    raw_count = self_loops = duplicates = long_edges = dangling = inconsistent = 0

    for key, raw_list in raw_edges.items():
        src = id_prefix + str(key)
        if isinstance(raw_list, (str, bytes)) or not isinstance(raw_list, Sequence):
            raise GraphLoadError(
                f"edges of {key!r} must be a list", details={"where": f"adjacency {key!r}"}
            )
        raw_count += len(raw_list)
        # every edge is validated, even under a source that is dropped
        parsed = [
            _make_edge(_validate(RawEdgeModel, raw, f"edge {key!r}[{i}]"), id_prefix)
            for i, raw in enumerate(raw_list)
        ]
        if src not in nodes:
            dangling += len(parsed)
            continue
        seen: set[tuple[str, str]] = set()
        for edge in parsed:
            if edge.to == src:
                self_loops += 1
                continue
            if edge.to not in nodes:
                dangling += 1
                continue
            if not edge.has_geometry and edge.distance > max_straight_edge_distance:
                long_edges += 1
                continue
            dup_key = (edge.to, f"{edge.distance:.2f}")
            if dup_key in seen:
                duplicates += 1
                continue
            seen.add(dup_key)
            straight = nodes[src].position.distance_to(nodes[edge.to].position)
            if edge.distance < straight - 1e-9 * max(1.0, straight):
                inconsistent += 1
            adjacency[src].append(edge)

    routes: list[PredefinedRoute] = []
    dangling_routes = 0
    for i, raw in enumerate(predefined_routes or ()):
        m = _validate(RawRouteModel, raw, f"predefined route #{i}")
        from_id, to_id = id_prefix + m.from_id, id_prefix + m.to_id
        if from_id not in nodes or to_id not in nodes:
            dangling_routes += 1
            continue
        pts = tuple(PlanePoint(p.x, p.y) for p in m.path)
        routes.append(PredefinedRoute(from_id, to_id, pts, tuple(m.streets)))

    edge_total = sum(len(v) for v in adjacency.values())
    stats = LoadStats(
        nodes=len(nodes),
        edges=edge_total,
        raw_edges=raw_count,
        self_loops_removed=self_loops,
        duplicates_removed=duplicates,
        long_edges_filtered=long_edges,
        dangling_edges_dropped=dangling,
        dangling_routes_dropped=dangling_routes,
        inconsistent_edges=inconsistent,
    )
    return Graph(
        nodes_by_id=MappingProxyType(nodes),
        adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
        predefined_routes=tuple(routes),
        bounds=bounds or Bounds.around(n.position for n in nodes.values()),
        stats=stats,
    )


def _pick(blob: Mapping[str, Any], *keys: str):
    for k in keys:
        if k in blob:
            return blob[k]
    return None


def load_graph_blob(blob: Mapping[str, Any], **kw) -> Graph:
    """Load the serialized ``{nodesById, adjacency, predefinedRoutes?, metadata?}`` shape."""
    if not isinstance(blob, Mapping):
        raise GraphLoadError("graph blob must be a mapping")
    raw_nodes = _pick(blob, "nodesById", "nodes_by_id", "nodes")
    if raw_nodes is None:
        raise GraphLoadError("graph blob has no nodes", details={"keys": list(blob)})
    raw_edges = _pick(blob, "adjacency", "edges") or {}
    routes = _pick(blob, "predefinedRoutes", "predefined_routes")
    meta = blob.get("metadata") or {}
    if "bounds" not in kw and isinstance(meta, Mapping) and meta.get("bounds"):
        b = _validate(RawBoundsModel, meta["bounds"], "metadata.bounds")
        kw["bounds"] = Bounds(b.min_x, b.min_y, b.max_x, b.max_y)
    return load_graph(raw_nodes, raw_edges, routes, **kw)


# ------------- Graph quality report --------------------------


@dataclass(frozen=True)
class GraphReport:
    is_valid: bool
    node_count: int
    edge_count: int
    avg_edges_per_node: float
    isolated_node_count: int
    isolated_node_percentage: float
    connected_components: int
    max_edge_distance: float
    avg_edge_distance: float
    median_edge_distance: float
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def connected_components(graph: Graph) -> list[set[str]]:
    """Weakly connected components (edge direction ignored)."""
    undirected: dict[str, set[str]] = {nid: set() for nid in graph.nodes_by_id}
    for src, edges in graph.adjacency.items():
        for e in edges:
            undirected[src].add(e.to)
            undirected[e.to].add(src)
    seen: set[str] = set()
    comps: list[set[str]] = []
    for start in graph.nodes_by_id:
        if start in seen:
            continue
        comp, queue = {start}, deque([start])
        seen.add(start)
        while queue:
            for nxt in undirected[queue.popleft()]:
                if nxt not in seen:
                    seen.add(nxt)
                    comp.add(nxt)
                    queue.append(nxt)
        comps.append(comp)
    return comps


def validate_graph(graph: Graph) -> GraphReport:
    n = len(graph.nodes_by_id)
    if n == 0:
        return GraphReport(False, 0, 0, 0.0, 0, 0.0, 0, 0.0, 0.0, 0.0, ["graph is empty"], [])

    edge_count = graph.edge_count
    avg_edges = edge_count / n
    # a node is isolated when it neither has nor receives edges
    touched = {src for src, edges in graph.adjacency.items() if edges}
    touched.update(e.to for edges in graph.adjacency.values() for e in edges)
    isolated = n - len(touched)
    isolated_pct = isolated / n * 100.0
    dists = np.array([e.distance for edges in graph.adjacency.values() for e in edges])
    if dists.size:
        max_d, avg_d, med_d = float(dists.max()), float(dists.mean()), float(np.median(dists))
    else:
        max_d = avg_d = med_d = 0.0
    comps = len(connected_components(graph))

    issues: list[str] = []
    warnings: list[str] = []
    if avg_edges < 1.5:
        issues.append(f"very low connectivity: {avg_edges:.2f} edges/node (minimum 1.5)")
    if isolated_pct > 15:
        issues.append(f"too many isolated nodes: {isolated} ({isolated_pct:.1f}%)")
    if comps > n * 0.1:
        issues.append(f"graph is too fragmented: {comps} components")
    if max_d > 2000:
        issues.append(f"suspiciously long edge: {max_d:.1f} units")
    if avg_edges < 2.5:
        warnings.append(f"low connectivity: {avg_edges:.2f} edges/node")
    if isolated_pct > 5:
        warnings.append(f"many isolated nodes: {isolated} ({isolated_pct:.1f}%)")
    if n < 500:
        warnings.append(f"low node count: {n}")
    if comps > 1:
        warnings.append(f"graph has {comps} separate components")

    return GraphReport(
        is_valid=not issues,
        node_count=n,
        edge_count=edge_count,
        avg_edges_per_node=avg_edges,
        isolated_node_count=isolated,
        isolated_node_percentage=isolated_pct,
        connected_components=comps,
        max_edge_distance=max_d,
        avg_edge_distance=avg_d,
        median_edge_distance=med_d,
        issues=issues,
        warnings=warnings,
    )


def total_distance(graph: Graph, node_ids: Sequence[str]) -> float:
    """Cheapest edge cost along a node sequence; inf when two nodes are not linked."""
    total = 0.0
    for u, v in zip(node_ids, node_ids[1:]):
        costs = [e.distance for e in graph.edges(u) if e.to == v]
        if not costs:
            return math.inf
        total += min(costs)
    return total
