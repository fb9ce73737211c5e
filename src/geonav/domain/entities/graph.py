from collections.abc import Mapping
from dataclasses import dataclass, field

from geonav.domain.entities.geography import Bounds, PlanePoint


@dataclass(frozen=True)
class GraphNode:
    id: str
    position: PlanePoint
    floor_id: str | None = None  # None => outdoor


@dataclass(frozen=True)
class GeometricEdge:
    """Edge traced from real path geometry; ``points`` runs source -> target."""

    to: str
    distance: float
    points: tuple[PlanePoint, ...]
    street: str | None = None

    @property
    def has_geometry(self) -> bool:
        return True


@dataclass(frozen=True)
class StraightEdge:
    """Synthetic straight connection between two nodes."""

    to: str
    distance: float
    street: str | None = None

    @property
    def has_geometry(self) -> bool:
        return False


GraphEdge = GeometricEdge | StraightEdge


@dataclass(frozen=True)
class PredefinedRoute:
    from_id: str
    to_id: str
    points: tuple[PlanePoint, ...]
    streets: tuple[str, ...] = ()

    def reversed(self) -> "PredefinedRoute":
        return PredefinedRoute(self.to_id, self.from_id, self.points[::-1], self.streets[::-1])


@dataclass(frozen=True)
class LoadStats:
    nodes: int = 0
    edges: int = 0
    raw_edges: int = 0
    self_loops_removed: int = 0
    duplicates_removed: int = 0
    long_edges_filtered: int = 0
    dangling_edges_dropped: int = 0
    dangling_routes_dropped: int = 0
    inconsistent_edges: int = 0  # distance shorter than the straight line


@dataclass(frozen=True)
class Graph:
    nodes_by_id: Mapping[str, GraphNode]
    adjacency: Mapping[str, tuple[GraphEdge, ...]]
    predefined_routes: tuple[PredefinedRoute, ...] = ()
    bounds: Bounds | None = None
    stats: LoadStats = field(default_factory=LoadStats)

    def __len__(self) -> int:
        return len(self.nodes_by_id)

    def node(self, node_id: str) -> GraphNode:
        return self.nodes_by_id[node_id]

    def node_point(self, node_id: str) -> PlanePoint:
        return self.nodes_by_id[node_id].position

    def edges(self, node_id: str) -> tuple[GraphEdge, ...]:
        return self.adjacency.get(node_id, ())

    @property
    def edge_count(self) -> int:
        return sum(len(edges) for edges in self.adjacency.values())
