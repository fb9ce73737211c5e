from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from geonav.domain.entities.geography import GeoPoint, PlanePoint

ConnectionKind = Literal["stairs", "lift", "escalator", "ramp"]


# Records handed over by the external store; geonav never persists them.
@dataclass(frozen=True)
class ConnectionPoint:
    id: str
    floor_id: str
    kind: ConnectionKind
    name: str
    position: PlanePoint
    connects_to_floor_id: str | None = None
    is_accessible: bool = True


@dataclass(frozen=True)
class IndoorPOI:
    id: str
    floor_id: str
    name: str
    position: PlanePoint


@dataclass(frozen=True)
class Floor:
    id: str
    building_id: str
    number: int  # ground = 0
    name: str = ""
    # raw walkable graph in the shape accepted by load_graph
    nodes: Mapping[str, Any] | Sequence[Any] = field(default_factory=dict)
    edges: Mapping[str, Sequence[Any]] = field(default_factory=dict)
    connection_points: tuple[ConnectionPoint, ...] = ()
    pois: tuple[IndoorPOI, ...] = ()


@dataclass(frozen=True)
class Entrance:
    id: str
    building_id: str
    floor_id: str
    geo: GeoPoint  # outdoor side
    indoor: PlanePoint  # on floor_id
    name: str = ""
    kind: str = "main"
    is_accessible: bool = True
    is_open: bool = True

    def usable(self, accessible_only: bool) -> bool:
        return self.is_open and (self.is_accessible or not accessible_only)


@dataclass(frozen=True)
class Building:
    id: str
    name: str
    floors: tuple[Floor, ...] = ()
    entrances: tuple[Entrance, ...] = ()

    def ordered_floors(self) -> list[Floor]:
        return sorted(self.floors, key=lambda f: f.number)

    def floor(self, floor_id: str) -> Floor | None:
        return next((f for f in self.floors if f.id == floor_id), None)

    def poi(self, poi_id: str) -> IndoorPOI | None:
        return next((p for f in self.floors for p in f.pois if p.id == poi_id), None)
