from dataclasses import dataclass
from enum import Enum
from typing import Literal

from geonav.domain.entities.geography import GeoPoint, PlanePoint


class RouteStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    NO_ACCESSIBLE_ENTRANCE = "no_accessible_entrance"
    OUT_OF_BOUNDS = "out_of_bounds"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Space:
    kind: Literal["outdoor", "indoor"]
    floor_id: str | None = None
    # floor ids repeat across buildings ("G", "L1")
    building_id: str | None = None

    @classmethod
    def indoor(cls, floor_id: str, building_id: str | None = None) -> "Space":
        return cls("indoor", floor_id, building_id)

    @classmethod
    def of(cls, floor_id: str | None) -> "Space":
        return OUTDOOR if floor_id is None else cls("indoor", floor_id)

    @property
    def is_outdoor(self) -> bool:
        return self.kind == "outdoor"


OUTDOOR = Space("outdoor")


@dataclass(frozen=True)
class RouteStep:
    space: Space
    point: PlanePoint


@dataclass(frozen=True)
class PathResult:
    status: RouteStatus
    steps: tuple[RouteStep, ...] = ()
    distance: float = 0.0
    reason: str | None = None
    start_node: str | None = None
    end_node: str | None = None
    start_snap_distance: float = float("inf")
    end_snap_distance: float = float("inf")
    algorithm: str = "failed"  # "predefined" | "astar" | "dijkstra" | "bridge" | "failed"
    expanded: int = 0
    entrance_ids: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is RouteStatus.FOUND

    @property
    def points(self) -> tuple[PlanePoint, ...]:
        return tuple(s.point for s in self.steps)

    def spaces(self) -> list[Space]:
        """Distinct spaces in visiting order."""
        out: list[Space] = []
        for s in self.steps:
            if not out or out[-1] != s.space:
                out.append(s.space)
        return out

    def to_geo(self, transform) -> tuple[GeoPoint, ...]:
        # indoor plane coordinates live on floor plans, not the outdoor canvas
        return tuple(transform.to_geo(s.point) for s in self.steps if s.space.is_outdoor)

    @classmethod
    def failed(cls, status: RouteStatus, reason: str, **kw) -> "PathResult":
        return cls(status=status, reason=reason, **kw)
