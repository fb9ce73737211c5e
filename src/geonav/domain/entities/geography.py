import math
from collections.abc import Iterable
from dataclasses import dataclass

MAX_LAT_ABS = 90.0
MAX_LON_ABS = 180.0
HUGE_COORD_THRESHOLD_MULTIPLIER = 1000.0
MAX_COORD_DIVIDE_ITERATIONS = 20
EARTH_RADIUS_M = 6_371_000.0


def _normalize_coordinate(value: float, limit: float, wrap: bool) -> float:
    v = float(value)
    if not math.isfinite(v) or abs(v) <= limit:
        return v
    if abs(v) > limit * HUGE_COORD_THRESHOLD_MULTIPLIER:
        # microdegree-style inputs (e.g. -33871800) scaled back into range
        for _ in range(MAX_COORD_DIVIDE_ITERATIONS):
            if abs(v) <= limit:
                break
            v /= 10.0
    elif wrap:
        full = limit * 2.0
        v = ((v + limit) % full + full) % full - limit
    return max(-limit, min(limit, v))


def normalize_latitude(lat: float) -> float:
    return _normalize_coordinate(lat, MAX_LAT_ABS, wrap=False)


def normalize_longitude(lon: float) -> float:
    return _normalize_coordinate(lon, MAX_LON_ABS, wrap=True)


# Core geometry types used by navigation
@dataclass(frozen=True)
class GeoPoint:
    lat: float  # degrees
    lon: float

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lon)
            and abs(self.lat) <= MAX_LAT_ABS
            and abs(self.lon) <= MAX_LON_ABS
        )

    def normalized(self) -> "GeoPoint":
        return GeoPoint(normalize_latitude(self.lat), normalize_longitude(self.lon))


@dataclass(frozen=True)
class PlanePoint:
    x: float  # map canvas units
    y: float

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def distance_to(self, other: "PlanePoint") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def lerp(self, other: "PlanePoint", t: float) -> "PlanePoint":
        return PlanePoint(self.x + t * (other.x - self.x), self.y + t * (other.y - self.y))


@dataclass(frozen=True)
class CalibrationPoint:
    geo: GeoPoint
    plane: PlanePoint
    name: str = ""


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def contains(self, p: PlanePoint, margin: float = 0.0) -> bool:
        return (
            self.min_x - margin <= p.x <= self.max_x + margin
            and self.min_y - margin <= p.y <= self.max_y + margin
        )

    def distance_to(self, p: PlanePoint) -> float:
        """0 inside the box, else the distance to its nearest edge."""
        dx = max(self.min_x - p.x, 0.0, p.x - self.max_x)
        dy = max(self.min_y - p.y, 0.0, p.y - self.max_y)
        return math.hypot(dx, dy)

    def padded(self, fraction: float) -> "Bounds":
        px, py = self.width * fraction, self.height * fraction
        return Bounds(self.min_x - px, self.min_y - py, self.max_x + px, self.max_y + py)

    @classmethod
    def around(cls, points: Iterable[PlanePoint], padding: float = 0.0) -> "Bounds | None":
        pts = list(points)
        if not pts:
            return None
        b = cls(
            min(p.x for p in pts),
            min(p.y for p in pts),
            max(p.x for p in pts),
            max(p.y for p in pts),
        )
        return b.padded(padding) if padding else b


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    a, b = a.normalized(), b.normalized()
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dphi = phi2 - phi1
    dlambda = math.radians(b.lon - a.lon)
    h = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(max(0.0, 1.0 - h)))
