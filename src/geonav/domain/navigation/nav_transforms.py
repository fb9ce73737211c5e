# geonav/domain/navigation/nav_transforms.py
"""GPS <-> canvas transforms fitted from calibration pairs.

Both models work on longitude/latitude centred on the calibration centroid,
which keeps the normal equations well conditioned (raw degrees near 151/-33
make the offset column dominate). The fitted model is a 3x3 homogeneous
matrix ``H``: ``[x, y, w]^T = H @ [lon - lon0, lat - lat0, 1]^T``.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from geonav.app.protocols import CoordinateTransform
from geonav.domain.entities.geography import CalibrationPoint, GeoPoint, PlanePoint
from geonav.domain.errors import CalibrationError


@dataclass(frozen=True)
class PointResidual:
    name: str
    dx: float
    dy: float

    @property
    def error(self) -> float:
        return math.hypot(self.dx, self.dy)


@dataclass(frozen=True)
class CalibrationResidual:
    points: tuple[PointResidual, ...]
    max_error: float
    mean_error: float
    rms_error: float
    used: int
    rejected: int


def usable_points(
    points: Iterable[CalibrationPoint],
) -> tuple[list[CalibrationPoint], int]:
    """Drop invalid or duplicate pairs; return (kept, rejected_count)."""
    kept: list[CalibrationPoint] = []
    seen: set[tuple[float, float]] = set()
    rejected = 0
    for cp in points:
        key = (cp.geo.lat, cp.geo.lon)
        if not cp.geo.is_valid or not cp.plane.is_finite or key in seen:
            rejected += 1
            continue
        seen.add(key)
        kept.append(cp)
    return kept, rejected


def _equilibrated_condition(m: np.ndarray) -> float:
    norms = np.linalg.norm(m, axis=0)
    if np.any(norms == 0):
        return math.inf
    return float(np.linalg.cond(m / norms))


class _HomogeneousTransform(CoordinateTransform):
    kind = "homogeneous"

    def __init__(
        self,
        H: np.ndarray,
        *,
        center: GeoPoint,
        residual: CalibrationResidual,
        offset: tuple[float, float] = (0.0, 0.0),
        canvas: tuple[float, float] | None = None,
        max_condition: float = 1e6,
    ):
        if not np.all(np.isfinite(H)):
            raise CalibrationError("fitted transform has non-finite coefficients")
        cond = _equilibrated_condition(H[:2, :2])
        if cond > max_condition:
            raise CalibrationError(
                "fitted transform collapses the plane (plane points collinear?)",
                details={"condition": f"{cond:.3g}"},
            )
        try:
            self.H_inv = np.linalg.inv(H)
        except np.linalg.LinAlgError as exc:
            raise CalibrationError("fitted transform is not invertible") from exc
        self.H = H
        self.center, self.residual = center, residual
        self.offset, self.canvas = offset, canvas

    # --------------- fitting helpers -----------------------------

    @staticmethod
    def _prepare(points: Sequence[CalibrationPoint], minimum: int, max_condition: float):
        kept, rejected = usable_points(points)
        if len(kept) < minimum:
            raise CalibrationError(
                f"need at least {minimum} usable calibration points, got {len(kept)}",
                details={"rejected": str(rejected)},
            )
        lon0 = sum(p.geo.lon for p in kept) / len(kept)
        lat0 = sum(p.geo.lat for p in kept) / len(kept)
        uv = np.array([[p.geo.lon - lon0, p.geo.lat - lat0] for p in kept], dtype=float)
        xy = np.array([[p.plane.x, p.plane.y] for p in kept], dtype=float)
        design = np.column_stack([uv, np.ones(len(kept))])
        if np.linalg.matrix_rank(design) < 3:
            raise CalibrationError("calibration points are collinear")
        cond = _equilibrated_condition(design)
        if cond > max_condition:
            raise CalibrationError(
                "calibration points are nearly collinear",
                details={"condition": f"{cond:.3g}", "max_condition": f"{max_condition:.3g}"},
            )
        return kept, rejected, GeoPoint(lat0, lon0), uv, xy, design

    @staticmethod
    def _apply(H: np.ndarray, u: float, v: float) -> tuple[float, float]:
        x, y, w = H @ np.array([u, v, 1.0])
        if w == 0:
            # on the projective horizon: no finite image
            return math.inf, math.inf
        return float(x / w), float(y / w)

    @classmethod
    def _residual(
        cls, H: np.ndarray, kept: Sequence[CalibrationPoint], center: GeoPoint, rejected: int
    ) -> CalibrationResidual:
        res = []
        for p in kept:
            x, y = cls._apply(H, p.geo.lon - center.lon, p.geo.lat - center.lat)
            res.append(PointResidual(p.name, x - p.plane.x, y - p.plane.y))
        errs = np.array([r.error for r in res])
        return CalibrationResidual(
            points=tuple(res),
            max_error=float(errs.max()),
            mean_error=float(errs.mean()),
            rms_error=float(np.sqrt(np.mean(errs**2))),
            used=len(kept),
            rejected=rejected,
        )

    # --------------- conversions -----------------------------

    def to_plane(self, p: GeoPoint) -> PlanePoint:
        g = p.normalized()
        x, y = self._apply(self.H, g.lon - self.center.lon, g.lat - self.center.lat)
        return PlanePoint(x + self.offset[0], y + self.offset[1])

    def to_geo(self, p: PlanePoint) -> GeoPoint:
        du, dv = self._apply(self.H_inv, p.x - self.offset[0], p.y - self.offset[1])
        return GeoPoint(lat=dv + self.center.lat, lon=du + self.center.lon)

    def covers(self, p: GeoPoint) -> bool:
        if self.canvas is None:
            return True
        q = self.to_plane(p)
        return 0.0 <= q.x <= self.canvas[0] and 0.0 <= q.y <= self.canvas[1]


class AffineTransform(_HomogeneousTransform):
    """x = a*lon + b*lat + c ; y = d*lon + e*lat + f (lon/lat centred)."""

    kind = "affine"

    @classmethod
    def fit(
        cls,
        points: Sequence[CalibrationPoint],
        *,
        max_condition: float = 1e6,
        max_residual: float | None = None,
        offset: tuple[float, float] = (0.0, 0.0),
        canvas: tuple[float, float] | None = None,
    ) -> "AffineTransform":
        kept, rejected, center, _, xy, design = cls._prepare(points, 3, max_condition)
        coef, *_ = np.linalg.lstsq(design, xy, rcond=None)  # (3, 2)
        H = np.vstack([coef.T, [0.0, 0.0, 1.0]])
        residual = cls._residual(H, kept, center, rejected)
        _check_residual(residual, max_residual)
        return cls(
            H,
            center=center,
            residual=residual,
            offset=offset,
            canvas=canvas,
            max_condition=max_condition,
        )

    @property
    def coefficients(self) -> tuple[float, float, float, float, float, float]:
        (a, b, c), (d, e, f) = self.H[0], self.H[1]
        return float(a), float(b), float(c), float(d), float(e), float(f)


class ProjectiveTransform(_HomogeneousTransform):
    """Eight-parameter homography fitted by normalised DLT."""

    kind = "projective"

    @classmethod
    def fit(
        cls,
        points: Sequence[CalibrationPoint],
        *,
        max_condition: float = 1e6,
        max_residual: float | None = None,
        offset: tuple[float, float] = (0.0, 0.0),
        canvas: tuple[float, float] | None = None,
    ) -> "ProjectiveTransform":
        kept, rejected, center, uv, xy, _ = cls._prepare(points, 4, max_condition)
        Tg, Tp = _similarity(uv), _similarity(xy)
        g = _homog(uv) @ Tg.T
        q = _homog(xy) @ Tp.T
        rows = []
        for (u, v, _), (x, y, _) in zip(g, q):
            rows.append([-u, -v, -1.0, 0.0, 0.0, 0.0, x * u, x * v, x])
            rows.append([0.0, 0.0, 0.0, -u, -v, -1.0, y * u, y * v, y])
        _, s, vt = np.linalg.svd(np.asarray(rows))
        if s[0] == 0 or s[7] / s[0] < 1.0 / max_condition:
            raise CalibrationError("projective fit is underdetermined")
        Hn = vt[-1].reshape(3, 3)
        H = np.linalg.inv(Tp) @ Hn @ Tg
        if abs(H[2, 2]) < 1e-15:
            raise CalibrationError("projective fit maps the centroid to infinity")
        H = H / H[2, 2]
        residual = cls._residual(H, kept, center, rejected)
        _check_residual(residual, max_residual)
        return cls(
            H,
            center=center,
            residual=residual,
            offset=offset,
            canvas=canvas,
            max_condition=max_condition,
        )


def _homog(a: np.ndarray) -> np.ndarray:
    return np.column_stack([a, np.ones(len(a))])


def _similarity(a: np.ndarray) -> np.ndarray:
    # Hartley normalisation: centroid to origin, mean distance sqrt(2)
    c = a.mean(axis=0)
    d = np.linalg.norm(a - c, axis=1).mean()
    s = math.sqrt(2.0) / d if d > 0 else 1.0
    return np.array([[s, 0.0, -s * c[0]], [0.0, s, -s * c[1]], [0.0, 0.0, 1.0]])


def _check_residual(residual: CalibrationResidual, max_residual: float | None) -> None:
    if max_residual is not None and residual.max_error > max_residual:
        raise CalibrationError(
            f"calibration residual {residual.max_error:.3f} exceeds {max_residual:.3f}",
            details={"mean_error": f"{residual.mean_error:.3f}"},
        )
