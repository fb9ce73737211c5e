# runtime/registries.py
from collections.abc import Callable
from typing import Any

from geonav.app.protocols import CoordinateTransform, RoutePlanner
from geonav.config.models import (
    CalibrationAffineModel,
    CalibrationProjectiveModel,
    CalibrationUnion,
    SearchAStarModel,
    SearchDijkstraModel,
    SearchUnion,
)
from geonav.domain.entities.geography import CalibrationPoint, GeoPoint, PlanePoint
from geonav.domain.navigation.nav_pathfinders import GraphPathfinder
from geonav.domain.navigation.nav_transforms import AffineTransform, ProjectiveTransform

TransformFactory = Callable[[CalibrationUnion, dict], CoordinateTransform]
SearchFactory = Callable[[SearchUnion, dict], RoutePlanner]

_transform_registry: dict[str, TransformFactory] = {}
_search_registry: dict[str, SearchFactory] = {}


# ------------------- Coordinate transforms ---------------------------


def register_transform(kind: str):
    def deco(fn: TransformFactory):
        _transform_registry[kind] = fn
        return fn

    return deco


def make_transform(cfg: CalibrationUnion, *, deps: dict | None = None) -> CoordinateTransform:
    try:
        factory = _transform_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown calibration kind {cfg.kind!r}")
    return factory(cfg, deps or {})


def calibration_points(cfg: CalibrationUnion) -> list[CalibrationPoint]:
    return [
        CalibrationPoint(GeoPoint(p.lat, p.lon), PlanePoint(p.x, p.y), p.name) for p in cfg.points
    ]


def _fit_kwargs(cfg: CalibrationUnion) -> dict[str, Any]:
    return {
        "max_condition": cfg.max_condition,
        "max_residual": cfg.max_residual,
        "offset": (cfg.offset_x, cfg.offset_y),
        "canvas": (cfg.canvas_width, cfg.canvas_height),
    }


@register_transform("affine")
def _make_affine(cfg: CalibrationAffineModel, deps):
    return AffineTransform.fit(calibration_points(cfg), **_fit_kwargs(cfg))


@register_transform("projective")
def _make_projective(cfg: CalibrationProjectiveModel, deps):
    return ProjectiveTransform.fit(calibration_points(cfg), **_fit_kwargs(cfg))


# --------------------- Path search  ---------------------


def register_search(kind: str):
    def deco(fn: SearchFactory):
        _search_registry[kind] = fn
        return fn

    return deco


def make_pathfinder(cfg: SearchUnion, *, deps: dict) -> RoutePlanner:
    """
    deps must include:
      - 'graph': Graph           # outdoor graph
      - 'index': NearestNodeIndex
    """
    try:
        factory = _search_registry[cfg.kind]
    except KeyError:
        raise ValueError(f"Unknown search kind {cfg.kind!r}")
    return factory(cfg, deps)


@register_search("astar")
def _make_astar(cfg: SearchAStarModel, deps):
    return GraphPathfinder(
        deps["graph"],
        deps["index"],
        algorithm="astar",
        snap_radius=cfg.snap_radius,
        predefined_tolerance=cfg.predefined_tolerance,
    )


@register_search("dijkstra")
def _make_dijkstra(cfg: SearchDijkstraModel, deps):
    return GraphPathfinder(
        deps["graph"],
        deps["index"],
        algorithm="dijkstra",
        snap_radius=cfg.snap_radius,
        predefined_tolerance=cfg.predefined_tolerance,
    )
