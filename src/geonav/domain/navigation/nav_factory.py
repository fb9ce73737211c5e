# geonav/domain/navigation/nav_factory.py
from collections.abc import Mapping, Sequence
from typing import Any

from geonav.app.protocols import NavigationHooks
from geonav.config.models import NavigationModel
from geonav.domain.entities.building import Building
from geonav.domain.entities.graph import Graph
from geonav.domain.errors import GraphLoadError
from geonav.domain.navigation.nav_bridge import IndoorOutdoorBridge
from geonav.domain.navigation.nav_core import NavigationService
from geonav.domain.navigation.nav_graph_store import load_graph_blob
from geonav.domain.navigation.nav_spatial_index import build_spatial_index
from geonav.runtime.hooks import NoopHooks
from geonav.runtime.registries import make_pathfinder, make_transform
from geonav.runtime.resources import load_graph_from_path


def resolve_graph(cfg: NavigationModel, graph_blob: Graph | Mapping[str, Any] | None) -> Graph:
    if isinstance(graph_blob, Graph):
        return graph_blob
    limit = cfg.graph.max_straight_edge_distance
    if graph_blob is not None:
        return load_graph_blob(graph_blob, max_straight_edge_distance=limit)
    if cfg.graph.file:
        return load_graph_from_path(cfg.graph.file, limit)
    raise GraphLoadError("No graph provided", details={"nav": cfg.name})


def build_navigation(
    cfg: NavigationModel,
    *,
    graph_blob: Graph | Mapping[str, Any] | None = None,
    buildings: Sequence[Building] = (),
    hooks: NavigationHooks | None = None,
) -> NavigationService:
    hooks = hooks or NoopHooks()

    transform = make_transform(cfg.calibration)
    hooks.calibrated(kind=transform.kind, residual=transform.residual)

    graph = resolve_graph(cfg, graph_blob)
    hooks.graph_loaded(name=cfg.name, stats=graph.stats)

    index = build_spatial_index(graph, cell_size=cfg.index.cell_size, padding=cfg.index.padding)
    hooks.index_built(
        name=cfg.name, nodes=len(index), cells=index.cell_count, cell_size=index.cell_size
    )

    pathfinder = make_pathfinder(cfg.search, deps={"graph": graph, "index": index})
    bridge = IndoorOutdoorBridge(
        outdoor=pathfinder,
        transform=transform,
        buildings=buildings,
        floor_change_cost=cfg.bridge.floor_change_cost,
        connection_snap_radius=cfg.bridge.connection_snap_radius,
        cell_size=cfg.index.cell_size,
    )
    return NavigationService(
        transform=transform,
        graph=graph,
        index=index,
        pathfinder=pathfinder,
        bridge=bridge,
        hooks=hooks,
    )
