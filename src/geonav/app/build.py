# geonav/app/build.py
from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from geonav.app.protocols import NavigationHooks
from geonav.config.models import NavigationModel
from geonav.domain.entities.building import Building
from geonav.domain.entities.graph import Graph
from geonav.domain.errors import GeoNavError
from geonav.domain.navigation.nav_core import NavigationService
from geonav.domain.navigation.nav_factory import build_navigation
from geonav.io.nav_logging import NavLogging  # JSON logs
from geonav.io.recorder import Recorder
from geonav.runtime.hooks import NoopHooks
from geonav.runtime.resources import NavigationCache, load_graph_from_path


@dataclass
class App:
    config: NavigationModel
    navigation: NavigationService
    hooks: NavigationHooks
    recorder: Recorder | None = None


def build(
    cfg: NavigationModel | Mapping,
    *,
    graph_blob: Graph | Mapping[str, Any] | None = None,
    buildings: Sequence[Building] = (),
    use_logging: bool = True,
    recorder: Recorder | None = None,
) -> App:
    # 0) Validate config
    model = cfg if isinstance(cfg, NavigationModel) else NavigationModel.model_validate(cfg)

    # 1) Hooks (+ optional recorder for per-query analytics)
    hooks = (
        NavLogging(
            name=model.name,
            level=model.log.level,
            debug=model.log.debug,
            sample_every=model.log.sample_every,
            recorder=recorder,
        )
        if use_logging
        else NoopHooks()
    )

    # 2) Transform, graph, index, search, buildings
    try:
        navigation = build_navigation(
            model, graph_blob=graph_blob, buildings=buildings, hooks=hooks
        )
    except GeoNavError as exc:
        hooks.error(stage="build", exc=exc)
        raise

    return App(model, navigation, hooks, recorder)


_cache = NavigationCache()


def build_once(key: Hashable, cfg: NavigationModel | Mapping, **kw) -> App:
    """Shared App per key; later callers reuse the first build."""
    return _cache.get_or_build(key, lambda: build(cfg, **kw))


def invalidate(key: Hashable | None = None) -> None:
    """Drop built apps; graph files are re-read on the next build."""
    _cache.invalidate(key)
    load_graph_from_path.cache_clear()
