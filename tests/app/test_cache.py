# tests/app/test_cache.py
import json
import threading
import time

import pytest

from geonav.app import build as build_mod
from geonav.runtime.resources import NavigationCache


def test_concurrent_callers_share_one_build():
    cache = NavigationCache()
    started = threading.Event()

    def slow_factory():
        started.set()
        time.sleep(0.05)
        return object()

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(cache.get_or_build("k", slow_factory)))
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert started.is_set()
    assert cache.builds == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_invalidate_forces_rebuild():
    cache = NavigationCache()
    first = cache.get_or_build("a", object)
    cache.get_or_build("b", object)
    assert "a" in cache and "b" in cache

    cache.invalidate("a")
    assert "a" not in cache and "b" in cache
    assert cache.get_or_build("a", object) is not first
    assert cache.builds == 3

    cache.invalidate()
    assert "b" not in cache


def test_failed_build_is_not_cached():
    cache = NavigationCache()

    def boom():
        raise RuntimeError("bad data")

    with pytest.raises(RuntimeError):
        cache.get_or_build("k", boom)
    assert "k" not in cache
    assert cache.get_or_build("k", lambda: 42) == 42


def test_build_once(monkeypatch):
    calls = []

    def fake_build(cfg, **kw):
        calls.append(cfg)
        return object()

    monkeypatch.setattr(build_mod, "build", fake_build)
    build_mod.invalidate()
    try:
        a = build_mod.build_once("city", {"name": "city"})
        b = build_mod.build_once("city", {"name": "city"})
        assert a is b
        assert len(calls) == 1

        build_mod.invalidate("city")
        assert build_mod.build_once("city", {"name": "city"}) is not a
        assert len(calls) == 2
    finally:
        build_mod.invalidate()


def _blob(n):
    nodes = {f"n{i}": {"x": 100.0 + 10 * i, "y": 800.0} for i in range(n)}
    return {"nodesById": nodes, "adjacency": {}}


def test_invalidate_reloads_graph_file(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(_blob(3)), encoding="utf-8")
    cfg = {"graph": {"file": str(path)}}
    build_mod.invalidate()
    try:
        app = build_mod.build_once("file", cfg, use_logging=False)
        assert len(app.navigation.graph) == 3

        path.write_text(json.dumps(_blob(7)), encoding="utf-8")
        assert build_mod.build_once("file", cfg, use_logging=False) is app

        build_mod.invalidate("file")
        app = build_mod.build_once("file", cfg, use_logging=False)
        assert len(app.navigation.graph) == 7
    finally:
        build_mod.invalidate()
