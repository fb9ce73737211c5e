# tests/app/test_build.py
import json
import logging

import pytest
from pydantic import ValidationError

from geonav.app.build import build
from geonav.domain.entities.geography import PlanePoint
from geonav.domain.entities.route import RouteStatus
from geonav.domain.errors import GraphLoadError
from geonav.io.recorder import MemorySink, Recorder
from geonav.runtime.resources import load_graph_from_path


def _line_blob(n=11, step=20.0, y=800.0):
    nodes = {f"n{i}": {"x": 100.0 + i * step, "y": y} for i in range(n)}
    adjacency = {k: [] for k in nodes}
    for i in range(n - 1):
        a, b = f"n{i}", f"n{i + 1}"
        adjacency[a].append({"to": b, "distance": step})
        adjacency[b].append({"to": a, "distance": step})
    return {"nodesById": nodes, "adjacency": adjacency}


def test_build_and_route():
    app = build({"name": "test"}, graph_blob=_line_blob(), use_logging=False)
    nav = app.navigation
    assert app.config.name == "test"
    assert nav.transform.kind == "affine"
    assert len(nav.graph) == 11

    a = nav.to_geo(PlanePoint(100.0, 800.0))
    b = nav.to_geo(PlanePoint(300.0, 800.0))
    assert nav.covers(a) and nav.covers(b)
    res = nav.find_path_geo(a, b)
    assert res.ok
    assert res.start_node == "n0" and res.end_node == "n10"
    assert abs(res.distance - 200.0) < 1e-6

    geo = nav.route_to_geo(res)
    assert len(geo) == len(res.steps)
    assert abs(geo[0].lat - a.lat) < 1e-9
    # the full canvas width is about 1.1 km east-west
    assert 250.0 < nav.distance_m(a, b) < 450.0


def test_dijkstra_config():
    app = build(
        {"search": {"kind": "dijkstra", "snap_radius": 50.0}},
        graph_blob=_line_blob(),
        use_logging=False,
    )
    res = app.navigation.find_path(PlanePoint(100, 800), PlanePoint(140, 800))
    assert res.algorithm == "dijkstra"
    assert res.distance == 40.0
    # the snap radius also bounds how far off the map a point may be
    far = app.navigation.find_path(PlanePoint(100, 800), PlanePoint(200, 900))
    assert far.status is RouteStatus.OUT_OF_BOUNDS


@pytest.mark.parametrize(
    "cfg",
    [
        {"search": {"kind": "bfs"}},
        {"colour": "red"},
        {"calibration": {"kind": "projective", "points": []}},
        {"log": {"sample_every": 0}},
    ],
)
def test_bad_config_rejected(cfg):
    with pytest.raises(ValidationError):
        build(cfg, graph_blob=_line_blob(), use_logging=False)


def test_missing_graph_rejected():
    with pytest.raises(GraphLoadError):
        build({}, use_logging=False)


def test_bad_graph_is_logged(caplog):
    blob = _line_blob()
    blob["adjacency"]["n0"] = [{"to": "n1", "distance": -3}]
    with caplog.at_level(logging.INFO, logger="geonav"):
        with pytest.raises(GraphLoadError):
            build({"name": "bad"}, graph_blob=blob)
    assert any(r.getMessage() == "build_error" for r in caplog.records)


def test_queries_are_recorded():
    sink = MemorySink()
    app = build({"name": "rec"}, graph_blob=_line_blob(), recorder=Recorder(sink))
    app.navigation.find_path(PlanePoint(100, 800), PlanePoint(300, 800))
    app.navigation.find_path(PlanePoint(100, 800), PlanePoint(90_000, 800))
    assert [r.status for r in sink.records] == ["found", "out_of_bounds"]
    assert sink.records[0].nav == "rec"
    assert sink.records[0].query == "plane"


def test_graph_from_file(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(_line_blob()), encoding="utf-8")
    app = build({"graph": {"file": str(path)}}, use_logging=False)
    assert len(app.navigation.graph) == 11
    assert load_graph_from_path(str(path)) is load_graph_from_path(str(path))


def test_graph_file_must_be_json(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(GraphLoadError):
        load_graph_from_path(str(path))
