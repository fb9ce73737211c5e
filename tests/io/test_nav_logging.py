# tests/io/test_nav_logging.py
import io
import json
import logging
import threading

import pytest

from geonav.domain.entities.graph import LoadStats
from geonav.domain.entities.route import PathResult, RouteStatus
from geonav.domain.errors import GraphLoadError
from geonav.io.nav_logging import NavLogging
from geonav.io.recorder import JsonlSink, MemorySink, Recorder, RouteRecord


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def logger(request):
    log = logging.getLogger(f"geonav.test.{request.node.name}")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    h = ListHandler()
    log.addHandler(h)
    yield log, h
    log.removeHandler(h)


def _found():
    return PathResult(status=RouteStatus.FOUND, distance=12.3456, algorithm="astar", expanded=4)


def test_build_events_carry_payload(logger):
    log, h = logger
    hooks = NavLogging(name="city", logger=log)
    hooks.graph_loaded(name="city", stats=LoadStats(nodes=3, edges=4, self_loops_removed=1))
    hooks.index_built(name="city", nodes=3, cells=2, cell_size=45.0)

    loaded, built = h.records
    assert loaded.getMessage() == "graph_loaded"
    assert loaded.extra["nav"] == "city"
    assert loaded.extra["self_loops_removed"] == 1
    assert built.extra["cells"] == 2


def test_error_event(logger):
    log, h = logger
    hooks = NavLogging(logger=log)
    hooks.error(stage="build", exc=GraphLoadError("bad", details={"where": "adjacency"}))
    (rec,) = h.records
    assert rec.levelno == logging.ERROR
    assert rec.getMessage() == "build_error"
    assert rec.extra["error_type"] == "GraphLoadError"
    assert rec.extra["details"] == {"where": "adjacency"}


def test_failures_always_logged_successes_sampled(logger):
    log, h = logger
    hooks = NavLogging(logger=log, debug=True, sample_every=2)
    for _ in range(4):
        hooks.route(_found(), query="plane")
    hooks.route(PathResult.failed(RouteStatus.NOT_FOUND, "no path"), query="geo")

    msgs = [r.getMessage() for r in h.records]
    assert msgs == ["route_found", "route_found", "route_failed"]
    assert h.records[0].extra["distance"] == 12.346
    assert h.records[-1].extra["reason"] == "no path"
    assert h.records[-1].levelno == logging.INFO


def test_successes_silent_without_debug(logger):
    log, h = logger
    NavLogging(logger=log).route(_found(), query="plane")
    assert h.records == []


def test_route_records_reach_the_recorder(logger):
    log, _ = logger
    sink = MemorySink()
    hooks = NavLogging(name="city", logger=log, recorder=Recorder(sink))
    hooks.route(_found(), query="geo")
    (rec,) = sink.records
    assert rec == RouteRecord(
        nav="city",
        query="geo",
        status="found",
        algorithm="astar",
        distance=12.3456,
        expanded=4,
        steps=0,
    )


def test_broken_sink_does_not_raise(caplog):
    class Broken:
        def write(self, rec):
            raise OSError("disk full")

    good = MemorySink()
    rec = RouteRecord.from_result(_found(), nav="x", query="plane")
    with caplog.at_level(logging.WARNING, logger="geonav"):
        Recorder(Broken(), good).emit(rec)
    assert good.records == [rec]
    assert any(r.getMessage() == "recorder_sink_failed" for r in caplog.records)


def test_jsonl_sink():
    buf = io.StringIO()
    JsonlSink(buf).write(
        RouteRecord.from_result(
            PathResult(status=RouteStatus.FOUND, entrance_ids=("E1",)), nav="x", query="q"
        )
    )
    row = json.loads(buf.getvalue())
    assert row["status"] == "found"
    assert row["entrance_ids"] == ["E1"]


def test_sampling_holds_under_concurrent_queries(logger):
    log, h = logger
    hooks = NavLogging(logger=log, debug=True, sample_every=10)

    def worker():
        for _ in range(250):
            hooks.route(_found(), query="plane")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(h.records) == 200
