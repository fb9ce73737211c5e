# io/recorder.py
import json
import logging
import sys
from dataclasses import asdict, dataclass
from typing import Protocol

from geonav.domain.entities.route import PathResult

log = logging.getLogger("geonav")


@dataclass(frozen=True)
class RouteRecord:
    nav: str
    query: str
    status: str
    algorithm: str
    distance: float
    expanded: int
    steps: int
    start_node: str | None = None
    end_node: str | None = None
    reason: str | None = None
    entrance_ids: tuple[str, ...] = ()

    @classmethod
    def from_result(cls, result: PathResult, *, nav: str, query: str) -> "RouteRecord":
        return cls(
            nav=nav,
            query=query,
            status=result.status.value,
            algorithm=result.algorithm,
            distance=result.distance,
            expanded=result.expanded,
            steps=len(result.steps),
            start_node=result.start_node,
            end_node=result.end_node,
            reason=result.reason,
            entrance_ids=result.entrance_ids,
        )


class Sink(Protocol):
    def write(self, rec) -> None: ...


class JsonlSink:
    def __init__(self, fp=sys.stdout):
        self.fp = fp

    def write(self, rec) -> None:
        self.fp.write(json.dumps(asdict(rec)) + "\n")


class MemorySink:
    def __init__(self):
        self.records: list = []

    def write(self, rec) -> None:
        self.records.append(rec)


class Recorder:
    def __init__(self, *sinks: Sink):
        self.sinks = sinks or (JsonlSink(),)

    def emit(self, rec):
        for s in self.sinks:
            try:
                s.write(rec)
            except Exception as exc:  # a broken sink must not fail the query
                log.warning(
                    "recorder_sink_failed",
                    extra={"extra": {"sink": type(s).__name__, "error": str(exc)}},
                )
