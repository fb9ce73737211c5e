# io/nav_logging.py
import itertools
import json
import logging
import sys
from dataclasses import asdict

from geonav.domain.entities.route import PathResult
from geonav.io.recorder import Recorder, RouteRecord
from geonav.runtime.hooks import NoopHooks


def _default_json_logger(name="geonav", level="INFO"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)

        class _JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:
                payload = {
                    "level": record.levelname,
                    "msg": record.getMessage(),
                    "logger": record.name,
                }
                extra = getattr(record, "extra", None)
                if isinstance(extra, dict):
                    payload.update(extra)
                # pydantic error lists can carry exception objects
                return json.dumps(payload, default=str)

        h.setFormatter(_JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(level)
    return logger


class NavLogging(NoopHooks):
    """
    Shapes and emits structured logs for navigation build steps and queries.
    """

    def __init__(
        self,
        name: str = "default",
        level: str = "INFO",
        debug: bool = False,
        sample_every: int = 1,
        logger: logging.Logger | None = None,
        recorder: Recorder | None = None,
    ):
        self.name, self.debug, self.sample_every = name, debug, max(1, sample_every)
        self.recorder = recorder
        self.log = logger or _default_json_logger(level=level)
        self._queries = itertools.count(1)  # shared by concurrent queries

    # --------------- Helpers -----------------------------

    def _emit(self, level: str, msg: str, **extra):
        payload = {"nav": self.name}
        self.log.log(getattr(logging, level), msg, extra={"extra": {**payload, **extra}})

    @staticmethod
    def _shape_result(result: PathResult) -> dict:
        return {
            "status": result.status.value,
            "algorithm": result.algorithm,
            "distance": round(result.distance, 3),
            "expanded": result.expanded,
            "steps": len(result.steps),
            "reason": result.reason,
        }

    # --------------------------------------------------------

    # build lifecycle

    def calibrated(self, *, kind: str, residual):
        self._emit(
            "INFO",
            "calibrated",
            kind=kind,
            used=residual.used,
            rejected=residual.rejected,
            max_error=residual.max_error,
            mean_error=residual.mean_error,
            rms_error=residual.rms_error,
        )

    def graph_loaded(self, *, name: str, stats):
        self._emit("INFO", "graph_loaded", graph=name, **asdict(stats))

    def index_built(self, *, name: str, nodes: int, cells: int, cell_size: float):
        self._emit("INFO", "index_built", graph=name, nodes=nodes, cells=cells, cell_size=cell_size)

    def error(self, *, stage: str, exc: BaseException, **extra):
        self._emit(
            "ERROR",
            f"{stage}_error",
            error=str(exc),
            error_type=type(exc).__name__,
            details=getattr(exc, "details", None),
            **extra,
        )

    # queries

    def route(self, result: PathResult, *, query: str):
        n = next(self._queries)
        if result.ok:
            if self.debug and n % self.sample_every == 0:
                self._emit("DEBUG", "route_found", query=query, **self._shape_result(result))
        else:
            self._emit("INFO", "route_failed", query=query, **self._shape_result(result))
        if self.recorder:
            self.recorder.emit(RouteRecord.from_result(result, nav=self.name, query=query))
