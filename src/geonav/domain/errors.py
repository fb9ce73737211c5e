"""Exception hierarchy for construction-time failures.

Query-time outcomes (no path, no usable entrance, off-map points) are not
exceptions; they are reported through ``PathResult.status``.
"""

from __future__ import annotations


class GeoNavError(Exception):
    """Base exception for all geonav errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CalibrationError(GeoNavError):
    """Raised when calibration input is insufficient or degenerate."""

    pass


class GraphLoadError(GeoNavError):
    """Raised when a raw graph is malformed or inconsistent."""

    pass


class BuildingDataError(GeoNavError):
    """Raised when building/floor/entrance records do not fit together."""

    pass
