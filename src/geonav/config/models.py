from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

# SVG viewBox of the production map: viewBox="0 0 726.77 1643.6"
CANVAS_WIDTH = 726.77
CANVAS_HEIGHT = 1643.6

# Canvas corners pinned to the GPS box the map covers (NW, NE, SE, SW).
CORNER_CONTROL_POINTS: list[dict[str, Any]] = [
    {"name": "top_left", "lat": -33.8560, "lon": 151.1995, "x": 0.0, "y": 0.0},
    {"name": "top_right", "lat": -33.8560, "lon": 151.2115, "x": CANVAS_WIDTH, "y": 0.0},
    {
        "name": "bottom_right",
        "lat": -33.8845,
        "lon": 151.2115,
        "x": CANVAS_WIDTH,
        "y": CANVAS_HEIGHT,
    },
    {"name": "bottom_left", "lat": -33.8845, "lon": 151.1995, "x": 0.0, "y": CANVAS_HEIGHT},
]

# Surveyed landmarks; residuals of a few canvas units are expected.
LANDMARK_CONTROL_POINTS: list[dict[str, Any]] = [
    {"name": "observatory_building", "lat": -33.85972, "lon": 151.20472, "x": 262.96, "y": 343.01},
    {"name": "qvb_center", "lat": -33.8718, "lon": 151.2067, "x": 335.16, "y": 943.02},
    {
        "name": "tumbalong_park_central_lawn",
        "lat": -33.8757,
        "lon": 151.20172,
        "x": 134.21,
        "y": 1137.16,
    },
    {"name": "capitol_theatre_roof", "lat": -33.8797, "lon": 151.2067, "x": 328.31, "y": 1337.15},
    {
        "name": "the_exchange_darling_square",
        "lat": -33.87791401631311,
        "lon": 151.2022219730791,
        "x": 152.81,
        "y": 1248.46,
    },
    {"name": "terminal_roof", "lat": -33.85794, "lon": 151.21008, "x": 481.26, "y": 251.31},
]


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    sample_every: int = Field(1, ge=1)


# ----------------- CALIBRATION ---------------------


class CalibrationPointModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    name: str = ""
    lat: float
    lon: float = Field(validation_alias=AliasChoices("lon", "lng"))
    x: float = Field(validation_alias=AliasChoices("x", "svgX"))
    y: float = Field(validation_alias=AliasChoices("y", "svgY"))


class _CalibrationBase(BaseModel):
    model_config = ConfigDict(extra="forbid")
    points: list[CalibrationPointModel] = Field(
        default_factory=lambda: [CalibrationPointModel(**p) for p in CORNER_CONTROL_POINTS]
    )
    max_condition: float = Field(1e6, gt=0)  # on the column-equilibrated design matrix
    max_residual: float | None = None  # canvas units; None => report only
    offset_x: float = 0.0
    offset_y: float = 0.0
    canvas_width: float = Field(CANVAS_WIDTH, gt=0)
    canvas_height: float = Field(CANVAS_HEIGHT, gt=0)


class CalibrationAffineModel(_CalibrationBase):
    kind: Literal["affine"] = "affine"


class CalibrationProjectiveModel(_CalibrationBase):
    kind: Literal["projective"] = "projective"

    @model_validator(mode="after")
    def _enough_points(self):
        if len(self.points) < 4:
            raise ValueError(f"projective calibration needs >= 4 points, got {len(self.points)}")
        return self


CalibrationUnion = Annotated[
    CalibrationAffineModel | CalibrationProjectiveModel,
    Field(discriminator="kind"),
]

# ----------------- GRAPH / INDEX ---------------------


class GraphModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    # canvas units; straight edges longer than this tend to cut through buildings
    max_straight_edge_distance: float = Field(45.0, gt=0)
    file: str | None = None  # JSON graph blob, used when no graph is passed in


class SpatialIndexModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    cell_size: float = Field(45.0, gt=0)
    padding: float = Field(0.1, ge=0)  # fraction of the node extent


# ----------------- SEARCH ---------------------


class SearchAStarModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["astar"] = "astar"
    snap_radius: float = Field(500.0, gt=0)
    predefined_tolerance: float = Field(2.0, ge=0)


class SearchDijkstraModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["dijkstra"] = "dijkstra"
    snap_radius: float = Field(500.0, gt=0)
    predefined_tolerance: float = Field(2.0, ge=0)


SearchUnion = Annotated[
    SearchAStarModel | SearchDijkstraModel,
    Field(discriminator="kind"),
]


class BridgeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    floor_change_cost: float = 50.0  # stairs / lift hop
    connection_snap_radius: float = Field(100.0, gt=0)

    @field_validator("floor_change_cost", "connection_snap_radius")
    def _nonneg(cls, v: float, info: ValidationInfo) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v


# ------------------------------------------------------------------


class NavigationModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "default"
    log: LogModel = LogModel()
    calibration: CalibrationUnion = Field(default_factory=CalibrationAffineModel)
    graph: GraphModel = GraphModel()
    index: SpatialIndexModel = SpatialIndexModel()
    search: SearchUnion = Field(default_factory=SearchAStarModel)
    bridge: BridgeModel = BridgeModel()


# ----------------- RAW GRAPH DATA ---------------------
# Shapes of the serialized graph blob; unknown keys (lat/lng, labels) are ignored.


class RawPointModel(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)
    x: float
    y: float

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, v):
        if isinstance(v, (list, tuple)) and len(v) == 2:
            return {"x": v[0], "y": v[1]}
        return v


class RawNodeModel(RawPointModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False, populate_by_name=True)
    id: str | None = None
    floor_id: str | None = Field(None, validation_alias=AliasChoices("floor_id", "floorId"))
    street: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return None if v is None else str(v)


class RawEdgeModel(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)
    to: str
    distance: float = Field(ge=0)
    points: list[RawPointModel] | None = None
    street: str | None = None

    @field_validator("to", mode="before")
    @classmethod
    def _to_str(cls, v):
        return str(v)


class RawRouteModel(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False, populate_by_name=True)
    from_id: str = Field(validation_alias=AliasChoices("from_id", "fromId"))
    to_id: str = Field(validation_alias=AliasChoices("to_id", "toId"))
    path: list[RawPointModel] = Field(
        min_length=2, validation_alias=AliasChoices("path", "points")
    )
    streets: list[str] = Field(default_factory=list)


class RawBoundsModel(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False, populate_by_name=True)
    min_x: float = Field(validation_alias=AliasChoices("min_x", "minX"))
    min_y: float = Field(validation_alias=AliasChoices("min_y", "minY"))
    max_x: float = Field(validation_alias=AliasChoices("max_x", "maxX"))
    max_y: float = Field(validation_alias=AliasChoices("max_y", "maxY"))

    @model_validator(mode="after")
    def _ordered(self):
        if self.max_x < self.min_x or self.max_y < self.min_y:
            raise ValueError("bounds max must be >= min")
        return self
