"""Typed tables for the static transit feed and the geometry derived from it."""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


class Route(BaseModel):
    """GTFS route entity."""

    model_config = ConfigDict(frozen=True)

    route_id: str = Field(min_length=1)
    route_short_name: str = Field(min_length=1)
    route_long_name: str | None = None
    route_type: int = 3  # 3=bus
    route_color: str | None = None


class Stop(BaseModel):
    """GTFS stop entity with finite coordinates."""

    model_config = ConfigDict(frozen=True)

    stop_id: str = Field(min_length=1)
    stop_name: str = ""
    stop_lat: float = Field(allow_inf_nan=False, ge=-90, le=90)
    stop_lon: float = Field(allow_inf_nan=False, ge=-180, le=180)
    stop_code: str | None = None


class Trip(BaseModel):
    """GTFS trip entity (only the columns used for geometry linkage)."""

    model_config = ConfigDict(frozen=True)

    trip_id: str = Field(min_length=1)
    route_id: str = Field(min_length=1)
    shape_id: str | None = None
    direction_id: int = Field(default=0, ge=0, le=1)
    trip_headsign: str | None = None


@dataclass(frozen=True)
class ShapePoint:
    """One vertex of a shape polyline."""

    shape_id: str
    lat: float
    lng: float
    sequence: int


@dataclass(frozen=True)
class StopTime:
    """Stop visit within a trip (only the columns used for stop ordering)."""

    trip_id: str
    stop_id: str
    stop_sequence: int


@dataclass(frozen=True)
class Segment:
    """Consecutive pair of shape points with precomputed length and bearing."""

    shape_id: str
    start: ShapePoint
    end: ShapePoint
    length_meters: float
    bearing_degrees: float


@dataclass(frozen=True)
class RouteShape:
    """Ordered geometry of one (route, direction, shape) combination."""

    route_id: str
    direction: int
    shape_id: str
    headsign: str | None
    points: tuple[ShapePoint, ...]
    segments: tuple[Segment, ...]
    total_length: float


@dataclass
class FeedTables:
    """In-memory tables produced by one feed load."""

    routes: dict[str, Route] = field(default_factory=dict)
    stops: dict[str, Stop] = field(default_factory=dict)
    trips: dict[str, Trip] = field(default_factory=dict)
    shape_points: list[ShapePoint] = field(default_factory=list)
    stop_times: list[StopTime] = field(default_factory=list)
    has_shapes: bool = False
    has_stop_times: bool = False
