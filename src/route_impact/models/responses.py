from enum import Enum

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """How an individual route was matched."""

    ZONE = "zone"  # Inside a curated override zone
    SHAPE_GEOMETRY = "shape_geometry"  # Distance to route shape segments
    STOP_PROXIMITY = "stop_proximity"  # Distance to the route's nearest stop
    TEXT_PATTERN = "text_pattern"  # Curated pattern found in the alert text
    TEXT_FUZZY = "text_fuzzy"  # Curated pattern fuzzily found in the alert text


class MatchMethod(str, Enum):
    """Method that produced a result set."""

    ZONE = "zone"
    COORDINATE = "coordinate"
    STOP_PROXIMITY = "stop_proximity"
    TEXT = "text"
    NONE = "none"


class AccuracyTier(str, Enum):
    """Coarse bucketing of confidence for display.

    - HIGH: confidence >= 0.8
    - MEDIUM: confidence >= 0.5
    - LOW: any other non-empty result
    - NONE: no routes matched
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


def accuracy_from_confidence(confidence: float, has_routes: bool) -> AccuracyTier:
    """Determine the accuracy tier for a result set."""
    if not has_routes:
        return AccuracyTier.NONE
    if confidence >= 0.8:
        return AccuracyTier.HIGH
    if confidence >= 0.5:
        return AccuracyTier.MEDIUM
    return AccuracyTier.LOW


class MatchResult(BaseModel):
    """A route judged to be affected, with the evidence for it."""

    route_id: str
    short_name: str
    confidence: float = Field(ge=0.0, le=1.0, description="Matcher certainty (0-1)")
    match_type: MatchType
    distance_meters: float | None = Field(
        default=None, description="Distance from the query point (coordinate matches only)"
    )
    direction: int | None = Field(default=None, description="Direction ID (0 or 1)")
    headsign: str | None = None
    segment_index: int | None = Field(
        default=None, description="Index of the closest segment on the matched shape"
    )
    position_on_segment: float | None = Field(
        default=None, description="Normalized position along the closest segment (0-1)"
    )
    pattern: str | None = Field(default=None, description="Text pattern that matched")


class CoordinateMatchResponse(BaseModel):
    """Result of matching a single coordinate."""

    routes: list[MatchResult]
    confidence: float = Field(description="Highest route confidence, 0 when empty")
    method: MatchMethod
    radius_used: float | None = Field(
        default=None, description="Search radius (meters) that produced the result"
    )
    out_of_region: bool = Field(
        default=False, description="True if the coordinate lies outside the service area"
    )
    zone: str | None = Field(default=None, description="Override zone description, if used")


class TextMatchResponse(BaseModel):
    """Result of matching free text against curated patterns."""

    routes: list[MatchResult]
    confidence: float = Field(description="Highest confidence among matching patterns")
    method: MatchMethod
    patterns: list[str] = Field(default_factory=list, description="Patterns that matched")


class FinalMatch(BaseModel):
    """Combined, deduplicated and ranked routes for one alert."""

    routes: list[MatchResult]
    route_names: list[str] = Field(description="Short names, in rank order (affectsRoutes)")
    confidence: float
    method: MatchMethod
    accuracy: AccuracyTier
    engine_ready: bool = Field(
        description="False when the feed is not loaded (data unavailable, not 'no routes')"
    )
    radius_used: float | None = None


class AlertInput(BaseModel):
    """Disruption record handed over by the alert-ingestion collaborator."""

    coordinates: tuple[float, float] | None = Field(default=None, description="(lat, lng)")
    location_text: str | None = None
    description: str | None = None
    search_radius_meters: float | None = Field(default=None, gt=0)


class NearbyStop(BaseModel):
    stop_id: str
    stop_name: str
    stop_code: str | None = None
    distance_meters: float


class TableLoadStats(BaseModel):
    """Row counts for one feed file."""

    loaded: int = 0
    skipped: int = Field(default=0, description="Malformed rows")
    out_of_region: int = Field(default=0, description="Rows outside the bounding box")
    present: bool = True


class LoadStats(BaseModel):
    tables: dict[str, TableLoadStats] = Field(default_factory=dict)
    route_shapes: int = 0
    segments: int = 0
    shape_grid_cells: int = 0
    stop_grid_cells: int = 0
    duration_seconds: float = 0.0


class LoadResult(BaseModel):
    ok: bool
    stats: LoadStats
    reused: bool = Field(default=False, description="True if the loaded feed was still fresh")


class MatcherStatistics(BaseModel):
    """Operational snapshot for dashboards."""

    is_loaded: bool
    geometry_available: bool
    last_loaded_at: str | None = Field(default=None, description="ISO timestamp (UTC)")
    last_error: str | None = None
    routes: int = 0
    stops: int = 0
    trips: int = 0
    shape_points: int = 0
    route_shapes: int = 0
    segments: int = 0
    shape_grid_cells: int = 0
    stop_grid_cells: int = 0
    override_zones: int = 0
    text_patterns: int = 0
    cache_size: int = 0
    cache_capacity: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float = Field(default=0.0, description="Hits / lookups (0-1)")
