from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BoundingBox(BaseModel):
    """Rectangular latitude/longitude area (inclusive edges)."""

    south: float
    north: float
    west: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class MatcherConfig(BaseSettings):
    """Configuration for feed loading and route matching.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Static feed source: directory, .zip archive or http(s) URL of a .zip
    feed_source: str = Field(default="data/gtfs", alias="ROUTE_IMPACT_FEED_PATH")
    download_timeout_seconds: float = Field(default=60.0, alias="ROUTE_IMPACT_DOWNLOAD_TIMEOUT")

    # Go North East service area
    bounding_box: BoundingBox = Field(
        default=BoundingBox(south=54.3, north=55.5, west=-2.3, east=-0.5),
        alias="ROUTE_IMPACT_BOUNDING_BOX",
    )

    # Spatial index (~110m of latitude per cell)
    grid_size_degrees: float = Field(default=0.001, gt=0, alias="ROUTE_IMPACT_GRID_SIZE")

    # Coordinate search
    search_radii_meters: list[float] = Field(
        default=[75.0, 150.0, 300.0, 500.0], alias="ROUTE_IMPACT_SEARCH_RADII"
    )
    default_radius_meters: float = Field(default=500.0, gt=0, alias="ROUTE_IMPACT_DEFAULT_RADIUS")
    max_radius_meters: float = Field(default=2000.0, gt=0, alias="ROUTE_IMPACT_MAX_RADIUS")
    early_exit_meters: float = Field(default=50.0, ge=0, alias="ROUTE_IMPACT_EARLY_EXIT")

    # Confidence scoring
    shape_exponent: float = Field(default=0.5, gt=0, alias="ROUTE_IMPACT_SHAPE_EXPONENT")
    stop_exponent: float = Field(default=1.5, gt=0, alias="ROUTE_IMPACT_STOP_EXPONENT")
    near_boost_meters: float = 50.0
    near_boost: float = 0.2
    very_near_boost_meters: float = 25.0
    very_near_boost: float = 0.3

    # Result cache
    cache_capacity: int = Field(default=5000, gt=0, alias="ROUTE_IMPACT_CACHE_SIZE")
    cache_ttl_seconds: float | None = Field(default=None, alias="ROUTE_IMPACT_CACHE_TTL")
    cache_key_precision: int = Field(default=6, ge=0, alias="ROUTE_IMPACT_CACHE_PRECISION")

    # Load lifecycle
    freshness_hours: float = Field(default=24.0, gt=0, alias="ROUTE_IMPACT_FRESHNESS_HOURS")
    load_timeout_seconds: float = Field(default=120.0, gt=0, alias="ROUTE_IMPACT_LOAD_TIMEOUT")
    load_retry_seconds: float = Field(default=300.0, ge=0, alias="ROUTE_IMPACT_LOAD_RETRY")

    # Combined output
    max_routes: int = Field(default=12, gt=0, alias="ROUTE_IMPACT_MAX_ROUTES")

    # Text matching
    text_word_boundaries: bool = Field(default=True, alias="ROUTE_IMPACT_TEXT_WORD_BOUNDARIES")
    text_fuzzy_threshold: float = Field(default=90.0, alias="ROUTE_IMPACT_TEXT_FUZZY_THRESHOLD")
    text_fuzzy_penalty: float = Field(default=0.8, alias="ROUTE_IMPACT_TEXT_FUZZY_PENALTY")

    # Optional JSON files replacing the built-in curated tables
    override_zones_path: Path | None = Field(default=None, alias="ROUTE_IMPACT_ZONES_FILE")
    text_patterns_path: Path | None = Field(default=None, alias="ROUTE_IMPACT_PATTERNS_FILE")


@lru_cache
def get_matcher_config() -> MatcherConfig:
    """Get matcher configuration (cached singleton).

    Returns:
        MatcherConfig with values from .env file or environment variables.
    """
    return MatcherConfig()
