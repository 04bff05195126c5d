"""MCP tools for matching disruptions to routes."""

from route_impact.app import mcp
from route_impact.models.responses import (
    AlertInput,
    CoordinateMatchResponse,
    FinalMatch,
    LoadResult,
    MatcherStatistics,
    TextMatchResponse,
)
from route_impact.services.engine import get_engine


@mcp.tool()
async def match_alert_routes(
    lat: float | None = None,
    lng: float | None = None,
    location_text: str | None = None,
    description: str | None = None,
    radius_meters: float | None = None,
) -> FinalMatch:
    """Find the bus routes affected by a traffic disruption.

    Combines coordinate matching (override zones, then route geometry near the
    point) with text matching (road names, landmarks, towns). Either input may
    be omitted.

    Examples:
        match_alert_routes(lat=54.9630, lng=-1.6020)
        match_alert_routes(location_text="A1 Northbound", description="near Birtley")

    Args:
        lat: Latitude of the disruption (requires lng).
        lng: Longitude of the disruption (requires lat).
        location_text: Free-text location, e.g. a road name.
        description: Free-text description of the disruption.
        radius_meters: Search radius (default 500m, capped at the configured maximum).

    Returns:
        FinalMatch with ranked routes, route short names, confidence and accuracy.
        engine_ready is False when the transit feed could not be loaded.
    """
    coordinates = (lat, lng) if lat is not None and lng is not None else None
    alert = AlertInput(
        coordinates=coordinates,
        location_text=location_text,
        description=description,
        search_radius_meters=radius_meters,
    )
    return await get_engine().match(alert)


@mcp.tool()
async def match_routes_near(
    lat: float, lng: float, radius_meters: float | None = None
) -> CoordinateMatchResponse:
    """Find the bus routes passing near a coordinate.

    Args:
        lat: Latitude in degrees.
        lng: Longitude in degrees.
        radius_meters: Search radius (default 500m).

    Returns:
        CoordinateMatchResponse; out_of_region is True outside the service area.
    """
    engine = get_engine()
    await engine.ensure_loaded()
    return engine.match_by_coordinate(lat, lng, radius_meters)


@mcp.tool()
def match_routes_by_text(
    location_text: str, description: str | None = None
) -> TextMatchResponse:
    """Find the bus routes named by road, landmark or town references in text.

    Example:
        match_routes_by_text(location_text="Tyne Bridge", description="lane closure")
    """
    return get_engine().match_by_text(location_text, description)


@mcp.tool()
def get_matcher_statistics() -> MatcherStatistics:
    """Get loaded feed counts, cache hit rate and the last load time."""
    return get_engine().get_statistics()


@mcp.tool()
async def reload_feed() -> LoadResult:
    """Reload the static transit feed and clear the result cache."""
    return await get_engine().ensure_loaded(force=True)
