"""Match a coordinate to the bus routes passing near it."""

import logging
import math
from dataclasses import dataclass

from route_impact.data.config import MatcherConfig
from route_impact.matching.geometry import haversine_distance, project_onto_segment
from route_impact.matching.route_geometry import FeedIndex
from route_impact.matching.scoring import ScoringParams, calculate_confidence
from route_impact.models.curated import OverrideZone
from route_impact.models.gtfs import RouteShape
from route_impact.models.responses import (
    CoordinateMatchResponse,
    MatchMethod,
    MatchResult,
    MatchType,
    NearbyStop,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShapeHit:
    """Closest approach of a query point to one RouteShape."""

    shape: RouteShape
    distance_meters: float
    segment_index: int | None
    position_on_segment: float | None


def closest_point_on_shape(
    lat: float, lng: float, shape: RouteShape, early_exit_meters: float = 0.0
) -> ShapeHit:
    """Minimum point-to-segment distance from a point to a shape.

    Scanning stops as soon as a segment closer than ``early_exit_meters`` is
    found. Shapes with a single point are measured to that point.
    """
    if not shape.segments:
        point = shape.points[0]
        return ShapeHit(shape, haversine_distance(lat, lng, point.lat, point.lng), None, None)

    best_distance = math.inf
    best_index = 0
    best_position = 0.0
    for index, segment in enumerate(shape.segments):
        distance, position = project_onto_segment(
            lat, lng, segment.start.lat, segment.start.lng, segment.end.lat, segment.end.lng
        )
        if distance < best_distance:
            best_distance = distance
            best_index = index
            best_position = position
            if best_distance < early_exit_meters:
                break

    return ShapeHit(shape, best_distance, best_index, round(best_position, 4))


def search_radii(radii: list[float], max_radius: float) -> list[float]:
    """Ascending radii to try, with any radius above ``max_radius`` replaced by it."""
    return sorted({min(radius, max_radius) for radius in radii} or {max_radius})


class CoordinateMatcher:
    """Override zones first, then a progressive-radius search over route geometry.

    Usage:
        matcher = CoordinateMatcher(config, zones, index)
        response = matcher.match(54.9630, -1.6020, 500)
    """

    def __init__(
        self,
        config: MatcherConfig,
        zones: tuple[OverrideZone, ...],
        index: FeedIndex | None = None,
    ):
        self._config = config
        self._zones = zones
        self._index = index
        self._scoring = ScoringParams.from_config(config)

    def match(self, lat: float, lng: float, max_radius: float) -> CoordinateMatchResponse:
        """Find the routes affected at a coordinate.

        Returns an empty response (never raises) for coordinates outside the
        service area, when no feed is loaded, or when nothing lies within the
        largest radius.
        """
        if not (math.isfinite(lat) and math.isfinite(lng)) or not (
            self._config.bounding_box.contains(lat, lng)
        ):
            logger.debug(f"Coordinate ({lat}, {lng}) is outside the service area")
            return CoordinateMatchResponse(
                routes=[], confidence=0.0, method=MatchMethod.NONE, out_of_region=True
            )

        zone_response = self._match_zone(lat, lng)
        if zone_response is not None:
            return zone_response

        if self._index is None:
            return CoordinateMatchResponse(routes=[], confidence=0.0, method=MatchMethod.NONE)

        for radius in search_radii(self._config.search_radii_meters, max_radius):
            results = self._search(lat, lng, radius, max_radius)
            if results:
                results.sort(key=lambda r: (-r.confidence, r.distance_meters, r.route_id))
                all_stops = all(r.match_type == MatchType.STOP_PROXIMITY for r in results)
                logger.debug(f"Matched {len(results)} routes at ({lat}, {lng}) within {radius}m")
                return CoordinateMatchResponse(
                    routes=results,
                    confidence=results[0].confidence,
                    method=MatchMethod.STOP_PROXIMITY if all_stops else MatchMethod.COORDINATE,
                    radius_used=radius,
                )

        return CoordinateMatchResponse(routes=[], confidence=0.0, method=MatchMethod.NONE)

    def _match_zone(self, lat: float, lng: float) -> CoordinateMatchResponse | None:
        containing = [zone for zone in self._zones if zone.bounds.contains(lat, lng)]
        if not containing:
            return None

        # max() keeps the first of equal-confidence zones (table order)
        zone = max(containing, key=lambda z: z.confidence)
        routes: list[MatchResult] = []
        seen: set[str] = set()
        for label in zone.routes:
            route_id, short_name = (
                self._index.resolve_label(label) if self._index else (label, label)
            )
            if route_id in seen:
                continue
            seen.add(route_id)
            routes.append(
                MatchResult(
                    route_id=route_id,
                    short_name=short_name,
                    confidence=zone.confidence,
                    match_type=MatchType.ZONE,
                )
            )

        return CoordinateMatchResponse(
            routes=routes,
            confidence=zone.confidence,
            method=MatchMethod.ZONE,
            zone=zone.description,
        )

    def _search(
        self, lat: float, lng: float, radius: float, max_radius: float
    ) -> list[MatchResult]:
        index = self._index
        ring = index.shape_grid.ring_for_radius(lat, radius)
        results: list[MatchResult] = []

        for route_id in index.shape_grid.neighbors(lat, lng, ring):
            best: ShapeHit | None = None
            for shape in index.route_shapes.get(route_id, ()):
                hit = closest_point_on_shape(lat, lng, shape, self._config.early_exit_meters)
                if best is None or hit.distance_meters < best.distance_meters:
                    best = hit
            if best is None or best.distance_meters > radius:
                continue
            results.append(
                MatchResult(
                    route_id=route_id,
                    short_name=index.short_name(route_id),
                    confidence=calculate_confidence(
                        best.distance_meters, max_radius, self._scoring
                    ),
                    match_type=MatchType.SHAPE_GEOMETRY,
                    distance_meters=round(best.distance_meters, 1),
                    direction=best.shape.direction,
                    headsign=best.shape.headsign,
                    segment_index=best.segment_index,
                    position_on_segment=best.position_on_segment,
                )
            )

        results.extend(self._search_stops(lat, lng, radius, max_radius, ring))
        return results

    def _search_stops(
        self, lat: float, lng: float, radius: float, max_radius: float, ring: int
    ) -> list[MatchResult]:
        """Nearest-stop distance for routes that have no shape geometry."""
        index = self._index
        closest: dict[str, float] = {}
        for stop_id in index.stop_grid.neighbors(lat, lng, ring):
            route_ids = [
                r for r in index.stop_routes.get(stop_id, ()) if r not in index.route_shapes
            ]
            if not route_ids:
                continue
            stop = index.stops[stop_id]
            distance = haversine_distance(lat, lng, stop.stop_lat, stop.stop_lon)
            if distance > radius:
                continue
            for route_id in route_ids:
                if distance < closest.get(route_id, math.inf):
                    closest[route_id] = distance

        return [
            MatchResult(
                route_id=route_id,
                short_name=index.short_name(route_id),
                confidence=calculate_confidence(
                    distance, max_radius, self._scoring, from_stop=True
                ),
                match_type=MatchType.STOP_PROXIMITY,
                distance_meters=round(distance, 1),
            )
            for route_id, distance in closest.items()
        ]

    def nearby_stops(
        self, lat: float, lng: float, radius: float, limit: int = 3
    ) -> list[NearbyStop]:
        """Stops within ``radius`` meters, closest first."""
        if self._index is None or not (math.isfinite(lat) and math.isfinite(lng)):
            return []
        index = self._index
        ring = index.stop_grid.ring_for_radius(lat, radius)
        found = []
        for stop_id in index.stop_grid.neighbors(lat, lng, ring):
            stop = index.stops[stop_id]
            distance = haversine_distance(lat, lng, stop.stop_lat, stop.stop_lon)
            if distance <= radius:
                found.append(
                    NearbyStop(
                        stop_id=stop.stop_id,
                        stop_name=stop.stop_name,
                        stop_code=stop.stop_code,
                        distance_meters=round(distance, 1),
                    )
                )
        found.sort(key=lambda s: (s.distance_meters, s.stop_id))
        return found[:limit]
