"""Assemble per-route polylines and stop relationships from loaded feed tables."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from route_impact.matching.geometry import haversine_distance, initial_bearing
from route_impact.matching.spatial_grid import SpatialGrid
from route_impact.models.gtfs import (
    FeedTables,
    Route,
    RouteShape,
    Segment,
    ShapePoint,
    Stop,
    StopTime,
    Trip,
)

logger = logging.getLogger(__name__)


def group_shape_points(shape_points: Iterable[ShapePoint]) -> dict[str, tuple[ShapePoint, ...]]:
    """Group shape points by shape and order each group by sequence.

    Ties on sequence are ordered by coordinates so the result never depends on
    the row order of the shapes file.
    """
    grouped: dict[str, list[ShapePoint]] = defaultdict(list)
    for point in shape_points:
        grouped[point.shape_id].append(point)
    return {
        shape_id: tuple(sorted(points, key=lambda p: (p.sequence, p.lat, p.lng)))
        for shape_id, points in grouped.items()
    }


def build_segments(shape_id: str, points: tuple[ShapePoint, ...]) -> tuple[Segment, ...]:
    """Precompute length and bearing for each consecutive pair of points."""
    segments = []
    for start, end in zip(points, points[1:]):
        segments.append(
            Segment(
                shape_id=shape_id,
                start=start,
                end=end,
                length_meters=haversine_distance(start.lat, start.lng, end.lat, end.lng),
                bearing_degrees=initial_bearing(start.lat, start.lng, end.lat, end.lng),
            )
        )
    return tuple(segments)


def build_route_shapes(
    routes: dict[str, Route],
    trips: Iterable[Trip],
    shape_points: Iterable[ShapePoint],
) -> dict[str, list[RouteShape]]:
    """Join trips to routes and shapes into one RouteShape per (route, direction, shape).

    Trips referencing an unknown route, no shape, or a shape without points
    are skipped. Triples are emitted in sorted order; the headsign of a triple
    is taken from its lexicographically smallest trip id that has one.

    Returns:
        Dict mapping route_id to its RouteShapes.
    """
    points_by_shape = group_shape_points(shape_points)

    # (route_id, direction, shape_id) -> (trip_id, headsign) of the chosen trip
    triples: dict[tuple[str, int, str], tuple[str, str] | None] = {}
    skipped = 0
    for trip in trips:
        if trip.route_id not in routes or not trip.shape_id:
            skipped += 1
            continue
        if trip.shape_id not in points_by_shape:
            skipped += 1
            continue
        key = (trip.route_id, trip.direction_id, trip.shape_id)
        current = triples.get(key)
        if trip.trip_headsign:
            if current is None or trip.trip_id < current[0]:
                triples[key] = (trip.trip_id, trip.trip_headsign)
        elif key not in triples:
            triples[key] = None

    if skipped:
        logger.debug(f"Skipped {skipped} trips without usable route or shape")

    route_shapes: dict[str, list[RouteShape]] = defaultdict(list)
    for route_id, direction, shape_id in sorted(triples):
        chosen = triples[(route_id, direction, shape_id)]
        points = points_by_shape[shape_id]
        segments = build_segments(shape_id, points)
        route_shapes[route_id].append(
            RouteShape(
                route_id=route_id,
                direction=direction,
                shape_id=shape_id,
                headsign=chosen[1] if chosen else None,
                points=points,
                segments=segments,
                total_length=sum(s.length_meters for s in segments),
            )
        )

    return dict(route_shapes)


def build_stop_routes(
    trips: dict[str, Trip],
    stop_times: Iterable[StopTime],
    stops: dict[str, Stop],
) -> dict[str, frozenset[str]]:
    """Map each stop to the routes whose trips visit it.

    Visits to stops that were not loaded (e.g. outside the service area) or
    belonging to unknown trips are ignored.
    """
    stop_routes: dict[str, set[str]] = defaultdict(set)
    for stop_time in stop_times:
        trip = trips.get(stop_time.trip_id)
        if trip is None or stop_time.stop_id not in stops:
            continue
        stop_routes[stop_time.stop_id].add(trip.route_id)

    return {stop_id: frozenset(ids) for stop_id, ids in stop_routes.items()}


def index_route_shapes(
    route_shapes: dict[str, list[RouteShape]], grid_size: float
) -> SpatialGrid[str]:
    """Grid of route ids over every cell their shapes pass through."""
    grid: SpatialGrid[str] = SpatialGrid(grid_size)
    for route_id, shapes in route_shapes.items():
        for shape in shapes:
            if not shape.segments:
                for point in shape.points:
                    grid.insert(point.lat, point.lng, route_id)
                continue
            for segment in shape.segments:
                grid.insert_segment(
                    segment.start.lat,
                    segment.start.lng,
                    segment.end.lat,
                    segment.end.lng,
                    route_id,
                )
    return grid


def index_stops(stops: dict[str, Stop], grid_size: float) -> SpatialGrid[str]:
    """Grid of stop ids by stop location."""
    grid: SpatialGrid[str] = SpatialGrid(grid_size)
    for stop in stops.values():
        grid.insert(stop.stop_lat, stop.stop_lon, stop.stop_id)
    return grid


@dataclass(frozen=True)
class FeedIndex:
    """Read-only lookup structures derived from one loaded feed."""

    routes: dict[str, Route]
    stops: dict[str, Stop]
    route_shapes: dict[str, list[RouteShape]]
    stop_routes: dict[str, frozenset[str]]
    shape_grid: SpatialGrid[str]
    stop_grid: SpatialGrid[str]
    # casefolded short name -> smallest route_id carrying it
    short_names: dict[str, str]

    @classmethod
    def build(cls, tables: FeedTables, grid_size: float) -> "FeedIndex":
        route_shapes = build_route_shapes(tables.routes, tables.trips.values(), tables.shape_points)
        stop_routes = build_stop_routes(tables.trips, tables.stop_times, tables.stops)

        short_names: dict[str, str] = {}
        for route_id in sorted(tables.routes):
            key = tables.routes[route_id].route_short_name.casefold()
            short_names.setdefault(key, route_id)

        return cls(
            routes=tables.routes,
            stops=tables.stops,
            route_shapes=route_shapes,
            stop_routes=stop_routes,
            shape_grid=index_route_shapes(route_shapes, grid_size),
            stop_grid=index_stops(tables.stops, grid_size),
            short_names=short_names,
        )

    @property
    def geometry_available(self) -> bool:
        return bool(self.route_shapes)

    @property
    def route_shape_count(self) -> int:
        return sum(len(shapes) for shapes in self.route_shapes.values())

    @property
    def segment_count(self) -> int:
        return sum(
            len(shape.segments) for shapes in self.route_shapes.values() for shape in shapes
        )

    def short_name(self, route_id: str) -> str:
        route = self.routes.get(route_id)
        return route.route_short_name if route else route_id

    def resolve_label(self, label: str) -> tuple[str, str]:
        """Resolve a curated route label (short name) to (route_id, short_name).

        Labels unknown to the feed stand as their own id.
        """
        route_id = self.short_names.get(label.casefold())
        if route_id is None:
            return label, label
        return route_id, self.routes[route_id].route_short_name
