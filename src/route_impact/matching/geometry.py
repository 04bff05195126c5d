"""Great-circle helpers shared by the geometry assembler and the matchers."""

import math

# Earth's radius in meters for haversine calculation
EARTH_RADIUS_METERS = 6_371_000

# 1 degree of latitude ~= 111,000 meters
METERS_PER_DEGREE_LAT = 111_000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great-circle distance between two points in meters.

    Args:
        lat1, lon1: First point coordinates in degrees.
        lat2, lon2: Second point coordinates in degrees.

    Returns:
        Distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial compass bearing from the first point to the second, in [0, 360)."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    y = math.sin(delta_lon) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(
        lat2_rad
    ) * math.cos(delta_lon)

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def project_onto_segment(
    lat: float,
    lng: float,
    start_lat: float,
    start_lng: float,
    end_lat: float,
    end_lng: float,
) -> tuple[float, float]:
    """Distance from a point to the closest point of a segment.

    The point is projected onto the segment in a local equirectangular frame
    (longitudes scaled by the cosine of the segment's mean latitude), the
    projection is clamped to the segment's end points, and the great-circle
    distance to that closest point is returned.

    Returns:
        Tuple of (distance in meters, normalized position along the segment 0-1).
    """
    scale = math.cos(math.radians((start_lat + end_lat) / 2))
    dx = (end_lng - start_lng) * scale
    dy = end_lat - start_lat
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        return haversine_distance(lat, lng, start_lat, start_lng), 0.0

    px = (lng - start_lng) * scale
    py = lat - start_lat
    t = max(0.0, min(1.0, (px * dx + py * dy) / length_sq))

    closest_lat = start_lat + t * (end_lat - start_lat)
    closest_lng = start_lng + t * (end_lng - start_lng)
    return haversine_distance(lat, lng, closest_lat, closest_lng), t
