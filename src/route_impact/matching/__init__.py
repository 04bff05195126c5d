"""Coordinate and text matching of disruptions to bus routes."""

from route_impact.matching.combiner import combine, dedupe_routes
from route_impact.matching.coordinate_matcher import CoordinateMatcher
from route_impact.matching.curated import (
    DEFAULT_OVERRIDE_ZONES,
    DEFAULT_TEXT_PATTERNS,
    load_override_zones,
    load_text_patterns,
)
from route_impact.matching.geometry import (
    haversine_distance,
    initial_bearing,
    project_onto_segment,
)
from route_impact.matching.normalizers import normalize_text, remove_accents
from route_impact.matching.route_geometry import FeedIndex, build_route_shapes
from route_impact.matching.scoring import ScoringParams, calculate_confidence
from route_impact.matching.spatial_grid import SpatialGrid
from route_impact.matching.text_matcher import TextMatcher

__all__ = [
    # Matchers
    "CoordinateMatcher",
    "TextMatcher",
    "combine",
    "dedupe_routes",
    # Index
    "FeedIndex",
    "SpatialGrid",
    "build_route_shapes",
    # Scoring
    "ScoringParams",
    "calculate_confidence",
    # Curated tables
    "DEFAULT_OVERRIDE_ZONES",
    "DEFAULT_TEXT_PATTERNS",
    "load_override_zones",
    "load_text_patterns",
    # Geometry
    "haversine_distance",
    "initial_bearing",
    "project_onto_segment",
    # Normalizers
    "normalize_text",
    "remove_accents",
]
