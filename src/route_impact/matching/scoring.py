from dataclasses import dataclass

from route_impact.data.config import MatcherConfig


@dataclass(frozen=True)
class ScoringParams:
    """Constants of the distance-to-confidence formula."""

    shape_exponent: float = 0.5
    stop_exponent: float = 1.5
    near_boost_meters: float = 50.0
    near_boost: float = 0.2
    very_near_boost_meters: float = 25.0
    very_near_boost: float = 0.3

    @classmethod
    def from_config(cls, config: MatcherConfig) -> "ScoringParams":
        return cls(
            shape_exponent=config.shape_exponent,
            stop_exponent=config.stop_exponent,
            near_boost_meters=config.near_boost_meters,
            near_boost=config.near_boost,
            very_near_boost_meters=config.very_near_boost_meters,
            very_near_boost=config.very_near_boost,
        )


def calculate_confidence(
    distance_meters: float,
    max_radius_meters: float,
    params: ScoringParams,
    from_stop: bool = False,
) -> float:
    """Convert a distance into a confidence in [0, 1].

    Linear falloff over the search radius, softened by an exponent (steeper for
    stop-based matches), then fixed boosts for very close matches. The result
    never increases with distance.

    Examples (default params, 500m radius):
        10m from a shape -> 1.0
        30m from a shape -> 1.0 (0.97 + 0.2, capped)
        300m from a shape -> 0.63
        300m from a stop -> 0.25
    """
    if max_radius_meters <= 0:
        return 0.0

    base = max(0.0, 1.0 - distance_meters / max_radius_meters)
    exponent = params.stop_exponent if from_stop else params.shape_exponent
    confidence = base**exponent

    if distance_meters < params.near_boost_meters:
        confidence += params.near_boost
    if distance_meters < params.very_near_boost_meters:
        confidence += params.very_near_boost

    return round(min(1.0, max(0.0, confidence)), 2)
