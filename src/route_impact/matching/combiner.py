from route_impact.models.responses import (
    CoordinateMatchResponse,
    FinalMatch,
    MatchMethod,
    MatchResult,
    TextMatchResponse,
    accuracy_from_confidence,
)


def dedupe_routes(results: list[MatchResult]) -> list[MatchResult]:
    """Keep the highest-confidence result per route_id, then per short name.

    Output is ranked by descending confidence; ties keep input order.
    """
    by_id: dict[str, MatchResult] = {}
    for result in results:
        current = by_id.get(result.route_id)
        if current is None or result.confidence > current.confidence:
            by_id[result.route_id] = result

    ranked = sorted(by_id.values(), key=lambda r: -r.confidence)

    seen_names: set[str] = set()
    unique: list[MatchResult] = []
    for result in ranked:
        if result.short_name in seen_names:
            continue
        seen_names.add(result.short_name)
        unique.append(result)
    return unique


def combine(
    coordinate: CoordinateMatchResponse | None,
    text: TextMatchResponse | None,
    max_routes: int = 12,
    engine_ready: bool = True,
) -> FinalMatch:
    """Merge coordinate and text results into one ranked route list.

    The input with the higher confidence is primary and supplies the reported
    method and accuracy (ties favor the coordinate result); the route set is
    always the union of both.
    """
    candidates = [r for r in (coordinate, text) if r is not None and r.routes]
    primary = max(candidates, key=lambda r: r.confidence) if candidates else None

    merged: list[MatchResult] = []
    if coordinate is not None:
        merged.extend(coordinate.routes)
    if text is not None:
        merged.extend(text.routes)
    routes = dedupe_routes(merged)[:max_routes]

    confidence = primary.confidence if primary is not None and routes else 0.0
    method = primary.method if primary is not None and routes else MatchMethod.NONE
    radius_used = coordinate.radius_used if coordinate is not None and coordinate.routes else None

    return FinalMatch(
        routes=routes,
        route_names=[r.short_name for r in routes],
        confidence=confidence,
        method=method,
        accuracy=accuracy_from_confidence(confidence, bool(routes)),
        engine_ready=engine_ready,
        radius_used=radius_used,
    )
