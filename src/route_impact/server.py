import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime

from pydantic import BaseModel

from route_impact.app import mcp
from route_impact.errors import RouteImpactError
from route_impact.models.responses import AlertInput
from route_impact.tools import match_tools  # noqa: F401 - registers the matching tools


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    feed_loaded: bool


@mcp.tool()
def health() -> HealthResponse:
    """Check if the route impact server is running and healthy.

    Returns the server status, version, whether the transit feed is loaded,
    and the current timestamp.
    """
    from route_impact import __version__
    from route_impact.services.engine import get_engine

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        feed_loaded=get_engine().is_loaded,
    )


async def run_load(source: str | None) -> None:
    """Load a feed and print its statistics."""
    from route_impact.data.config import get_matcher_config
    from route_impact.services.engine import RouteMatchingEngine

    config = get_matcher_config()
    if source is not None:
        config = config.model_copy(update={"feed_source": source})

    engine = RouteMatchingEngine(config)
    result = await engine.initialize()

    print("\nLoad complete. Row counts:")
    for table, stats in result.stats.tables.items():
        line = f"  {table}: {stats.loaded:,}"
        if not stats.present:
            line += " (file absent)"
        if stats.skipped:
            line += f" ({stats.skipped:,} skipped)"
        if stats.out_of_region:
            line += f" ({stats.out_of_region:,} outside region)"
        print(line)
    print(f"  route shapes: {result.stats.route_shapes:,}")
    print(f"  segments: {result.stats.segments:,}")
    print(f"  duration: {result.stats.duration_seconds:.2f}s")


async def run_match(args: argparse.Namespace) -> None:
    """Match one alert and print the result as JSON."""
    from route_impact.services.engine import get_engine

    coordinates = (args.lat, args.lng) if args.lat is not None and args.lng is not None else None
    alert = AlertInput(
        coordinates=coordinates,
        location_text=args.text,
        description=args.description,
        search_radius_meters=args.radius,
    )
    result = await get_engine().match(alert)
    print(result.model_dump_json(indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="route-impact",
        description="Route Impact MCP Server",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    # load command
    load_parser = subparsers.add_parser(
        "load",
        help="Load a static feed and print statistics",
    )
    load_parser.add_argument(
        "source",
        nargs="?",
        help="Feed directory, ZIP file or URL (default: ROUTE_IMPACT_FEED_PATH)",
    )

    # match command
    match_parser = subparsers.add_parser(
        "match",
        help="Match one disruption to affected routes",
    )
    match_parser.add_argument("--lat", type=float, help="Latitude of the disruption")
    match_parser.add_argument("--lng", type=float, help="Longitude of the disruption")
    match_parser.add_argument("--text", help="Location text, e.g. a road name")
    match_parser.add_argument("--description", help="Disruption description")
    match_parser.add_argument("--radius", type=float, help="Search radius in meters")

    args = parser.parse_args()

    if args.command in ("load", "match"):
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        if args.command == "match" and (args.lat is None) != (args.lng is None):
            parser.error("--lat and --lng must be given together")

        try:
            if args.command == "load":
                asyncio.run(run_load(args.source))
            else:
                asyncio.run(run_match(args))
        except RouteImpactError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        # Default: run MCP server
        mcp.run()


if __name__ == "__main__":
    main()
