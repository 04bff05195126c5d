"""Route matching engine: owns the loaded feed, the matchers and the result cache.

Loading is single-flight: concurrent callers share one in-flight load task.
Parsing runs in a worker thread and the new state is swapped in only when the
whole load succeeded, so queries always see either the previous feed or the
new one.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path

from route_impact.data.cache import BoundedCache
from route_impact.data.config import MatcherConfig, get_matcher_config
from route_impact.data.feed_client import FeedClient, is_url
from route_impact.data.feed_loader import FeedLoader
from route_impact.errors import DataLoadError
from route_impact.matching.combiner import combine
from route_impact.matching.coordinate_matcher import CoordinateMatcher
from route_impact.matching.curated import load_override_zones, load_text_patterns
from route_impact.matching.route_geometry import FeedIndex
from route_impact.matching.text_matcher import TextMatcher
from route_impact.models.curated import OverrideZone, TextPattern
from route_impact.models.gtfs import FeedTables
from route_impact.models.responses import (
    AccuracyTier,
    AlertInput,
    CoordinateMatchResponse,
    FinalMatch,
    LoadResult,
    LoadStats,
    MatcherStatistics,
    MatchMethod,
    NearbyStop,
    TextMatchResponse,
)

logger = logging.getLogger(__name__)

# Routes listed by describe_location before "+N more"
DESCRIBE_ROUTE_LIMIT = 6


@dataclass(frozen=True)
class FeedState:
    """Everything derived from one successful load."""

    tables: FeedTables
    index: FeedIndex
    stats: LoadStats
    loaded_at: datetime
    loaded_monotonic: float


@dataclass(frozen=True)
class CacheEntry:
    key: str
    results: CoordinateMatchResponse
    inserted_at: float


@dataclass(frozen=True)
class _Matchers:
    coordinate: CoordinateMatcher
    text: TextMatcher


class RouteMatchingEngine:
    """Matches disruption alerts to the bus routes they affect.

    Usage:
        engine = RouteMatchingEngine(config)
        await engine.initialize()
        result = await engine.match(AlertInput(coordinates=(54.9630, -1.6020)))
    """

    def __init__(
        self,
        config: MatcherConfig | None = None,
        zones: tuple[OverrideZone, ...] | None = None,
        patterns: tuple[TextPattern, ...] | None = None,
    ):
        """Initialize the engine without loading the feed.

        Args:
            config: Matcher configuration; the process-wide settings if not provided.
            zones: Override zones; loaded from configuration if not provided.
            patterns: Text patterns; loaded from configuration if not provided.

        Raises:
            ConfigurationError: If a configured zone or pattern file is invalid.
        """
        self._config = config if config is not None else get_matcher_config()
        self._zones = zones if zones is not None else load_override_zones(
            self._config.override_zones_path
        )
        self._patterns = patterns if patterns is not None else load_text_patterns(
            self._config.text_patterns_path
        )
        self._cache: BoundedCache[str, CacheEntry] = BoundedCache(
            self._config.cache_capacity, ttl=self._config.cache_ttl_seconds
        )
        self._state: FeedState | None = None
        self._matchers = self._build_matchers(None)

        self._load_lock = asyncio.Lock()
        self._load_task: asyncio.Task[LoadResult] | None = None
        self._last_error: str | None = None
        self._last_failure_at: float | None = None

    def _build_matchers(self, index: FeedIndex | None) -> _Matchers:
        return _Matchers(
            coordinate=CoordinateMatcher(self._config, self._zones, index),
            text=TextMatcher(self._config, self._patterns, index),
        )

    @property
    def config(self) -> MatcherConfig:
        return self._config

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def geometry_available(self) -> bool:
        return self._state is not None and self._state.index.geometry_available

    # Lifecycle

    def _is_fresh(self, state: FeedState) -> bool:
        age = time.monotonic() - state.loaded_monotonic
        return age < self._config.freshness_hours * 3600

    async def initialize(self) -> LoadResult:
        """Load the feed unless a fresh one is already loaded."""
        return await self.ensure_loaded()

    async def ensure_loaded(self, force: bool = False) -> LoadResult:
        """Load the feed if it is missing or stale.

        Concurrent callers await the same in-flight load. A fresh feed is
        reused unless ``force`` is set.

        Raises:
            DataLoadError: If the load fails or times out. The engine keeps its
                previous state.
        """
        state = self._state
        if not force and state is not None and self._is_fresh(state):
            return LoadResult(ok=True, stats=state.stats, reused=True)

        async with self._load_lock:
            state = self._state
            if self._load_task is None:
                if not force and state is not None and self._is_fresh(state):
                    return LoadResult(ok=True, stats=state.stats, reused=True)
                self._load_task = asyncio.create_task(self._load())
            task = self._load_task

        # Shielded so a cancelled caller does not cancel the shared load
        return await asyncio.shield(task)

    async def _load(self) -> LoadResult:
        source = self._config.feed_source
        timeout = self._config.load_timeout_seconds
        logger.info(f"Loading static feed from {source}")
        try:
            state = await asyncio.wait_for(self._build_state(), timeout=timeout)
        except TimeoutError as e:
            error = DataLoadError(source, f"load timed out after {timeout:g}s")
            self._record_failure(error)
            raise error from e
        except DataLoadError as e:
            self._record_failure(e)
            raise
        finally:
            self._load_task = None

        self._state = state
        self._matchers = self._build_matchers(state.index)
        self._cache.clear()
        self._last_error = None
        self._last_failure_at = None

        stats = state.stats
        logger.info(
            f"Feed loaded in {stats.duration_seconds:.2f}s: "
            f"{len(state.tables.routes):,} routes, {len(state.tables.stops):,} stops, "
            f"{stats.route_shapes:,} route shapes, {stats.segments:,} segments"
        )
        return LoadResult(ok=True, stats=stats)

    def _record_failure(self, error: DataLoadError) -> None:
        self._last_error = str(error)
        self._last_failure_at = time.monotonic()
        if self._state is not None:
            logger.warning(f"Feed reload failed, keeping previous feed: {error}")
        else:
            logger.warning(f"Feed load failed: {error}")

    async def _build_state(self) -> FeedState:
        source = self._config.feed_source
        if is_url(source):
            async with FeedClient(timeout=self._config.download_timeout_seconds) as client:
                raw: Path | bytes = await client.download(source)
        else:
            raw = Path(source)
        return await asyncio.to_thread(self._parse_and_index, raw)

    def _parse_and_index(self, raw: Path | bytes) -> FeedState:
        """Parse the feed and derive every lookup structure (runs in a worker thread)."""
        started = time.monotonic()
        loader = FeedLoader(self._config.bounding_box)
        tables, table_stats = loader.load(raw)
        index = FeedIndex.build(tables, self._config.grid_size_degrees)

        if not index.geometry_available:
            logger.warning(
                "No route geometry available - coordinate matching will use stop proximity"
            )

        stats = LoadStats(
            tables=table_stats,
            route_shapes=index.route_shape_count,
            segments=index.segment_count,
            shape_grid_cells=len(index.shape_grid),
            stop_grid_cells=len(index.stop_grid),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        return FeedState(
            tables=tables,
            index=index,
            stats=stats,
            loaded_at=datetime.now(UTC),
            loaded_monotonic=time.monotonic(),
        )

    async def _ensure_loaded_quietly(self) -> bool:
        """Try to have a feed loaded without raising; True if one is usable.

        Failures are reported once by the load itself, and further automatic
        attempts are suppressed for the retry window.
        """
        state = self._state
        if state is not None and self._is_fresh(state):
            return True
        if self._last_failure_at is not None:
            elapsed = time.monotonic() - self._last_failure_at
            if elapsed < self._config.load_retry_seconds:
                return self._state is not None
        try:
            await self.ensure_loaded()
        except DataLoadError:
            return self._state is not None
        return True

    # Queries

    def cache_key(self, lat: float, lng: float, radius: float) -> str:
        precision = self._config.cache_key_precision
        return f"{lat:.{precision}f},{lng:.{precision}f},{radius:.2f}"

    def _resolve_radius(self, max_radius: float | None) -> float:
        radius = max_radius if max_radius is not None else self._config.default_radius_meters
        if not radius > 0:
            raise ValueError(f"search radius must be positive, got {radius}")
        return min(radius, self._config.max_radius_meters)

    @staticmethod
    def _entry_consistent(entry: CacheEntry, key: str) -> bool:
        if entry.key != key:
            return False
        route_ids = [r.route_id for r in entry.results.routes]
        if len(route_ids) != len(set(route_ids)):
            return False
        return all(0.0 <= r.confidence <= 1.0 for r in entry.results.routes)

    def match_by_coordinate(
        self, lat: float, lng: float, max_radius: float | None = None
    ) -> CoordinateMatchResponse:
        """Routes near a coordinate, served from the result cache when possible.

        Args:
            lat: Latitude in degrees.
            lng: Longitude in degrees.
            max_radius: Search radius in meters (default from configuration,
                capped at the configured maximum).
        """
        radius = self._resolve_radius(max_radius)
        matcher = self._matchers.coordinate
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return matcher.match(lat, lng, radius)

        key = self.cache_key(lat, lng, radius)
        entry = self._cache.get(key)
        if entry is not None:
            if self._entry_consistent(entry, key):
                return entry.results.model_copy(deep=True)
            logger.warning(f"Dropping inconsistent cache entry for {key}")
            self._cache.discard(key)

        response = matcher.match(lat, lng, radius)
        self._cache.put(key, CacheEntry(key=key, results=response, inserted_at=time.time()))
        return response.model_copy(deep=True)

    def match_by_text(
        self, location_text: str | None, description: str | None = None
    ) -> TextMatchResponse:
        """Routes named by curated patterns found in the alert text."""
        return self._matchers.text.match(location_text, description)

    async def match(self, alert: AlertInput) -> FinalMatch:
        """Match one alert by coordinate and/or text and combine the results.

        Loads the feed first if needed. A missing feed is reported through
        ``engine_ready=False``; text matching and override zones still apply.
        """
        ready = await self._ensure_loaded_quietly()

        coordinate = None
        if alert.coordinates is not None:
            lat, lng = alert.coordinates
            coordinate = self.match_by_coordinate(lat, lng, alert.search_radius_meters)

        text = None
        if alert.location_text or alert.description:
            text = self.match_by_text(alert.location_text, alert.description)

        return combine(coordinate, text, max_routes=self._config.max_routes, engine_ready=ready)

    async def match_batch(self, alerts: list[AlertInput]) -> list[FinalMatch]:
        """Match several alerts; an alert whose matching fails gets an empty result."""
        await self._ensure_loaded_quietly()
        results: list[FinalMatch] = []
        for position, alert in enumerate(alerts):
            try:
                results.append(await self.match(alert))
            except Exception as e:
                logger.warning(f"Matching failed for alert {position}: {e}")
                results.append(
                    FinalMatch(
                        routes=[],
                        route_names=[],
                        confidence=0.0,
                        method=MatchMethod.NONE,
                        accuracy=AccuracyTier.NONE,
                        engine_ready=self.is_loaded,
                    )
                )
        return results

    def find_nearby_stops(
        self, lat: float, lng: float, radius: float | None = None, limit: int = 3
    ) -> list[NearbyStop]:
        """Stops near a coordinate, closest first."""
        radius = self._resolve_radius(radius)
        return self._matchers.coordinate.nearby_stops(lat, lng, radius, limit)

    def describe_location(self, lat: float, lng: float, original: str) -> str:
        """Annotate a location description with the nearest stop and affected routes.

        Example: "Durham Road (near Low Fell) - affects routes: 21, X21 +2 more"
        """
        description = original
        stops = self.find_nearby_stops(lat, lng, limit=1)
        if stops:
            description += f" (near {stops[0].stop_name})"

        names = [r.short_name for r in self.match_by_coordinate(lat, lng).routes]
        if names:
            shown = ", ".join(names[:DESCRIBE_ROUTE_LIMIT])
            description += f" - affects routes: {shown}"
            if len(names) > DESCRIBE_ROUTE_LIMIT:
                description += f" +{len(names) - DESCRIBE_ROUTE_LIMIT} more"
        return description

    # Operations

    def reset_cache(self) -> None:
        """Drop every cached query result and reset the hit/miss counters."""
        self._cache.clear()
        logger.info("Result cache cleared")

    def get_statistics(self) -> MatcherStatistics:
        state = self._state
        stats = MatcherStatistics(
            is_loaded=state is not None,
            geometry_available=self.geometry_available,
            last_error=self._last_error,
            override_zones=len(self._zones),
            text_patterns=len(self._patterns),
            cache_size=len(self._cache),
            cache_capacity=self._cache.capacity,
            cache_hits=self._cache.hits,
            cache_misses=self._cache.misses,
            cache_hit_rate=round(self._cache.hit_rate, 4),
        )
        if state is None:
            return stats

        return stats.model_copy(
            update={
                "last_loaded_at": state.loaded_at.isoformat(),
                "routes": len(state.tables.routes),
                "stops": len(state.tables.stops),
                "trips": len(state.tables.trips),
                "shape_points": len(state.tables.shape_points),
                "route_shapes": state.stats.route_shapes,
                "segments": state.stats.segments,
                "shape_grid_cells": state.stats.shape_grid_cells,
                "stop_grid_cells": state.stats.stop_grid_cells,
            }
        )


@lru_cache
def get_engine() -> RouteMatchingEngine:
    """Get the process-wide engine (cached singleton)."""
    return RouteMatchingEngine(get_matcher_config())
