"""Tests for the route matching engine lifecycle and query paths."""

import asyncio
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from route_impact.data.config import MatcherConfig
from route_impact.errors import ConfigurationError, DataLoadError
from route_impact.matching.spatial_grid import SpatialGrid
from route_impact.models.responses import (
    AccuracyTier,
    AlertInput,
    CoordinateMatchResponse,
    MatchMethod,
)
from route_impact.services.engine import CacheEntry, RouteMatchingEngine

NEAR_ROUTE_21 = (55.005, -1.6000 + 30 / 63_781)
GATESHEAD_INTERCHANGE = (54.9630, -1.6020)


@pytest.fixture
def engine(config: MatcherConfig) -> RouteMatchingEngine:
    return RouteMatchingEngine(config)


@pytest.fixture
def missing_feed_config(tmp_path: Path) -> MatcherConfig:
    return MatcherConfig(feed_source=str(tmp_path / "missing"), load_retry_seconds=300)


class TestLifecycle:
    """Tests for loading, reuse and reload."""

    @pytest.mark.asyncio
    async def test_initialize(self, engine: RouteMatchingEngine):
        result = await engine.initialize()

        assert result.ok
        assert not result.reused
        assert result.stats.route_shapes == 3
        assert result.stats.segments == 5
        assert result.stats.tables["stops"].out_of_region == 1
        assert result.stats.tables["stops"].skipped == 1

        stats = engine.get_statistics()
        assert stats.is_loaded
        assert stats.geometry_available
        assert stats.routes == 3
        assert stats.stops == 3
        assert stats.last_loaded_at is not None
        assert stats.last_error is None

    @pytest.mark.asyncio
    async def test_statistics_before_load(self, engine: RouteMatchingEngine):
        stats = engine.get_statistics()

        assert not stats.is_loaded
        assert stats.routes == 0
        assert stats.override_zones > 0
        assert stats.text_patterns > 0

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_parse(self, engine: RouteMatchingEngine):
        with patch.object(
            engine, "_parse_and_index", wraps=engine._parse_and_index
        ) as parse:
            results = await asyncio.gather(*(engine.ensure_loaded() for _ in range(5)))

        assert parse.call_count == 1
        assert all(r.ok for r in results)

    @pytest.mark.asyncio
    async def test_fresh_feed_is_reused(self, engine: RouteMatchingEngine):
        await engine.initialize()

        with patch.object(
            engine, "_parse_and_index", wraps=engine._parse_and_index
        ) as parse:
            result = await engine.ensure_loaded()

        assert result.reused
        parse.assert_not_called()

    @pytest.mark.asyncio
    async def test_force_reloads(self, engine: RouteMatchingEngine):
        await engine.initialize()

        with patch.object(
            engine, "_parse_and_index", wraps=engine._parse_and_index
        ) as parse:
            result = await engine.ensure_loaded(force=True)

        assert not result.reused
        assert parse.call_count == 1

    @pytest.mark.asyncio
    async def test_stale_feed_is_reloaded(self, feed_dir: Path):
        engine = RouteMatchingEngine(
            MatcherConfig(feed_source=str(feed_dir), freshness_hours=1e-9)
        )
        await engine.initialize()

        result = await engine.ensure_loaded()

        assert not result.reused

    @pytest.mark.asyncio
    async def test_reload_clears_cache(self, engine: RouteMatchingEngine):
        await engine.initialize()
        engine.match_by_coordinate(*NEAR_ROUTE_21)

        await engine.ensure_loaded(force=True)

        assert engine.get_statistics().cache_size == 0

    @pytest.mark.asyncio
    async def test_load_timeout(self, config: MatcherConfig):
        engine = RouteMatchingEngine(config.model_copy(update={"load_timeout_seconds": 0.05}))

        async def slow_build():
            await asyncio.sleep(1)

        with patch.object(engine, "_build_state", new=slow_build):
            with pytest.raises(DataLoadError, match="timed out"):
                await engine.ensure_loaded()

        assert not engine.is_loaded
        assert "timed out" in engine.get_statistics().last_error

        # The next attempt starts a fresh load
        result = await engine.ensure_loaded()
        assert result.ok

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_feed(
        self, engine: RouteMatchingEngine, feed_dir: Path
    ):
        await engine.initialize()
        (feed_dir / "routes.txt").unlink()

        with pytest.raises(DataLoadError, match="routes.txt"):
            await engine.ensure_loaded(force=True)

        assert engine.is_loaded
        assert engine.get_statistics().last_error is not None
        response = engine.match_by_coordinate(*NEAR_ROUTE_21)
        assert response.routes[0].route_id == "R21"

    @pytest.mark.asyncio
    async def test_missing_feed_raises(self, missing_feed_config: MatcherConfig):
        engine = RouteMatchingEngine(missing_feed_config)

        with pytest.raises(DataLoadError):
            await engine.initialize()

        assert not engine.is_loaded

    def test_invalid_zone_file(self, tmp_path: Path, config: MatcherConfig):
        path = tmp_path / "zones.json"
        path.write_text('[{"routes": []}]')

        with pytest.raises(ConfigurationError):
            RouteMatchingEngine(config.model_copy(update={"override_zones_path": path}))


class TestMatch:
    """Tests for single-alert matching."""

    @pytest.mark.asyncio
    async def test_zone_alert(self, engine: RouteMatchingEngine):
        """Alert inside the central interchange."""
        result = await engine.match(AlertInput(coordinates=GATESHEAD_INTERCHANGE))

        assert result.engine_ready
        assert result.method == MatchMethod.ZONE
        assert result.confidence == 1.0
        assert result.accuracy == AccuracyTier.HIGH
        assert result.route_names[0] == "21"
        assert result.routes[0].route_id == "R21"

    @pytest.mark.asyncio
    async def test_loads_on_first_match(self, engine: RouteMatchingEngine):
        result = await engine.match(AlertInput(coordinates=NEAR_ROUTE_21))

        assert engine.is_loaded
        assert result.route_names == ["21"]
        assert result.method == MatchMethod.COORDINATE
        assert result.radius_used == 75

    @pytest.mark.asyncio
    async def test_coordinate_and_text_union(self, engine: RouteMatchingEngine):
        result = await engine.match(
            AlertInput(
                coordinates=NEAR_ROUTE_21,
                location_text="Coast Road",
                description="Lane closure",
            )
        )

        assert result.route_names[0] == "21"
        assert {"1", "307", "309", "317"} <= set(result.route_names)
        assert result.method == MatchMethod.COORDINATE

    @pytest.mark.asyncio
    async def test_text_only_alert(self, engine: RouteMatchingEngine):
        """Road number with an unlisted place name."""
        result = await engine.match(
            AlertInput(location_text="A1 Northbound", description="near Birtley")
        )

        assert result.method == MatchMethod.TEXT
        assert result.confidence == 0.75
        assert set(result.route_names) == {"21", "X21", "43", "44", "45"}

    @pytest.mark.asyncio
    async def test_empty_alert(self, engine: RouteMatchingEngine):
        result = await engine.match(AlertInput())

        assert result.routes == []
        assert result.accuracy == AccuracyTier.NONE
        assert result.engine_ready

    @pytest.mark.asyncio
    async def test_stop_proximity_without_shapes(self, feed_dir_without_shapes: Path):
        """Feed without shapes."""
        engine = RouteMatchingEngine(MatcherConfig(feed_source=str(feed_dir_without_shapes)))

        result = await engine.match(AlertInput(coordinates=(55.0001, -1.6000)))

        assert not engine.geometry_available
        assert result.method == MatchMethod.STOP_PROXIMITY
        assert set(result.route_names) == {"21", "99"}

    @pytest.mark.asyncio
    async def test_missing_feed_still_matches_text(self, missing_feed_config: MatcherConfig):
        engine = RouteMatchingEngine(missing_feed_config)

        result = await engine.match(
            AlertInput(coordinates=NEAR_ROUTE_21, location_text="Tyne Bridge")
        )

        assert not result.engine_ready
        assert result.method == MatchMethod.TEXT
        assert "21" in result.route_names

    @pytest.mark.asyncio
    async def test_retry_window_suppresses_reload(self, missing_feed_config: MatcherConfig):
        engine = RouteMatchingEngine(missing_feed_config)
        await engine.match(AlertInput(location_text="Tyne Bridge"))

        with patch.object(engine, "ensure_loaded") as ensure_loaded:
            result = await engine.match(AlertInput(location_text="Tyne Bridge"))

        ensure_loaded.assert_not_called()
        assert not result.engine_ready

    @pytest.mark.asyncio
    async def test_invalid_radius(self, engine: RouteMatchingEngine):
        await engine.initialize()

        with pytest.raises(ValueError):
            engine.match_by_coordinate(*NEAR_ROUTE_21, max_radius=0)

    @pytest.mark.asyncio
    async def test_radius_capped_at_maximum(self, engine: RouteMatchingEngine):
        await engine.initialize()

        response = engine.match_by_coordinate(55.05, -1.65, max_radius=1e9)

        assert response.routes == []
        key = engine.cache_key(55.05, -1.65, engine.config.max_radius_meters)
        assert engine._cache.get(key) is not None


class TestCoordinateCache:
    """Tests for the per-query result cache."""

    @pytest.mark.asyncio
    async def test_repeated_query_served_from_cache(self, engine: RouteMatchingEngine):
        await engine.initialize()
        first = engine.match_by_coordinate(*NEAR_ROUTE_21, 500)

        with patch.object(SpatialGrid, "neighbors", autospec=True) as neighbors:
            second = engine.match_by_coordinate(*NEAR_ROUTE_21, 500)

        neighbors.assert_not_called()
        assert second == first
        stats = engine.get_statistics()
        assert stats.cache_hits == 1
        assert stats.cache_misses == 1

    @pytest.mark.asyncio
    async def test_cached_results_are_copies(self, engine: RouteMatchingEngine):
        await engine.initialize()
        first = engine.match_by_coordinate(*NEAR_ROUTE_21, 500)
        first.routes.clear()

        second = engine.match_by_coordinate(*NEAR_ROUTE_21, 500)

        assert second.routes[0].route_id == "R21"

    def test_cache_key_precision(self, engine: RouteMatchingEngine):
        assert engine.cache_key(55.0050001, -1.6, 500.0) == "55.005000,-1.600000,500.00"
        assert engine.cache_key(55.0050001, -1.6, 500.0) == engine.cache_key(
            55.0050004, -1.6000004, 500
        )

    def test_cache_key_distinguishes_close_radii(self, engine: RouteMatchingEngine):
        lat, lng = 55.005, -1.6

        assert engine.cache_key(lat, lng, 1500.004) != engine.cache_key(lat, lng, 1500.01)
        assert engine.cache_key(lat, lng, 123456.7) != engine.cache_key(lat, lng, 123457.2)
        assert engine.cache_key(lat, lng, 1500.001) == engine.cache_key(lat, lng, 1500.0)

    @pytest.mark.asyncio
    async def test_inconsistent_entry_is_recomputed(
        self, engine: RouteMatchingEngine, caplog: pytest.LogCaptureFixture
    ):
        await engine.initialize()
        key = engine.cache_key(*NEAR_ROUTE_21, 500)
        planted = CoordinateMatchResponse(routes=[], confidence=0.0, method=MatchMethod.NONE)
        engine._cache.put(key, CacheEntry(key="elsewhere", results=planted, inserted_at=0.0))

        with caplog.at_level(logging.WARNING):
            response = engine.match_by_coordinate(*NEAR_ROUTE_21, 500)

        assert response.routes[0].route_id == "R21"
        assert "Dropping inconsistent cache entry" in caplog.text

    @pytest.mark.asyncio
    async def test_reset_cache(self, engine: RouteMatchingEngine):
        await engine.initialize()
        engine.match_by_coordinate(*NEAR_ROUTE_21)
        engine.match_by_coordinate(*NEAR_ROUTE_21)

        engine.reset_cache()

        stats = engine.get_statistics()
        assert stats.cache_size == 0
        assert stats.cache_hits == 0
        assert stats.cache_misses == 0


class TestBatchAndHelpers:
    """Tests for batch matching and location helpers."""

    @pytest.mark.asyncio
    async def test_batch_isolates_failures(self, engine: RouteMatchingEngine):
        alerts = [
            AlertInput(coordinates=NEAR_ROUTE_21),
            AlertInput(location_text="Tyne Bridge"),
            AlertInput(coordinates=GATESHEAD_INTERCHANGE),
        ]

        with patch.object(engine, "match_by_text", side_effect=RuntimeError("boom")):
            results = await engine.match_batch(alerts)

        assert len(results) == 3
        assert results[0].route_names == ["21"]
        assert results[1].routes == []
        assert results[1].method == MatchMethod.NONE
        assert results[2].method == MatchMethod.ZONE

    @pytest.mark.asyncio
    async def test_find_nearby_stops(self, engine: RouteMatchingEngine):
        await engine.initialize()

        stops = engine.find_nearby_stops(55.0001, -1.6001)

        assert stops[0].stop_name == "Gosforth High Street"

    @pytest.mark.asyncio
    async def test_describe_location(self, engine: RouteMatchingEngine):
        await engine.initialize()

        description = engine.describe_location(55.0001, -1.6001, "Gosforth")

        assert description == "Gosforth (near Gosforth High Street) - affects routes: 21, 99"

    @pytest.mark.asyncio
    async def test_describe_location_far_away(self, engine: RouteMatchingEngine):
        await engine.initialize()

        assert engine.describe_location(55.05, -1.65, "Moorland") == "Moorland"
