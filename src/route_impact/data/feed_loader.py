"""Static feed loader: parses GTFS text files into in-memory tables."""

import csv
import io
import logging
import math
import zipfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from pydantic import ValidationError

from route_impact.data.config import BoundingBox
from route_impact.errors import DataLoadError
from route_impact.models.gtfs import FeedTables, Route, ShapePoint, Stop, StopTime, Trip
from route_impact.models.responses import TableLoadStats

logger = logging.getLogger(__name__)

# Table definitions: table_name -> (csv_filename, columns)
TABLE_DEFINITIONS: dict[str, tuple[str, list[str]]] = {
    "routes": (
        "routes.txt",
        ["route_id", "route_short_name", "route_long_name", "route_type", "route_color"],
    ),
    "stops": (
        "stops.txt",
        ["stop_id", "stop_name", "stop_lat", "stop_lon", "stop_code"],
    ),
    "trips": (
        "trips.txt",
        ["trip_id", "route_id", "shape_id", "direction_id", "trip_headsign"],
    ),
    "shapes": (
        "shapes.txt",
        ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
    ),
    "stop_times": (
        "stop_times.txt",
        ["trip_id", "stop_id", "stop_sequence"],
    ),
}

# Columns a file's header must contain for the file to be usable.
REQUIRED_COLUMNS: dict[str, list[str]] = {
    "routes": ["route_id"],
    "stops": ["stop_id", "stop_lat", "stop_lon"],
    "trips": ["trip_id", "route_id"],
    "shapes": ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence"],
    "stop_times": ["trip_id", "stop_id", "stop_sequence"],
}

REQUIRED_TABLES = ("routes", "stops", "trips")

# Raised while opening a file or reading its header; fatal for the whole file
UNREADABLE_ERRORS = (csv.Error, OSError, zipfile.BadZipFile)


class OutOfRegion(Exception):
    """Row lies outside the service area (counted, not an error)."""


def _compact(row: dict[str, str]) -> dict[str, str]:
    """Drop empty values so model defaults apply."""
    return {k: v for k, v in row.items() if v != ""}


class FeedLoader:
    """Parser for a static feed in a directory or ZIP archive.

    Usage:
        loader = FeedLoader(bounding_box)
        tables, stats = loader.load(Path("data/gtfs.zip"))
    """

    def __init__(self, bounding_box: BoundingBox):
        """Initialize the loader.

        Args:
            bounding_box: Stops and shape points outside this area are dropped.
        """
        self._bbox = bounding_box

    def load(self, source: Path | bytes) -> tuple[FeedTables, dict[str, TableLoadStats]]:
        """Parse every consumed table from a directory, a ZIP file or ZIP bytes.

        Malformed rows are skipped and counted. Missing optional files are
        logged and yield empty tables.

        Returns:
            Tuple of (tables, per-table load statistics).

        Raises:
            DataLoadError: If the source or a required file is missing or unreadable.
        """
        if isinstance(source, bytes):
            archive = self._open_zip(io.BytesIO(source), "<downloaded archive>")
            with archive:
                return self._load_all(archive)

        path = Path(source)
        if not path.exists():
            raise DataLoadError(str(path), "path not found")
        if path.is_file():
            with self._open_zip(path, str(path)) as archive:
                return self._load_all(archive)
        return self._load_all(path)

    @staticmethod
    def _open_zip(file: Path | IO[bytes], name: str) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(file, "r")
        except (zipfile.BadZipFile, OSError) as e:
            raise DataLoadError(name, e) from e

    def _load_all(
        self, source: Path | zipfile.ZipFile
    ) -> tuple[FeedTables, dict[str, TableLoadStats]]:
        parsers: dict[str, Callable[[dict[str, str]], Any]] = {
            "routes": self._parse_route,
            "stops": self._parse_stop,
            "trips": self._parse_trip,
            "shapes": self._parse_shape_point,
            "stop_times": self._parse_stop_time,
        }

        rows: dict[str, list[Any]] = {}
        stats: dict[str, TableLoadStats] = {}
        for table_name, parse in parsers.items():
            rows[table_name], stats[table_name] = self._load_table(source, table_name, parse)

        tables = FeedTables(
            routes={route.route_id: route for route in rows["routes"]},
            stops={stop.stop_id: stop for stop in rows["stops"]},
            trips={trip.trip_id: trip for trip in rows["trips"]},
            shape_points=rows["shapes"],
            stop_times=rows["stop_times"],
            has_shapes=stats["shapes"].present,
            has_stop_times=stats["stop_times"].present,
        )
        return tables, stats

    def _load_table(
        self,
        source: Path | zipfile.ZipFile,
        table_name: str,
        parse: Callable[[dict[str, str]], Any],
    ) -> tuple[list[Any], TableLoadStats]:
        """Load a single CSV file, returning its parsed rows and row counts."""
        csv_filename, columns = TABLE_DEFINITIONS[table_name]
        required = table_name in REQUIRED_TABLES
        stats = TableLoadStats()
        parsed: list[Any] = []

        try:
            with self._open_text(source, csv_filename) as f:
                if f is None:
                    if required:
                        raise DataLoadError(csv_filename, "file not found")
                    logger.warning(f"Optional file {csv_filename} not found")
                    return [], TableLoadStats(present=False)

                logger.info(f"Loading {table_name} from {csv_filename}...")
                reader = csv.reader(f)
                header_index = self._build_header_index(reader, columns, csv_filename)
                for row in self._iter_rows(reader, csv_filename, stats):
                    if not row or all(not value.strip() for value in row):
                        continue
                    row_dict = self._row_from_index(row, header_index)
                    try:
                        parsed.append(parse(row_dict))
                    except OutOfRegion:
                        stats.out_of_region += 1
                    except (ValidationError, ValueError):
                        stats.skipped += 1
        except UNREADABLE_ERRORS as e:
            if required:
                raise DataLoadError(csv_filename, e) from e
            logger.warning(f"Optional file {csv_filename} is unreadable: {e}")
            return [], TableLoadStats(present=False)
        except DataLoadError as e:
            if required:
                raise
            logger.warning(f"Optional file {csv_filename} is unusable, ignoring it: {e}")
            return [], TableLoadStats(present=False)

        stats.loaded = len(parsed)
        logger.info(
            f"  Loaded {stats.loaded:,} rows into {table_name}"
            + (f" (skipped {stats.skipped:,} invalid)" if stats.skipped else "")
            + (f" ({stats.out_of_region:,} outside region)" if stats.out_of_region else "")
        )
        return parsed, stats

    @contextmanager
    def _open_text(
        self, source: Path | zipfile.ZipFile, csv_filename: str
    ) -> Iterator[IO[str] | None]:
        """Open a feed file as text, yielding None if it is absent.

        Undecodable bytes are replaced rather than failing the whole file.
        """
        if isinstance(source, zipfile.ZipFile):
            member = self._find_member(source, csv_filename)
            if member is None:
                yield None
                return
            with source.open(member) as raw:
                yield io.TextIOWrapper(raw, encoding="utf-8-sig", errors="replace", newline="")
            return

        csv_path = source / csv_filename
        if not csv_path.exists():
            yield None
            return
        with open(csv_path, encoding="utf-8-sig", errors="replace", newline="") as f:
            yield f

    @staticmethod
    def _iter_rows(
        reader: Any, csv_filename: str, stats: TableLoadStats
    ) -> Iterator[list[str]]:
        """Yield data rows, skipping and counting rows the csv module rejects."""
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                stats.skipped += 1
                logger.debug(f"Skipping malformed row {reader.line_num} of {csv_filename}: {e}")
                continue
            yield row

    @staticmethod
    def _find_member(archive: zipfile.ZipFile, csv_filename: str) -> str | None:
        """Find a file in the archive, also inside a single top-level folder."""
        for name in archive.namelist():
            if name == csv_filename or name.endswith("/" + csv_filename):
                return name
        return None

    def _build_header_index(
        self, reader: Any, columns: list[str], filename: str
    ) -> dict[str, int]:
        try:
            header = next(reader)
        except StopIteration as e:
            raise DataLoadError(filename, "file is empty") from e

        normalized = [self._normalize_header(col) for col in header]
        header_index = {col: normalized.index(col) for col in columns if col in normalized}

        table_name = filename.removesuffix(".txt")
        missing = [col for col in REQUIRED_COLUMNS.get(table_name, []) if col not in header_index]
        if missing:
            raise DataLoadError(filename, f"missing required columns: {', '.join(missing)}")
        return header_index

    @staticmethod
    def _normalize_header(value: str) -> str:
        return value.strip().lstrip("\ufeff").strip().lower()

    @staticmethod
    def _row_from_index(row: list[str], header_index: dict[str, int]) -> dict[str, str]:
        values: dict[str, str] = {}
        for col, idx in header_index.items():
            values[col] = row[idx].strip() if idx < len(row) else ""
        return values

    # Row parsers

    @staticmethod
    def _parse_route(row: dict[str, str]) -> Route:
        values = _compact(row)
        if "route_short_name" not in values and "route_long_name" in values:
            values["route_short_name"] = values["route_long_name"]
        return Route.model_validate(values)

    def _parse_stop(self, row: dict[str, str]) -> Stop:
        stop = Stop.model_validate(_compact(row))
        if not self._bbox.contains(stop.stop_lat, stop.stop_lon):
            raise OutOfRegion(stop.stop_id)
        return stop

    @staticmethod
    def _parse_trip(row: dict[str, str]) -> Trip:
        return Trip.model_validate(_compact(row))

    def _parse_shape_point(self, row: dict[str, str]) -> ShapePoint:
        shape_id = row.get("shape_id", "")
        if not shape_id:
            raise ValueError("missing shape_id")
        lat = float(row["shape_pt_lat"])
        lng = float(row["shape_pt_lon"])
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError("non-finite coordinate")
        if not self._bbox.contains(lat, lng):
            raise OutOfRegion(shape_id)
        return ShapePoint(shape_id, lat, lng, int(row["shape_pt_sequence"]))

    @staticmethod
    def _parse_stop_time(row: dict[str, str]) -> StopTime:
        trip_id = row.get("trip_id", "")
        stop_id = row.get("stop_id", "")
        if not trip_id or not stop_id:
            raise ValueError("missing trip_id or stop_id")
        return StopTime(trip_id, stop_id, int(row["stop_sequence"]))
