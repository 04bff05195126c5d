"""Default override zones and text patterns for the Go North East network.

Route labels are route short names. Operators can replace either table with a
JSON file (a list of objects with the same fields) named in configuration.
"""

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from route_impact.data.config import BoundingBox
from route_impact.errors import ConfigurationError
from route_impact.models.curated import OverrideZone, TextPattern

logger = logging.getLogger(__name__)


def _zone(
    south: float,
    north: float,
    west: float,
    east: float,
    routes: tuple[str, ...],
    confidence: float,
    description: str,
) -> OverrideZone:
    return OverrideZone(
        bounds=BoundingBox(south=south, north=north, west=west, east=east),
        routes=routes,
        confidence=confidence,
        description=description,
    )


# Interchanges and bus stations where every listed service is affected
DEFAULT_OVERRIDE_ZONES: tuple[OverrideZone, ...] = (
    _zone(
        54.9615, 54.9645, -1.6045, -1.5995,
        ("21", "27", "28", "29", "51", "52", "53", "54", "56", "57", "58"),
        1.0,
        "Central interchange",
    ),
    _zone(
        54.9765, 54.9785, -1.6160, -1.6130,
        ("Q3", "Q3X", "10", "10A", "10B", "12", "43", "44", "45"),
        0.95,
        "Haymarket bus station",
    ),
    _zone(
        54.9738, 54.9752, -1.6180, -1.6150,
        ("10", "10A", "10B", "12", "21", "22", "X21"),
        0.9,
        "Eldon Square bus station",
    ),
    _zone(
        54.9575, 54.9595, -1.6675, -1.6625,
        ("10", "10A", "10B", "X30", "X31", "X70", "X71"),
        0.9,
        "Metrocentre interchange",
    ),
    _zone(
        54.9018, 54.9036, -1.3845, -1.3815,
        ("2", "16", "20", "24", "35", "36", "56", "61", "62", "63"),
        0.9,
        "Park Lane interchange",
    ),
    _zone(
        54.7765, 54.7785, -1.5815, -1.5785,
        ("21", "22", "X21", "50", "6"),
        0.9,
        "Durham bus station",
    ),
)


def _pattern(
    pattern: str, routes: tuple[str, ...], confidence: float, description: str
) -> TextPattern:
    return TextPattern(
        pattern=pattern, routes=routes, confidence=confidence, description=description
    )


DEFAULT_TEXT_PATTERNS: tuple[TextPattern, ...] = (
    # Major roads
    _pattern("A1", ("21", "X21", "43", "44", "45"), 0.75, "A1 corridor"),
    _pattern("A19", ("1", "35", "36", "307", "309"), 0.75, "A19 corridor"),
    _pattern("A167", ("21", "22", "X21", "6", "50"), 0.75, "A167 corridor"),
    _pattern("A1058", ("1", "307", "309", "317"), 0.75, "Coast Road (A1058)"),
    _pattern("A184", ("25", "28", "29"), 0.75, "A184 corridor"),
    _pattern("A690", ("61", "62", "63"), 0.75, "A690 corridor"),
    _pattern("A69", ("X85", "684"), 0.75, "A69 corridor"),
    _pattern("A183", ("16", "20", "61", "62"), 0.75, "A183 corridor"),
    _pattern("A693", ("X30", "X31", "X70", "X71"), 0.75, "A693 corridor"),
    _pattern("A696", ("X85",), 0.7, "A696 corridor"),
    # Named roads and crossings
    _pattern("Coast Road", ("1", "307", "309", "317"), 0.8, "Coast Road"),
    _pattern("Central Motorway", ("Q3", "Q3X", "10", "12", "21", "22"), 0.8, "A167(M)"),
    _pattern("Tyne Tunnel", ("1", "2", "307", "309"), 0.8, "Tyne Tunnel"),
    _pattern("Tyne Bridge", ("10", "10A", "10B", "21", "22", "X21"), 0.85, "Tyne Bridge"),
    _pattern("Grey Street", ("Q3", "Q3X", "12"), 0.7, "Newcastle city centre"),
    _pattern("Northumberland Street", ("Q3", "Q3X", "10", "12"), 0.7, "Newcastle city centre"),
    _pattern("Durham Road", ("21", "X21", "50"), 0.7, "Gateshead / Low Fell"),
    _pattern("West Road", ("10", "10A", "10B"), 0.7, "Newcastle West Road"),
    _pattern("Great North Road", ("43", "44", "45"), 0.7, "Gosforth"),
    # Landmarks
    _pattern("Metrocentre", ("10", "10A", "10B", "X30", "X31"), 0.8, "Metrocentre"),
    _pattern("Metro Centre", ("10", "10A", "10B", "X30", "X31"), 0.8, "Metrocentre"),
    _pattern("Angel of the North", ("21", "X21"), 0.8, "Angel of the North"),
    # Towns and areas
    _pattern(
        "Newcastle",
        ("Q3", "Q3X", "10", "10A", "10B", "12", "21", "22", "27", "28", "29"),
        0.5,
        "Newcastle upon Tyne",
    ),
    _pattern(
        "Gateshead",
        ("21", "27", "28", "29", "51", "52", "53", "54", "56", "57", "58"),
        0.5,
        "Gateshead",
    ),
    _pattern(
        "Sunderland",
        ("2", "16", "20", "24", "35", "36", "56", "61", "62", "63", "700", "701", "9"),
        0.5,
        "Sunderland",
    ),
    _pattern("Durham", ("21", "22", "X21", "6", "50"), 0.5, "Durham"),
    _pattern("Washington", ("2", "16", "24", "35", "36"), 0.6, "Washington"),
    _pattern("Penshaw", ("2",), 0.6, "Penshaw"),
    _pattern("Cramlington", ("43", "44", "45"), 0.6, "Cramlington"),
    _pattern("Hexham", ("X85", "684"), 0.6, "Hexham"),
    _pattern("Consett", ("X30", "X31", "X70", "X71"), 0.6, "Consett"),
    _pattern("Stanley", ("X30", "X31", "X70", "X71"), 0.6, "Stanley"),
    _pattern("Chester-le-Street", ("21", "22", "X21"), 0.6, "Chester-le-Street"),
    _pattern("Blaydon", ("X30", "X31"), 0.6, "Blaydon"),
    _pattern("Whickham", ("X30", "X31"), 0.6, "Whickham"),
)


def _load_table(path: Path, adapter: TypeAdapter, kind: str) -> tuple:
    try:
        table = adapter.validate_json(path.read_bytes())
    except OSError as e:
        raise ConfigurationError(f"Cannot read {kind} file {path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {kind} file {path}: {e}") from e
    logger.info(f"Loaded {len(table)} {kind} from {path}")
    return table


def load_override_zones(path: Path | None) -> tuple[OverrideZone, ...]:
    """Load override zones from a JSON file, or the defaults if no path is given.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    if path is None:
        return DEFAULT_OVERRIDE_ZONES
    return _load_table(path, TypeAdapter(tuple[OverrideZone, ...]), "override zones")


def load_text_patterns(path: Path | None) -> tuple[TextPattern, ...]:
    """Load text patterns from a JSON file, or the defaults if no path is given.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    if path is None:
        return DEFAULT_TEXT_PATTERNS
    return _load_table(path, TypeAdapter(tuple[TextPattern, ...]), "text patterns")
