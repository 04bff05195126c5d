import re
import unicodedata
from functools import lru_cache

# UK road-name abbreviations (whole words only, matched after lowercasing)
ABBREVIATIONS: dict[str, str] = {
    "rd": "road",
    "st": "street",
    "ave": "avenue",
    "av": "avenue",
    "ln": "lane",
    "dr": "drive",
    "cres": "crescent",
    "sq": "square",
    "terr": "terrace",
    "pl": "place",
    "br": "bridge",
    "jct": "junction",
    "rbt": "roundabout",
    "nb": "northbound",
    "sb": "southbound",
    "eb": "eastbound",
    "wb": "westbound",
}

ABBREVIATION_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(ABBREVIATIONS, key=len, reverse=True)) + r")\b"
)

# Everything that is not a letter, digit or whitespace becomes a space
PUNCTUATION = re.compile(r"[^\w\s]|_")


@lru_cache(maxsize=4096)
def remove_accents(text: str) -> str:
    """Remove accents from text.

    Example: "Café Nero" -> "Cafe Nero"
    """
    # Normalize to NFD (decomposes accented characters)
    normalized = unicodedata.normalize("NFD", text)
    # Remove combining diacritical marks
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn")


@lru_cache(maxsize=4096)
def normalize_text(text: str) -> str:
    """Normalize text for pattern matching.

    - Converts to lowercase
    - Removes accents
    - Replaces punctuation with spaces
    - Expands road abbreviations
    - Normalizes whitespace

    Example: "Durham Rd. (A167)" -> "durham road a167"
    Example: "St. James' Park" -> "street james park"
    """
    result = text.lower().strip()
    result = remove_accents(result)
    result = PUNCTUATION.sub(" ", result)
    result = ABBREVIATION_PATTERN.sub(lambda m: ABBREVIATIONS[m.group(1)], result)
    return " ".join(result.split())


def combine_alert_text(location_text: str | None, description: str | None) -> str:
    """Join the location and description of an alert into one normalized string."""
    parts = [part for part in (location_text, description) if part]
    return normalize_text(" ".join(parts))
