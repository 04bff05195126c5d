"""Match free alert text against the curated pattern dictionary."""

import logging
import re
from dataclasses import dataclass

from rapidfuzz import fuzz

from route_impact.data.config import MatcherConfig
from route_impact.matching.normalizers import combine_alert_text, normalize_text
from route_impact.matching.route_geometry import FeedIndex
from route_impact.models.curated import TextPattern
from route_impact.models.responses import MatchMethod, MatchResult, MatchType, TextMatchResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledPattern:
    pattern: TextPattern
    normalized: str
    regex: re.Pattern[str]

    @property
    def multi_word(self) -> bool:
        return " " in self.normalized


def compile_pattern(pattern: TextPattern, word_boundaries: bool = True) -> CompiledPattern:
    normalized = normalize_text(pattern.pattern)
    escaped = re.escape(normalized)
    if word_boundaries:
        escaped = rf"(?<!\w){escaped}(?!\w)"
    return CompiledPattern(pattern, normalized, re.compile(escaped))


class TextMatcher:
    """Union of the routes named by every pattern found in the alert text.

    Usage:
        matcher = TextMatcher(config, patterns, index)
        response = matcher.match("A1 Northbound", "near Birtley")
    """

    def __init__(
        self,
        config: MatcherConfig,
        patterns: tuple[TextPattern, ...],
        index: FeedIndex | None = None,
    ):
        self._config = config
        self._index = index
        self._patterns = [
            compile_pattern(p, config.text_word_boundaries)
            for p in patterns
            if normalize_text(p.pattern)
        ]

    def _score(self, compiled: CompiledPattern, text: str) -> tuple[float, MatchType] | None:
        """Confidence contributed by one pattern, or None if it does not hit."""
        if compiled.regex.search(text):
            return compiled.pattern.confidence, MatchType.TEXT_PATTERN

        # Fuzzy hits only for multi-word patterns fully covered by the text
        if not compiled.multi_word or len(text) < len(compiled.normalized):
            return None
        score = fuzz.partial_ratio(compiled.normalized, text)
        if score < self._config.text_fuzzy_threshold:
            return None
        confidence = compiled.pattern.confidence * (score / 100) * self._config.text_fuzzy_penalty
        return round(min(1.0, confidence), 2), MatchType.TEXT_FUZZY

    def match(
        self, location_text: str | None, description: str | None = None
    ) -> TextMatchResponse:
        """Scan the combined text for every curated pattern.

        A route's confidence is the highest confidence among the patterns that
        named it. No hit yields an empty response with confidence 0.
        """
        text = combine_alert_text(location_text, description)
        if not text:
            return TextMatchResponse(routes=[], confidence=0.0, method=MatchMethod.NONE)

        best: dict[str, MatchResult] = {}
        matched: list[str] = []
        overall = 0.0

        for compiled in self._patterns:
            scored = self._score(compiled, text)
            if scored is None:
                continue
            confidence, match_type = scored
            matched.append(compiled.pattern.pattern)
            overall = max(overall, confidence)

            for label in compiled.pattern.routes:
                route_id, short_name = (
                    self._index.resolve_label(label) if self._index else (label, label)
                )
                current = best.get(route_id)
                if current is None or confidence > current.confidence:
                    best[route_id] = MatchResult(
                        route_id=route_id,
                        short_name=short_name,
                        confidence=confidence,
                        match_type=match_type,
                        pattern=compiled.pattern.pattern,
                    )

        if not best:
            return TextMatchResponse(routes=[], confidence=0.0, method=MatchMethod.NONE)

        # Stable sort keeps pattern order among equal confidences
        routes = sorted(best.values(), key=lambda r: -r.confidence)
        logger.debug(f"Text matched patterns {matched} -> {len(routes)} routes")
        return TextMatchResponse(
            routes=routes, confidence=overall, method=MatchMethod.TEXT, patterns=matched
        )
