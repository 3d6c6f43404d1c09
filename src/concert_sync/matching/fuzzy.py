"""Fuzzy matching of performed song names against catalog tracks."""

import re
from dataclasses import dataclass
from typing import Protocol

from rapidfuzz import fuzz

DEFAULT_THRESHOLD = 0.75

# Catalog suffixes that never appear in a setlist entry.
CATALOG_SUFFIX_PATTERNS = [
    r"\s+-\s+(?:\d{4}\s+)?remaster(?:ed)?(?:\s+\d{4})?(?:\s+version)?$",
    r"\s+-\s+live(?:\s+.*)?$",
    r"\s+-\s+(?:single|album|radio)\s+(?:version|edit)$",
    r"\s+-\s+mono(?:\s+version)?$",
    r"\s*\((?:\d{4}\s+)?remaster(?:ed)?(?:\s+\d{4})?\)$",
    r"\s*\(live(?:\s+[^)]+)?\)$",
]

FEATURING_PATTERNS = [
    r"\s+feat\.?\s+",
    r"\s+ft\.?\s+",
    r"\s+featuring\s+",
]


class CatalogTrack(Protocol):
    """Anything with a name and a primary artist, e.g. a SpotifyTrack."""

    @property
    def name(self) -> str: ...

    @property
    def artist(self) -> str: ...


@dataclass
class MatchResult:
    """Best candidate for a performed song.

    Args:
        track: The matched candidate.
        confidence: Combined score from 0.0 to 1.0.
        title_score: Title similarity from 0.0 to 1.0.
        artist_score: Artist similarity from 0.0 to 1.0.
    """

    track: CatalogTrack
    confidence: float
    title_score: float
    artist_score: float


def normalize_text(text: str) -> str:
    """Normalize text for comparison.

    Args:
        text: Input text to normalize.

    Returns:
        Lowercased text with unified quotes and collapsed whitespace.
    """
    text = text.lower().strip()
    text = re.sub(r"[‘’`]", "'", text)
    text = re.sub(r"[“”„]", '"', text)
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"^the\s+", "", text)
    return text


def normalize_title(title: str) -> str:
    """Normalize a track title, dropping remaster and live suffixes."""
    title = normalize_text(title)
    for pattern in CATALOG_SUFFIX_PATTERNS:
        title = re.sub(pattern, "", title, flags=re.IGNORECASE)
    return title.strip()


def normalize_artist(artist: str) -> str:
    """Normalize an artist name, keeping only the lead artist."""
    artist = normalize_text(artist)
    for pattern in FEATURING_PATTERNS:
        parts = re.split(pattern, artist, flags=re.IGNORECASE)
        if len(parts) > 1:
            return parts[0].strip()
    return artist


def title_score(source_title: str, candidate_title: str) -> float:
    """Calculate fuzzy match score between song titles.

    Args:
        source_title: Title as performed.
        candidate_title: Catalog title.

    Returns:
        Match score from 0.0 to 1.0.
    """
    source_norm = normalize_title(source_title)
    candidate_norm = normalize_title(candidate_title)
    if not source_norm or not candidate_norm:
        return 0.0

    ratio = fuzz.ratio(source_norm, candidate_norm) / 100.0
    token_ratio = fuzz.token_sort_ratio(source_norm, candidate_norm) / 100.0
    partial_ratio = fuzz.partial_ratio(source_norm, candidate_norm) / 100.0

    return max(ratio, token_ratio * 0.95, partial_ratio * 0.9)


def artist_score(source_artist: str, candidate_artist: str) -> float:
    """Calculate fuzzy match score between artist names."""
    source_norm = normalize_artist(source_artist)
    candidate_norm = normalize_artist(candidate_artist)
    if not source_norm or not candidate_norm:
        return 0.0
    return max(
        fuzz.ratio(source_norm, candidate_norm),
        fuzz.token_sort_ratio(source_norm, candidate_norm),
    ) / 100.0


def best_match(
    title: str,
    artist: str | None,
    candidates: list[CatalogTrack],
    threshold: float = DEFAULT_THRESHOLD,
    title_weight: float = 0.7,
    artist_weight: float = 0.3,
) -> MatchResult | None:
    """Pick the catalog track that best matches a performed song.

    Without an artist name only the title is scored.

    Args:
        title: Song title as performed.
        artist: Performing artist name, if known.
        candidates: Catalog tracks to choose from.
        threshold: Minimum confidence to accept a match.
        title_weight: Weight of the title score.
        artist_weight: Weight of the artist score.

    Returns:
        The best MatchResult at or above the threshold, or None.
    """
    best: MatchResult | None = None
    for candidate in candidates:
        t_score = title_score(title, candidate.name)
        if artist:
            a_score = artist_score(artist, candidate.artist)
            confidence = t_score * title_weight + a_score * artist_weight
        else:
            a_score = 0.0
            confidence = t_score
        if best is None or confidence > best.confidence:
            best = MatchResult(
                track=candidate,
                confidence=confidence,
                title_score=t_score,
                artist_score=a_score,
            )

    if best is None or best.confidence < threshold:
        return None
    return best
