"""Tests for the fuzzy matching system."""

from dataclasses import dataclass

import pytest

from concert_sync.matching.fuzzy import (
    artist_score,
    best_match,
    normalize_artist,
    normalize_text,
    normalize_title,
    title_score,
)


@dataclass
class Track:
    name: str
    artist: str


class TestNormalizeText:
    """Tests for text normalization."""

    @pytest.mark.parametrize(
        "input_text,expected",
        [
            ("Hello World", "hello world"),
            ("  spaces  ", "spaces"),
            ("The National", "national"),
            ("It’s OK", "it's ok"),
            ("Many   inner    spaces", "many inner spaces"),
        ],
    )
    def test_normalize_text(self, input_text: str, expected: str) -> None:
        """Test text normalization handles various cases."""
        assert normalize_text(input_text) == expected


class TestNormalizeTitle:
    """Tests for catalog title normalization."""

    @pytest.mark.parametrize(
        "input_title,expected",
        [
            ("Airbag", "airbag"),
            ("Airbag - Remastered", "airbag"),
            ("Karma Police - 2017 Remaster", "karma police"),
            ("Creep - Live at Glastonbury", "creep"),
            ("Let Down (Remastered 2009)", "let down"),
            ("No Surprises (Live)", "no surprises"),
            ("Lucky - Radio Edit", "lucky"),
        ],
    )
    def test_normalize_title(self, input_title: str, expected: str) -> None:
        """Catalog suffixes should be stripped."""
        assert normalize_title(input_title) == expected


class TestNormalizeArtist:
    """Tests for artist name normalization."""

    @pytest.mark.parametrize(
        "input_artist,expected",
        [
            ("Radiohead", "radiohead"),
            ("The Smile", "smile"),
            ("Thom Yorke feat. Flea", "thom yorke"),
            ("Artist ft. Guest", "artist"),
            ("Artist featuring Guest", "artist"),
        ],
    )
    def test_normalize_artist(self, input_artist: str, expected: str) -> None:
        """Test artist normalization keeps the lead artist."""
        assert normalize_artist(input_artist) == expected


class TestScores:
    """Tests for title and artist scores."""

    def test_identical_titles(self):
        assert title_score("Paranoid Android", "Paranoid Android") == 1.0

    def test_remaster_suffix_ignored(self):
        """Remaster suffixes should not lower the score."""
        assert title_score("Airbag", "Airbag - Remastered") == 1.0

    def test_different_titles(self):
        assert title_score("Airbag", "Nude") < 0.5

    def test_empty_title(self):
        assert title_score("", "Airbag") == 0.0

    def test_artist_case_insensitive(self):
        assert artist_score("RADIOHEAD", "Radiohead") == 1.0

    def test_artist_featuring(self):
        """Featured guests should not affect the artist score."""
        assert artist_score("Radiohead", "Radiohead feat. Someone") == 1.0


class TestBestMatch:
    """Tests for candidate selection."""

    def test_picks_best_candidate(self):
        """The closest title by the right artist should win."""
        candidates = [
            Track("Karma Police - Live", "Radiohead Tribute Band"),
            Track("Karma Police", "Radiohead"),
            Track("Police Academy", "Radiohead"),
        ]

        result = best_match("Karma Police", "Radiohead", candidates)

        assert result.track is candidates[1]
        assert result.confidence == pytest.approx(1.0)
        assert result.title_score == 1.0
        assert result.artist_score == 1.0

    def test_below_threshold(self):
        """Poor candidates should give no match."""
        candidates = [Track("Something Else Entirely", "Another Band")]
        assert best_match("Airbag", "Radiohead", candidates) is None

    def test_no_candidates(self):
        assert best_match("Airbag", "Radiohead", []) is None

    def test_title_only_without_artist(self):
        """Without an artist only the title should count."""
        result = best_match("Airbag", None, [Track("Airbag", "Anyone")])
        assert result.confidence == 1.0
        assert result.artist_score == 0.0

    @pytest.mark.parametrize("threshold,matched", [(0.5, True), (0.99, False)])
    def test_threshold(self, threshold, matched):
        """The threshold should decide whether a partial match is accepted."""
        candidates = [Track("Paranoid Androids", "Radiohead")]
        result = best_match("Paranoid Android", "Radiohead", candidates, threshold=threshold)
        assert (result is not None) is matched
