"""Fuzzy matching utilities."""

from concert_sync.matching.fuzzy import MatchResult, best_match, title_score

__all__ = ["MatchResult", "best_match", "title_score"]
