"""Report generation."""

from concert_sync.reports.dropped import generate_dropped_report

__all__ = ["generate_dropped_report"]
