"""Beerfest: run a beer tasting, collect scores, reveal the results."""

__version__ = "1.0.0"
