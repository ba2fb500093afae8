"""Data providers for Scorewatch."""

from scorewatch.providers.base import ScoreProvider

__all__ = ["ScoreProvider"]
