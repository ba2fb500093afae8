"""Platform scoring service client."""

from scorewatch.providers.scoring.client import ScoringServiceClient

__all__ = ["ScoringServiceClient"]
