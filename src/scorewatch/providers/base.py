"""Abstract provider protocols for score data.

The valuation math (Graham, FCD, Gordon, Barsi, ...) lives in the platform's
scoring service. Scorewatch only consumes its output through this interface,
so the HTTP client can be swapped for a fake in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scorewatch.monitoring.models import ScoreResult


@runtime_checkable
class ScoreProvider(Protocol):
    """Protocol for the overall fundamental score of a ticker."""

    async def compute_overall_score(
        self,
        ticker: str,
        *,
        include_strategies: bool = True,
        include_statements: bool = True,
    ) -> ScoreResult | None:
        """Compute the current score, price and strategy breakdown.

        Repeated calls on unchanged underlying data must yield the same score.

        Args:
            ticker: Company ticker (e.g., "PETR4")
            include_strategies: Include per-strategy outputs
            include_statements: Include the latest financial-statement slice

        Returns:
            ScoreResult, or None when there is not enough data to score
        """
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...
