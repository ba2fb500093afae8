"""Snapshot payload construction.

Turns a ScoreResult into the JSON document stored with each snapshot, keeping
per-strategy scores consistent with the score composition.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from scorewatch.monitoring.models import Company, ScoreComposition, ScoreResult, SnapshotData

# Strategy key in the provider output -> contribution name in the composition
STRATEGY_DISPLAY_NAMES: dict[str, str] = {
    "fcd": "Discounted Cash Flow",
    "graham": "Graham (Intrinsic Value)",
    "gordon": "Gordon (Dividends)",
    "barsi": "Barsi Method",
    "dividendYield": "Dividend Yield",
    "lowPE": "Low P/E",
    "magicFormula": "Magic Formula",
    "fundamentalist": "Fundamentalist 3+1",
}


def align_strategy_scores(
    strategies: dict[str, dict[str, Any] | None],
    composition: ScoreComposition | None,
) -> dict[str, dict[str, Any] | None]:
    """Overwrite each strategy's score with the matching composition contribution.

    The provider computes strategy outputs and the composition separately, and
    they can disagree on rounding or on strategies the composition reweights.
    The composition is what the overall score was built from, so it wins.

    Strategies without a matching contribution, and empty strategy entries,
    are returned unchanged. The input mapping is not mutated.
    """
    if not composition or not composition.contributions:
        return dict(strategies)

    by_name = {c.name: c.score for c in composition.contributions}
    aligned: dict[str, dict[str, Any] | None] = {}
    for key, value in strategies.items():
        display_name = STRATEGY_DISPLAY_NAMES.get(key)
        if value is not None and display_name in by_name:
            aligned[key] = {**value, "score": by_name[display_name]}
        else:
            aligned[key] = value
    return aligned


def build_snapshot_data(
    company: Company,
    result: ScoreResult,
    timestamp: datetime | None = None,
) -> SnapshotData:
    """Build the snapshot document for one scored company."""
    return SnapshotData(
        ticker=company.ticker,
        name=company.name,
        sector=company.sector,
        current_price=result.current_price,
        strategies=align_strategy_scores(result.strategies, result.score_composition),
        overall_score=result.overall_score.model_dump(mode="json"),
        financials=result.financials,
        sentiment=result.sentiment.model_dump(mode="json") if result.sentiment else None,
        timestamp=timestamp or datetime.now(UTC),
    )
