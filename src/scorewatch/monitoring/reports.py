"""Change report generation.

Builds a comparison prompt from two snapshots and asks an LLM to explain,
for beginner and intermediate investors, why a company's overall score
moved. Also holds the helpers that turn a stored report into the short
summary and link used by notifications.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import orjson
from pydantic_ai import Agent

from scorewatch.config import get_settings
from scorewatch.core.constants import REPORT_RETRY_BASE_DELAY_SECONDS, REPORT_SUMMARY_MAX_CHARS
from scorewatch.core.exceptions import ReportGenerationError
from scorewatch.core.logging import get_logger
from scorewatch.monitoring.llm import create_model
from scorewatch.monitoring.models import ChangeDirection, ChangeReportContext, ScoreComposition

logger = get_logger(__name__)


# =============================================================================
# Indicators
# =============================================================================

INDICATOR_DISPLAY_NAMES: dict[str, str] = {
    "pl": "P/E (Price/Earnings)",
    "pvp": "P/B (Price/Book)",
    "roe": "ROE (Return on Equity)",
    "roic": "ROIC (Return on Invested Capital)",
    "margemLiquida": "Net Margin",
    "margemEbitda": "EBITDA Margin",
    "dy": "Dividend Yield",
    "evEbitda": "EV/EBITDA",
    "liquidezCorrente": "Current Ratio",
    "debtToEquity": "Debt/Equity",
    "crescimentoReceitas": "Revenue Growth",
    "crescimentoLucros": "Earnings Growth",
}

CATEGORY_DISPLAY_NAMES: dict[str, str] = {
    "strategy": "Investment Strategies",
    "statements": "Financial Statements",
    "youtube": "Market Sentiment",
}

# Indicators compared between snapshots; marketCap and price are context only
COMPARED_INDICATORS = tuple(INDICATOR_DISPLAY_NAMES)

SIGNIFICANT_CHANGE_PERCENT = 10.0
SIGNIFICANT_CHANGE_ABSOLUTE = 0.05
MAX_INDICATOR_CHANGES = 5
MIN_COMPONENT_IMPACT = 1.0
MIN_PENALTY_CHANGE = 0.5


@dataclass
class IndicatorChange:
    indicator: str
    previous: float
    current: float
    change: float
    change_percent: float


@dataclass
class ComponentChange:
    """Change of one score contribution between two compositions."""

    component: str
    category: str
    previous_score: float
    current_score: float
    impact: float


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_relevant_data(data: dict[str, Any]) -> dict[str, Any]:
    """Reduce snapshot data to the indicators shown to the model."""
    financials = data.get("financials") or {}
    relevant = {key: financials.get(key) for key in COMPARED_INDICATORS}
    relevant["marketCap"] = financials.get("marketCap")
    relevant["currentPrice"] = data.get("current_price", data.get("currentPrice"))
    return relevant


def significant_indicator_changes(
    previous: dict[str, Any],
    current: dict[str, Any],
    limit: int = MAX_INDICATOR_CHANGES,
) -> list[IndicatorChange]:
    """Indicators that moved at least 10% or 0.05 in absolute value.

    Indicators missing on either side, non-numeric, or with a zero previous
    value are skipped. Sorted by absolute percentage change, largest first.
    """
    changes: list[IndicatorChange] = []
    for indicator in COMPARED_INDICATORS:
        prev = _to_float(previous.get(indicator))
        curr = _to_float(current.get(indicator))
        if prev is None or curr is None or prev == 0:
            continue
        change = curr - prev
        change_percent = change / abs(prev) * 100
        if (
            abs(change_percent) >= SIGNIFICANT_CHANGE_PERCENT
            or abs(change) >= SIGNIFICANT_CHANGE_ABSOLUTE
        ):
            changes.append(IndicatorChange(indicator, prev, curr, change, change_percent))

    changes.sort(key=lambda c: abs(c.change_percent), reverse=True)
    return changes[:limit]


def compare_compositions(
    previous: ScoreComposition,
    current: ScoreComposition,
    min_impact: float = MIN_COMPONENT_IMPACT,
) -> tuple[list[ComponentChange], dict[str, float]]:
    """Per-component and per-category changes between two compositions.

    Impact is measured in points contributed to the overall score when both
    sides carry ``points``, otherwise in raw component score.

    Returns:
        (significant component changes sorted by |impact|, category deltas)
    """
    prev_by_name = {c.name: c for c in previous.contributions}
    components: list[ComponentChange] = []
    categories: dict[str, float] = {}

    for contrib in current.contributions:
        prev = prev_by_name.get(contrib.name)
        if prev is None:
            continue
        if contrib.points is not None and prev.points is not None:
            impact = contrib.points - prev.points
        else:
            impact = contrib.score - prev.score
        category = contrib.category or "other"
        categories[category] = categories.get(category, 0.0) + impact
        if abs(impact) >= min_impact:
            components.append(
                ComponentChange(
                    component=contrib.name,
                    category=category,
                    previous_score=prev.score,
                    current_score=contrib.score,
                    impact=impact,
                )
            )

    components.sort(key=lambda c: abs(c.impact), reverse=True)
    return components, categories


# =============================================================================
# Prompt
# =============================================================================

REPORT_SYSTEM_PROMPT = """You are a fundamental analyst writing for beginner and intermediate investors on a Brazilian stock analysis platform.

The Overall Score is built from three categories:

1. **Investment Strategies**: the collective name for every valuation strategy on the platform:
   Graham (Intrinsic Value), Discounted Cash Flow, Gordon (Dividends), Barsi Method,
   Dividend Yield, Low P/E, Magic Formula, Fundamentalist 3+1.
   It is NOT a separate category, just the grouping of these methods.
2. **Financial Statements**: deep analysis of balance sheets, income and cash flow statements
3. **Market Sentiment**: aggregated analysis of specialist sources (YouTube, blogs, etc.)

## Report structure

1. **What happened?** (1-2 paragraphs)
   - Explain simply and directly what caused the score change
   - Priority: penalties first, then significant strategy changes, then financial indicators as context
   - Focus ONLY on the 2-3 factors that actually caused the change
2. **Why does it matter?** (1-2 paragraphs)
   - The concrete impact of those specific changes on the company's value
3. **What to watch next?** (1 paragraph)
   - Specific points of attention based on the identified changes

## Rules
- Write in Brazilian Portuguese, at most 400 words, neutral and informative tone
- Never mention snapshots, internal data or technical processes
- Only mention indicators that changed significantly; never invent analysis
- Avoid vague phrasing ("may have", "suggests that") without concrete data
- Use **bold** only for important numbers
- Spell out acronyms the first time they appear
- Use only the category and strategy names listed above
- If the data is not enough to explain a change, say so plainly"""


def _format_penalties(
    previous: ScoreComposition | None,
    current: ScoreComposition | None,
) -> str:
    if not previous or not current:
        return ""

    previous_penalty = previous.penalty_total
    current_penalty = current.penalty_total
    penalty_diff = current_penalty - previous_penalty
    if abs(penalty_diff) < MIN_PENALTY_CHANGE and current_penalty <= 0:
        return ""

    lines = ["**PENALTIES APPLIED TO THE SCORE:**"]
    if current_penalty > 0:
        lines.append(
            f"- Current penalty: {current_penalty:.1f} points "
            f"(raw score {current.raw_score:.1f} → final score {current.score:.1f})"
        )
        if previous_penalty > 0:
            lines.append(
                f"- Previous penalty: {previous_penalty:.1f} points "
                f"(raw score {previous.raw_score:.1f} → final score {previous.score:.1f})"
            )
        if abs(penalty_diff) >= MIN_PENALTY_CHANGE:
            lines.append(f"- Penalty change: {penalty_diff:+.1f} points")

    if current.penalties:
        lines.append("")
        lines.append("**Penalty details:**")
        for penalty in current.penalties:
            lines.append(f"- **{penalty.reason}**: {penalty.amount:.1f} points")
            lines.extend(f"    • {detail}" for detail in penalty.details[:3])

    lines.append("")
    lines.append(
        "Penalties are applied when positive and negative indicators contradict each "
        "other, or when the financial statements raise a high share of critical alerts."
    )
    return "\n".join(lines)


def _format_composition_changes(
    previous: ScoreComposition | None,
    current: ScoreComposition | None,
) -> str:
    if not previous or not current:
        return ""

    components, categories = compare_compositions(previous, current)
    if not components:
        return ""

    grouped: dict[str, list[ComponentChange]] = {}
    for change in components:
        name = CATEGORY_DISPLAY_NAMES.get(change.category, change.category)
        grouped.setdefault(name, []).append(change)

    lines = ["**SCORE CHANGE BREAKDOWN:**"]
    for category_name, changes in list(grouped.items())[:3]:
        lines.append(f"**{category_name}:**")
        for change in changes[:3]:
            lines.append(
                f"- **{change.component}**: {change.previous_score:.1f} → "
                f"{change.current_score:.1f} points (impact: {change.impact:+.1f} points)"
            )

    category_lines = [
        f"- **{CATEGORY_DISPLAY_NAMES.get(category, category)}**: {delta:+.1f} points"
        for category, delta in categories.items()
        if abs(delta) >= MIN_PENALTY_CHANGE
    ]
    if category_lines:
        lines.append("")
        lines.append("**Change by category:**")
        lines.extend(category_lines)
    return "\n".join(lines)


def _format_indicator_changes(changes: list[IndicatorChange]) -> str:
    if not changes:
        return ""
    lines = ["**SIGNIFICANT CHANGES IN FINANCIAL INDICATORS:**"]
    for c in changes:
        name = INDICATOR_DISPLAY_NAMES.get(c.indicator, c.indicator)
        lines.append(f"- **{name}**: {c.previous:.2f} → {c.current:.2f} ({c.change_percent:+.1f}%)")
    return "\n".join(lines)


def build_change_prompt(context: ChangeReportContext) -> str:
    """Build the user prompt describing one score change."""
    change_term = "improvement" if context.direction == ChangeDirection.positive else "decline"
    score_delta = abs(context.current_score - context.previous_score)

    previous_relevant = extract_relevant_data(context.previous_data)
    current_relevant = extract_relevant_data(context.current_data)

    sections = [
        f"{context.name} ({context.ticker}) had an **{change_term}** in its Overall Score "
        f"from **{context.previous_score:.1f}** to **{context.current_score:.1f}** points "
        f"(a change of {score_delta:.1f} points)."
    ]

    breakdown = _format_composition_changes(
        context.previous_composition, context.current_composition
    )
    if context.previous_composition and context.current_composition:
        indicators = _format_indicator_changes(
            significant_indicator_changes(previous_relevant, current_relevant)
        )
    else:
        indicators = ""
    penalties = _format_penalties(context.previous_composition, context.current_composition)

    sections.extend(s for s in (breakdown, indicators, penalties) if s)

    if penalties and not breakdown:
        sections.append(
            "**SPECIAL CASE**: the investment strategies did not change significantly but "
            "penalties were applied. Focus the report mainly on the penalties: what they "
            "are, why they were applied and how they moved the final score."
        )

    sections.append(
        "**PREVIOUS FINANCIAL DATA:**\n```json\n"
        + orjson.dumps(previous_relevant, option=orjson.OPT_INDENT_2).decode()
        + "\n```"
    )
    sections.append(
        "**CURRENT FINANCIAL DATA:**\n```json\n"
        + orjson.dumps(current_relevant, option=orjson.OPT_INDENT_2).decode()
        + "\n```"
    )
    sections.append("Write the report following the structure and rules above.")
    return "\n\n".join(sections)


# =============================================================================
# Generator
# =============================================================================


class ChangeReportGenerator:
    """LLM-backed narrative report for a score change.

    Retries failed or empty completions with exponential backoff
    (1s, 2s, 4s by default) before giving up.
    """

    def __init__(
        self,
        max_retries: int | None = None,
        retry_base_delay: float = REPORT_RETRY_BASE_DELAY_SECONDS,
    ) -> None:
        self._max_retries = (
            get_settings().report_max_retries if max_retries is None else max_retries
        )
        self._retry_base_delay = retry_base_delay
        self._agent: Agent[None, str] | None = None

    @property
    def agent(self) -> Agent[None, str]:
        if self._agent is None:
            self._agent = self._create_agent()
        return self._agent

    def _create_agent(self) -> Agent[None, str]:
        model = create_model(smart=True)
        return Agent(model, output_type=str, system_prompt=REPORT_SYSTEM_PROMPT)

    async def generate_change_report(self, context: ChangeReportContext) -> str:
        """Generate the narrative for one change.

        Raises:
            ReportGenerationError: When every attempt failed or returned nothing
        """
        prompt = build_change_prompt(context)

        for attempt in range(self._max_retries + 1):
            try:
                result = await self.agent.run(prompt)
                content = (result.output or "").strip()
                if not content:
                    raise ReportGenerationError(f"Empty report for {context.ticker}")
                logger.debug(
                    "Change report generated",
                    ticker=context.ticker,
                    attempt=attempt + 1,
                    length=len(content),
                )
                return content
            except Exception as e:
                if attempt >= self._max_retries:
                    raise ReportGenerationError(
                        f"Report generation failed for {context.ticker} "
                        f"after {attempt + 1} attempts: {e}"
                    ) from e
                delay = self._retry_base_delay * 2**attempt
                logger.warning(
                    "Report generation failed, retrying",
                    ticker=context.ticker,
                    attempt=attempt + 1,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        # range() always runs at least once
        raise AssertionError("unreachable")


# =============================================================================
# Summary and links
# =============================================================================

_MARKDOWN_CHARS = re.compile(r"[#*`]")


def summarize_report(content: str, max_chars: int = REPORT_SUMMARY_MAX_CHARS) -> str:
    """Short plain-text preview of a report.

    Strips ``#``, ``*`` and backticks, cuts at ``max_chars`` raw characters,
    trims and appends ``...``. The cut may fall mid-word.
    """
    return _MARKDOWN_CHARS.sub("", content)[:max_chars].strip() + "..."


def build_report_url(base_url: str, ticker: str, report_id: UUID | str) -> str:
    return f"{base_url.rstrip('/')}/acao/{ticker.lower()}/relatorios/{report_id}"
