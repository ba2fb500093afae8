"""Data models for the asset monitoring pipeline.

These models define the data structures flowing through a monitoring pass:
- Tracked companies and their fairness cursor
- Score provider output (overall score, strategies, composition)
- Append-only fundamental snapshots
- Change decisions, reports and subscribers
- Per-company and per-pass results
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class ChangeDirection(str, Enum):
    """Sign of a significant score change."""

    positive = "positive"
    negative = "negative"


class Tier(str, Enum):
    """Subscriber entitlement level controlling notification richness."""

    premium = "premium"
    free = "free"


# =============================================================================
# Companies
# =============================================================================


class Company(BaseModel):
    """A tracked company. ``last_checked_at`` is the round-robin cursor."""

    id: int
    ticker: str
    name: str | None = None
    sector: str | None = None
    industry: str | None = None
    last_checked_at: datetime | None = None


# =============================================================================
# Score Provider Output
# =============================================================================


class _ProviderModel(BaseModel):
    """Accepts both camelCase (scoring service JSON) and snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OverallScore(_ProviderModel):
    score: float
    grade: str | None = None
    classification: str | None = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class ScoreContribution(_ProviderModel):
    """One component of the overall score (a strategy, statements, sentiment)."""

    name: str
    score: float
    weight: float | None = None
    points: float | None = None
    category: str | None = None


class ScorePenalty(_ProviderModel):
    reason: str
    amount: float
    details: list[str] = Field(default_factory=list)


class ScoreComposition(_ProviderModel):
    """Breakdown of how the overall score was assembled."""

    score: float
    raw_score: float
    contributions: list[ScoreContribution] = Field(default_factory=list)
    penalties: list[ScorePenalty] = Field(default_factory=list)

    @property
    def penalty_total(self) -> float:
        return self.raw_score - self.score


class SentimentAnalysis(_ProviderModel):
    """Aggregated market sentiment (video/blog analyses)."""

    score: float
    summary: str | None = None
    positive_points: list[str] | None = None
    negative_points: list[str] | None = None


class ScoreResult(_ProviderModel):
    """Output of the score provider for one ticker."""

    overall_score: OverallScore
    strategies: dict[str, dict[str, Any] | None] = Field(default_factory=dict)
    current_price: float
    financials: dict[str, Any] | None = None
    sentiment: SentimentAnalysis | None = None
    score_composition: ScoreComposition | None = None

    @property
    def score(self) -> float:
        return self.overall_score.score


# =============================================================================
# Snapshots
# =============================================================================


class SnapshotData(BaseModel):
    """Point-in-time capture of a company's fundamentals, stored as JSON."""

    model_config = ConfigDict(extra="allow")

    ticker: str
    name: str | None = None
    sector: str | None = None
    current_price: float | None = None
    strategies: dict[str, dict[str, Any] | None] = Field(default_factory=dict)
    overall_score: dict[str, Any] | None = None
    financials: dict[str, Any] | None = None
    sentiment: dict[str, Any] | None = None
    timestamp: datetime


class Snapshot(BaseModel):
    """Immutable, append-only snapshot row."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    company_id: int
    overall_score: float
    snapshot_data: SnapshotData
    score_composition: ScoreComposition | None = None
    created_at: datetime


# =============================================================================
# Change Detection
# =============================================================================


class ChangeDecision(BaseModel):
    """Result of comparing a current score against the previous baseline.

    ``direction`` is only set when ``has_change`` is true.
    """

    model_config = ConfigDict(frozen=True)

    has_change: bool
    delta: float
    direction: ChangeDirection | None = None


class ChangeEvent(BaseModel):
    """A significant change for one company (transient, never stored)."""

    ticker: str
    previous_score: float
    current_score: float
    delta: float
    direction: ChangeDirection


# =============================================================================
# Reports
# =============================================================================


class ChangeReportContext(BaseModel):
    """Everything the report generator needs to explain a change."""

    ticker: str
    name: str
    previous_data: dict[str, Any]
    current_data: dict[str, Any]
    previous_score: float
    current_score: float
    direction: ChangeDirection
    previous_composition: ScoreComposition | None = None
    current_composition: ScoreComposition | None = None


class Report(BaseModel):
    """Persisted change report."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    company_id: int
    snapshot_id: UUID | None = None
    content: str
    change_direction: ChangeDirection
    previous_score: float
    current_score: float
    created_at: datetime
    ticker: str | None = None
    company_name: str | None = None


# =============================================================================
# Subscribers
# =============================================================================


class Subscriber(BaseModel):
    """A user watching a company."""

    user_id: str
    email: str
    name: str | None = None
    is_premium: bool = False

    @property
    def tier(self) -> Tier:
        return Tier.premium if self.is_premium else Tier.free


# =============================================================================
# Results
# =============================================================================


class UnitResult(BaseModel):
    """Outcome of processing one company within a pass."""

    ticker: str
    processed: bool = False
    snapshot_created: bool = False
    change_detected: bool = False
    report_generated: bool = False
    notifications_sent: int = 0
    change: ChangeEvent | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PassResult(BaseModel):
    """Aggregated outcome of one monitoring pass."""

    processed: int = 0
    snapshots_created: int = 0
    changes_detected: int = 0
    reports_generated: int = 0
    notifications_sent: int = 0
    errors: list[str] = Field(default_factory=list)
    batch_size: int = 0
    groups_started: int = 0
    budget_exhausted: bool = False
    elapsed_seconds: float = 0.0

    def add(self, unit: UnitResult) -> None:
        if unit.processed:
            self.processed += 1
        if unit.snapshot_created:
            self.snapshots_created += 1
        if unit.change_detected:
            self.changes_detected += 1
        if unit.report_generated:
            self.reports_generated += 1
        self.notifications_sent += unit.notifications_sent
        if unit.error:
            self.errors.append(unit.error)
