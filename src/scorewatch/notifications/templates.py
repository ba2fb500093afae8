"""Tier-specific notification templates.

Premium subscribers get the score movement and a preview of the report.
Free subscribers get a conversion prompt with no score detail.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from scorewatch.core.constants import NOTIFICATION_SUMMARY_MAX_CHARS
from scorewatch.monitoring.models import ChangeDirection, Tier


class NotificationKind(str, Enum):
    """In-app notification type, as stored in ``notifications.type``."""

    asset_change = "ASSET_CHANGE"
    ai_report = "AI_REPORT"


class NotificationContext(BaseModel):
    """Change details shared by every recipient of one report."""

    company_id: int
    ticker: str
    company_name: str
    report_id: UUID
    report_url: str
    report_summary: str
    direction: ChangeDirection
    previous_score: float
    current_score: float


class RenderedNotification(BaseModel):
    title: str
    message: str
    link: str | None = None
    kind: NotificationKind
    metadata: dict[str, Any] = Field(default_factory=dict)


Template = Callable[[NotificationContext], RenderedNotification]


def render_premium(ctx: NotificationContext) -> RenderedNotification:
    verb = "improved" if ctx.direction == ChangeDirection.positive else "worsened"
    summary = ctx.report_summary[:NOTIFICATION_SUMMARY_MAX_CHARS]
    return RenderedNotification(
        title=f"{ctx.ticker}: overall score {verb}",
        message=(
            f"We detected a relevant change in the fundamentals of "
            f"{ctx.company_name} ({ctx.ticker}). "
            f"Score: {ctx.previous_score:.1f} → {ctx.current_score:.1f}. {summary}..."
        ),
        link=ctx.report_url,
        kind=NotificationKind.asset_change,
        metadata={
            "report_id": str(ctx.report_id),
            "ticker": ctx.ticker,
            "company_name": ctx.company_name,
            "report_type": "ASSET_CHANGE",
            "change_direction": ctx.direction.value,
            "previous_score": ctx.previous_score,
            "current_score": ctx.current_score,
        },
    )


def render_free(ctx: NotificationContext) -> RenderedNotification:
    return RenderedNotification(
        title=f"Change detected in {ctx.ticker}",
        message=(
            f"We detected a relevant change in the fundamentals of "
            f"{ctx.company_name} ({ctx.ticker}). "
            "Upgrade to Premium to see the full details."
        ),
        link=ctx.report_url,
        kind=NotificationKind.ai_report,
        metadata={
            "report_id": str(ctx.report_id),
            "ticker": ctx.ticker,
            "company_name": ctx.company_name,
            "report_type": "FREE_USER_ASSET_CHANGE",
        },
    )


DEFAULT_TEMPLATES: Mapping[Tier, Template] = {
    Tier.premium: render_premium,
    Tier.free: render_free,
}


def select_template(tier: Tier, templates: Mapping[Tier, Template] = DEFAULT_TEMPLATES) -> Template:
    """Pick the template for a tier. Raises KeyError for an unmapped tier."""
    return templates[tier]
