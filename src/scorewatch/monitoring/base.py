"""Collaborator protocols for the monitoring pipeline.

The batch scheduler depends only on these interfaces, so the Postgres-backed
``Database``, the PydanticAI report generator and the notification dispatcher
can be swapped for in-memory fakes in tests.

Protocols:
- SnapshotStore: fairness cursor and append-only snapshots
- SubscriberDirectory: watchers of a company and their tier
- ReportGenerator: narrative explanation of a score change
- ReportStore: persisted change reports
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from scorewatch.monitoring.models import (
        ChangeDirection,
        ChangeReportContext,
        Company,
        Report,
        ScoreComposition,
        Snapshot,
        SnapshotData,
        Subscriber,
    )


@runtime_checkable
class SnapshotStore(Protocol):
    """Latest snapshot per company plus the round-robin cursor."""

    async def get_next_batch_to_process(self, limit: int) -> list[Company]:
        """Companies ordered by ``last_checked_at`` ascending, never-checked first."""
        ...

    async def get_latest_snapshot(self, company_id: int) -> Snapshot | None: ...

    async def create_snapshot(
        self,
        company_id: int,
        data: SnapshotData,
        score: float,
        composition: ScoreComposition | None = None,
    ) -> UUID: ...

    async def update_last_checked(self, company_id: int) -> None: ...


@runtime_checkable
class SubscriberDirectory(Protocol):
    """Resolves who watches a company."""

    async def has_subscribers(self, company_id: int) -> bool: ...

    async def get_subscribers_for_company(self, company_id: int) -> list[Subscriber]: ...


@runtime_checkable
class ReportGenerator(Protocol):
    """Produces a narrative explanation for a score change. May be slow or fail."""

    async def generate_change_report(self, context: ChangeReportContext) -> str: ...


@runtime_checkable
class ReportStore(Protocol):
    """Persists change reports."""

    async def save_report(
        self,
        company_id: int,
        snapshot_id: UUID,
        content: str,
        previous_score: float,
        current_score: float,
        direction: ChangeDirection,
        snapshot_data: dict[str, Any],
    ) -> UUID: ...

    async def get_change_reports(self, company_id: int, limit: int = 10) -> Sequence[Report]: ...

    async def get_report(self, report_id: UUID) -> Report | None: ...
