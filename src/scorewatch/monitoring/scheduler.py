"""Batch scheduler for asset monitoring passes.

One pass:
1. Select the companies checked least recently (never-checked first)
2. Process them in groups of ``concurrency``, groups one after another
3. Stop launching groups once the wall-clock budget is spent
4. Advance every examined company's cursor, whatever happened to it

Per company: score -> classify against the latest snapshot -> persist the new
snapshot -> (on change, with subscribers) report -> notify.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from scorewatch.core.exceptions import BatchFetchError
from scorewatch.core.logging import get_logger
from scorewatch.monitoring.classifier import classify
from scorewatch.monitoring.models import (
    ChangeEvent,
    ChangeReportContext,
    Company,
    PassResult,
    UnitResult,
)
from scorewatch.monitoring.reports import build_report_url, summarize_report
from scorewatch.monitoring.snapshots import build_snapshot_data
from scorewatch.notifications.templates import NotificationContext

if TYPE_CHECKING:
    from scorewatch.monitoring.base import (
        ReportGenerator,
        ReportStore,
        SnapshotStore,
        SubscriberDirectory,
    )
    from scorewatch.notifications.dispatcher import NotificationDispatcher
    from scorewatch.providers.base import ScoreProvider

logger = get_logger(__name__)


class BatchScheduler:
    """Runs bounded, time-boxed monitoring passes.

    All collaborators are injected, so a pass can run against in-memory fakes.
    The instance holds no per-pass state and can be reused across passes.
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        scores: ScoreProvider,
        subscribers: SubscriberDirectory,
        reports: ReportGenerator,
        report_store: ReportStore,
        dispatcher: NotificationDispatcher,
        threshold: float,
        public_base_url: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold}")
        self._snapshots = snapshots
        self._scores = scores
        self._subscribers = subscribers
        self._reports = reports
        self._report_store = report_store
        self._dispatcher = dispatcher
        self._threshold = threshold
        self._public_base_url = public_base_url
        self._clock = clock

    async def run_pass(self, budget: float, batch_size: int, concurrency: int) -> PassResult:
        """Run one monitoring pass.

        Args:
            budget: Soft wall-clock budget in seconds, checked before each group
            batch_size: Max companies to examine
            concurrency: Companies processed in parallel within a group

        Returns:
            Aggregated PassResult. Per-company failures are in ``errors``.

        Raises:
            ValueError: On non-positive budget, batch_size or concurrency
            BatchFetchError: If the batch cannot be loaded
        """
        if budget <= 0:
            raise ValueError(f"budget must be positive, got {budget}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        started = self._clock()

        try:
            companies = await self._snapshots.get_next_batch_to_process(batch_size)
        except Exception as e:
            raise BatchFetchError(f"Failed to fetch monitoring batch: {e}") from e

        result = PassResult(batch_size=len(companies))
        logger.info("Monitoring pass started", companies=len(companies), concurrency=concurrency)

        for i in range(0, len(companies), concurrency):
            elapsed = self._clock() - started
            if elapsed >= budget:
                result.budget_exhausted = True
                logger.warning(
                    "Time budget exhausted, stopping pass",
                    elapsed=round(elapsed, 2),
                    budget=budget,
                    remaining=len(companies) - i,
                )
                break

            group = companies[i : i + concurrency]
            result.groups_started += 1
            units = await asyncio.gather(*[self._run_unit(c) for c in group])
            for unit in units:
                result.add(unit)

        result.elapsed_seconds = self._clock() - started
        logger.info(
            "Monitoring pass complete",
            processed=result.processed,
            snapshots_created=result.snapshots_created,
            changes_detected=result.changes_detected,
            reports_generated=result.reports_generated,
            notifications_sent=result.notifications_sent,
            errors=len(result.errors),
            elapsed=round(result.elapsed_seconds, 2),
        )
        return result

    async def _run_unit(self, company: Company) -> UnitResult:
        """Process one company and advance its cursor. Never raises."""
        unit = await self.process_company(company)

        try:
            await self._snapshots.update_last_checked(company.id)
        except Exception as e:
            logger.exception("Failed to advance cursor", ticker=company.ticker)
            cursor_error = f"{company.ticker}: failed to update last_checked_at: {e}"
            unit.error = f"{unit.error}; {cursor_error}" if unit.error else cursor_error

        return unit

    async def process_company(self, company: Company) -> UnitResult:
        """Score, diff, persist and (on change) report and notify for one company.

        Errors are captured in ``UnitResult.error``; flags set before the
        failure are kept. The cursor is not touched here.
        """
        unit = UnitResult(ticker=company.ticker)
        try:
            await self._process(company, unit)
        except Exception as e:
            logger.exception("Company processing failed", ticker=company.ticker)
            unit.error = f"{company.ticker}: {e}"
        unit.processed = True
        return unit

    async def _process(self, company: Company, unit: UnitResult) -> None:
        ticker = company.ticker

        # 1. Current score
        score_result = await self._scores.compute_overall_score(
            ticker, include_strategies=True, include_statements=True
        )
        if score_result is None or not score_result.financials:
            logger.debug("Insufficient data, skipping", ticker=ticker)
            return

        current_score = score_result.score
        data = build_snapshot_data(company, score_result)

        # 2. Baseline
        previous = await self._snapshots.get_latest_snapshot(company.id)
        if previous is None:
            await self._snapshots.create_snapshot(
                company.id, data, current_score, score_result.score_composition
            )
            unit.snapshot_created = True
            logger.info("Baseline snapshot created", ticker=ticker, score=current_score)
            return

        # 3. Classify, then always move the baseline forward
        decision = classify(current_score, previous.overall_score, self._threshold)
        snapshot_id = await self._snapshots.create_snapshot(
            company.id, data, current_score, score_result.score_composition
        )
        unit.snapshot_created = True

        if not decision.has_change or decision.direction is None:
            logger.debug(
                "No significant change",
                ticker=ticker,
                previous=previous.overall_score,
                current=current_score,
            )
            return

        change = ChangeEvent(
            ticker=ticker,
            previous_score=previous.overall_score,
            current_score=current_score,
            delta=decision.delta,
            direction=decision.direction,
        )
        unit.change_detected = True
        unit.change = change
        logger.info(
            "Score change detected",
            ticker=ticker,
            previous=change.previous_score,
            current=change.current_score,
            delta=round(change.delta, 2),
            direction=change.direction.value,
        )

        # 4. Only report when somebody is watching
        if not await self._subscribers.has_subscribers(company.id):
            logger.debug("No subscribers, skipping report", ticker=ticker)
            return

        name = company.name or ticker
        current_data = data.model_dump(mode="json")
        content = await self._reports.generate_change_report(
            ChangeReportContext(
                ticker=ticker,
                name=name,
                previous_data=previous.snapshot_data.model_dump(mode="json"),
                current_data=current_data,
                previous_score=change.previous_score,
                current_score=change.current_score,
                direction=change.direction,
                previous_composition=previous.score_composition,
                current_composition=score_result.score_composition,
            )
        )
        report_id = await self._report_store.save_report(
            company_id=company.id,
            snapshot_id=snapshot_id,
            content=content,
            previous_score=change.previous_score,
            current_score=change.current_score,
            direction=change.direction,
            snapshot_data=current_data,
        )
        unit.report_generated = True

        # 5. Notify
        subscribers = await self._subscribers.get_subscribers_for_company(company.id)
        context = NotificationContext(
            company_id=company.id,
            ticker=ticker,
            company_name=name,
            report_id=report_id,
            report_url=build_report_url(self._public_base_url, ticker, report_id),
            report_summary=summarize_report(content),
            direction=change.direction,
            previous_score=change.previous_score,
            current_score=change.current_score,
        )
        dispatch = await self._dispatcher.dispatch_change(subscribers, context)
        unit.notifications_sent = dispatch.sent
