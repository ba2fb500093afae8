"""Wiring and execution of monitoring passes.

Builds a BatchScheduler from settings and runs a pass under the Redis pass
lock, publishing the summary for downstream consumers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import orjson
from redis.exceptions import RedisError

from scorewatch.core.constants import MONITOR_PASS_CHANNEL
from scorewatch.core.logging import bind_pass_context, get_logger
from scorewatch.monitoring.reports import ChangeReportGenerator
from scorewatch.monitoring.scheduler import BatchScheduler
from scorewatch.notifications.dispatcher import NotificationDispatcher
from scorewatch.notifications.in_app import InAppNotificationSink
from scorewatch.runtime.lock import PassLock

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from scorewatch.config import Settings
    from scorewatch.monitoring.base import ReportGenerator
    from scorewatch.monitoring.models import PassResult
    from scorewatch.providers.base import ScoreProvider
    from scorewatch.storage.database import Database

logger = get_logger(__name__)


def build_batch_scheduler(
    settings: Settings,
    db: Database,
    scores: ScoreProvider,
    reports: ReportGenerator | None = None,
) -> BatchScheduler:
    """Assemble the production scheduler: Postgres stores, LLM reports, in-app sink."""
    return BatchScheduler(
        snapshots=db,
        scores=scores,
        subscribers=db,
        reports=reports or ChangeReportGenerator(max_retries=settings.report_max_retries),
        report_store=db,
        dispatcher=NotificationDispatcher(InAppNotificationSink(db)),
        threshold=settings.monitoring_score_threshold,
        public_base_url=settings.public_base_url,
    )


async def publish_pass_summary(redis: Redis, result: PassResult, trigger: str) -> None:
    payload = {
        "trigger": trigger,
        "timestamp": datetime.now(UTC).isoformat(),
        **result.model_dump(mode="json"),
    }
    try:
        await redis.publish(MONITOR_PASS_CHANNEL, orjson.dumps(payload))
    except RedisError as e:
        logger.warning("Failed to publish pass summary", error=str(e))


async def run_locked_pass(
    batch_scheduler: BatchScheduler,
    redis: Redis,
    settings: Settings,
    trigger: str = "cron",
) -> PassResult | None:
    """Run one pass unless another one is in progress.

    Returns:
        The PassResult, or None when the pass lock was held elsewhere

    Raises:
        BatchFetchError: If the batch cannot be loaded
    """
    lock = PassLock(redis, ttl_seconds=settings.monitoring_lock_ttl_seconds)
    with bind_pass_context(trigger):
        async with lock.hold() as acquired:
            if not acquired:
                logger.info("Monitoring pass already running, skipping")
                return None
            result = await batch_scheduler.run_pass(
                budget=settings.monitoring_max_execution_seconds,
                batch_size=settings.monitoring_batch_size,
                concurrency=settings.monitoring_concurrency,
            )

        await publish_pass_summary(redis, result, trigger)
    return result
