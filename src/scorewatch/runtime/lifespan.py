"""Runtime lifecycle used by the FastAPI server and the CLI.

``monitor_lifespan()`` connects Redis and PostgreSQL, builds the score
provider and batch scheduler, and optionally starts the in-process
APScheduler job. Everything is torn down in reverse order on exit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from redis.asyncio import Redis

from scorewatch.config import Settings
from scorewatch.core.logging import get_logger
from scorewatch.monitoring.scheduler import BatchScheduler
from scorewatch.providers.base import ScoreProvider
from scorewatch.providers.scoring import ScoringServiceClient
from scorewatch.runtime.passes import build_batch_scheduler
from scorewatch.runtime.scheduler import create_scheduler, monitor_pass_job
from scorewatch.storage.database import Database, close_database, init_database
from scorewatch.storage.redis import close_redis, init_redis

logger = get_logger(__name__)


@dataclass
class MonitorState:
    """Holds references to all running monitoring resources."""

    redis: Redis
    db: Database
    settings: Settings
    scores: ScoreProvider
    batch_scheduler: BatchScheduler
    scheduler: AsyncIOScheduler | None = None


@asynccontextmanager
async def monitor_lifespan(
    settings: Settings,
    *,
    start_scheduler: bool = True,
) -> AsyncIterator[MonitorState]:
    """Async context manager that starts/stops the monitoring runtime.

    Args:
        settings: Application settings
        start_scheduler: Start the interval job when monitoring_schedule_enabled
            is set. The one-shot CLI passes False.
    """
    redis: Redis | None = None
    db: Database | None = None
    scores: ScoreProvider | None = None
    scheduler: AsyncIOScheduler | None = None

    try:
        # 1. Redis (pass lock, pass summaries)
        redis = await init_redis(settings.redis_url)

        # 2. PostgreSQL (snapshots, subscribers, reports, notifications)
        db = await init_database(settings.database_url)
        await db.apply_schema()

        # 3. Score provider + scheduler wiring
        scores = ScoringServiceClient()
        batch_scheduler = build_batch_scheduler(settings, db, scores)

        # 4. Optional in-process schedule
        if start_scheduler and settings.monitoring_schedule_enabled:
            scheduler = create_scheduler()
            scheduler.add_job(
                monitor_pass_job,
                IntervalTrigger(minutes=settings.monitoring_interval_minutes),
                args=[batch_scheduler, redis, settings],
                id="monitor_assets",
                max_instances=1,
                misfire_grace_time=None,
                next_run_time=datetime.now(UTC) + timedelta(seconds=30),
            )
            scheduler.start()

        logger.info(
            "Monitoring runtime ready",
            batch_size=settings.monitoring_batch_size,
            concurrency=settings.monitoring_concurrency,
            threshold=settings.monitoring_score_threshold,
            budget=settings.monitoring_max_execution_seconds,
            schedule_enabled=scheduler is not None,
            llm_provider=settings.llm_provider,
        )

        yield MonitorState(
            redis=redis,
            db=db,
            settings=settings,
            scores=scores,
            batch_scheduler=batch_scheduler,
            scheduler=scheduler,
        )

    finally:
        logger.info("Shutting down monitoring runtime...")

        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.debug("Scheduler stopped")

        if scores:
            try:
                await scores.close()
            except Exception as e:
                logger.error("Failed to close score provider", error=str(e))

        if db:
            await close_database()
        if redis:
            await close_redis()
