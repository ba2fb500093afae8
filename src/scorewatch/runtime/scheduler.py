"""In-process schedule for monitoring passes (optional; external cron is the default)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from scorewatch.core.logging import get_logger
from scorewatch.notifications.telegram import format_pass_summary, send_long_telegram
from scorewatch.runtime.passes import run_locked_pass

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from scorewatch.config import Settings
    from scorewatch.monitoring.scheduler import BatchScheduler

logger = get_logger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Create a new scheduler instance."""
    return AsyncIOScheduler(timezone="UTC")


async def monitor_pass_job(
    batch_scheduler: BatchScheduler,
    redis: Redis,
    settings: Settings,
) -> None:
    """Run a monitoring pass and post the summary to Telegram."""
    try:
        result = await run_locked_pass(batch_scheduler, redis, settings, trigger="scheduled")
        if result is None:
            return
        if settings.telegram_enabled:
            sent = await send_long_telegram(format_pass_summary(result, trigger="scheduled"))
            if not sent:
                logger.error("Failed to send pass summary to Telegram")
    except Exception:
        logger.exception("Monitoring pass job failed")
