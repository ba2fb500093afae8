"""Cron-triggered monitoring pass."""

from __future__ import annotations

import time
from datetime import UTC, datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from scorewatch.core.dependencies import CronAuthDep, MonitorStateDep
from scorewatch.core.logging import get_logger
from scorewatch.runtime.passes import run_locked_pass

logger = get_logger(__name__)

router = APIRouter()


class MonitorPassResponse(BaseModel):
    success: bool
    message: str
    processed_count: int = 0
    snapshots_created: int = 0
    changes_detected: int = 0
    reports_generated: int = 0
    notifications_sent: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)
    budget_exhausted: bool = False
    skipped: bool = False
    execution_time: str
    timestamp: datetime


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


@router.get(
    "/monitor-assets",
    response_model=MonitorPassResponse,
    dependencies=[CronAuthDep],
)
async def monitor_assets(state: MonitorStateDep) -> MonitorPassResponse | JSONResponse:
    """Run one monitoring pass.

    200 even when individual companies failed (see ``errors``), 401 on a bad
    secret, 500 only when the pass itself could not run.
    """
    started = time.monotonic()

    try:
        result = await run_locked_pass(
            state.batch_scheduler, state.redis, state.settings, trigger="cron"
        )
    except Exception as e:
        logger.exception("Monitoring pass failed")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": str(e),
                "execution_time": _format_duration(time.monotonic() - started),
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    execution_time = _format_duration(time.monotonic() - started)
    if result is None:
        return MonitorPassResponse(
            success=True,
            message="Another monitoring pass is in progress",
            skipped=True,
            execution_time=execution_time,
            timestamp=datetime.now(UTC),
        )

    return MonitorPassResponse(
        success=True,
        message="Monitoring pass completed",
        processed_count=result.processed,
        snapshots_created=result.snapshots_created,
        changes_detected=result.changes_detected,
        reports_generated=result.reports_generated,
        notifications_sent=result.notifications_sent,
        error_count=len(result.errors),
        errors=result.errors,
        budget_exhausted=result.budget_exhausted,
        execution_time=execution_time,
        timestamp=datetime.now(UTC),
    )
