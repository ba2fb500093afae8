"""System status and config endpoints."""

from fastapi import APIRouter

from scorewatch.config import get_settings
from scorewatch.core.dependencies import MonitorStateDep

router = APIRouter()


@router.get("/status")
async def system_status(state: MonitorStateDep) -> dict[str, object]:
    return {
        "scheduler_running": state.scheduler is not None and state.scheduler.running,
        "telegram_enabled": state.settings.telegram_enabled,
    }


@router.get("/config")
async def system_config() -> dict[str, object]:
    settings = get_settings()
    return {
        "env": settings.env,
        "llm_provider": settings.llm_provider,
        "monitoring_batch_size": settings.monitoring_batch_size,
        "monitoring_concurrency": settings.monitoring_concurrency,
        "monitoring_score_threshold": settings.monitoring_score_threshold,
        "monitoring_max_execution_seconds": settings.monitoring_max_execution_seconds,
        "monitoring_schedule_enabled": settings.monitoring_schedule_enabled,
    }
