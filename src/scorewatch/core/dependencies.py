"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request
from redis.asyncio import Redis

from scorewatch.config import Settings, get_settings
from scorewatch.core.logging import get_logger
from scorewatch.runtime.lifespan import MonitorState
from scorewatch.storage.database import Database, get_database
from scorewatch.storage.redis import get_redis

logger = get_logger(__name__)

# Type aliases for cleaner dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_db() -> Database:
    """Get database dependency."""
    return get_database()


async def get_monitor_state(request: Request) -> MonitorState:
    """Get MonitorState from app.state (set during lifespan)."""
    return request.app.state.monitor  # type: ignore[no-any-return]


async def verify_cron_secret(
    settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    Without a configured secret every request is rejected.
    """
    expected = settings.cron_secret.get_secret_value() if settings.cron_secret else None
    if not expected:
        logger.warning("Cron request rejected, CRON_SECRET not configured")
        raise HTTPException(status_code=401, detail="Unauthorized")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(
        token.strip().encode(), expected.encode()
    ):
        logger.warning("Cron request rejected, invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


# Annotated dependencies for use in route handlers
DbDep = Annotated[Database, Depends(get_db)]
RedisDep = Annotated[Redis, Depends(get_redis)]
MonitorStateDep = Annotated[MonitorState, Depends(get_monitor_state)]
CronAuthDep = Depends(verify_cron_secret)
