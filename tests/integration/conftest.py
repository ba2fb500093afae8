"""Shared fixtures for integration tests.

These fixtures connect to the real PostgreSQL and Redis configured via
DATABASE_URL / REDIS_URL and skip the test when either is unreachable.
Run with: pytest -m integration
"""

from collections.abc import AsyncIterator

import pytest
from redis.asyncio import Redis
from redis.exceptions import RedisError

from scorewatch.config import Settings
from scorewatch.core.exceptions import DatabaseConnectionError
from scorewatch.storage.database import Database


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
async def real_db(test_settings: Settings) -> AsyncIterator[Database]:
    """Connected Database with the scorewatch schema applied."""
    db = Database(test_settings.database_url, min_size=1, max_size=4)
    try:
        await db.connect()
    except DatabaseConnectionError as e:
        pytest.skip(f"PostgreSQL unavailable: {e}")
    await db.apply_schema()
    try:
        yield db
    finally:
        await db.disconnect()


@pytest.fixture
async def real_redis(test_settings: Settings) -> AsyncIterator[Redis]:
    redis = Redis.from_url(test_settings.redis_url, decode_responses=False)
    try:
        await redis.ping()
    except RedisError as e:
        await redis.aclose()
        pytest.skip(f"Redis unavailable: {e}")
    try:
        yield redis
    finally:
        await redis.aclose()
