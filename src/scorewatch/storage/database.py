"""PostgreSQL database connection using raw asyncpg."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from importlib import resources
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID

import asyncpg
import orjson

from scorewatch.core.constants import REPORT_TYPE_FUNDAMENTAL_CHANGE
from scorewatch.core.exceptions import DatabaseConnectionError
from scorewatch.core.logging import get_logger
from scorewatch.monitoring.models import (
    ChangeDirection,
    Company,
    Report,
    ScoreComposition,
    Snapshot,
    SnapshotData,
    Subscriber,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = get_logger(__name__)


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def _loads(value: Any) -> Any:
    # asyncpg returns jsonb as text unless a codec is registered
    if value is None or isinstance(value, dict | list):
        return value
    return orjson.loads(value)


class Database:
    """Async PostgreSQL database wrapper using asyncpg."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool[asyncpg.Record] | None = None

    async def connect(self) -> None:
        """Create connection pool."""
        # Convert SQLAlchemy-style DSN to asyncpg format
        dsn = self._dsn.replace("postgresql+asyncpg://", "postgresql://")

        async def init_connection(conn: asyncpg.Connection[asyncpg.Record]) -> None:
            """Initialize each connection with scorewatch schema search_path."""
            await conn.execute("SET search_path TO scorewatch, public")

        try:
            self._pool = await asyncpg.create_pool(
                dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                init=init_connection,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e
        logger.debug("Database pool created", min_size=self._min_size, max_size=self._max_size)

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.debug("Database pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection[asyncpg.Record]]:
        """Acquire a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected. Call connect() first.")
        async with self._pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query and return status."""
        async with self.acquire() as conn:
            result = await conn.execute(query, *args)
            return cast(str, result)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Fetch multiple rows."""
        async with self.acquire() as conn:
            result = await conn.fetch(query, *args)
            return list(result)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def apply_schema(self) -> None:
        """Create the scorewatch schema and tables if missing."""
        ddl = resources.files("scorewatch.storage").joinpath("schema.sql").read_text("utf-8")
        await self.execute(ddl)
        logger.info("Database schema applied")

    # -------------------------------------------------------------------------
    # Companies and snapshots
    # -------------------------------------------------------------------------

    async def get_next_batch_to_process(self, limit: int) -> list[Company]:
        """Companies checked least recently, never-checked first.

        Args:
            limit: Max companies to return

        Returns:
            Companies ordered by last_checked_at ascending (NULLS FIRST), then id
        """
        query = """
            SELECT id, ticker, name, sector, industry, last_checked_at
            FROM companies
            ORDER BY last_checked_at ASC NULLS FIRST, id ASC
            LIMIT $1
        """
        rows = await self.fetch(query, limit)
        return [Company(**dict(row)) for row in rows]

    async def update_last_checked(self, company_id: int) -> None:
        await self.execute("UPDATE companies SET last_checked_at = NOW() WHERE id = $1", company_id)

    async def get_company_by_ticker(self, ticker: str) -> Company | None:
        row = await self.fetchrow(
            """
            SELECT id, ticker, name, sector, industry, last_checked_at
            FROM companies
            WHERE ticker = $1
            """,
            ticker.upper(),
        )
        return Company(**dict(row)) if row else None

    async def get_latest_snapshot(self, company_id: int) -> Snapshot | None:
        query = """
            SELECT id, company_id, overall_score, snapshot_data, score_composition, created_at
            FROM asset_snapshots
            WHERE company_id = $1
            ORDER BY created_at DESC
            LIMIT 1
        """
        row = await self.fetchrow(query, company_id)
        if row is None:
            return None

        composition = _loads(row["score_composition"])
        return Snapshot(
            id=row["id"],
            company_id=row["company_id"],
            overall_score=row["overall_score"],
            snapshot_data=SnapshotData.model_validate(_loads(row["snapshot_data"])),
            score_composition=(
                ScoreComposition.model_validate(composition) if composition else None
            ),
            created_at=row["created_at"],
        )

    async def create_snapshot(
        self,
        company_id: int,
        data: SnapshotData,
        score: float,
        composition: ScoreComposition | None = None,
    ) -> UUID:
        """Append a snapshot. Older snapshots are kept as history.

        Returns:
            The new snapshot id
        """
        query = """
            INSERT INTO asset_snapshots (company_id, overall_score, snapshot_data, score_composition)
            VALUES ($1, $2, $3, $4)
            RETURNING id
        """
        snapshot_id = await self.fetchval(
            query,
            company_id,
            score,
            _dumps(data.model_dump(mode="json")),
            _dumps(composition.model_dump(mode="json", by_alias=True)) if composition else None,
        )
        logger.debug("Snapshot created", company_id=company_id, score=score)
        return cast(UUID, snapshot_id)

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    async def has_subscribers(self, company_id: int) -> bool:
        query = "SELECT EXISTS (SELECT 1 FROM user_asset_subscriptions WHERE company_id = $1)"
        return bool(await self.fetchval(query, company_id))

    async def get_subscribers_for_company(self, company_id: int) -> list[Subscriber]:
        """Watchers of a company with their effective premium status.

        Premium means an unexpired PREMIUM tier, or an active trial.
        """
        query = """
            SELECT
                u.id AS user_id,
                u.email,
                u.name,
                (
                    (u.subscription_tier = 'PREMIUM'
                        AND (u.premium_expires_at IS NULL OR u.premium_expires_at > NOW()))
                    OR (u.trial_started_at IS NOT NULL
                        AND u.trial_ends_at > u.trial_started_at
                        AND u.trial_ends_at > NOW())
                ) AS is_premium
            FROM user_asset_subscriptions s
            JOIN users u ON u.id = s.user_id
            WHERE s.company_id = $1
            ORDER BY s.created_at
        """
        rows = await self.fetch(query, company_id)
        return [
            Subscriber(
                user_id=row["user_id"],
                email=row["email"],
                name=row["name"],
                is_premium=bool(row["is_premium"]),
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def save_report(
        self,
        company_id: int,
        snapshot_id: UUID,
        content: str,
        previous_score: float,
        current_score: float,
        direction: ChangeDirection,
        snapshot_data: Mapping[str, Any],
    ) -> UUID:
        """Persist a completed FUNDAMENTAL_CHANGE report.

        Returns:
            The new report id
        """
        metadata = {
            "generated_at": snapshot_data.get("timestamp"),
            "score_delta": current_score - previous_score,
            "snapshot_data": dict(snapshot_data),
        }
        query = """
            INSERT INTO ai_reports (
                company_id, snapshot_id, type, status, content,
                change_direction, previous_score, current_score, metadata
            )
            VALUES ($1, $2, $3, 'COMPLETED', $4, $5, $6, $7, $8)
            RETURNING id
        """
        report_id = await self.fetchval(
            query,
            company_id,
            snapshot_id,
            REPORT_TYPE_FUNDAMENTAL_CHANGE,
            content,
            direction.value,
            previous_score,
            current_score,
            _dumps(metadata),
        )
        logger.debug("Change report saved", company_id=company_id, report_id=str(report_id))
        return cast(UUID, report_id)

    @staticmethod
    def _report_from_row(row: asyncpg.Record) -> Report:
        return Report(
            id=row["id"],
            company_id=row["company_id"],
            snapshot_id=row["snapshot_id"],
            content=row["content"],
            change_direction=ChangeDirection(row["change_direction"]),
            previous_score=row["previous_score"],
            current_score=row["current_score"],
            created_at=row["created_at"],
            ticker=row["ticker"],
            company_name=row["company_name"],
        )

    async def get_change_reports(self, company_id: int, limit: int = 10) -> list[Report]:
        """Latest active change reports for a company, newest first."""
        query = """
            SELECT r.id, r.company_id, r.snapshot_id, r.content, r.change_direction,
                   r.previous_score, r.current_score, r.created_at,
                   c.ticker, c.name AS company_name
            FROM ai_reports r
            JOIN companies c ON c.id = r.company_id
            WHERE r.company_id = $1 AND r.type = $2 AND r.is_active = TRUE
            ORDER BY r.created_at DESC
            LIMIT $3
        """
        rows = await self.fetch(query, company_id, REPORT_TYPE_FUNDAMENTAL_CHANGE, limit)
        return [self._report_from_row(row) for row in rows]

    async def get_report(self, report_id: UUID) -> Report | None:
        query = """
            SELECT r.id, r.company_id, r.snapshot_id, r.content, r.change_direction,
                   r.previous_score, r.current_score, r.created_at,
                   c.ticker, c.name AS company_name
            FROM ai_reports r
            JOIN companies c ON c.id = r.company_id
            WHERE r.id = $1 AND r.type = $2
        """
        row = await self.fetchrow(query, report_id, REPORT_TYPE_FUNDAMENTAL_CHANGE)
        return self._report_from_row(row) if row else None

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def insert_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        link: str | None,
        kind: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> UUID:
        query = """
            INSERT INTO notifications (user_id, title, message, link, type, metadata)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id
        """
        notification_id = await self.fetchval(
            query,
            user_id,
            title,
            message,
            link,
            kind,
            _dumps(dict(metadata)) if metadata else None,
        )
        return cast(UUID, notification_id)

    async def get_email_notifications_enabled(self, user_id: str) -> bool:
        """Email preference for a user. Users without a row default to enabled."""
        query = """
            SELECT email_notifications_enabled
            FROM notification_preferences
            WHERE user_id = $1
        """
        enabled = await self.fetchval(query, user_id)
        return True if enabled is None else bool(enabled)

    async def enqueue_email(
        self,
        user_id: str,
        email: str,
        notification_id: UUID,
        subject: str,
        body: str,
        link: str | None = None,
    ) -> None:
        query = """
            INSERT INTO email_queue (user_id, email, notification_id, subject, body, link)
            VALUES ($1, $2, $3, $4, $5, $6)
        """
        await self.execute(query, user_id, email, notification_id, subject, body, link)


# Global database instance (initialized in lifespan)
_db: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


async def init_database(dsn: str) -> Database:
    """Initialize the global database instance."""
    global _db
    _db = Database(dsn)
    await _db.connect()
    return _db


async def close_database() -> None:
    """Close the global database instance."""
    global _db
    if _db:
        await _db.disconnect()
        _db = None
