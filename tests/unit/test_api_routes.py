"""Tests for the HTTP surface: cron trigger, reports, system and infrastructure endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest
from fastapi import FastAPI

from scorewatch.api.router import api_router
from scorewatch.config import Settings, get_settings
from scorewatch.core.dependencies import get_db, get_monitor_state
from scorewatch.core.exceptions import BatchFetchError
from scorewatch.main import app as main_app
from scorewatch.monitoring.models import ChangeDirection, Company, PassResult, Report

CRON_SECRET = "s3cret"


# ---------------------------------------------------------------------------
# Fixtures: mock dependencies
# ---------------------------------------------------------------------------


@dataclass
class _MockMonitorState:
    redis: Any = None
    db: Any = None
    settings: Any = None
    scores: Any = None
    batch_scheduler: Any = None
    scheduler: Any = None


def _make_report(**overrides: Any) -> Report:
    defaults: dict[str, Any] = {
        "id": uuid4(),
        "company_id": 1,
        "snapshot_id": uuid4(),
        "content": "## O que aconteceu?\nThe score improved.",
        "change_direction": ChangeDirection.positive,
        "previous_score": 60.0,
        "current_score": 66.0,
        "created_at": datetime(2025, 3, 1, tzinfo=UTC),
        "ticker": "PETR4",
        "company_name": "Petrobras",
    }
    defaults.update(overrides)
    return Report(**defaults)


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, cron_secret=CRON_SECRET)  # type: ignore[call-arg]


@pytest.fixture()
def mock_state(settings: Settings) -> _MockMonitorState:
    redis = AsyncMock()
    redis.ping.return_value = True
    db = AsyncMock()
    db.fetchval.return_value = 1
    return _MockMonitorState(redis=redis, db=db, settings=settings, batch_scheduler=AsyncMock())


@pytest.fixture()
def mock_db_dep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def app(settings: Settings, mock_state: _MockMonitorState, mock_db_dep: AsyncMock) -> FastAPI:
    """Create a FastAPI app with all dependencies overridden."""
    test_app = FastAPI()
    test_app.include_router(api_router, prefix="/api/v1")

    test_app.dependency_overrides[get_settings] = lambda: settings
    test_app.dependency_overrides[get_monitor_state] = lambda: mock_state
    test_app.dependency_overrides[get_db] = lambda: mock_db_dep
    return test_app


@pytest.fixture()
async def client(app: FastAPI):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth(secret: str = CRON_SECRET) -> dict[str, str]:
    return {"Authorization": f"Bearer {secret}"}


# ===========================================================================
# Infrastructure endpoints (main.app)
# ===========================================================================


@pytest.fixture()
async def main_client(mock_state: _MockMonitorState):
    main_app.dependency_overrides[get_monitor_state] = lambda: mock_state
    transport = httpx.ASGITransport(app=main_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    main_app.dependency_overrides.clear()


class TestInfrastructure:
    async def test_health(self, main_client: httpx.AsyncClient) -> None:
        r = await main_client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}

    async def test_ready(self, main_client: httpx.AsyncClient) -> None:
        r = await main_client.get("/ready")
        assert r.status_code == 200
        assert r.json() == {"status": "ready", "redis": "ok", "db": "ok"}

    async def test_ready_redis_down(
        self, main_client: httpx.AsyncClient, mock_state: _MockMonitorState
    ) -> None:
        mock_state.redis.ping.side_effect = ConnectionError("down")

        r = await main_client.get("/ready")

        assert r.json()["status"] == "not_ready"
        assert r.json()["redis"] == "error"

    async def test_ready_scheduler_stopped(
        self, main_client: httpx.AsyncClient, mock_state: _MockMonitorState
    ) -> None:
        mock_state.scheduler = MagicMock(running=False)

        r = await main_client.get("/ready")

        assert r.json()["scheduler"] == "error"
        assert r.json()["status"] == "not_ready"


# ===========================================================================
# Cron trigger
# ===========================================================================


class TestCronAuth:
    async def test_missing_header(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/cron/monitor-assets")
        assert r.status_code == 401

    async def test_wrong_secret(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/cron/monitor-assets", headers=auth("nope"))
        assert r.status_code == 401

    async def test_wrong_scheme(self, client: httpx.AsyncClient) -> None:
        r = await client.get(
            "/api/v1/cron/monitor-assets", headers={"Authorization": f"Basic {CRON_SECRET}"}
        )
        assert r.status_code == 401

    async def test_non_ascii_secret_rejected(self, client: httpx.AsyncClient) -> None:
        r = await client.get(
            "/api/v1/cron/monitor-assets", headers={"Authorization": b"Bearer s\xe9cret"}
        )
        assert r.status_code == 401

    async def test_rejected_when_secret_not_configured(
        self, app: FastAPI, client: httpx.AsyncClient
    ) -> None:
        unconfigured = Settings(_env_file=None)  # type: ignore[call-arg]
        app.dependency_overrides[get_settings] = lambda: unconfigured

        r = await client.get("/api/v1/cron/monitor-assets", headers=auth())

        assert r.status_code == 401

    async def test_pass_not_run_on_auth_failure(self, client: httpx.AsyncClient) -> None:
        with patch(
            "scorewatch.api.routes.cron.run_locked_pass", new_callable=AsyncMock
        ) as mock_run:
            await client.get("/api/v1/cron/monitor-assets", headers=auth("nope"))

        mock_run.assert_not_awaited()


class TestCronMonitorAssets:
    async def test_completed_pass(
        self, client: httpx.AsyncClient, mock_state: _MockMonitorState
    ) -> None:
        result = PassResult(
            processed=20,
            snapshots_created=19,
            changes_detected=2,
            reports_generated=2,
            notifications_sent=5,
            errors=["VALE3: scoring service returned 500"],
            batch_size=20,
        )
        with patch(
            "scorewatch.api.routes.cron.run_locked_pass",
            new_callable=AsyncMock,
            return_value=result,
        ) as mock_run:
            r = await client.get("/api/v1/cron/monitor-assets", headers=auth())

        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert data["message"] == "Monitoring pass completed"
        assert data["processed_count"] == 20
        assert data["snapshots_created"] == 19
        assert data["changes_detected"] == 2
        assert data["reports_generated"] == 2
        assert data["notifications_sent"] == 5
        assert data["error_count"] == 1
        assert data["errors"] == ["VALE3: scoring service returned 500"]
        assert data["skipped"] is False
        assert data["execution_time"] == "0m 0s"
        assert "timestamp" in data

        args = mock_run.await_args
        assert args.args[0] is mock_state.batch_scheduler
        assert args.kwargs["trigger"] == "cron"

    async def test_skipped_when_locked(self, client: httpx.AsyncClient) -> None:
        with patch(
            "scorewatch.api.routes.cron.run_locked_pass",
            new_callable=AsyncMock,
            return_value=None,
        ):
            r = await client.get("/api/v1/cron/monitor-assets", headers=auth())

        assert r.status_code == 200
        data = r.json()
        assert data["skipped"] is True
        assert data["processed_count"] == 0
        assert data["message"] == "Another monitoring pass is in progress"

    async def test_fatal_error_returns_500(self, client: httpx.AsyncClient) -> None:
        with patch(
            "scorewatch.api.routes.cron.run_locked_pass",
            new_callable=AsyncMock,
            side_effect=BatchFetchError("Failed to fetch monitoring batch: db down"),
        ):
            r = await client.get("/api/v1/cron/monitor-assets", headers=auth())

        assert r.status_code == 500
        data = r.json()
        assert data["success"] is False
        assert data["error"] == "Failed to fetch monitoring batch: db down"
        assert data["execution_time"] == "0m 0s"


# ===========================================================================
# Reports
# ===========================================================================


class TestReports:
    async def test_list_reports(self, client: httpx.AsyncClient, mock_db_dep: AsyncMock) -> None:
        mock_db_dep.get_company_by_ticker.return_value = Company(id=1, ticker="PETR4")
        mock_db_dep.get_change_reports.return_value = [_make_report(), _make_report()]

        r = await client.get("/api/v1/reports/petr4?limit=5")

        assert r.status_code == 200
        data = r.json()
        assert len(data) == 2
        assert data[0]["ticker"] == "PETR4"
        assert data[0]["change_direction"] == "positive"
        mock_db_dep.get_company_by_ticker.assert_awaited_once_with("petr4")
        mock_db_dep.get_change_reports.assert_awaited_once_with(1, limit=5)

    async def test_list_reports_untracked_ticker(
        self, client: httpx.AsyncClient, mock_db_dep: AsyncMock
    ) -> None:
        mock_db_dep.get_company_by_ticker.return_value = None

        r = await client.get("/api/v1/reports/zzzz3")

        assert r.status_code == 404
        assert "ZZZZ3" in r.json()["detail"]

    async def test_list_reports_limit_bounds(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/reports/PETR4?limit=0")
        assert r.status_code == 422

    async def test_get_report(self, client: httpx.AsyncClient, mock_db_dep: AsyncMock) -> None:
        report = _make_report()
        mock_db_dep.get_report.return_value = report

        r = await client.get(f"/api/v1/reports/by-id/{report.id}")

        assert r.status_code == 200
        assert r.json()["id"] == str(report.id)
        assert r.json()["content"] == report.content

    async def test_get_report_missing(
        self, client: httpx.AsyncClient, mock_db_dep: AsyncMock
    ) -> None:
        mock_db_dep.get_report.return_value = None

        r = await client.get(f"/api/v1/reports/by-id/{uuid4()}")

        assert r.status_code == 404

    async def test_get_report_invalid_id(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/reports/by-id/not-a-uuid")
        assert r.status_code == 422


# ===========================================================================
# System
# ===========================================================================


class TestSystem:
    async def test_status(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/system/status")

        assert r.status_code == 200
        assert r.json() == {"scheduler_running": False, "telegram_enabled": False}

    async def test_config(self, client: httpx.AsyncClient) -> None:
        r = await client.get("/api/v1/system/config")

        assert r.status_code == 200
        data = r.json()
        assert "monitoring_batch_size" in data
        assert "monitoring_score_threshold" in data
        assert "cron_secret" not in data
