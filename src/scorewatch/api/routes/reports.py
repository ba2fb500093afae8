"""Read-only change report endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from scorewatch.core.dependencies import DbDep
from scorewatch.monitoring.models import ChangeDirection, Report

router = APIRouter()


class ReportResponse(BaseModel):
    id: UUID
    ticker: str | None
    company_name: str | None
    content: str
    change_direction: ChangeDirection
    previous_score: float
    current_score: float
    created_at: datetime

    @classmethod
    def from_report(cls, report: Report) -> ReportResponse:
        return cls(
            id=report.id,
            ticker=report.ticker,
            company_name=report.company_name,
            content=report.content,
            change_direction=report.change_direction,
            previous_score=report.previous_score,
            current_score=report.current_score,
            created_at=report.created_at,
        )


@router.get("/by-id/{report_id}", response_model=ReportResponse)
async def get_report(report_id: UUID, db: DbDep) -> ReportResponse:
    report = await db.get_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return ReportResponse.from_report(report)


@router.get("/{ticker}", response_model=list[ReportResponse])
async def list_change_reports(
    ticker: str,
    db: DbDep,
    limit: int = Query(default=10, ge=1, le=50),
) -> list[ReportResponse]:
    """Latest change reports for a ticker, newest first."""
    company = await db.get_company_by_ticker(ticker)
    if company is None:
        raise HTTPException(status_code=404, detail=f"Ticker '{ticker.upper()}' not tracked")
    reports = await db.get_change_reports(company.id, limit=limit)
    return [ReportResponse.from_report(r) for r in reports]
