"""Top-level API router. Mounts all domain routers under /api/v1."""

from fastapi import APIRouter

from scorewatch.api.routes import cron, reports, system

api_router = APIRouter()
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(system.router, prefix="/system", tags=["system"])
