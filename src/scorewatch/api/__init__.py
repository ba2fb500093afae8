"""HTTP API."""

from scorewatch.api.router import api_router

__all__ = ["api_router"]
