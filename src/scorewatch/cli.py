"""CLI entry points for Scorewatch."""

import argparse
import asyncio
import sys

import orjson
import uvicorn

from scorewatch.config import get_settings
from scorewatch.core.logging import get_logger, setup_logging
from scorewatch.runtime import monitor_lifespan, run_locked_pass

logger = get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Scorewatch")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    args = parser.parse_args()

    uvicorn.run(
        "scorewatch.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


async def _run_pass_once() -> int:
    settings = get_settings()
    setup_logging(settings)

    async with monitor_lifespan(settings, start_scheduler=False) as state:
        result = await run_locked_pass(state.batch_scheduler, state.redis, settings, trigger="cli")

    if result is None:
        print(orjson.dumps({"skipped": True}).decode())
        return 0
    print(orjson.dumps(result.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode())
    return 0


def run_pass() -> None:
    """Run a single monitoring pass and print the result as JSON."""
    parser = argparse.ArgumentParser(description="Run one Scorewatch monitoring pass")
    parser.parse_args()

    try:
        code = asyncio.run(_run_pass_once())
    except Exception:
        logger.exception("Monitoring pass failed")
        code = 1
    sys.exit(code)
