"""Core utilities: logging, exceptions, constants."""

from scorewatch.core.exceptions import ScorewatchError
from scorewatch.core.logging import get_logger, setup_logging

__all__ = [
    "ScorewatchError",
    "get_logger",
    "setup_logging",
]
