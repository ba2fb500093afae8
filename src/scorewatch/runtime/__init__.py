"""Runtime: lifecycle, pass lock and scheduling of monitoring passes."""

from scorewatch.runtime.lifespan import MonitorState, monitor_lifespan
from scorewatch.runtime.passes import build_batch_scheduler, run_locked_pass

__all__ = ["MonitorState", "build_batch_scheduler", "monitor_lifespan", "run_locked_pass"]
