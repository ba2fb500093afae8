"""Asset monitoring: snapshots, change detection and change reports."""

from scorewatch.monitoring.classifier import classify
from scorewatch.monitoring.models import (
    ChangeDecision,
    ChangeDirection,
    Company,
    PassResult,
    ScoreResult,
    Snapshot,
    SnapshotData,
    Subscriber,
    Tier,
    UnitResult,
)

__all__ = [
    "ChangeDecision",
    "ChangeDirection",
    "Company",
    "PassResult",
    "ScoreResult",
    "Snapshot",
    "SnapshotData",
    "Subscriber",
    "Tier",
    "UnitResult",
    "classify",
]
