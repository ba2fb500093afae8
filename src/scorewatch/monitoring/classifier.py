"""Score change classification."""

from scorewatch.monitoring.models import ChangeDecision, ChangeDirection


def classify(current: float, previous: float, threshold: float) -> ChangeDecision:
    """Compare a current score against the previous baseline.

    Args:
        current: Score computed in this pass
        previous: Score stored in the latest snapshot
        threshold: Minimum absolute delta in score points (not a percentage)

    Returns:
        ChangeDecision. ``has_change`` is true iff ``|current - previous| >= threshold``;
        equality counts as a change.

    Raises:
        ValueError: If threshold is negative
    """
    if threshold < 0:
        raise ValueError(f"threshold must be non-negative, got {threshold}")

    delta = current - previous
    if abs(delta) < threshold:
        return ChangeDecision(has_change=False, delta=delta)

    direction = ChangeDirection.positive if delta > 0 else ChangeDirection.negative
    return ChangeDecision(has_change=True, delta=delta, direction=direction)
