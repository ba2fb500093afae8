"""Tests for score change classification."""

import pytest

from scorewatch.monitoring.classifier import classify
from scorewatch.monitoring.models import ChangeDirection


class TestClassify:
    """Tests for classify()."""

    def test_positive_change_at_boundary(self) -> None:
        """A delta exactly equal to the threshold counts as a change."""
        decision = classify(current=65.0, previous=60.0, threshold=5.0)

        assert decision.has_change is True
        assert decision.direction == ChangeDirection.positive
        assert decision.delta == 5.0

    def test_negative_change_at_boundary(self) -> None:
        decision = classify(current=55.0, previous=60.0, threshold=5.0)

        assert decision.has_change is True
        assert decision.direction == ChangeDirection.negative
        assert decision.delta == -5.0

    def test_below_threshold_is_no_change(self) -> None:
        decision = classify(current=63.0, previous=60.0, threshold=5.0)

        assert decision.has_change is False
        assert decision.direction is None
        assert decision.delta == 3.0

    def test_small_drop_is_no_change(self) -> None:
        decision = classify(current=57.5, previous=60.0, threshold=5.0)

        assert decision.has_change is False
        assert decision.direction is None

    def test_identical_scores(self) -> None:
        decision = classify(current=80.0, previous=80.0, threshold=5.0)

        assert decision.has_change is False
        assert decision.delta == 0.0

    def test_zero_threshold_flags_any_movement(self) -> None:
        decision = classify(current=80.1, previous=80.0, threshold=0.0)

        assert decision.has_change is True
        assert decision.direction == ChangeDirection.positive

    def test_threshold_is_absolute_points(self) -> None:
        """A 10% move on a small score is still under a 5-point threshold."""
        decision = classify(current=22.0, previous=20.0, threshold=5.0)

        assert decision.has_change is False

    @pytest.mark.parametrize(
        ("current", "previous", "expected"),
        [
            (70.0, 60.0, True),
            (64.99, 60.0, False),
            (50.0, 60.0, True),
            (55.01, 60.0, False),
        ],
    )
    def test_has_change_iff_delta_reaches_threshold(
        self, current: float, previous: float, expected: bool
    ) -> None:
        assert classify(current, previous, threshold=5.0).has_change is expected

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            classify(current=65.0, previous=60.0, threshold=-1.0)
