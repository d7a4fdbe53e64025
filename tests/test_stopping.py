"""Tests for the stopping rule and final determination."""

import pytest

from cat_engine.models import Determination, SessionStatus, StoppingReason
from cat_engine.stopping import StoppingRule, final_determination

LIMIT = 300 * 60.0


def evaluate(
    theta: float = 0.0,
    se: float = 1.0,
    items: int = 100,
    elapsed: float = 0.0,
    min_items: int = 85,
    max_items: int = 150,
    standard: float = 0.0,
):
    return StoppingRule().evaluate(
        theta=theta,
        standard_error=se,
        items_administered=items,
        elapsed_seconds=elapsed,
        min_items=min_items,
        max_items=max_items,
        time_limit_seconds=LIMIT,
        passing_standard=standard,
    )


class TestStoppingRule:
    def test_time_limit_first(self):
        """Time is checked before everything, even below the minimum."""
        decision = evaluate(items=3, elapsed=LIMIT)
        assert decision.should_stop
        assert decision.status is SessionStatus.TIMED_OUT
        assert decision.reason is StoppingReason.TIME_LIMIT

    def test_time_beats_max_items(self):
        decision = evaluate(items=150, elapsed=LIMIT + 1)
        assert decision.status is SessionStatus.TIMED_OUT

    def test_max_items(self):
        decision = evaluate(items=150)
        assert decision.should_stop
        assert decision.status is SessionStatus.MAX_QUESTIONS_REACHED
        assert decision.reason is StoppingReason.MAX_QUESTIONS

    def test_below_minimum_never_stops(self):
        """A decisive interval does not matter before min_items."""
        decision = evaluate(theta=3.0, se=0.1, items=84)
        assert not decision.should_stop
        assert decision.status is SessionStatus.IN_PROGRESS
        assert decision.reason is None

    def test_interval_above_standard_passes(self):
        """theta=1.0, SE=0.3: CI [0.412, 1.588] is wholly above 0."""
        decision = evaluate(theta=1.0, se=0.3)
        assert decision.should_stop
        assert decision.status is SessionStatus.PASSED
        assert decision.reason is StoppingReason.CONFIDENCE_INTERVAL
        assert decision.details["ci"] == pytest.approx((0.412, 1.588))

    def test_interval_below_standard_fails(self):
        decision = evaluate(theta=-1.0, se=0.25)
        assert decision.status is SessionStatus.FAILED

    def test_straddling_interval_continues(self):
        decision = evaluate(theta=0.2, se=0.25)
        assert not decision.should_stop

    def test_imprecise_estimate_continues(self):
        """CI clear of the standard is not enough while SE > 0.30."""
        decision = evaluate(theta=2.0, se=0.5)
        assert not decision.should_stop

    def test_nonzero_standard(self):
        assert evaluate(theta=1.0, se=0.2, standard=0.5).status is SessionStatus.PASSED
        assert evaluate(theta=1.0, se=0.2, standard=1.5).status is SessionStatus.FAILED

    def test_custom_threshold(self):
        rule = StoppingRule(se_threshold=0.2)
        decision = rule.evaluate(1.0, 0.3, 100, 0.0, 85, 150, LIMIT, 0.0)
        assert not decision.should_stop


class TestFinalDetermination:
    def test_confidence_verdicts_stand(self):
        assert final_determination(SessionStatus.PASSED, -0.2, 0.0) is Determination.PASS
        assert final_determination(SessionStatus.FAILED, 0.2, 0.0) is Determination.FAIL

    @pytest.mark.parametrize(
        "status", [SessionStatus.TIMED_OUT, SessionStatus.MAX_QUESTIONS_REACHED]
    )
    def test_cut_short_sessions_compare_theta(self, status):
        assert final_determination(status, 0.0, 0.0) is Determination.PASS
        assert final_determination(status, 0.31, 0.3) is Determination.PASS
        assert final_determination(status, -0.01, 0.0) is Determination.FAIL
