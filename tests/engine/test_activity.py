"""Tests for persona.engine.analysis.activity."""

from datetime import timedelta

import pytest

from persona.engine.analysis.activity import (
    classify_movement,
    is_high,
    is_still,
    mean_movement,
    predict_activity_level,
    should_suggest_break,
    time_since_last_break,
    trailing_run,
)
from persona.shared.models import ActivityLevel


class TestClassification:
    @pytest.mark.parametrize(
        "mean,expected",
        [
            (0, ActivityLevel.LOW),
            (9.99, ActivityLevel.LOW),
            (10, ActivityLevel.MEDIUM),
            (49.9, ActivityLevel.MEDIUM),
            (50, ActivityLevel.HIGH),
            (400, ActivityLevel.HIGH),
        ],
    )
    def test_boundaries(self, mean, expected):
        assert classify_movement(mean) == expected

    def test_mean_of_nothing(self):
        assert mean_movement([]) == 0.0


class TestPrediction:
    def test_unknown_below_one_hour(self, make_periods):
        assert predict_activity_level(make_periods([60] * 11)) == ActivityLevel.UNKNOWN

    def test_uses_last_twelve_only(self, make_periods):
        assert predict_activity_level(make_periods([0] * 30 + [50] * 12)) == ActivityLevel.HIGH
        assert predict_activity_level(make_periods([90] * 30 + [10] * 12)) == ActivityLevel.MEDIUM

    def test_low(self, make_periods):
        assert predict_activity_level(make_periods([9] * 12)) == ActivityLevel.LOW


class TestBreakSuggestion:
    def test_no_low_period_uses_day_fallback(self, make_periods):
        periods = make_periods([60] * 12)
        now = periods[-1].timestamp
        assert time_since_last_break(periods, now) == timedelta(hours=24)
        assert should_suggest_break(periods, now)

    def test_recent_low_period_blocks(self, make_periods):
        periods = make_periods([5] + [60] * 12)
        now = periods[-1].timestamp  # 60 minutes after the low period
        assert not should_suggest_break(periods, now)

    def test_ninety_minutes_is_not_enough(self, make_periods):
        periods = make_periods([5] + [60] * 12)
        low_time = periods[0].timestamp
        assert not should_suggest_break(periods, low_time + timedelta(minutes=90, seconds=59))
        assert should_suggest_break(periods, low_time + timedelta(minutes=91))

    def test_not_all_high(self, make_periods):
        periods = make_periods([60] * 11 + [50])
        assert not should_suggest_break(periods, periods[-1].timestamp + timedelta(hours=3))

    def test_short_history(self, make_periods):
        periods = make_periods([60] * 11)
        assert not should_suggest_break(periods, periods[-1].timestamp)


class TestTrailingRun:
    def test_run_resets(self, make_periods):
        periods = make_periods([60] * 20 + [10] + [60] * 3)
        assert trailing_run(periods, is_high) == 3

    def test_run_to_end(self, make_periods):
        assert trailing_run(make_periods([0, 1, 2, 4]), is_still) == 4

    def test_empty(self):
        assert trailing_run([], is_high) == 0
