"""Behavioral analysis: activity classification and pattern detection."""

from persona.engine.analysis.activity import (
    classify_movement,
    mean_movement,
    predict_activity_level,
    should_suggest_break,
    trailing_run,
)
from persona.engine.analysis.patterns import (
    detect_break_times,
    detect_daily_pattern,
    detect_meal_times,
    detect_weekly_pattern,
    interpolate_hours,
    split_by_date,
)

__all__ = [
    "classify_movement",
    "detect_break_times",
    "detect_daily_pattern",
    "detect_meal_times",
    "detect_weekly_pattern",
    "interpolate_hours",
    "mean_movement",
    "predict_activity_level",
    "should_suggest_break",
    "split_by_date",
    "trailing_run",
]
