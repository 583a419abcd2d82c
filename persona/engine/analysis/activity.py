"""Activity-level classification over recent activity periods."""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from persona.shared.models import ActivityLevel, ActivityPeriod

# Movement-count thresholds for one 5-minute period
LOW_MOVEMENT = 10  # mean < 10 -> low
HIGH_MOVEMENT = 50  # mean >= 50 -> high; a single period is "high" when > 50
STILL_MOVEMENT = 5  # a period is "still" when < 5

WINDOW_PERIODS = 12  # one hour of 5-minute periods
BREAK_AFTER_MINUTES = 90  # whole minutes, strictly greater
NO_BREAK_FALLBACK = timedelta(hours=24)


def is_high(period: ActivityPeriod) -> bool:
    return period.movement_count > HIGH_MOVEMENT


def is_low(period: ActivityPeriod) -> bool:
    return period.movement_count < LOW_MOVEMENT


def is_still(period: ActivityPeriod) -> bool:
    return period.movement_count < STILL_MOVEMENT


def mean_movement(periods: Sequence[ActivityPeriod]) -> float:
    if not periods:
        return 0.0
    return sum(p.movement_count for p in periods) / len(periods)


def classify_movement(mean: float) -> ActivityLevel:
    """Classify a mean movement count; boundaries belong to the upper class."""
    if mean < LOW_MOVEMENT:
        return ActivityLevel.LOW
    if mean < HIGH_MOVEMENT:
        return ActivityLevel.MEDIUM
    return ActivityLevel.HIGH


def predict_activity_level(history: Sequence[ActivityPeriod]) -> ActivityLevel:
    """Classify the last hour of activity, or ``unknown`` with less than an hour."""
    if len(history) < WINDOW_PERIODS:
        return ActivityLevel.UNKNOWN
    return classify_movement(mean_movement(history[-WINDOW_PERIODS:]))


def time_since_last_break(history: Sequence[ActivityPeriod], now: datetime) -> timedelta:
    """Time since the newest low-activity period; 24 h if the history has none."""
    for period in reversed(history):
        if is_low(period):
            return now - period.timestamp
    return NO_BREAK_FALLBACK


def should_suggest_break(history: Sequence[ActivityPeriod], now: datetime) -> bool:
    """True after an hour of high activity with no low period in the last 90 minutes."""
    if len(history) < WINDOW_PERIODS:
        return False
    all_high = all(is_high(p) for p in history[-WINDOW_PERIODS:])
    elapsed_minutes = int(time_since_last_break(history, now).total_seconds() // 60)
    return all_high and elapsed_minutes > BREAK_AFTER_MINUTES


def trailing_run(periods: Sequence[ActivityPeriod], predicate: Callable[[ActivityPeriod], bool]) -> int:
    """Length of the run of matching periods that touches the end of ``periods``.

    The counter resets on every non-matching period, so only a run reaching
    the newest period counts.
    """
    run = 0
    for period in periods:
        run = run + 1 if predicate(period) else 0
    return run
