"""Daily/weekly activity patterns, habitual meal times and break points.

All functions are pure: they read history snapshots and return new pattern
values. Patterns are always recomputed wholesale from the snapshot.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, time

import numpy as np

from persona.engine.analysis.activity import WINDOW_PERIODS, is_high
from persona.engine.lexicon import Lexicon
from persona.shared.models import (
    HOURS,
    WEEKDAYS,
    ActivityPeriod,
    DailyPattern,
    KeywordEvent,
    MealType,
    WeeklyPattern,
)

logger = logging.getLogger(__name__)

MAX_MOVEMENT = 100.0  # movement count that maps to 1.0


def _normalize(period: ActivityPeriod) -> float:
    return min(max(period.movement_count / MAX_MOVEMENT, 0.0), 1.0)


def interpolate_hours(hourly_means: Mapping[int, float]) -> dict[int, float]:
    """Fill every hour without data from its nearest neighbors.

    Between two hours with data the value is linearly interpolated by
    distance; before the first (after the last) hour with data the nearest
    value is held. With no data at all every hour is 0.0.
    """
    if not hourly_means:
        return {h: 0.0 for h in HOURS}
    known = sorted(hourly_means)
    filled = np.interp(np.arange(24), known, [hourly_means[h] for h in known])
    return {h: float(v) for h, v in zip(HOURS, np.clip(filled, 0.0, 1.0))}


def detect_daily_pattern(
    history: Iterable[ActivityPeriod],
    label: str = "activity",
    now: datetime | None = None,
) -> DailyPattern:
    """Average normalized movement per hour of day, gaps interpolated."""
    buckets: dict[int, list[float]] = defaultdict(list)
    for period in history:
        buckets[period.timestamp.hour].append(_normalize(period))

    hourly_means = {hour: float(np.mean(values)) for hour, values in buckets.items()}
    return DailyPattern(
        label=label,
        hourly_values=interpolate_hours(hourly_means),
        computed_at=now or datetime.now(),
    )


def split_by_date(
    history: Iterable[ActivityPeriod],
    label: str = "activity",
    now: datetime | None = None,
) -> dict[date, DailyPattern]:
    """One daily pattern per calendar date present in the history."""
    by_date: dict[date, list[ActivityPeriod]] = defaultdict(list)
    for period in history:
        by_date[period.timestamp.date()].append(period)
    computed_at = now or datetime.now()
    return {day: detect_daily_pattern(periods, label, computed_at) for day, periods in sorted(by_date.items())}


def detect_weekly_pattern(
    daily_patterns: Mapping[date, DailyPattern],
    label: str = "activity",
    now: datetime | None = None,
) -> WeeklyPattern:
    """Average daily patterns into a weekday x hour baseline.

    Cells for weekdays without any contributing day stay 0.0; there is no
    interpolation across weekdays.
    """
    cells: dict[int, dict[int, list[float]]] = {day: {h: [] for h in HOURS} for day in WEEKDAYS}
    for day, pattern in daily_patterns.items():
        weekday = day.isoweekday()
        for hour, value in pattern.hourly_values.items():
            cells[weekday][hour].append(value)

    averages = {
        weekday: {hour: float(np.mean(values)) if values else 0.0 for hour, values in hours.items()}
        for weekday, hours in cells.items()
    }
    contributing = sorted({day.isoweekday() for day in daily_patterns})
    logger.debug(f"Weekly pattern '{label}' from {len(daily_patterns)} days (weekdays {contributing})")
    return WeeklyPattern(label=label, hourly_values=averages, computed_at=now or datetime.now())


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def detect_meal_times(history: Iterable[KeywordEvent], lexicon: Lexicon) -> dict[MealType, list[time]]:
    """Habitual time of each meal from the keyword history.

    An event counts for a meal when any word of the meal's lexicon appears
    as a keyword, a related keyword or a context word. The representative
    time is the modal hour (first-seen hour wins ties) with the mean minute
    of the matches inside that hour. Meals without matches are omitted.
    """
    matches: dict[MealType, list[datetime]] = {meal: [] for meal in MealType}
    for event in history:
        for meal in MealType:
            if any(event.references(word) for word in lexicon.meal_words(meal)):
                matches[meal].append(event.timestamp)

    meal_times: dict[MealType, list[time]] = {}
    for meal, stamps in matches.items():
        if not stamps:
            continue
        frequency: dict[int, int] = {}
        for stamp in stamps:
            frequency[stamp.hour] = frequency.get(stamp.hour, 0) + 1

        modal_hour, best = -1, 0
        for hour, count in frequency.items():
            if count > best:
                modal_hour, best = hour, count

        minutes = [s.minute for s in stamps if s.hour == modal_hour]
        meal_times[meal] = [time(modal_hour, _round_half_up(sum(minutes) / len(minutes)))]

    return meal_times


def detect_break_times(history: Sequence[ActivityPeriod]) -> list[time]:
    """Times where an hour or more of high activity ended."""
    if len(history) < WINDOW_PERIODS:
        return []

    break_times = []
    run = 0
    for period in history:
        if is_high(period):
            run += 1
            continue
        if run >= WINDOW_PERIODS:
            break_times.append(time(period.timestamp.hour, period.timestamp.minute))
        run = 0
    return break_times
