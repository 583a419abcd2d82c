"""User profile: the current behavioral baseline for one session.

The profile is the only mutable state shared between modules. The pattern
builder writes the weekly baseline and meal times; settings edits write meal
times and the language ratio. Every mutator notifies observers synchronously
before it returns so the hub can persist the new state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, time
from typing import Any

from persona.shared.models import (
    ActivityLevel,
    MealType,
    WeeklyPattern,
    require_mapping,
    time_from_dict,
    time_to_dict,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE_RATIO = 95

# Baseline cell thresholds (normalized 0-1 activity)
LOW_BASELINE = 0.3
HIGH_BASELINE = 0.7

ProfileObserver = Callable[["UserProfile"], None]


def classify_baseline(value: float) -> ActivityLevel:
    """Classify a normalized baseline value."""
    if value < LOW_BASELINE:
        return ActivityLevel.LOW
    if value < HIGH_BASELINE:
        return ActivityLevel.MEDIUM
    return ActivityLevel.HIGH


class UserProfile:
    """Weekly baseline, habitual meal times and language mix."""

    def __init__(
        self,
        weekly_baseline: WeeklyPattern | None = None,
        meal_times: dict[MealType, list[time]] | None = None,
        language_ratio: int = DEFAULT_LANGUAGE_RATIO,
    ):
        _check_ratio(language_ratio)
        self._weekly_baseline = weekly_baseline
        self._meal_times: dict[MealType, list[time]] = {m: list(t) for m, t in (meal_times or {}).items()}
        self._language_ratio = language_ratio
        self._observers: list[ProfileObserver] = []

    # ── Observers ───────────────────────────────────────────────────────

    def subscribe(self, observer: ProfileObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: ProfileObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception as e:
                logger.error(f"Profile observer {observer!r} failed: {e}")

    # ── Queries ─────────────────────────────────────────────────────────

    @property
    def weekly_baseline(self) -> WeeklyPattern | None:
        return self._weekly_baseline

    @property
    def language_ratio(self) -> int:
        return self._language_ratio

    @property
    def other_language_ratio(self) -> int:
        return 100 - self._language_ratio

    def all_meal_times(self) -> dict[MealType, list[time]]:
        return {m: list(t) for m, t in self._meal_times.items()}

    def meal_times(self, meal: MealType) -> list[time] | None:
        times = self._meal_times.get(meal)
        return list(times) if times is not None else None

    def baseline_value(self, now: datetime) -> float | None:
        if self._weekly_baseline is None:
            return None
        return self._weekly_baseline.value_at(now.isoweekday(), now.hour)

    def predicted_activity_level(self, now: datetime) -> ActivityLevel:
        """Expected activity level for ``now`` from the weekly baseline.

        Falls back to medium when there is no baseline cell for the hour.
        """
        value = self.baseline_value(now)
        if value is None:
            return ActivityLevel.MEDIUM
        return classify_baseline(value)

    # ── Mutators ────────────────────────────────────────────────────────

    def set_weekly_baseline(self, pattern: WeeklyPattern | None) -> None:
        self._weekly_baseline = pattern
        self._notify()

    def set_meal_times(self, meal_times: dict[MealType, list[time]]) -> None:
        """Replace detected meal times wholesale."""
        self._meal_times = {m: list(t) for m, t in meal_times.items()}
        self._notify()

    def set_meal_time(self, meal: MealType, value: time) -> None:
        """Explicit user edit: make ``value`` the representative time for ``meal``."""
        others = [t for t in self._meal_times.get(meal, []) if t != value]
        self._meal_times[meal] = [value, *others]
        self._notify()

    def update_language_ratio(self, percent: int) -> None:
        _check_ratio(percent)
        self._language_ratio = percent
        self._notify()

    def replace(self, other: UserProfile) -> None:
        """Adopt another profile's state (used on load/import); observers are kept."""
        self._weekly_baseline = other._weekly_baseline
        self._meal_times = other.all_meal_times()
        self._language_ratio = other._language_ratio
        self._notify()

    # ── Serialization ───────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekly_baseline": self._weekly_baseline.to_dict() if self._weekly_baseline else None,
            "meal_times": {m.value: [time_to_dict(t) for t in times] for m, times in self._meal_times.items()},
            "language_ratio": self._language_ratio,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProfile:
        require_mapping(data, "profile")
        baseline = data.get("weekly_baseline")
        meal_times = {}
        for meal, times in require_mapping(data.get("meal_times", {}), "meal_times").items():
            if not isinstance(times, list):
                raise TypeError(f"meal_times[{meal!r}] must be a list")
            meal_times[MealType(meal)] = [time_from_dict(require_mapping(t, "meal time")) for t in times]
        return cls(
            weekly_baseline=WeeklyPattern.from_dict(baseline) if baseline else None,
            meal_times=meal_times,
            language_ratio=data.get("language_ratio", DEFAULT_LANGUAGE_RATIO),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserProfile):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        meals = ", ".join(f"{m.value}={t[0]:%H:%M}" for m, t in self._meal_times.items() if t)
        return f"UserProfile(baseline={'yes' if self._weekly_baseline else 'no'}, meals=[{meals}], ratio={self._language_ratio})"


def _check_ratio(percent: Any) -> None:
    if isinstance(percent, bool) or not isinstance(percent, int) or not 0 <= percent <= 100:
        raise ValueError(f"language ratio must be an integer in 0..100, got {percent!r}")
