"""Pattern Builder Module - hourly rebuild of the behavioral baseline.

Each rebuild snapshots both histories, derives one daily pattern per
calendar date, merges those with the per-date patterns kept in the store,
and averages them into the weekly baseline. Meal times come from the keyword
history. Results go to the user profile and out as ``patterns_updated``.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any

from persona.engine.analysis import (
    detect_break_times,
    detect_daily_pattern,
    detect_meal_times,
    detect_weekly_pattern,
    split_by_date,
)
from persona.hub.constants import EVENT_PATTERNS_UPDATED, MODULE_PATTERN_BUILDER
from persona.hub.core import Module, PersonaHub
from persona.shared.models import DailyPattern, WeeklyPattern

logger = logging.getLogger(__name__)

REBUILD_TASK_ID = "pattern_rebuild"


class PatternBuilder(Module):
    """Maintains the daily/weekly activity patterns and meal times."""

    def __init__(self, hub: PersonaHub):
        super().__init__(MODULE_PATTERN_BUILDER, hub)
        self.config = hub.config.patterns
        self.daily_patterns: dict[date, DailyPattern] = {}
        self.current_daily: DailyPattern | None = None
        self.current_weekly: WeeklyPattern | None = None
        self.break_times: list[time] = []
        self.last_rebuild: datetime | None = None

    async def initialize(self):
        try:
            self.daily_patterns = await self.hub.store.load_daily_patterns()
        except Exception as e:
            self.logger.warning(f"Could not load stored daily patterns: {e}")
        self.logger.info(f"Pattern builder ready ({len(self.daily_patterns)} stored days)")

        await self.hub.schedule_task(
            task_id=REBUILD_TASK_ID,
            coro=self.rebuild,
            interval=timedelta(seconds=self.config.rebuild_interval_s),
            run_immediately=True,
        )

    async def shutdown(self):
        self.hub.cancel_task(REBUILD_TASK_ID)

    def _merge_daily(
        self, fresh: dict[date, DailyPattern]
    ) -> tuple[dict[date, DailyPattern], dict[date, DailyPattern]]:
        """Fold freshly derived per-date patterns into the kept ones.

        Returns (kept patterns, dates to persist). The oldest date of a
        rolling snapshot is usually cut off, so a stored pattern for that
        date is not overwritten by the partial one.
        """
        updates = dict(fresh)
        if updates:
            oldest = min(updates)
            if oldest in self.daily_patterns and len(updates) > 1:
                del updates[oldest]
        merged = {**self.daily_patterns, **updates}
        keep = sorted(merged)[-self.config.daily_pattern_retention :]
        return {day: merged[day] for day in keep}, updates

    async def rebuild(self, now: datetime | None = None) -> dict[str, Any]:
        """Recompute all patterns from the current history snapshots."""
        now = now or datetime.now()
        label = self.config.baseline_label
        activity = self.hub.activity_history.snapshot()
        keywords = self.hub.keyword_history.snapshot()

        self.current_daily = detect_daily_pattern(activity, label, now) if activity else None
        self.daily_patterns, updates = self._merge_daily(split_by_date(activity, label, now))
        self.break_times = detect_break_times(activity)

        if self.daily_patterns:
            self.current_weekly = detect_weekly_pattern(self.daily_patterns, label, now)
            self.hub.profile.set_weekly_baseline(self.current_weekly)

        meal_times = detect_meal_times(keywords, self.hub.lexicon)
        if meal_times:
            self.hub.profile.set_meal_times({**self.hub.profile.all_meal_times(), **meal_times})

        if updates:
            try:
                await self.hub.store.save_daily_patterns(updates, retention=self.config.daily_pattern_retention)
            except Exception as e:
                self.logger.warning(f"Failed to persist daily patterns: {e}")

        self.last_rebuild = now
        self.logger.info(
            f"Patterns rebuilt: {len(activity)} periods, {len(keywords)} keyword events, "
            f"{len(self.daily_patterns)} days, {len(meal_times)} meals, {len(self.break_times)} break points"
        )

        result = {
            "daily_pattern": self.current_daily.to_dict() if self.current_daily else None,
            "weekly_pattern": self.current_weekly.to_dict() if self.current_weekly else None,
            "meal_times": {meal.value: [t.strftime("%H:%M") for t in times] for meal, times in meal_times.items()},
            "break_times": [t.strftime("%H:%M") for t in self.break_times],
            "timestamp": now.isoformat(),
        }
        await self.hub.publish(EVENT_PATTERNS_UPDATED, result)
        return result
