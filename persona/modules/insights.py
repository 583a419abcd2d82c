"""Insight Engine Module - rule-based insights over the current session state.

Runs hourly and on demand. Each run snapshots the activity and keyword
histories and reads the profile, then evaluates four independent generators
(activity deviation, keywords/action items, routine, break suggestions).
Every generator needs a minimum amount of history and returns nothing
below it. The fresh list replaces the previous one and is published as
``insights_updated``.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, time, timedelta
from typing import Any

from persona.engine.analysis.activity import (
    WINDOW_PERIODS,
    classify_movement,
    is_high,
    is_low,
    is_still,
    mean_movement,
    trailing_run,
)
from persona.engine.lexicon import Lexicon
from persona.hub.constants import EVENT_INSIGHTS_UPDATED, EVENT_REFRESH_REQUESTED, MODULE_INSIGHTS
from persona.hub.core import Module, PersonaHub
from persona.shared.models import (
    ActivityPeriod,
    Insight,
    InsightPriority,
    InsightType,
    KeywordEvent,
    MealType,
    minutes_of_day,
)
from persona.shared.profile import UserProfile

logger = logging.getLogger(__name__)

REFRESH_TASK_ID = "insight_refresh"

# Minimum history per generator
MIN_ACTIVITY_PERIODS = 24  # 2 hours
MIN_KEYWORD_EVENTS = 5
BREAK_WINDOW_PERIODS = 36  # 3 hours

TOP_TOPICS = 3
UPCOMING_MEAL_MINUTES = 60
MEAL_REMINDER_MINUTES = 30
ROUTINE_DEVIATION = 0.5

WEEKDAY_NAMES = {1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday", 5: "Friday", 6: "Saturday", 7: "Sunday"}


# =============================================================================
# Generators
# =============================================================================


def activity_insights(history: Sequence[ActivityPeriod], profile: UserProfile, now: datetime) -> list[Insight]:
    """Deviation from the baseline, and sustained high or low activity over the last hour."""
    if len(history) < MIN_ACTIVITY_PERIODS:
        return []

    recent = history[-WINDOW_PERIODS:]
    current = classify_movement(mean_movement(recent))
    predicted = profile.predicted_activity_level(now)
    insights = []

    if current != predicted:
        insights.append(
            Insight(
                type=InsightType.ACTIVITY,
                title="Unusual Activity Level",
                description=(
                    f"Your current activity level is {current.label}, which is different from "
                    f"your usual {predicted.label} activity at this time."
                ),
                timestamp=now,
                priority=InsightPriority.MEDIUM,
            )
        )

    if all(is_high(p) for p in recent):
        insights.append(
            Insight(
                type=InsightType.ACTIVITY,
                title="Sustained High Activity",
                description="You've been highly active for the past hour. Consider taking a short break soon.",
                timestamp=now,
                priority=InsightPriority.HIGH,
            )
        )

    if all(is_low(p) for p in recent):
        insights.append(
            Insight(
                type=InsightType.ACTIVITY,
                title="Low Activity Period",
                description=(
                    "You've been relatively inactive for the past hour. Consider some light movement or stretching."
                ),
                timestamp=now,
                priority=InsightPriority.MEDIUM,
            )
        )

    return insights


def keyword_insights(history: Sequence[KeywordEvent], lexicon: Lexicon, now: datetime) -> list[Insight]:
    """Recent topics across the last five events, plus action items found in them."""
    if len(history) < MIN_KEYWORD_EVENTS:
        return []

    recent = history[-MIN_KEYWORD_EVENTS:]
    totals: dict[str, int] = {}
    for event in recent:
        for keyword, count in event.keywords.items():
            totals[keyword] = totals.get(keyword, 0) + count

    insights = []
    if len(totals) >= TOP_TOPICS:
        # sorted() is stable: equal counts keep first-appearance order
        top = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:TOP_TOPICS]
        insights.append(
            Insight(
                type=InsightType.KEYWORDS,
                title="Recent Topics",
                description=f"You've been frequently discussing: {', '.join(word for word, _ in top)}.",
                timestamp=now,
                priority=InsightPriority.LOW,
            )
        )

    for event in recent:
        for action, word in lexicon.actions.items():
            if word not in event.keywords:
                continue
            related = event.related_keywords.get(word, [])
            if not related:
                continue
            insights.append(
                Insight(
                    type=InsightType.ACTION_ITEM,
                    title="Potential Action Item",
                    description=(
                        f'You mentioned "{word}" in relation to "{", ".join(related)}". '
                        f"Do you need to {action} something?"
                    ),
                    timestamp=now,
                    priority=InsightPriority.HIGH,
                )
            )

    return insights


def minutes_until(meal_time: time, now: datetime) -> int:
    """Whole minutes from ``now`` to a time of day, same day (negative once passed)."""
    return minutes_of_day(meal_time) - minutes_of_day(now)


def upcoming_meal(profile: UserProfile, now: datetime) -> MealType | None:
    """First meal, breakfast to dinner, due within the next hour."""
    for meal in MealType:
        times = profile.meal_times(meal)
        if times and 0 < minutes_until(times[0], now) <= UPCOMING_MEAL_MINUTES:
            return meal
    return None


def routine_insights(history: Sequence[ActivityPeriod], profile: UserProfile, now: datetime) -> list[Insight]:
    """Meal reminders and deviation of the latest period from the weekly baseline."""
    insights = []

    meal = upcoming_meal(profile, now)
    if meal is not None:
        remaining = minutes_until(profile.meal_times(meal)[0], now)
        if 0 < remaining <= MEAL_REMINDER_MINUTES:
            insights.append(
                Insight(
                    type=InsightType.ROUTINE,
                    title=f"{meal.value.capitalize()} Coming Up",
                    description=(
                        f"Based on your usual routine, you typically have {meal.value} in about {remaining} minutes."
                    ),
                    timestamp=now,
                    priority=InsightPriority.MEDIUM,
                )
            )

    expected = profile.baseline_value(now)
    if expected is not None and history:
        if abs(history[-1].normalized - expected) > ROUTINE_DEVIATION:
            insights.append(
                Insight(
                    type=InsightType.ROUTINE,
                    title="Routine Change Detected",
                    description=(
                        "Your current activity level is different from your usual pattern "
                        f"for this time on {WEEKDAY_NAMES[now.isoweekday()]}."
                    ),
                    timestamp=now,
                    priority=InsightPriority.LOW,
                )
            )

    return insights


def break_insights(history: Sequence[ActivityPeriod], now: datetime) -> list[Insight]:
    """Break or movement suggestions from the trailing runs of the last three hours."""
    if len(history) < BREAK_WINDOW_PERIODS:
        return []

    recent = history[-BREAK_WINDOW_PERIODS:]
    insights = []

    if trailing_run(recent, is_high) >= WINDOW_PERIODS:
        insights.append(
            Insight(
                type=InsightType.BREAK_SUGGESTION,
                title="Time for a Break",
                description="You've been highly active for over an hour. Consider taking a short break to rest.",
                timestamp=now,
                priority=InsightPriority.HIGH,
            )
        )

    if trailing_run(recent, is_still) >= WINDOW_PERIODS:
        insights.append(
            Insight(
                type=InsightType.BREAK_SUGGESTION,
                title="Time to Move",
                description=(
                    "You've been sitting still for over an hour. Consider taking a short walk or doing some stretches."
                ),
                timestamp=now,
                priority=InsightPriority.MEDIUM,
            )
        )

    return insights


# =============================================================================
# Module
# =============================================================================


class InsightEngine(Module):
    """Regenerates the insight list on a timer and on request."""

    def __init__(self, hub: PersonaHub):
        super().__init__(MODULE_INSIGHTS, hub)
        self.config = hub.config.insights
        self.current_insights: list[Insight] = []
        self.last_run: datetime | None = None
        self.runs = 0
        self.skipped_runs = 0
        self._run_lock = asyncio.Lock()

    async def initialize(self):
        await self.hub.schedule_task(
            task_id=REFRESH_TASK_ID,
            coro=self.refresh,
            interval=timedelta(seconds=self.config.interval_s),
            run_immediately=False,
        )
        self.logger.info(f"Insight engine ready (every {self.config.interval_s}s)")

    async def shutdown(self):
        self.hub.cancel_task(REFRESH_TASK_ID)

    async def on_event(self, event_type: str, data: dict[str, Any]):
        if event_type == EVENT_REFRESH_REQUESTED:
            await self.refresh()

    def _generators(self, now: datetime) -> list[tuple[str, Callable[[], list[Insight]]]]:
        activity = self.hub.activity_history.snapshot()
        keywords = self.hub.keyword_history.snapshot()
        profile = self.hub.profile
        lexicon = self.hub.lexicon
        return [
            ("activity", lambda: activity_insights(activity, profile, now)),
            ("keywords", lambda: keyword_insights(keywords, lexicon, now)),
            ("routine", lambda: routine_insights(activity, profile, now)),
            ("break", lambda: break_insights(activity, now)),
        ]

    async def refresh(self, now: datetime | None = None) -> list[Insight]:
        """Regenerate insights. A call while a run is in flight is skipped."""
        if self._run_lock.locked():
            self.skipped_runs += 1
            self.logger.debug("Insight run already in progress, skipping trigger")
            return self.current_insights

        async with self._run_lock:
            now = now or datetime.now()
            insights: list[Insight] = []
            for name, generate in self._generators(now):
                try:
                    insights.extend(generate())
                except Exception as e:
                    self.logger.error(f"Insight generator '{name}' failed: {e}")

            self.current_insights = insights
            self.last_run = now
            self.runs += 1
            self.logger.info(f"Generated {len(insights)} insights")
            await self.hub.publish(
                EVENT_INSIGHTS_UPDATED,
                {"insights": [i.to_dict() for i in insights], "timestamp": now.isoformat()},
            )
            return insights
