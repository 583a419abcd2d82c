"""Tests for the insight engine: generators and the module around them."""

import asyncio
from datetime import datetime, time, timedelta

import pytest
import pytest_asyncio

from persona.engine.keywords import KeywordExtractor
from persona.engine.lexicon import BENGALI, ENGLISH
from persona.hub.constants import EVENT_INSIGHTS_UPDATED, EVENT_REFRESH_REQUESTED
from persona.modules import insights as insights_module
from persona.modules.insights import (
    InsightEngine,
    activity_insights,
    break_insights,
    keyword_insights,
    routine_insights,
    upcoming_meal,
)
from persona.shared.models import HOURS, WEEKDAYS, InsightPriority, InsightType, MealType, WeeklyPattern
from persona.shared.profile import UserProfile

# Monday
NOW = datetime(2026, 3, 2, 11, 0)


def _baseline(value):
    return WeeklyPattern("activity", {d: {h: value for h in HOURS} for d in WEEKDAYS}, NOW)


def _titles(insights):
    return [i.title for i in insights]


# ── Activity deviation ──────────────────────────────────────────────────


class TestActivityInsights:
    def test_needs_two_hours(self, make_periods):
        assert activity_insights(make_periods([5] * 23), UserProfile(), NOW) == []

    def test_deviation_from_default_medium(self, make_periods):
        insights = activity_insights(make_periods([20] * 12 + [70] * 12), UserProfile(), NOW)
        assert _titles(insights) == ["Unusual Activity Level", "Sustained High Activity"]
        assert "high" in insights[0].description
        assert "moderate" in insights[0].description
        assert insights[0].priority == InsightPriority.MEDIUM
        assert insights[1].priority == InsightPriority.HIGH

    def test_matching_baseline_is_quiet(self, make_periods):
        profile = UserProfile(weekly_baseline=_baseline(0.5))
        assert activity_insights(make_periods([30] * 24), profile, NOW) == []

    def test_low_period(self, make_periods):
        profile = UserProfile(weekly_baseline=_baseline(0.1))
        insights = activity_insights(make_periods([50] * 12 + [9] * 12), profile, NOW)
        assert _titles(insights) == ["Low Activity Period"]
        assert insights[0].type == InsightType.ACTIVITY

    def test_boundary_counts(self, make_periods):
        # mean 50 is high, but 50 itself is not a "high" period
        insights = activity_insights(make_periods([50] * 24), UserProfile(), NOW)
        assert _titles(insights) == ["Unusual Activity Level"]


# ── Keywords / action items ─────────────────────────────────────────────


class TestKeywordInsights:
    def test_needs_five_events(self, make_keyword_event):
        events = [make_keyword_event({"a": 1, "b": 1, "c": 1})] * 4
        assert keyword_insights(events, BENGALI, NOW) == []

    def test_recent_topics_top_three_ties_by_first_appearance(self, make_keyword_event):
        events = [
            make_keyword_event({"old": 9}),
            make_keyword_event({"রান্না": 1, "বাজার": 2}),
            make_keyword_event({"অফিস": 2}),
            make_keyword_event({"রান্না": 1}),
            make_keyword_event({"স্কুল": 1}),
            make_keyword_event({"অফিস": 1}),
        ]
        insights = keyword_insights(events, BENGALI, NOW)
        assert _titles(insights) == ["Recent Topics"]
        assert insights[0].description == "You've been frequently discussing: অফিস, রান্না, বাজার."
        assert insights[0].priority == InsightPriority.LOW

    def test_fewer_than_three_topics(self, make_keyword_event):
        events = [make_keyword_event({"a": 1, "b": 1})] * 5
        assert keyword_insights(events, BENGALI, NOW) == []

    def test_scenario_b_action_item_mentions_milk(self, make_keyword_event):
        events = [make_keyword_event({"x": 1}) for _ in range(4)]
        events.insert(2, make_keyword_event({"কেনা": 1}, related={"কেনা": ["milk"]}))
        action_items = [i for i in keyword_insights(events, BENGALI, NOW) if i.type == InsightType.ACTION_ITEM]

        assert len(action_items) == 1
        assert action_items[0].priority == InsightPriority.HIGH
        assert "milk" in action_items[0].description
        assert "buy" in action_items[0].description

    def test_action_word_without_related_is_ignored(self, make_keyword_event):
        events = [make_keyword_event({"কেনা": 1}, related={"কেনা": []})] * 5
        assert [i for i in keyword_insights(events, BENGALI, NOW) if i.type == InsightType.ACTION_ITEM] == []

    def test_bengali_call_from_transcript(self):
        extractor = KeywordExtractor(BENGALI)
        events = [extractor.extract("আজ বাজারে অনেক ভিড়", now=NOW) for _ in range(4)]
        events.append(extractor.extract("ডাক্তারকে কল দিতে হবে ডাক্তারকে", now=NOW))

        action_items = [i for i in keyword_insights(events, BENGALI, NOW) if i.type == InsightType.ACTION_ITEM]
        assert len(action_items) == 1
        assert '"কল"' in action_items[0].description
        assert "ডাক্তারকে" in action_items[0].description
        assert "call" in action_items[0].description

    def test_one_insight_per_event_and_action(self, make_keyword_event):
        event = make_keyword_event({"call": 1, "book": 1}, related={"call": ["doctor"], "book": ["table"]})
        items = [i for i in keyword_insights([event] * 5, ENGLISH, NOW) if i.type == InsightType.ACTION_ITEM]
        assert len(items) == 10
        # lexicon order within an event: book before call
        assert '"book"' in items[0].description
        assert '"call"' in items[1].description


# ── Routine ─────────────────────────────────────────────────────────────


class TestRoutineInsights:
    def test_scenario_c_breakfast_in_twenty_minutes(self):
        profile = UserProfile(meal_times={MealType.BREAKFAST: [time(8, 0)]})
        insights = routine_insights([], profile, datetime(2026, 3, 2, 7, 40))
        assert _titles(insights) == ["Breakfast Coming Up"]
        assert "20 minutes" in insights[0].description
        assert insights[0].priority == InsightPriority.MEDIUM

    def test_scenario_c_sixty_minutes_is_upcoming_but_not_reported(self):
        profile = UserProfile(meal_times={MealType.BREAKFAST: [time(8, 0)]})
        at_seven = datetime(2026, 3, 2, 7, 0)
        assert upcoming_meal(profile, at_seven) == MealType.BREAKFAST
        assert routine_insights([], profile, at_seven) == []

    def test_past_meal(self):
        profile = UserProfile(meal_times={MealType.LUNCH: [time(13, 0)]})
        assert upcoming_meal(profile, datetime(2026, 3, 2, 13, 0)) is None

    def test_first_upcoming_meal_wins(self):
        # breakfast is upcoming but 45 minutes out, lunch is never checked
        profile = UserProfile(meal_times={MealType.BREAKFAST: [time(10, 45)], MealType.LUNCH: [time(10, 20)]})
        assert upcoming_meal(profile, datetime(2026, 3, 2, 10, 0)) == MealType.BREAKFAST
        assert routine_insights([], profile, datetime(2026, 3, 2, 10, 0)) == []

    def test_routine_change(self, make_periods):
        profile = UserProfile(weekly_baseline=_baseline(0.1))
        insights = routine_insights(make_periods([70]), profile, NOW)
        assert _titles(insights) == ["Routine Change Detected"]
        assert "Monday" in insights[0].description
        assert insights[0].priority == InsightPriority.LOW

    def test_routine_change_needs_more_than_half(self, make_periods):
        profile = UserProfile(weekly_baseline=_baseline(0.1))
        assert routine_insights(make_periods([60]), profile, NOW) == []

    def test_no_baseline(self, make_periods):
        assert routine_insights(make_periods([100]), UserProfile(), NOW) == []


# ── Break suggestions ───────────────────────────────────────────────────


class TestBreakInsights:
    def test_scenario_a_time_for_a_break(self, make_periods):
        insights = break_insights(make_periods([5] * 24 + [60] * 12), NOW)
        assert _titles(insights) == ["Time for a Break"]
        assert insights[0].priority == InsightPriority.HIGH
        assert insights[0].type == InsightType.BREAK_SUGGESTION

    def test_needs_three_hours(self, make_periods):
        assert break_insights(make_periods([60] * 35), NOW) == []

    def test_time_to_move(self, make_periods):
        insights = break_insights(make_periods([60] * 24 + [4] * 12), NOW)
        assert _titles(insights) == ["Time to Move"]
        assert insights[0].priority == InsightPriority.MEDIUM

    def test_interrupted_run(self, make_periods):
        assert break_insights(make_periods([60] * 30 + [40] + [60] * 5), NOW) == []


# ── Module ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(persona_hub):
    module = InsightEngine(persona_hub)
    persona_hub.register_module(module)
    return module


class TestInsightEngine:
    async def test_refresh_publishes_and_keeps_latest(self, engine, persona_hub, make_periods):
        received = []

        async def on_insights(data):
            received.append(data)

        persona_hub.subscribe(EVENT_INSIGHTS_UPDATED, on_insights)
        persona_hub.activity_history.replace(make_periods([5] * 24 + [60] * 12))

        insights = await engine.refresh(NOW)

        assert engine.current_insights == insights
        assert "Time for a Break" in _titles(insights)
        assert received[-1]["insights"] == [i.to_dict() for i in insights]

        persona_hub.activity_history.clear()
        assert await engine.refresh(NOW) == []
        assert engine.current_insights == []
        assert received[-1]["insights"] == []

    async def test_failing_generator_is_skipped(self, engine, persona_hub, make_periods, monkeypatch):
        def broken(*args):
            raise RuntimeError("generator bug")

        monkeypatch.setattr(insights_module, "activity_insights", broken)
        persona_hub.activity_history.replace(make_periods([5] * 24 + [60] * 12))

        insights = await engine.refresh(NOW)
        assert _titles(insights) == ["Time for a Break"]

    async def test_overlapping_trigger_is_skipped(self, engine, persona_hub):
        gate = asyncio.Event()

        async def slow_subscriber(data):
            await gate.wait()

        persona_hub.subscribe(EVENT_INSIGHTS_UPDATED, slow_subscriber)
        first = asyncio.create_task(engine.refresh(NOW))
        await asyncio.sleep(0.01)

        await engine.refresh(NOW)
        assert engine.skipped_runs == 1

        gate.set()
        await first
        assert engine.runs == 1

    async def test_refresh_requested_event(self, engine, persona_hub):
        await persona_hub.publish(EVENT_REFRESH_REQUESTED, {})
        assert engine.runs == 1

    async def test_initialize_schedules_hourly(self, engine, persona_hub):
        await engine.initialize()
        assert "insight_refresh" in persona_hub.tasks
        await engine.shutdown()
        assert "insight_refresh" not in persona_hub.tasks


@pytest.mark.parametrize("minutes_before,expected", [(1, True), (30, True), (31, False)])
def test_meal_reminder_window(minutes_before, expected):
    profile = UserProfile(meal_times={MealType.DINNER: [time(20, 0)]})
    now = datetime(2026, 3, 2, 20, 0) - timedelta(minutes=minutes_before)
    assert bool(routine_insights([], profile, now)) is expected
