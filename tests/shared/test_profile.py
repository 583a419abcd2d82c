"""Tests for persona.shared.profile.UserProfile."""

from datetime import datetime, time

import pytest

from persona.shared.models import HOURS, WEEKDAYS, ActivityLevel, MealType, WeeklyPattern
from persona.shared.profile import DEFAULT_LANGUAGE_RATIO, UserProfile, classify_baseline

# Monday
NOW = datetime(2026, 3, 2, 8, 15)


def _baseline(value_at_monday_8):
    values = {day: {h: 0.0 for h in HOURS} for day in WEEKDAYS}
    values[1][8] = value_at_monday_8
    return WeeklyPattern("activity", values, NOW)


class TestPrediction:
    def test_no_baseline_predicts_medium(self):
        assert UserProfile().predicted_activity_level(NOW) == ActivityLevel.MEDIUM

    def test_missing_cell_predicts_medium(self):
        profile = UserProfile(weekly_baseline=WeeklyPattern("activity", {2: {8: 0.9}}, NOW))
        assert profile.predicted_activity_level(NOW) == ActivityLevel.MEDIUM

    @pytest.mark.parametrize(
        "value,expected",
        [(0.0, ActivityLevel.LOW), (0.29, ActivityLevel.LOW), (0.3, ActivityLevel.MEDIUM), (0.7, ActivityLevel.HIGH)],
    )
    def test_baseline_thresholds(self, value, expected):
        assert classify_baseline(value) == expected
        assert UserProfile(weekly_baseline=_baseline(value)).predicted_activity_level(NOW) == expected


class TestMealTimes:
    def test_unknown_meal_is_none(self):
        assert UserProfile().meal_times(MealType.LUNCH) is None

    def test_set_meal_time_puts_value_first(self):
        profile = UserProfile(meal_times={MealType.BREAKFAST: [time(8, 0), time(9, 0)]})
        profile.set_meal_time(MealType.BREAKFAST, time(9, 0))
        assert profile.meal_times(MealType.BREAKFAST) == [time(9, 0), time(8, 0)]

    def test_returned_list_is_a_copy(self):
        profile = UserProfile(meal_times={MealType.DINNER: [time(20, 0)]})
        profile.meal_times(MealType.DINNER).append(time(21, 0))
        assert profile.meal_times(MealType.DINNER) == [time(20, 0)]


class TestLanguageRatio:
    def test_default(self):
        profile = UserProfile()
        assert profile.language_ratio == DEFAULT_LANGUAGE_RATIO
        assert profile.other_language_ratio == 100 - DEFAULT_LANGUAGE_RATIO

    def test_update_recomputes_complement(self):
        profile = UserProfile()
        profile.update_language_ratio(60)
        assert profile.language_ratio == 60
        assert profile.other_language_ratio == 40

    @pytest.mark.parametrize("bad", [-1, 101, 50.5, True])
    def test_out_of_range_rejected(self, bad):
        with pytest.raises(ValueError):
            UserProfile().update_language_ratio(bad)


class TestObservers:
    def test_every_mutator_notifies(self):
        profile = UserProfile()
        calls = []
        profile.subscribe(lambda p: calls.append(p))

        profile.set_weekly_baseline(_baseline(0.5))
        profile.set_meal_times({MealType.LUNCH: [time(13, 0)]})
        profile.set_meal_time(MealType.DINNER, time(20, 30))
        profile.update_language_ratio(80)
        profile.replace(UserProfile())

        assert len(calls) == 5
        assert all(c is profile for c in calls)

    def test_failing_observer_does_not_stop_others(self):
        profile = UserProfile()
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        profile.subscribe(broken)
        profile.subscribe(lambda p: seen.append(p.language_ratio))
        profile.update_language_ratio(70)
        assert seen == [70]

    def test_unsubscribe(self):
        profile = UserProfile()
        calls = []

        def observer(p):
            calls.append(p)

        profile.subscribe(observer)
        profile.unsubscribe(observer)
        profile.update_language_ratio(10)
        assert calls == []


class TestSerialization:
    def test_round_trip(self):
        profile = UserProfile(
            weekly_baseline=_baseline(0.42),
            meal_times={MealType.BREAKFAST: [time(7, 45)], MealType.DINNER: [time(20, 0)]},
            language_ratio=88,
        )
        assert UserProfile.from_dict(profile.to_dict()) == profile

    def test_from_dict_rejects_bad_ratio(self):
        with pytest.raises(ValueError):
            UserProfile.from_dict({"language_ratio": 150})

    def test_from_dict_rejects_unknown_meal(self):
        with pytest.raises(ValueError):
            UserProfile.from_dict({"meal_times": {"brunch": [{"hour": 11, "minute": 0}]}})
