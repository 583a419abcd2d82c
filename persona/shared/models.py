"""Shared data model for the behavioral core.

Activity periods and keyword events are the raw, append-only records kept in
the rolling histories. Daily and weekly patterns are derived views that are
recomputed wholesale. Insights are transient values handed to the
presentation layer.

Every persisted type round-trips through ``to_dict()`` / ``from_dict()``.
``from_dict`` raises ``KeyError``, ``TypeError`` or ``ValueError`` on
malformed input; the store skips such records one at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import StrEnum
from typing import Any

HOURS = range(24)
WEEKDAYS = range(1, 8)  # ISO weekday, Monday = 1


class ActivityLevel(StrEnum):
    """Coarse activity classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Wording used in insight text."""
        return "moderate" if self is ActivityLevel.MEDIUM else self.value


class MealType(StrEnum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class InsightType(StrEnum):
    ACTIVITY = "activity"
    KEYWORDS = "keywords"
    ROUTINE = "routine"
    ACTION_ITEM = "action_item"
    BREAK_SUGGESTION = "break_suggestion"


class InsightPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    return value


def _require_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    return float(value)


def require_mapping(value: Any, name: str) -> dict:
    if not isinstance(value, dict):
        raise TypeError(f"{name} must be a mapping, got {type(value).__name__}")
    return value


def _word_lists(raw: Any, name: str) -> dict[str, list[str]]:
    require_mapping(raw, name)
    result = {}
    for word, words in raw.items():
        if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
            raise TypeError(f"{name}[{word!r}] must be a list of strings")
        result[str(word)] = list(words)
    return result


@dataclass(frozen=True)
class ActivityPeriod:
    """Motion summary for one aggregation window."""

    timestamp: datetime
    movement_count: int
    movement_intensity: float  # mean magnitude of counted samples
    time_since_last_move: timedelta = timedelta(0)

    def __post_init__(self):
        if self.movement_count < 0:
            raise ValueError(f"movement_count must be >= 0, got {self.movement_count}")
        if self.movement_intensity < 0:
            raise ValueError(f"movement_intensity must be >= 0, got {self.movement_intensity}")

    @property
    def normalized(self) -> float:
        """Movement count on the 0-1 pattern scale (unclamped)."""
        return self.movement_count / 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "movement_count": self.movement_count,
            "movement_intensity": self.movement_intensity,
            "time_since_last_move": self.time_since_last_move.total_seconds(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityPeriod:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            movement_count=_require_int(data["movement_count"], "movement_count"),
            movement_intensity=_require_number(data["movement_intensity"], "movement_intensity"),
            time_since_last_move=timedelta(
                seconds=_require_number(data.get("time_since_last_move", 0), "time_since_last_move")
            ),
        )


@dataclass(frozen=True)
class KeywordEvent:
    """Keywords extracted from one transcript.

    ``related_keywords`` lists at most five co-occurring words per keyword,
    most frequent first.
    """

    timestamp: datetime
    keywords: dict[str, int] = field(default_factory=dict)
    contexts: dict[str, list[str]] = field(default_factory=dict)
    related_keywords: dict[str, list[str]] = field(default_factory=dict)
    language_tag: str = "unknown"

    @classmethod
    def empty(cls, timestamp: datetime, language_tag: str = "unknown") -> KeywordEvent:
        return cls(timestamp=timestamp, language_tag=language_tag)

    @property
    def is_empty(self) -> bool:
        return not self.keywords

    def references(self, word: str) -> bool:
        """True if ``word`` appears as a key, a related word or a context word."""
        if word in self.keywords:
            return True
        if any(word in related for related in self.related_keywords.values()):
            return True
        return any(word in context for context in self.contexts.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "keywords": dict(self.keywords),
            "contexts": {k: list(v) for k, v in self.contexts.items()},
            "related_keywords": {k: list(v) for k, v in self.related_keywords.items()},
            "language_tag": self.language_tag,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeywordEvent:
        raw_keywords = require_mapping(data["keywords"], "keywords")
        keywords = {str(k): _require_int(v, f"keywords[{k!r}]") for k, v in raw_keywords.items()}
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            keywords=keywords,
            contexts=_word_lists(data.get("contexts", {}), "contexts"),
            related_keywords=_word_lists(data.get("related_keywords", {}), "related_keywords"),
            language_tag=str(data.get("language_tag", "unknown")),
        )


@dataclass(frozen=True)
class DailyPattern:
    """Normalized activity for every hour of a day.

    The hourly map is total: construction fails unless all 24 hours carry a
    value in [0, 1].
    """

    label: str
    hourly_values: dict[int, float]
    computed_at: datetime

    def __post_init__(self):
        missing = [h for h in HOURS if h not in self.hourly_values]
        if missing:
            raise ValueError(f"daily pattern '{self.label}' missing hours {missing}")
        for hour, value in self.hourly_values.items():
            if hour not in HOURS:
                raise ValueError(f"hour {hour} out of range")
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"hour {hour} value {value} outside [0, 1]")

    def value_at(self, hour: int) -> float:
        return self.hourly_values[hour]

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "hourly_values": {str(h): v for h, v in sorted(self.hourly_values.items())},
            "computed_at": self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyPattern:
        raw_hours = require_mapping(data["hourly_values"], "hourly_values")
        return cls(
            label=str(data["label"]),
            hourly_values={int(h): _require_number(v, f"hour {h}") for h, v in raw_hours.items()},
            computed_at=datetime.fromisoformat(data["computed_at"]),
        )


@dataclass(frozen=True)
class WeeklyPattern:
    """Weekday x hour activity baseline (ISO weekdays 1-7)."""

    label: str
    hourly_values: dict[int, dict[int, float]]
    computed_at: datetime

    def value_at(self, weekday: int, hour: int) -> float | None:
        return self.hourly_values.get(weekday, {}).get(hour)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "hourly_values": {
                str(day): {str(h): v for h, v in sorted(hours.items())}
                for day, hours in sorted(self.hourly_values.items())
            },
            "computed_at": self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WeeklyPattern:
        hourly: dict[int, dict[int, float]] = {}
        for day, hours in require_mapping(data["hourly_values"], "hourly_values").items():
            weekday = int(day)
            if weekday not in WEEKDAYS:
                raise ValueError(f"weekday {weekday} out of range")
            hours = require_mapping(hours, f"hourly_values[{day!r}]")
            hourly[weekday] = {int(h): _require_number(v, f"{day}/{h}") for h, v in hours.items()}
        return cls(
            label=str(data["label"]),
            hourly_values=hourly,
            computed_at=datetime.fromisoformat(data["computed_at"]),
        )


@dataclass(frozen=True)
class Insight:
    """One human-readable observation produced by a rule generator."""

    type: InsightType
    title: str
    description: str
    timestamp: datetime
    priority: InsightPriority

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "priority": self.priority.value,
        }


def time_to_dict(value: time) -> dict[str, int]:
    return {"hour": value.hour, "minute": value.minute}


def time_from_dict(data: dict[str, Any]) -> time:
    return time(_require_int(data["hour"], "hour"), _require_int(data["minute"], "minute"))


def minutes_of_day(value: datetime | time) -> int:
    return value.hour * 60 + value.minute
