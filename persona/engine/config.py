"""Configuration dataclasses for the persona core.

Replaces module-level constants with type-safe, testable config objects.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class TrackerConfig:
    """Motion aggregation settings."""
    motion_threshold: float = 2.0  # magnitude above which a sample counts as movement
    flush_interval_s: int = 300  # 5-minute activity periods
    history_capacity: int = 288  # 24 h of 5-minute periods

    @classmethod
    def from_env(cls):
        return cls(
            flush_interval_s=int(os.environ.get("PERSONA_FLUSH_INTERVAL_S", cls.flush_interval_s)),
        )


@dataclass
class PatternConfig:
    """Pattern rebuild cadence and retention."""
    rebuild_interval_s: int = 3600
    daily_pattern_retention: int = 60  # days of per-date patterns kept for the weekly baseline
    baseline_label: str = "activity"


@dataclass
class InsightConfig:
    """Insight regeneration cadence."""
    interval_s: int = 3600

    @classmethod
    def from_env(cls):
        return cls(
            interval_s=int(os.environ.get("PERSONA_INSIGHT_INTERVAL_S", cls.interval_s)),
        )


@dataclass
class StoreConfig:
    """SQLite store location and row retention."""
    db_path: Path = field(default_factory=lambda: Path.home() / ".persona" / "persona.db")
    activity_retention: int = 1000
    keyword_retention: int = 1000

    @classmethod
    def from_env(cls):
        path = os.environ.get("PERSONA_DB_PATH")
        return cls(db_path=Path(path)) if path else cls()


@dataclass
class PersonaConfig:
    """Top-level config composing all sub-configs."""
    locale: str = "bn"
    keyword_capacity: int = 1000
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    patterns: PatternConfig = field(default_factory=PatternConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def from_env(cls):
        """Create config from environment variables."""
        return cls(
            locale=os.environ.get("PERSONA_LOCALE", cls.locale),
            tracker=TrackerConfig.from_env(),
            patterns=PatternConfig(),
            insights=InsightConfig.from_env(),
            store=StoreConfig.from_env(),
        )
