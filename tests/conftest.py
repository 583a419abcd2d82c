"""Shared fixtures for the persona test suite."""

from datetime import datetime, timedelta

import pytest

from persona.shared.models import ActivityPeriod, KeywordEvent

# Monday 2026-03-02 08:00
BASE_TIME = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def make_periods():
    """Build consecutive 5-minute activity periods from movement counts."""

    def _make(counts, start=BASE_TIME, step=timedelta(minutes=5)):
        return [
            ActivityPeriod(timestamp=start + i * step, movement_count=c, movement_intensity=3.0 if c else 0.0)
            for i, c in enumerate(counts)
        ]

    return _make


@pytest.fixture
def make_keyword_event():
    """Build a keyword event; related/contexts default to empty."""

    def _make(keywords, timestamp=BASE_TIME, related=None, contexts=None, language_tag="bn"):
        return KeywordEvent(
            timestamp=timestamp,
            keywords=dict(keywords),
            contexts=contexts or {},
            related_keywords=related or {},
            language_tag=language_tag,
        )

    return _make
