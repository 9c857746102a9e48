"""
Shared test fixtures for Threshold.

This module provides common fixtures used across all test modules:
- Database session and session factory (in-memory SQLite)
- Seeded random source
- Fixed clocks (weekday afternoon, late night, weekend morning)
- Usage snapshots (first launch, established user)
- Factories for InterventionContext and InterventionOutcome

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import os
import random
from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("THRESHOLD_DEV_MODE", "1")

from src.core.context import InterventionContext  # noqa: E402
from src.core.outcome import InterventionOutcome, new_outcome_id  # noqa: E402
from src.core.types import (  # noqa: E402
    ContentCategory,
    FrictionTier,
    InterventionKind,
    TimeOfDay,
    UserChoice,
)
from src.models.base import Base  # noqa: E402
from src.models.outcome import InterventionOutcomeRecord  # noqa: E402, F401
from src.services.usage import UsageSnapshot  # noqa: E402

# Wednesday 2026-10-14, 14:00 UTC
WEEKDAY_AFTERNOON = datetime(2026, 10, 14, 14, 0, tzinfo=UTC)
# Same Wednesday, 23:30 UTC
LATE_NIGHT = datetime(2026, 10, 14, 23, 30, tzinfo=UTC)
# Saturday 2026-10-17, 09:00 UTC
WEEKEND_MORNING = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


class FixedClock:
    """Callable clock that can be advanced manually."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# 1. Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def db_engine():
    """
    In-memory SQLite engine shared across connections.

    StaticPool keeps a single connection so that every session sees the
    same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    """sessionmaker bound to the in-memory engine."""
    return sessionmaker(bind=db_engine)


@pytest.fixture()
def db_session(session_factory):
    """A single SQLAlchemy session, closed after the test."""
    session = session_factory()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# 2. Randomness and time
# ---------------------------------------------------------------------------

@pytest.fixture()
def rng():
    """Seeded random source for reproducible selection."""
    return random.Random(20261014)


@pytest.fixture()
def clock():
    """Clock fixed on a weekday afternoon."""
    return FixedClock(WEEKDAY_AFTERNOON)


@pytest.fixture()
def late_night_clock():
    return FixedClock(LATE_NIGHT)


# ---------------------------------------------------------------------------
# 3. Usage snapshots
# ---------------------------------------------------------------------------

@pytest.fixture()
def first_launch_snapshot():
    """A user who installed today and has no history."""
    return UsageSnapshot(installed_on=WEEKDAY_AFTERNOON.date())


@pytest.fixture()
def established_snapshot():
    """A user 40 days in with steady usage and no baseline improvement data."""
    return UsageSnapshot(
        usage_today=45 * 60_000,
        usage_yesterday=60 * 60_000,
        weekly_average=50 * 60_000,
        session_count_today=4,
        last_end=WEEKDAY_AFTERNOON - timedelta(hours=2),
        current_session=0,
        goal_minutes=60,
        streak=3,
        installed_on=date(2026, 9, 4),
    )


# ---------------------------------------------------------------------------
# 4. Factories
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_context():
    """
    Factory for InterventionContext with weekday-afternoon defaults.

    Example::

        ctx = make_context(is_late_night=True, hour=23)
    """

    def _make(**overrides) -> InterventionContext:
        values = {
            "target_app": "com.example.feed",
            "time_of_day": TimeOfDay.MIDDAY,
            "hour": 14,
            "day_of_week": 3,
            "is_weekend": False,
            "is_late_night": False,
            "current_session_ms": 0,
            "sessions_today": 1,
            "ms_since_last_session_end": None,
            "quick_reopen_attempt": False,
            "is_extended_session": False,
            "total_usage_today_ms": 0,
            "total_usage_yesterday_ms": 0,
            "weekly_average_ms": 0,
            "daily_goal_minutes": None,
            "streak_days": 0,
            "days_since_install": 0,
            "best_session_ms": None,
            "friction_tier": FrictionTier.GENTLE,
        }
        values.update(overrides)
        return InterventionContext(**values)

    return _make


@pytest.fixture()
def make_outcome(make_context):
    """Factory for InterventionOutcome records."""

    def _make(**overrides) -> InterventionOutcome:
        values = {
            "outcome_id": new_outcome_id(),
            "session_id": "session-1",
            "timestamp": WEEKDAY_AFTERNOON,
            "target_app": "com.example.feed",
            "intervention_kind": InterventionKind.REMINDER,
            "category": ContentCategory.REFLECTION,
            "content_id": "refl-01",
            "context": make_context().to_snapshot(),
            "choice": UserChoice.PROCEEDED,
            "decision_latency_ms": 4000,
        }
        values.update(overrides)
        return InterventionOutcome(**values)

    return _make
