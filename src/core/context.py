"""
Intervention Context for Threshold.

The flat behavioural snapshot built for every decision. It is embedded
verbatim into the outcome record, so it must round-trip through a JSON-safe
dict without loss.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from src.core.types import FrictionTier, TimeOfDay
from src.lib.exceptions import ValidationError

MS_PER_MINUTE = 60_000

# Fields that must never be negative
_NON_NEGATIVE = (
    "hour",
    "current_session_ms",
    "sessions_today",
    "total_usage_today_ms",
    "total_usage_yesterday_ms",
    "weekly_average_ms",
    "streak_days",
    "days_since_install",
)
_OPTIONAL_NON_NEGATIVE = (
    "ms_since_last_session_end",
    "daily_goal_minutes",
    "best_session_ms",
)


@dataclass(frozen=True)
class InterventionContext:
    """
    Behavioural context at the moment an intervention is about to be shown.

    Optional fields are None when the value is unknown (never zero).
    """

    target_app: str

    # Time context
    time_of_day: TimeOfDay
    hour: int                                  # 0-23, local time
    day_of_week: int                           # ISO: 1=Monday, 7=Sunday
    is_weekend: bool
    is_late_night: bool

    # Session context
    current_session_ms: int
    sessions_today: int
    ms_since_last_session_end: int | None       # None: no previous session
    quick_reopen_attempt: bool
    is_extended_session: bool

    # Usage statistics
    total_usage_today_ms: int
    total_usage_yesterday_ms: int
    weekly_average_ms: int

    # Goals and progress
    daily_goal_minutes: int | None
    streak_days: int
    days_since_install: int
    best_session_ms: int | None

    friction_tier: FrictionTier = FrictionTier.GENTLE

    def __post_init__(self) -> None:
        for name in _NON_NEGATIVE:
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} must be >= 0, got {getattr(self, name)}")
        for name in _OPTIONAL_NON_NEGATIVE:
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must be >= 0 when set, got {value}")
        if not 1 <= self.day_of_week <= 7:
            raise ValidationError(f"day_of_week must be in 1..7, got {self.day_of_week}")

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def current_session_minutes(self) -> int:
        return self.current_session_ms // MS_PER_MINUTE

    @property
    def total_usage_today_minutes(self) -> int:
        return self.total_usage_today_ms // MS_PER_MINUTE

    @property
    def is_over_goal(self) -> bool:
        if self.daily_goal_minutes is None:
            return False
        return self.total_usage_today_minutes > self.daily_goal_minutes

    @property
    def is_weekend_morning(self) -> bool:
        return self.is_weekend and 6 <= self.hour < 12

    @property
    def is_high_frequency_day(self) -> bool:
        return self.sessions_today >= 10

    @property
    def is_first_session_of_day(self) -> bool:
        return self.sessions_today <= 1

    # ------------------------------------------------------------------
    # Snapshot (de)serialization
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        """Return a JSON-safe dict of every field."""
        snapshot = asdict(self)
        snapshot["time_of_day"] = self.time_of_day.value
        snapshot["friction_tier"] = self.friction_tier.key
        return snapshot

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> InterventionContext:
        """
        Rebuild a context from `to_snapshot` output.

        Raises:
            ValidationError: If required keys are missing or values are invalid
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in snapshot.items() if k in known}
        try:
            data["time_of_day"] = TimeOfDay(data["time_of_day"])
            data["friction_tier"] = FrictionTier.parse(data.get("friction_tier", "gentle"))
            return cls(**data)
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid context snapshot: {e}") from e
