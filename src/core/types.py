"""
Shared enums for Threshold.

Every component refers to content categories, intervention kinds, user
choices, time-of-day buckets and friction tiers through the types defined
here, so the serialized values used in the outcome log and the HTTP adapter
stay in one place.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import NamedTuple


class ContentCategory(StrEnum):
    """Persuasive strategies an intervention can use."""

    REFLECTION = "reflection"
    TIME_ALTERNATIVE = "time_alternative"
    BREATHING = "breathing"
    USAGE_STATS = "usage_stats"
    EMOTIONAL_APPEAL = "emotional_appeal"
    QUOTE = "quote"
    GAMIFICATION = "gamification"
    ACTIVITY_SUGGESTION = "activity_suggestion"


# Categories present in the base weight table. A catalog without instances
# for any of these cannot serve a decision.
BASE_CATEGORIES: tuple[ContentCategory, ...] = (
    ContentCategory.REFLECTION,
    ContentCategory.TIME_ALTERNATIVE,
    ContentCategory.BREATHING,
    ContentCategory.USAGE_STATS,
)

# Categories only reachable through explicit trigger conditions.
TRIGGERED_CATEGORIES: tuple[ContentCategory, ...] = (
    ContentCategory.EMOTIONAL_APPEAL,
    ContentCategory.QUOTE,
    ContentCategory.GAMIFICATION,
    ContentCategory.ACTIVITY_SUGGESTION,
)


class InterventionKind(StrEnum):
    """Decision point at which the intervention is shown."""

    REMINDER = "reminder"  # App launch
    TIMER = "timer"        # Elapsed-time threshold in a running session


class UserChoice(StrEnum):
    """The two possible outcomes of a shown intervention."""

    PROCEEDED = "proceeded"
    WENT_BACK = "went_back"


class TimeOfDay(StrEnum):
    """Coarse time-of-day bucket."""

    MORNING = "morning"  # 06:00-09:59
    MIDDAY = "midday"    # 10:00-14:59
    EVENING = "evening"  # 15:00-19:59
    NIGHT = "night"      # 20:00-05:59

    @classmethod
    def from_hour(cls, hour: int) -> TimeOfDay:
        """Bucket an hour of the day (0-23)."""
        if 6 <= hour < 10:
            return cls.MORNING
        if 10 <= hour < 15:
            return cls.MIDDAY
        if 15 <= hour < 20:
            return cls.EVENING
        return cls.NIGHT


class FrictionProfile(NamedTuple):
    """
    Interaction cost attached to a friction tier.

    Attributes:
        delay_ms: Pause enforced by the presentation layer before a choice
        requires_secondary_step: A breathing pause or similar must complete first
        display_name: User-facing tier name
        description: User-facing one-line explanation
    """
    delay_ms: int
    requires_secondary_step: bool
    display_name: str
    description: str


class FrictionTier(IntEnum):
    """
    Escalating difficulty level of an intervention.

    Ordered: GENTLE < MODERATE < FIRM < LOCKED. LOCKED is only ever produced
    by an explicit user override.
    """

    GENTLE = 0
    MODERATE = 1
    FIRM = 2
    LOCKED = 3

    @property
    def profile(self) -> FrictionProfile:
        return _FRICTION_PROFILES[self]

    @property
    def delay_ms(self) -> int:
        return self.profile.delay_ms

    @property
    def requires_secondary_step(self) -> bool:
        return self.profile.requires_secondary_step

    @property
    def key(self) -> str:
        """Lower-case name used in snapshots and API payloads."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: str | int | FrictionTier) -> FrictionTier:
        """Accept a tier, its integer rank, or its (case-insensitive) name."""
        if isinstance(value, FrictionTier):
            return value
        if isinstance(value, int):
            return cls(value)
        return cls[value.strip().upper()]


_FRICTION_PROFILES: dict[FrictionTier, FrictionProfile] = {
    FrictionTier.GENTLE: FrictionProfile(0, False, "Gentle", "Simple message, no delay"),
    FrictionTier.MODERATE: FrictionProfile(3000, False, "Moderate", "3-second pause before proceeding"),
    FrictionTier.FIRM: FrictionProfile(5000, True, "Firm", "5-second pause with a breathing step"),
    FrictionTier.LOCKED: FrictionProfile(10000, True, "Locked", "10-second pause, maximum friction"),
}


__all__ = [
    "ContentCategory",
    "BASE_CATEGORIES",
    "TRIGGERED_CATEGORIES",
    "InterventionKind",
    "UserChoice",
    "TimeOfDay",
    "FrictionProfile",
    "FrictionTier",
]
