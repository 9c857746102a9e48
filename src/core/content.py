"""
Intervention content model for Threshold.

Content is a tagged union: one frozen payload dataclass per ContentCategory,
each carrying its category as a class-level discriminant. The engine never
renders payloads; the presentation layer matches on the payload type (or on
`ContentInstance.category`) and draws it.

Usage:
    match instance.payload:
        case ReflectionPrompt(question=q):
            ...
        case BreathingExercise(pattern=p):
            ...
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any, ClassVar, Union

from src.core.types import ContentCategory, TimeOfDay

# =============================================================================
# Payload sub-enums
# =============================================================================


class ReflectionTheme(StrEnum):
    TRIGGER_AWARENESS = "trigger_awareness"
    PRIORITY_CHECK = "priority_check"
    EMOTIONAL_AWARENESS = "emotional_awareness"
    PATTERN_RECOGNITION = "pattern_recognition"
    LATE_NIGHT = "late_night"
    QUICK_REOPEN = "quick_reopen"


class AlternativeKind(StrEnum):
    PHYSICAL = "physical"
    SOCIAL = "social"
    PRODUCTIVE = "productive"
    MINDFUL = "mindful"
    CREATIVE = "creative"


class BreathingPattern(StrEnum):
    FOUR_SEVEN_EIGHT = "four_seven_eight"  # 4s in, 7s hold, 8s out
    BOX = "box"                            # 4s per phase
    CALM = "calm"                          # 5s in, 5s out


class StatsFraming(StrEnum):
    VS_YESTERDAY = "vs_yesterday"
    VS_GOAL = "vs_goal"
    VS_WEEKLY_AVERAGE = "vs_weekly_average"


class AppealTrigger(StrEnum):
    LATE_NIGHT = "late_night"
    WEEKEND_MORNING = "weekend_morning"
    RAPID_REOPEN = "rapid_reopen"
    EXTENDED_SESSION = "extended_session"
    HIGH_FREQUENCY_DAY = "high_frequency_day"


class GamificationMetric(StrEnum):
    STREAK_DAYS = "streak_days"
    SESSION_RECORD = "session_record"


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class ReflectionPrompt:
    category: ClassVar[ContentCategory] = ContentCategory.REFLECTION

    question: str
    theme: ReflectionTheme
    subtext: str = "Take a moment to honestly answer"


@dataclass(frozen=True)
class TimeAlternative:
    category: ClassVar[ContentCategory] = ContentCategory.TIME_ALTERNATIVE

    activity: str
    emoji: str
    estimated_minutes: int
    kind: AlternativeKind


@dataclass(frozen=True)
class BreathingExercise:
    category: ClassVar[ContentCategory] = ContentCategory.BREATHING

    instruction: str
    pattern: BreathingPattern
    duration_seconds: int


@dataclass(frozen=True)
class UsageStats:
    """Stats framing; the numbers themselves come from the decision context."""

    category: ClassVar[ContentCategory] = ContentCategory.USAGE_STATS

    framing: StatsFraming
    headline: str


@dataclass(frozen=True)
class EmotionalAppeal:
    category: ClassVar[ContentCategory] = ContentCategory.EMOTIONAL_APPEAL

    message: str
    subtext: str
    trigger: AppealTrigger


@dataclass(frozen=True)
class Quote:
    category: ClassVar[ContentCategory] = ContentCategory.QUOTE

    text: str
    author: str


@dataclass(frozen=True)
class GamificationChallenge:
    category: ClassVar[ContentCategory] = ContentCategory.GAMIFICATION

    challenge: str
    reward: str
    metric: GamificationMetric


@dataclass(frozen=True)
class ActivitySuggestion:
    category: ClassVar[ContentCategory] = ContentCategory.ACTIVITY_SUGGESTION

    suggestion: str
    emoji: str
    time_of_day: TimeOfDay


ContentPayload = Union[
    ReflectionPrompt,
    TimeAlternative,
    BreathingExercise,
    UsageStats,
    EmotionalAppeal,
    Quote,
    GamificationChallenge,
    ActivitySuggestion,
]

PAYLOAD_TYPES: dict[ContentCategory, type] = {
    ReflectionPrompt.category: ReflectionPrompt,
    TimeAlternative.category: TimeAlternative,
    BreathingExercise.category: BreathingExercise,
    UsageStats.category: UsageStats,
    EmotionalAppeal.category: EmotionalAppeal,
    Quote.category: Quote,
    GamificationChallenge.category: GamificationChallenge,
    ActivitySuggestion.category: ActivitySuggestion,
}

# Enum-typed payload fields, used when rebuilding payloads from plain dicts
_ENUM_FIELDS: dict[str, type[StrEnum]] = {
    "theme": ReflectionTheme,
    "kind": AlternativeKind,
    "pattern": BreathingPattern,
    "framing": StatsFraming,
    "trigger": AppealTrigger,
    "metric": GamificationMetric,
    "time_of_day": TimeOfDay,
}


# =============================================================================
# Content Instance
# =============================================================================


@dataclass(frozen=True)
class ContentInstance:
    """
    One concrete payload plus the stable id used for repeat-avoidance and
    effectiveness bucketing.
    """

    id: str
    payload: ContentPayload

    @property
    def category(self) -> ContentCategory:
        return self.payload.category

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation with an explicit category tag."""
        return {
            "id": self.id,
            "category": self.category.value,
            "payload": {k: (v.value if isinstance(v, StrEnum) else v) for k, v in asdict(self.payload).items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentInstance:
        """
        Build an instance from `to_dict` output.

        Raises:
            KeyError, TypeError, ValueError: On an unknown category or malformed payload
        """
        category = ContentCategory(data["category"])
        payload_type = PAYLOAD_TYPES[category]
        raw = dict(data["payload"])
        for name, enum_type in _ENUM_FIELDS.items():
            if name in raw:
                raw[name] = enum_type(raw[name])
        return cls(id=str(data["id"]), payload=payload_type(**raw))
