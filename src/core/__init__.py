"""
Core value types for Threshold.

This package holds the immutable data shared by every engine component.

Exports:
    - ContentCategory, InterventionKind, UserChoice, TimeOfDay: Enums
    - FrictionTier, FrictionProfile: Ordered friction levels and their costs
    - InterventionContext: Behavioural snapshot built per decision
    - ContentInstance + payload dataclasses: The content tagged union
    - InterventionOutcome: Append-only outcome record
"""

from .content import (
    ActivitySuggestion,
    AlternativeKind,
    AppealTrigger,
    BreathingExercise,
    BreathingPattern,
    ContentInstance,
    ContentPayload,
    EmotionalAppeal,
    GamificationChallenge,
    GamificationMetric,
    Quote,
    ReflectionPrompt,
    ReflectionTheme,
    StatsFraming,
    TimeAlternative,
    UsageStats,
)
from .context import MS_PER_MINUTE, InterventionContext
from .outcome import InterventionOutcome, new_outcome_id
from .types import (
    BASE_CATEGORIES,
    TRIGGERED_CATEGORIES,
    ContentCategory,
    FrictionProfile,
    FrictionTier,
    InterventionKind,
    TimeOfDay,
    UserChoice,
)

__all__ = [
    # Enums
    "ContentCategory",
    "BASE_CATEGORIES",
    "TRIGGERED_CATEGORIES",
    "InterventionKind",
    "UserChoice",
    "TimeOfDay",
    "FrictionTier",
    "FrictionProfile",
    # Context
    "InterventionContext",
    "MS_PER_MINUTE",
    # Content
    "ContentInstance",
    "ContentPayload",
    "ReflectionPrompt",
    "ReflectionTheme",
    "TimeAlternative",
    "AlternativeKind",
    "BreathingExercise",
    "BreathingPattern",
    "UsageStats",
    "StatsFraming",
    "EmotionalAppeal",
    "AppealTrigger",
    "Quote",
    "GamificationChallenge",
    "GamificationMetric",
    "ActivitySuggestion",
    # Outcome
    "InterventionOutcome",
    "new_outcome_id",
]
