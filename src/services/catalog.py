"""
Content Catalog for Threshold.

The catalog is the static, versioned pool of intervention content. It is
never mutated at runtime; a new catalog version replaces the old one.

The default catalog below carries illustrative copy for every category. Real
deployments usually load a localized catalog from JSON:

    {
        "version": "2026.10",
        "instances": [
            {"id": "refl-01", "category": "reflection",
             "payload": {"question": "...", "theme": "priority_check"}}
        ]
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from src.core.content import (
    ActivitySuggestion,
    AlternativeKind,
    AppealTrigger,
    BreathingExercise,
    BreathingPattern,
    ContentInstance,
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
from src.core.types import BASE_CATEGORIES, ContentCategory, TimeOfDay
from src.lib.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_VERSION = "2026.10"


class ContentCatalog:
    """
    Immutable content pool indexed by category and by id.

    Args:
        version: Catalog version string (recorded for audit)
        instances: Content instances; ids must be unique
    """

    def __init__(self, version: str, instances: Iterable[ContentInstance]) -> None:
        self.version = version
        by_id: dict[str, ContentInstance] = {}
        by_category: dict[ContentCategory, list[ContentInstance]] = {c: [] for c in ContentCategory}

        for instance in instances:
            if instance.id in by_id:
                raise ConfigurationError(f"Duplicate content id in catalog {version}: {instance.id}")
            by_id[instance.id] = instance
            by_category[instance.category].append(instance)

        self._by_id = by_id
        self._by_category = {c: tuple(items) for c, items in by_category.items()}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, content_id: object) -> bool:
        return content_id in self._by_id

    def get(self, content_id: str) -> ContentInstance | None:
        return self._by_id.get(content_id)

    def instances(self, category: ContentCategory) -> tuple[ContentInstance, ...]:
        return self._by_category.get(category, ())

    def categories(self) -> list[ContentCategory]:
        """Categories with at least one instance."""
        return [c for c, items in self._by_category.items() if items]

    def validate(self, required: Iterable[ContentCategory] = BASE_CATEGORIES) -> ContentCatalog:
        """
        Ensure every required category has at least one instance.

        Raises:
            ConfigurationError: Naming every empty required category
        """
        empty = [c.value for c in required if not self._by_category.get(c)]
        if empty:
            raise ConfigurationError(
                f"Catalog {self.version} has no content for required categories: {', '.join(empty)}"
            )
        return self

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "instances": [instance.to_dict() for instance in self._by_id.values()],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContentCatalog:
        """
        Build a catalog from its JSON form.

        Raises:
            ConfigurationError: On a missing version, unknown category or malformed payload
        """
        try:
            version = str(data["version"])
            raw_instances = data["instances"]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Catalog document is missing a field: {e}") from e

        instances: list[ContentInstance] = []
        for index, raw in enumerate(raw_instances):
            try:
                instances.append(ContentInstance.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid catalog entry #{index} in {version}: {e}") from e
        return cls(version, instances)


def load_catalog(path: str | Path) -> ContentCatalog:
    """
    Load a catalog from a JSON file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not load catalog from {path}: {e}") from e

    catalog = ContentCatalog.from_dict(data)
    logger.info("catalog_loaded version=%s instances=%d", catalog.version, len(catalog))
    return catalog


# =============================================================================
# Default catalog
# =============================================================================


def _numbered(prefix: str, payloads: Iterable[Any]) -> list[ContentInstance]:
    return [ContentInstance(id=f"{prefix}-{i:02d}", payload=p) for i, p in enumerate(payloads, start=1)]


def default_catalog() -> ContentCatalog:
    """The built-in catalog covering all eight categories."""
    T = ReflectionTheme
    reflections = [
        ReflectionPrompt("What made you reach for your phone just now?", T.TRIGGER_AWARENESS),
        ReflectionPrompt("Is something specific pulling you here, or is this a habit?", T.TRIGGER_AWARENESS),
        ReflectionPrompt("What were you planning to do before this?", T.PRIORITY_CHECK),
        ReflectionPrompt("Is this the most useful thing you could do with the next ten minutes?", T.PRIORITY_CHECK),
        ReflectionPrompt("How are you feeling right now: bored, tired, or anxious?", T.EMOTIONAL_AWARENESS),
        ReflectionPrompt("Will you feel better or worse after scrolling?", T.EMOTIONAL_AWARENESS),
        ReflectionPrompt("Is this the third time you've opened this in the last hour?", T.PATTERN_RECOGNITION),
        ReflectionPrompt("Does this usually happen at this time of day?", T.PATTERN_RECOGNITION),
        ReflectionPrompt("Could this wait until the morning?", T.LATE_NIGHT, "Sleep is the better investment"),
        ReflectionPrompt("You just closed this. What changed since then?", T.QUICK_REOPEN, "Notice the pull"),
    ]

    K = AlternativeKind
    alternatives = [
        TimeAlternative("Take a short walk around the block", "🚶", 10, K.PHYSICAL),
        TimeAlternative("Do a quick round of stretches", "🤸", 5, K.PHYSICAL),
        TimeAlternative("Message a friend you haven't talked to in a while", "💬", 5, K.SOCIAL),
        TimeAlternative("Call someone in your family", "📞", 15, K.SOCIAL),
        TimeAlternative("Clear one item off your to-do list", "✅", 10, K.PRODUCTIVE),
        TimeAlternative("Tidy up your desk", "🧹", 5, K.PRODUCTIVE),
        TimeAlternative("Sit quietly and notice five sounds around you", "🧘", 3, K.MINDFUL),
        TimeAlternative("Write down three things you're grateful for", "📝", 5, K.MINDFUL),
        TimeAlternative("Sketch whatever is in front of you", "✏️", 10, K.CREATIVE),
        TimeAlternative("Read a few pages of a book", "📖", 15, K.CREATIVE),
    ]

    P = BreathingPattern
    breathing = [
        BreathingExercise("Breathe in for 4, hold for 7, out for 8", P.FOUR_SEVEN_EIGHT, 60),
        BreathingExercise("Box breathing: in, hold, out, hold, four counts each", P.BOX, 64),
        BreathingExercise("Slow down: in for 5, out for 5", P.CALM, 60),
        BreathingExercise("Three slow breaths before you decide", P.CALM, 30),
    ]

    F = StatsFraming
    stats = [
        UsageStats(F.VS_YESTERDAY, "Here's today compared with yesterday"),
        UsageStats(F.VS_GOAL, "Here's where you are against your daily goal"),
        UsageStats(F.VS_WEEKLY_AVERAGE, "Here's today against your weekly average"),
    ]

    A = AppealTrigger
    appeals = [
        EmotionalAppeal("Tomorrow-you would appreciate the sleep", "The feed will still be there", A.LATE_NIGHT),
        EmotionalAppeal("Late scrolling tends to cost more than it gives", "Rest is productive too", A.LATE_NIGHT),
        EmotionalAppeal("Weekend mornings go fast", "Spend this one on something you'll remember", A.WEEKEND_MORNING),
        EmotionalAppeal("You just left. Nothing new is waiting", "Give the urge a minute to pass", A.RAPID_REOPEN),
        EmotionalAppeal("You've been here a while", "Is it still worth it?", A.EXTENDED_SESSION),
        EmotionalAppeal("That's a lot of check-ins today", "Nothing important is hiding in here", A.HIGH_FREQUENCY_DAY),
    ]

    quotes = [
        Quote("The present moment is filled with joy and happiness. If you are attentive, you will see it.",
              "Thich Nhat Hanh"),
        Quote("Almost everything will work again if you unplug it for a few minutes, including you.", "Anne Lamott"),
        Quote("What we choose to attend to shapes the life we lead.", "Unknown"),
        Quote("Time is what we want most, but what we use worst.", "William Penn"),
    ]

    G = GamificationMetric
    gamification = [
        GamificationChallenge("Keep your streak alive: skip this one", "Streak protected", G.STREAK_DAYS),
        GamificationChallenge("One more day under goal extends your streak", "Streak +1", G.STREAK_DAYS),
        GamificationChallenge("Beat your shortest session record", "New personal best", G.SESSION_RECORD),
    ]

    D = TimeOfDay
    activities = [
        ActivitySuggestion("Step outside and get some daylight", "☀️", D.MORNING),
        ActivitySuggestion("Make breakfast without a screen", "🍳", D.MORNING),
        ActivitySuggestion("Take a proper lunch break away from the desk", "🥗", D.MIDDAY),
        ActivitySuggestion("Refill your water and stretch your legs", "💧", D.MIDDAY),
        ActivitySuggestion("Go for an evening walk", "🌇", D.EVENING),
        ActivitySuggestion("Cook something new for dinner", "🍲", D.EVENING),
        ActivitySuggestion("Dim the lights and pick up a book", "🌙", D.NIGHT),
        ActivitySuggestion("Plan tomorrow in three lines, then sleep", "🛏️", D.NIGHT),
    ]

    instances = (
        _numbered("refl", reflections)
        + _numbered("alt", alternatives)
        + _numbered("breath", breathing)
        + _numbered("stats", stats)
        + _numbered("appeal", appeals)
        + _numbered("quote", quotes)
        + _numbered("game", gamification)
        + _numbered("activity", activities)
    )
    return ContentCatalog(DEFAULT_CATALOG_VERSION, instances)


__all__ = ["ContentCatalog", "default_catalog", "load_catalog", "DEFAULT_CATALOG_VERSION"]
