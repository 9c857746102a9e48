"""
Content Selector for Threshold.

Chooses one ContentInstance for a decision in three steps:

1. Weight table. In cold-start mode the base weights apply as-is; once enough
   outcomes exist each base weight is scaled by how its category's went-back
   rate compares with the population rate. Context overrides then raise
   (never lower) one category (late night -> Breathing, quick reopen ->
   Reflection, extended session -> TimeAlternative) and triggered categories
   join with a small fixed weight.
2. Category draw. Integer weights, one randrange over the total, walked as
   cumulative bands.
3. Instance draw. The pool is narrowed to instances that fit the context
   (reflection theme, appeal trigger, activity time of day), then drawn
   uniformly among those not shown in the last few presentations.

The random source is injected so draws are reproducible under a seed.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from src.config.engine import EngineConfig
from src.core.content import AppealTrigger, ContentInstance, ReflectionTheme
from src.core.context import InterventionContext
from src.core.types import ContentCategory, InterventionKind
from src.lib.exceptions import ConfigurationError
from src.services.catalog import ContentCatalog
from src.services.effectiveness import EffectivenessAggregate

logger = logging.getLogger(__name__)


class SelectionMode(StrEnum):
    COLD_START = "cold_start"
    EFFECTIVENESS_WEIGHTED = "effectiveness_weighted"


@dataclass(frozen=True)
class SelectionWeights:
    """
    Weight table used for one decision.

    Attributes:
        mode: Cold-start or effectiveness-weighted
        weights: Category -> integer weight, including categories the catalog
            cannot serve (they receive no band when sampling)
    """
    mode: SelectionMode
    weights: dict[ContentCategory, int]

    @property
    def total(self) -> int:
        return sum(self.weights.values())

    def share(self, category: ContentCategory) -> float:
        total = self.total
        return self.weights.get(category, 0) / total if total else 0.0


def _rescale_override(
    weights: dict[ContentCategory, int],
    target: ContentCategory,
    value: int,
    base_total: int,
) -> None:
    """
    Raise `target` to `value` and scale the other categories in place so the
    table keeps its total.

    `value` is on the base-table scale and is scaled to the current table
    total first. A category already at or above it is left alone, and the
    other categories always keep at least one unit between them. Rounding
    uses largest remainders so the total is exact.
    """
    total = sum(weights.values())
    if total <= 0:
        return
    scaled = round(value * total / base_total) if base_total > 0 else value
    scaled = min(scaled, total - 1)
    if weights.get(target, 0) >= scaled:
        return

    others = {c: w for c, w in weights.items() if c != target}
    others_total = sum(others.values())
    remaining = total - scaled

    weights[target] = scaled

    exact = {c: w * remaining / others_total for c, w in others.items()}
    floored = {c: int(x) for c, x in exact.items()}
    leftover = remaining - sum(floored.values())
    for c in sorted(exact, key=lambda c: exact[c] - floored[c], reverse=True)[:leftover]:
        floored[c] += 1
    weights.update(floored)


_GENERAL_THEMES = frozenset({ReflectionTheme.PRIORITY_CHECK, ReflectionTheme.EMOTIONAL_AWARENESS})


def _reflection_themes(context: InterventionContext) -> frozenset[ReflectionTheme]:
    if context.is_late_night:
        return frozenset({ReflectionTheme.LATE_NIGHT})
    if context.quick_reopen_attempt:
        return frozenset({ReflectionTheme.QUICK_REOPEN})
    if context.is_first_session_of_day:
        return frozenset({ReflectionTheme.TRIGGER_AWARENESS})
    if context.sessions_today > 5:
        return frozenset({ReflectionTheme.PATTERN_RECOGNITION})
    return _GENERAL_THEMES


def _active_triggers(context: InterventionContext) -> list[AppealTrigger]:
    """Appeal triggers whose situation holds, most specific first."""
    checks = (
        (AppealTrigger.LATE_NIGHT, context.is_late_night),
        (AppealTrigger.WEEKEND_MORNING, context.is_weekend_morning),
        (AppealTrigger.RAPID_REOPEN, context.quick_reopen_attempt),
        (AppealTrigger.EXTENDED_SESSION, context.is_extended_session),
        (AppealTrigger.HIGH_FREQUENCY_DAY, context.is_high_frequency_day),
    )
    return [trigger for trigger, active in checks if active]


def _context_filters(
    category: ContentCategory,
    context: InterventionContext,
) -> list[Callable[[Any], bool]]:
    """Payload predicates for a category, tried in order, narrowest first."""
    if category == ContentCategory.ACTIVITY_SUGGESTION:
        return [lambda p: p.time_of_day == context.time_of_day]

    if category == ContentCategory.REFLECTION:
        preferred = _reflection_themes(context)
        off_situation = {
            theme for theme, active in (
                (ReflectionTheme.LATE_NIGHT, context.is_late_night),
                (ReflectionTheme.QUICK_REOPEN, context.quick_reopen_attempt),
            ) if not active
        }
        return [lambda p: p.theme in preferred, lambda p: p.theme not in off_situation]

    if category == ContentCategory.EMOTIONAL_APPEAL:
        active = _active_triggers(context)
        if not active:
            return []
        return [lambda p: p.trigger == active[0], lambda p: p.trigger in active]

    return []


class ContentSelector:
    """
    Weighted, variety-preserving content selection.

    Usage:
        selector = ContentSelector(config, rng=random.Random(42))
        instance = selector.select(context, InterventionKind.REMINDER, catalog,
                                   aggregates=tracker.aggregate(), recent_ids=history)
    """

    def __init__(self, config: EngineConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Weight table
    # ------------------------------------------------------------------

    def mode_for(self, aggregates: Mapping[ContentCategory, EffectivenessAggregate] | None) -> SelectionMode:
        total = sum(a.total_shown for a in aggregates.values()) if aggregates else 0
        if total < self.config.cold_start_threshold:
            return SelectionMode.COLD_START
        return SelectionMode.EFFECTIVENESS_WEIGHTED

    def effectiveness_multipliers(
        self,
        aggregates: Mapping[ContentCategory, EffectivenessAggregate],
    ) -> dict[ContentCategory, float]:
        """
        Per-category multiplier: clamp(1 + sensitivity * (rate - mean) / mean).

        Categories with too few samples, or a population with no went-back
        outcomes at all, keep a multiplier of 1.
        """
        cfg = self.config
        total = sum(a.total_shown for a in aggregates.values())
        went_back = sum(a.went_back_count for a in aggregates.values())
        mean = went_back / total if total else 0.0

        multipliers: dict[ContentCategory, float] = {}
        for category in cfg.base_weights:
            aggregate = aggregates.get(category)
            if aggregate is None or aggregate.total_shown < cfg.min_category_samples or mean == 0:
                multipliers[category] = 1.0
                continue
            bonus = cfg.bonus_sensitivity * (aggregate.went_back_rate - mean) / mean
            multipliers[category] = min(cfg.multiplier_max, max(cfg.multiplier_min, 1.0 + bonus))
        return multipliers

    def weights_for(
        self,
        context: InterventionContext,
        intervention_kind: InterventionKind,
        catalog: ContentCatalog | None = None,
        aggregates: Mapping[ContentCategory, EffectivenessAggregate] | None = None,
    ) -> SelectionWeights:
        """
        Compute the weight table for a decision.

        Triggered categories are only added when the catalog (if given) has
        instances for them. The quote trigger consumes one draw of the RNG.
        """
        cfg = self.config
        mode = self.mode_for(aggregates)

        weights = {c: int(w) for c, w in cfg.base_weights.items()}
        if mode is SelectionMode.EFFECTIVENESS_WEIGHTED and aggregates:
            multipliers = self.effectiveness_multipliers(aggregates)
            weights = {
                c: max(1, round(w * multipliers[c])) if w > 0 else 0
                for c, w in weights.items()
            }

        base_total = sum(cfg.base_weights.values())
        if context.is_late_night:
            _rescale_override(weights, ContentCategory.BREATHING, cfg.late_night_breathing_weight, base_total)
        if context.quick_reopen_attempt:
            _rescale_override(weights, ContentCategory.REFLECTION, cfg.quick_reopen_reflection_weight, base_total)
        if context.is_extended_session:
            _rescale_override(
                weights, ContentCategory.TIME_ALTERNATIVE, cfg.extended_session_time_alternative_weight, base_total
            )

        def available(category: ContentCategory) -> bool:
            return catalog is None or bool(catalog.instances(category))

        if available(ContentCategory.EMOTIONAL_APPEAL) and (
            context.is_late_night
            or context.quick_reopen_attempt
            or context.is_extended_session
            or context.is_weekend_morning
            or context.is_high_frequency_day
        ):
            weights[ContentCategory.EMOTIONAL_APPEAL] = cfg.trigger_weight

        if available(ContentCategory.GAMIFICATION) and (
            context.streak_days >= cfg.gamification_streak_days
            or (context.best_session_ms is not None and context.current_session_ms < context.best_session_ms)
        ):
            weights[ContentCategory.GAMIFICATION] = cfg.trigger_weight

        if available(ContentCategory.ACTIVITY_SUGGESTION) and (
            intervention_kind == InterventionKind.TIMER or context.is_over_goal
        ):
            weights[ContentCategory.ACTIVITY_SUGGESTION] = cfg.trigger_weight

        if available(ContentCategory.QUOTE) and self.rng.random() < cfg.quote_probability:
            weights[ContentCategory.QUOTE] = cfg.quote_weight

        return SelectionWeights(mode=mode, weights=weights)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(
        self,
        context: InterventionContext,
        intervention_kind: InterventionKind,
        catalog: ContentCatalog,
        aggregates: Mapping[ContentCategory, EffectivenessAggregate] | None = None,
        recent_ids: Sequence[str] = (),
    ) -> ContentInstance:
        """
        Select the content to show.

        Args:
            context: Decision context
            intervention_kind: Reminder or timer
            catalog: Content pool
            aggregates: Per-category effectiveness (None or empty for cold start)
            recent_ids: Recently shown instance ids, oldest first

        Returns:
            Exactly one ContentInstance

        Raises:
            ConfigurationError: If a base-table category has no instances
        """
        catalog.validate(self.config.base_weights.keys())

        table = self.weights_for(context, intervention_kind, catalog, aggregates)
        category = self._draw_category(table, catalog)
        instance = self._draw_instance(category, context, catalog, recent_ids)

        logger.debug(
            "content_selected category=%s content_id=%s mode=%s",
            category.value,
            instance.id,
            table.mode.value,
        )
        return instance

    def _draw_category(self, table: SelectionWeights, catalog: ContentCatalog) -> ContentCategory:
        bands = [(c, w) for c, w in table.weights.items() if w > 0 and catalog.instances(c)]
        total = sum(w for _, w in bands)
        if total <= 0:
            raise ConfigurationError("No content category has a positive weight and available content")

        roll = self.rng.randrange(total)
        cumulative = 0
        for category, weight in bands:
            cumulative += weight
            if roll < cumulative:
                return category
        return bands[-1][0]

    def _draw_instance(
        self,
        category: ContentCategory,
        context: InterventionContext,
        catalog: ContentCatalog,
        recent_ids: Sequence[str],
    ) -> ContentInstance:
        pool = list(catalog.instances(category))
        recent_ids = list(recent_ids)
        previous = recent_ids[-1] if recent_ids else None

        # First narrowing that still offers something other than the previous id
        for fits in _context_filters(category, context):
            narrowed = [i for i in pool if fits(i.payload)]
            if any(i.id != previous for i in narrowed):
                pool = narrowed
                break

        if len(pool) == 1:
            return pool[0]

        window = self.config.recent_window
        recent = set(recent_ids[-window:]) if window > 0 else set()
        candidates = [i for i in pool if i.id not in recent]
        if not candidates:
            candidates = [i for i in pool if i.id != previous]
        return candidates[self.rng.randrange(len(candidates))]


__all__ = ["ContentSelector", "SelectionMode", "SelectionWeights"]
