"""
Tests for ContentSelector.

Tests cover:
- Cold-start base weights and context overrides (late night, quick reopen,
  extended session); overrides only ever raise a category
- Triggered categories (emotional appeal, gamification, activity, quote)
- Effectiveness-weighted mode: multipliers, clamping, sample guard
- Sampling distribution (late-night Breathing share over 10,000 draws)
- Variety: no immediate repeats, recent-window exclusion, fallbacks
- ActivitySuggestion narrowing by time of day
- Reflection themes and emotional-appeal triggers narrowed by context
- Missing required category -> ConfigurationError
"""

from __future__ import annotations

import random
from collections import Counter, deque

import pytest

from src.config.engine import EngineConfig
from src.core.content import (
    ActivitySuggestion,
    AlternativeKind,
    AppealTrigger,
    BreathingExercise,
    BreathingPattern,
    ContentInstance,
    ReflectionPrompt,
    ReflectionTheme,
    StatsFraming,
    TimeAlternative,
    UsageStats,
)
from src.core.types import BASE_CATEGORIES, ContentCategory, InterventionKind, TimeOfDay
from src.lib.exceptions import ConfigurationError
from src.services.catalog import ContentCatalog, default_catalog
from src.services.content_selector import ContentSelector, SelectionMode
from src.services.effectiveness import EffectivenessAggregate

R = ContentCategory.REFLECTION
T = ContentCategory.TIME_ALTERNATIVE
B = ContentCategory.BREATHING
U = ContentCategory.USAGE_STATS

NO_QUOTES = EngineConfig(quote_probability=0.0)


def _aggregate(category: ContentCategory, shown: int, went_back: int) -> EffectivenessAggregate:
    return EffectivenessAggregate(
        category=category,
        total_shown=shown,
        went_back_count=went_back,
        went_back_rate=went_back / shown if shown else 0.0,
        mean_decision_latency_ms=5000.0,
    )


def _minimal_catalog(**extra) -> ContentCatalog:
    """One instance per base category, plus optional extras."""
    instances = [
        ContentInstance("r-1", ReflectionPrompt("Why?", ReflectionTheme.PRIORITY_CHECK)),
        ContentInstance("t-1", TimeAlternative("Walk", "🚶", 10, AlternativeKind.PHYSICAL)),
        ContentInstance("b-1", BreathingExercise("Breathe", BreathingPattern.CALM, 30)),
        ContentInstance("u-1", UsageStats(StatsFraming.VS_GOAL, "Goal")),
    ]
    instances.extend(extra.get("instances", []))
    return ContentCatalog("test", instances)


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def selector(rng):
    return ContentSelector(NO_QUOTES, rng=rng)


# =============================================================================
# Weight table
# =============================================================================

class TestColdStartWeights:
    """Base table and context overrides."""

    def test_new_user_daytime_base_weights(self, selector, make_context, catalog):
        table = selector.weights_for(make_context(), InterventionKind.REMINDER, catalog)

        assert table.mode == SelectionMode.COLD_START
        assert table.weights == {R: 40, T: 30, B: 20, U: 10}

    def test_quick_reopen_sets_reflection_to_60(self, selector, make_context, catalog):
        ctx = make_context(ms_since_last_session_end=45_000, quick_reopen_attempt=True)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights

        assert weights[R] == 60
        assert sum(weights[c] for c in BASE_CATEGORIES) == 100
        assert weights[T] > weights[B] > weights[U]

    def test_late_night_sets_breathing_to_50(self, selector, make_context, catalog):
        ctx = make_context(is_late_night=True, hour=23, time_of_day=TimeOfDay.NIGHT)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights

        assert weights[B] == 50
        assert sum(weights[c] for c in BASE_CATEGORIES) == 100
        assert weights[R] == 25

    def test_extended_session_sets_time_alternative_to_50(self, selector, make_context, catalog):
        ctx = make_context(current_session_ms=20 * 60_000, is_extended_session=True)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights

        assert weights[T] == 50
        assert sum(weights[c] for c in BASE_CATEGORIES) == 100

    def test_overrides_apply_in_order(self, selector, make_context, catalog):
        ctx = make_context(
            is_late_night=True, hour=23, time_of_day=TimeOfDay.NIGHT,
            ms_since_last_session_end=30_000, quick_reopen_attempt=True,
        )
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights

        # Reflection override applied last keeps its exact value
        assert weights[R] == 60
        assert weights[B] > weights[T]
        assert sum(weights[c] for c in BASE_CATEGORIES) == 100


class TestTriggeredCategories:
    """Categories reachable only through trigger conditions."""

    def test_none_by_default(self, selector, make_context, catalog):
        weights = selector.weights_for(make_context(), InterventionKind.REMINDER, catalog).weights
        assert set(weights) == set(BASE_CATEGORIES)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"is_late_night": True, "hour": 23, "time_of_day": TimeOfDay.NIGHT},
            {"quick_reopen_attempt": True, "ms_since_last_session_end": 1000},
            {"is_extended_session": True, "current_session_ms": 16 * 60_000},
            {"is_weekend": True, "day_of_week": 6, "hour": 9, "time_of_day": TimeOfDay.MORNING},
            {"sessions_today": 12},
        ],
    )
    def test_emotional_appeal_triggers(self, selector, make_context, catalog, overrides):
        weights = selector.weights_for(make_context(**overrides), InterventionKind.REMINDER, catalog).weights
        assert weights[ContentCategory.EMOTIONAL_APPEAL] == 10

    def test_gamification_on_streak(self, selector, make_context, catalog):
        weights = selector.weights_for(make_context(streak_days=7), InterventionKind.REMINDER, catalog).weights
        assert weights[ContentCategory.GAMIFICATION] == 10

    def test_gamification_on_record_chance(self, selector, make_context, catalog):
        ctx = make_context(best_session_ms=10 * 60_000, current_session_ms=2 * 60_000)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights
        assert weights[ContentCategory.GAMIFICATION] == 10

    def test_activity_for_timer(self, selector, make_context, catalog):
        weights = selector.weights_for(make_context(), InterventionKind.TIMER, catalog).weights
        assert weights[ContentCategory.ACTIVITY_SUGGESTION] == 10

    def test_activity_when_over_goal(self, selector, make_context, catalog):
        ctx = make_context(daily_goal_minutes=30, total_usage_today_ms=45 * 60_000)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights
        assert weights[ContentCategory.ACTIVITY_SUGGESTION] == 10

    def test_quote_roll(self, make_context, catalog, rng):
        selector = ContentSelector(EngineConfig(quote_probability=1.0), rng=rng)
        weights = selector.weights_for(make_context(), InterventionKind.REMINDER, catalog).weights
        assert weights[ContentCategory.QUOTE] == 5

    def test_triggers_skipped_without_content(self, selector, make_context):
        ctx = make_context(is_late_night=True, hour=23, time_of_day=TimeOfDay.NIGHT, streak_days=30)
        weights = selector.weights_for(ctx, InterventionKind.TIMER, _minimal_catalog()).weights
        assert set(weights) == set(BASE_CATEGORIES)


class TestEffectivenessWeights:
    """Effectiveness-weighted mode."""

    def test_below_threshold_stays_cold_start(self, selector):
        aggregates = {R: _aggregate(R, 30, 30), T: _aggregate(T, 19, 0)}
        assert selector.mode_for(aggregates) == SelectionMode.COLD_START

    def test_threshold_switches_mode(self, selector):
        aggregates = {R: _aggregate(R, 30, 30), T: _aggregate(T, 20, 0)}
        assert selector.mode_for(aggregates) == SelectionMode.EFFECTIVENESS_WEIGHTED

    def test_empty_aggregates_are_cold_start(self, selector):
        assert selector.mode_for(None) == SelectionMode.COLD_START
        assert selector.mode_for({}) == SelectionMode.COLD_START

    def test_multipliers_and_clamp(self, selector, make_context, catalog):
        aggregates = {
            R: _aggregate(R, 20, 20),  # rate 1.0, mean 0.5 -> x2.0
            T: _aggregate(T, 20, 0),   # rate 0.0 -> clamped to x0.5
            B: _aggregate(B, 10, 5),   # at the mean -> x1.0
            U: _aggregate(U, 10, 5),
        }
        table = selector.weights_for(make_context(), InterventionKind.REMINDER, catalog, aggregates)

        assert table.mode == SelectionMode.EFFECTIVENESS_WEIGHTED
        assert table.weights == {R: 80, T: 15, B: 20, U: 10}

    def test_small_categories_keep_multiplier_one(self, selector):
        aggregates = {
            R: _aggregate(R, 50, 10),
            U: _aggregate(U, 4, 4),
        }
        multipliers = selector.effectiveness_multipliers(aggregates)
        assert multipliers[U] == 1.0
        assert multipliers[B] == 1.0

    def test_no_went_back_at_all_is_neutral(self, selector):
        aggregates = {R: _aggregate(R, 40, 0), T: _aggregate(T, 40, 0)}
        assert set(selector.effectiveness_multipliers(aggregates).values()) == {1.0}

    def test_overrides_never_lower_a_weighted_category(self, selector, make_context, catalog):
        aggregates = {R: _aggregate(R, 30, 30), T: _aggregate(T, 30, 0)}
        plain = selector.weights_for(make_context(), InterventionKind.REMINDER, catalog, aggregates).weights
        ctx = make_context(quick_reopen_attempt=True, ms_since_last_session_end=10_000)
        reopen = selector.weights_for(ctx, InterventionKind.REMINDER, catalog, aggregates).weights

        assert plain[R] == 80
        assert reopen[R] >= plain[R]
        assert {c: reopen[c] for c in BASE_CATEGORIES} == {c: plain[c] for c in BASE_CATEGORIES}

    def test_override_scales_with_weighted_total(self, selector, make_context, catalog):
        aggregates = {R: _aggregate(R, 30, 0), T: _aggregate(T, 30, 30)}
        ctx = make_context(quick_reopen_attempt=True, ms_since_last_session_end=10_000)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog, aggregates).weights

        # R x0.5 -> 20, T x2.0 -> 60; table total 110, so 60 of 100 becomes 66
        assert weights[R] == 66
        assert sum(weights[c] for c in BASE_CATEGORIES) == 110

    def test_small_base_table_keeps_other_categories(self, make_context, catalog, rng):
        cfg = EngineConfig(
            base_weights={R: 4, T: 3, B: 2, U: 1},
            late_night_breathing_weight=5,
            quick_reopen_reflection_weight=6,
            extended_session_time_alternative_weight=5,
            quote_probability=0.0,
        ).validate()
        selector = ContentSelector(cfg, rng=rng)
        ctx = make_context(quick_reopen_attempt=True, ms_since_last_session_end=10_000)
        weights = selector.weights_for(ctx, InterventionKind.REMINDER, catalog).weights

        assert weights[R] == 6
        assert sum(weights[c] for c in BASE_CATEGORIES) == 10
        assert weights[T] > 0


# =============================================================================
# Sampling
# =============================================================================

class TestDistribution:
    """Statistical behaviour over many draws."""

    def _breathing_share(self, selector, ctx, catalog, draws=10_000) -> float:
        counts = Counter(
            selector.select(ctx, InterventionKind.REMINDER, catalog).category for _ in range(draws)
        )
        return counts[B] / draws

    def test_late_night_breathing_share(self, make_context, catalog):
        selector = ContentSelector(EngineConfig(), rng=random.Random(7))
        night = make_context(is_late_night=True, hour=23, time_of_day=TimeOfDay.NIGHT)
        day = make_context()

        night_share = self._breathing_share(selector, night, catalog)
        day_share = self._breathing_share(selector, day, catalog)

        assert night_share >= 0.35
        assert night_share > day_share + 0.15

    def test_seeded_selection_is_reproducible(self, make_context, catalog):
        first = ContentSelector(EngineConfig(), rng=random.Random(99))
        second = ContentSelector(EngineConfig(), rng=random.Random(99))
        ctx = make_context()
        assert [first.select(ctx, InterventionKind.REMINDER, catalog).id for _ in range(50)] == [
            second.select(ctx, InterventionKind.REMINDER, catalog).id for _ in range(50)
        ]

    def test_zero_weight_category_never_selected(self, make_context, catalog, rng):
        cfg = EngineConfig(base_weights={R: 0, T: 50, B: 50, U: 0}, quote_probability=0.0)
        selector = ContentSelector(cfg, rng=rng)
        seen = {selector.select(make_context(), InterventionKind.REMINDER, catalog).category for _ in range(300)}
        assert seen == {T, B}

    def test_never_selects_category_without_content(self, selector, make_context):
        ctx = make_context(is_late_night=True, hour=23, time_of_day=TimeOfDay.NIGHT, streak_days=10)
        catalog = _minimal_catalog()
        seen = {selector.select(ctx, InterventionKind.TIMER, catalog).category for _ in range(300)}
        assert seen <= set(BASE_CATEGORIES)


class TestVariety:
    """Repeat avoidance within a category."""

    def test_no_consecutive_repeats(self, make_context, catalog):
        selector = ContentSelector(EngineConfig(), rng=random.Random(3))
        history: deque[str] = deque(maxlen=3)
        previous = None
        for i in range(1000):
            ctx = make_context(is_late_night=(i % 2 == 0), hour=23 if i % 2 == 0 else 14,
                               time_of_day=TimeOfDay.NIGHT if i % 2 == 0 else TimeOfDay.MIDDAY)
            instance = selector.select(ctx, InterventionKind.TIMER, catalog, recent_ids=tuple(history))
            assert instance.id != previous
            previous = instance.id
            history.append(instance.id)

    def test_recent_window_excluded(self, make_context, catalog, rng):
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 100, U: 0}, quote_probability=0.0)
        selector = ContentSelector(cfg, rng=rng)
        pool = [i.id for i in catalog.instances(B)]
        assert len(pool) == 4

        for _ in range(20):
            instance = selector.select(make_context(), InterventionKind.REMINDER, catalog, recent_ids=pool[:3])
            assert instance.id == pool[3]

    def test_all_recent_falls_back_to_not_previous(self, make_context, rng):
        extra = ContentInstance("b-2", BreathingExercise("Box", BreathingPattern.BOX, 64))
        catalog = _minimal_catalog(instances=[extra])
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 100, U: 0}, quote_probability=0.0)
        selector = ContentSelector(cfg, rng=rng)

        for _ in range(20):
            instance = selector.select(make_context(), InterventionKind.REMINDER, catalog, recent_ids=["b-1", "b-2"])
            assert instance.id == "b-1"

    def test_single_instance_pool_may_repeat(self, make_context, rng):
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 100, U: 0}, quote_probability=0.0)
        selector = ContentSelector(cfg, rng=rng)
        instance = selector.select(make_context(), InterventionKind.REMINDER, _minimal_catalog(), recent_ids=["b-1"])
        assert instance.id == "b-1"


class TestActivityNarrowing:
    """ActivitySuggestion pools follow the time-of-day bucket."""

    def _activity_only(self, rng) -> ContentSelector:
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 0, U: 0}, quote_probability=0.0)
        return ContentSelector(cfg, rng=rng)

    def test_matches_time_of_day(self, make_context, catalog, rng):
        selector = self._activity_only(rng)
        ctx = make_context(hour=17, time_of_day=TimeOfDay.EVENING)
        for _ in range(30):
            instance = selector.select(ctx, InterventionKind.TIMER, catalog)
            assert instance.category == ContentCategory.ACTIVITY_SUGGESTION
            assert instance.payload.time_of_day == TimeOfDay.EVENING

    def test_falls_back_to_full_pool(self, make_context, rng):
        morning_only = ContentInstance("a-1", ActivitySuggestion("Sunlight", "☀️", TimeOfDay.MORNING))
        catalog = _minimal_catalog(instances=[morning_only])
        selector = self._activity_only(rng)
        ctx = make_context(hour=21, time_of_day=TimeOfDay.NIGHT)
        assert selector.select(ctx, InterventionKind.TIMER, catalog).id == "a-1"


class TestContextThemes:
    """Reflection themes and appeal triggers follow the context."""

    DAYTIME = {"hour": 14, "time_of_day": TimeOfDay.MIDDAY}
    LATE_NIGHT = {"is_late_night": True, "hour": 23, "time_of_day": TimeOfDay.NIGHT}
    QUICK_REOPEN = {"quick_reopen_attempt": True, "ms_since_last_session_end": 20_000}

    def _reflection_only(self, rng) -> ContentSelector:
        cfg = EngineConfig(
            base_weights={R: 100, T: 0, B: 0, U: 0},
            late_night_breathing_weight=0,
            quick_reopen_reflection_weight=0,
            extended_session_time_alternative_weight=0,
            quote_probability=0.0,
        )
        return ContentSelector(cfg, rng=rng)

    def _appeal_only(self, rng) -> ContentSelector:
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 0, U: 0}, quote_probability=0.0)
        return ContentSelector(cfg, rng=rng)

    def _reflections(self, selector, ctx, catalog, draws=200) -> list[ContentInstance]:
        history: deque[str] = deque(maxlen=3)
        shown = []
        for _ in range(draws):
            instance = selector.select(ctx, InterventionKind.REMINDER, catalog, recent_ids=tuple(history))
            history.append(instance.id)
            if instance.category == R:
                shown.append(instance)
        return shown

    @pytest.mark.parametrize("sessions_today", [1, 3, 8])
    def test_daytime_never_shows_situational_themes(self, make_context, catalog, rng, sessions_today):
        selector = self._reflection_only(rng)
        ctx = make_context(sessions_today=sessions_today, **self.DAYTIME)
        themes = {i.payload.theme for i in self._reflections(selector, ctx, catalog)}

        assert themes
        assert ReflectionTheme.LATE_NIGHT not in themes
        assert ReflectionTheme.QUICK_REOPEN not in themes

    @pytest.mark.parametrize(
        ("sessions_today", "expected"),
        [
            (1, {ReflectionTheme.TRIGGER_AWARENESS}),
            (8, {ReflectionTheme.PATTERN_RECOGNITION}),
            (3, {ReflectionTheme.PRIORITY_CHECK, ReflectionTheme.EMOTIONAL_AWARENESS}),
        ],
    )
    def test_daytime_theme_by_session_count(self, make_context, catalog, rng, sessions_today, expected):
        selector = self._reflection_only(rng)
        ctx = make_context(sessions_today=sessions_today)
        themes = {i.payload.theme for i in self._reflections(selector, ctx, catalog, draws=50)}
        assert themes == expected

    def test_late_night_prompt(self, make_context, catalog, rng):
        selector = self._reflection_only(rng)
        ctx = make_context(**self.LATE_NIGHT)
        for _ in range(30):
            instance = selector.select(ctx, InterventionKind.REMINDER, catalog)
            if instance.category == R:
                assert instance.payload.theme == ReflectionTheme.LATE_NIGHT

    def test_quick_reopen_prompt(self, make_context, catalog, rng):
        selector = self._reflection_only(rng)
        ctx = make_context(**self.QUICK_REOPEN)
        for _ in range(30):
            instance = selector.select(ctx, InterventionKind.REMINDER, catalog)
            if instance.category == R:
                assert instance.payload.theme == ReflectionTheme.QUICK_REOPEN

    def test_repeat_falls_back_to_fitting_themes(self, make_context, catalog, rng):
        selector = self._reflection_only(rng)
        ctx = make_context(**self.LATE_NIGHT)
        late_night_id = next(
            i.id for i in catalog.instances(R) if i.payload.theme == ReflectionTheme.LATE_NIGHT
        )
        for _ in range(30):
            instance = selector.select(ctx, InterventionKind.REMINDER, catalog, recent_ids=[late_night_id])
            assert instance.id != late_night_id
            if instance.category == R:
                assert instance.payload.theme != ReflectionTheme.QUICK_REOPEN

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({"is_late_night": True, "hour": 23, "time_of_day": TimeOfDay.NIGHT}, AppealTrigger.LATE_NIGHT),
            (
                {"is_weekend": True, "day_of_week": 6, "hour": 9, "time_of_day": TimeOfDay.MORNING},
                AppealTrigger.WEEKEND_MORNING,
            ),
            ({"quick_reopen_attempt": True, "ms_since_last_session_end": 1000}, AppealTrigger.RAPID_REOPEN),
            ({"is_extended_session": True, "current_session_ms": 16 * 60_000}, AppealTrigger.EXTENDED_SESSION),
            ({"sessions_today": 12}, AppealTrigger.HIGH_FREQUENCY_DAY),
        ],
    )
    def test_appeal_matches_trigger(self, make_context, catalog, rng, overrides, expected):
        selector = self._appeal_only(rng)
        ctx = make_context(**overrides)
        for _ in range(20):
            instance = selector.select(ctx, InterventionKind.REMINDER, catalog)
            assert instance.category == ContentCategory.EMOTIONAL_APPEAL
            assert instance.payload.trigger == expected

    def test_appeal_repeat_falls_back_to_other_active_trigger(self, make_context, catalog, rng):
        selector = self._appeal_only(rng)
        ctx = make_context(
            quick_reopen_attempt=True, ms_since_last_session_end=1000,
            is_extended_session=True, current_session_ms=16 * 60_000,
        )
        rapid_id = next(
            i.id for i in catalog.instances(ContentCategory.EMOTIONAL_APPEAL)
            if i.payload.trigger == AppealTrigger.RAPID_REOPEN
        )
        instance = selector.select(ctx, InterventionKind.REMINDER, catalog, recent_ids=[rapid_id])
        assert instance.payload.trigger == AppealTrigger.EXTENDED_SESSION


class TestConfigurationErrors:
    """A required category without content is fatal."""

    def test_missing_base_category(self, selector, make_context):
        catalog = ContentCatalog("broken", [ContentInstance("r-1", ReflectionPrompt("?", ReflectionTheme.PRIORITY_CHECK))])
        with pytest.raises(ConfigurationError, match="breathing"):
            selector.select(make_context(), InterventionKind.REMINDER, catalog)

    def test_no_positive_weight(self, make_context, rng):
        cfg = EngineConfig(base_weights={R: 0, T: 0, B: 0, U: 0}, quote_probability=0.0)
        selector = ContentSelector(cfg, rng=rng)
        with pytest.raises(ConfigurationError):
            selector.select(make_context(), InterventionKind.REMINDER, _minimal_catalog())
