"""
Engine Configuration for Threshold.

Every tuning constant of the intervention engine lives here: selection
weights, context overrides, trigger weights, effectiveness re-weighting,
friction thresholds and underperformance reporting.

Defaults reproduce the production behaviour. Deployments can override any
scalar through THRESHOLD_* environment variables, e.g.:

    THRESHOLD_COLD_START_THRESHOLD=100
    THRESHOLD_QUOTE_PROBABILITY=0.02
    THRESHOLD_BASE_WEIGHTS=reflection=40,time_alternative=30,breathing=20,usage_stats=10
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from src.core.types import BASE_CATEGORIES, ContentCategory
from src.lib.exceptions import ConfigurationError

ENV_PREFIX = "THRESHOLD_"

DEFAULT_BASE_WEIGHTS: dict[ContentCategory, int] = {
    ContentCategory.REFLECTION: 40,
    ContentCategory.TIME_ALTERNATIVE: 30,
    ContentCategory.BREATHING: 20,
    ContentCategory.USAGE_STATS: 10,
}


@dataclass(frozen=True)
class EngineConfig:
    """Tuning constants for selection, friction and effectiveness tracking."""

    # Cold-start base table
    base_weights: Mapping[ContentCategory, int] = field(default_factory=lambda: dict(DEFAULT_BASE_WEIGHTS))

    # Context overrides (applied in this order)
    late_night_breathing_weight: int = 50
    quick_reopen_reflection_weight: int = 60
    extended_session_time_alternative_weight: int = 50

    # Triggered categories
    trigger_weight: int = 10
    quote_weight: int = 5
    quote_probability: float = 0.05
    gamification_streak_days: int = 7

    # Effectiveness-weighted mode
    cold_start_threshold: int = 50
    multiplier_min: float = 0.5
    multiplier_max: float = 2.0
    bonus_sensitivity: float = 1.0
    min_category_samples: int = 5
    selection_window_days: int | None = None

    # Variety
    recent_window: int = 3

    # Context derivation
    night_start_hour: int = 22
    night_end_hour: int = 5
    quick_reopen_ms: int = 120_000
    extended_session_ms: int = 15 * 60_000

    # Friction
    gentle_days: int = 14
    improvement_days: int = 28
    fast_latency_ms: int = 2000
    latency_window: int = 30
    min_latency_samples: int = 5
    min_usage_reduction: float = 0.10

    # Underperformance reporting
    underperforming_floor: float = 0.25
    underperforming_min_samples: int = 20

    def validate(self) -> EngineConfig:
        """
        Check the configuration for inconsistent values.

        Returns:
            self, so construction and validation can be chained

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems: list[str] = []

        missing = [c.value for c in BASE_CATEGORIES if c not in self.base_weights]
        if missing:
            problems.append(f"base_weights missing categories: {', '.join(missing)}")
        if any(w < 0 for w in self.base_weights.values()):
            problems.append("base_weights must be non-negative")
        base_total = sum(self.base_weights.values())
        if base_total <= 0:
            problems.append("base_weights must sum to a positive total")
        # An override at or above the base total would squeeze out every other category
        for name in (
            "late_night_breathing_weight",
            "quick_reopen_reflection_weight",
            "extended_session_time_alternative_weight",
        ):
            if base_total > 0 and getattr(self, name) >= base_total:
                problems.append(f"{name} must be below the base weight total ({base_total})")

        for name in (
            "late_night_breathing_weight",
            "quick_reopen_reflection_weight",
            "extended_session_time_alternative_weight",
            "trigger_weight",
            "quote_weight",
            "cold_start_threshold",
            "min_category_samples",
            "recent_window",
            "gentle_days",
            "fast_latency_ms",
            "latency_window",
            "min_latency_samples",
            "underperforming_min_samples",
        ):
            if getattr(self, name) < 0:
                problems.append(f"{name} must be >= 0")

        if not 0.0 <= self.quote_probability <= 1.0:
            problems.append("quote_probability must be within [0, 1]")
        if not 0.0 <= self.underperforming_floor <= 1.0:
            problems.append("underperforming_floor must be within [0, 1]")
        if not 0.0 <= self.min_usage_reduction <= 1.0:
            problems.append("min_usage_reduction must be within [0, 1]")
        if not 0.0 < self.multiplier_min <= 1.0 <= self.multiplier_max:
            problems.append("multiplier bounds must satisfy 0 < min <= 1 <= max")
        if self.bonus_sensitivity < 0:
            problems.append("bonus_sensitivity must be >= 0")
        if self.improvement_days < self.gentle_days:
            problems.append("improvement_days must be >= gentle_days")
        for name in ("night_start_hour", "night_end_hour"):
            if not 0 <= getattr(self, name) <= 23:
                problems.append(f"{name} must be within 0..23")
        if self.quick_reopen_ms <= 0 or self.extended_session_ms <= 0:
            problems.append("quick_reopen_ms and extended_session_ms must be positive")
        if self.selection_window_days is not None and self.selection_window_days <= 0:
            problems.append("selection_window_days must be positive when set")

        if problems:
            raise ConfigurationError("Invalid engine configuration: " + "; ".join(problems))
        return self

    def is_late_night(self, hour: int) -> bool:
        """Night window wraps midnight: start <= hour or hour <= end."""
        if self.night_start_hour <= self.night_end_hour:
            return self.night_start_hour <= hour <= self.night_end_hour
        return hour >= self.night_start_hour or hour <= self.night_end_hour

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """
        Build a validated config from THRESHOLD_* environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: On unparseable or inconsistent values
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: dict[str, Any] = {}

        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                if f.name == "base_weights":
                    overrides[f.name] = _parse_weights(raw)
                elif f.name == "selection_window_days":
                    overrides[f.name] = None if raw.strip().lower() == "none" else int(raw)
                elif isinstance(getattr(defaults, f.name), float):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = int(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e

        return replace(defaults, **overrides).validate()


def _parse_weights(raw: str) -> dict[ContentCategory, int]:
    """Parse 'reflection=40,breathing=20' into a weight table."""
    weights: dict[ContentCategory, int] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        name, _, value = part.partition("=")
        weights[ContentCategory(name.strip().lower())] = int(value)
    return weights


__all__ = ["EngineConfig", "DEFAULT_BASE_WEIGHTS", "ENV_PREFIX"]
