"""
Progressive Friction classification for Threshold.

Friction escalates with tenure so that a new user meets a gentle nudge and an
established user who keeps dismissing interventions meets a pause with a
mandatory breathing step. Classification is a pure function of its inputs and
is recomputed on every decision; there is no stored friction state to drift.

Rules, first match wins:
1. A manual override is returned as-is (the only way to reach LOCKED)
2. Fewer than 14 days since install -> GENTLE
3. Mean latency of the latest 30 decisions under 2 s -> FIRM
4. 28+ days since install and usage down less than 10% from baseline -> FIRM
5. Otherwise -> MODERATE
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from src.config.engine import EngineConfig
from src.core.types import FrictionTier


@dataclass(frozen=True)
class FrictionInputs:
    """
    Everything the friction rules look at.

    Attributes:
        override: Tier the user opted into, None when unset
        days_since_install: User tenure in days
        recent_latencies_ms: Decision latencies, newest first
        weekly_average_ms: Current average daily usage of the target app
        baseline_daily_usage_ms: Early-use daily average, None if unknown
    """
    override: FrictionTier | None
    days_since_install: int
    recent_latencies_ms: Sequence[int] = ()
    weekly_average_ms: int = 0
    baseline_daily_usage_ms: int | None = None


def usage_reduction(inputs: FrictionInputs) -> float | None:
    """Fractional drop of current usage against the baseline, None without one."""
    baseline = inputs.baseline_daily_usage_ms
    if not baseline:
        return None
    return (baseline - inputs.weekly_average_ms) / baseline


def classify_friction(inputs: FrictionInputs, config: EngineConfig | None = None) -> FrictionTier:
    """
    Classify the effective friction tier.

    Args:
        inputs: Current friction inputs
        config: Thresholds (defaults used when None)

    Returns:
        The effective FrictionTier
    """
    cfg = config or EngineConfig()

    if inputs.override is not None:
        return inputs.override

    if inputs.days_since_install < cfg.gentle_days:
        return FrictionTier.GENTLE

    latencies = list(inputs.recent_latencies_ms)[: cfg.latency_window]
    if len(latencies) >= cfg.min_latency_samples and latencies:
        mean_latency = sum(latencies) / len(latencies)
        if mean_latency < cfg.fast_latency_ms:
            return FrictionTier.FIRM

    if inputs.days_since_install >= cfg.improvement_days:
        reduction = usage_reduction(inputs)
        if reduction is not None and reduction < cfg.min_usage_reduction:
            return FrictionTier.FIRM

    return FrictionTier.MODERATE
