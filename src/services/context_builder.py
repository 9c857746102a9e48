"""
Context Builder for Threshold.

Derives the InterventionContext for a decision from the usage-history
provider and the engine clock. The builder fails soft: every provider call is
guarded, and a failing call degrades to zero/None so that a decision can
always be produced (first launch, tracker outage, permissions revoked).

Derived locally:
- time-of-day bucket, late-night window, weekend flag
- quick reopen (previous session ended under 2 minutes ago)
- extended session (current session over 15 minutes)
- effective friction tier (via classify_friction)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import TypeVar

from src.config.engine import EngineConfig
from src.core.context import InterventionContext
from src.core.types import FrictionTier, TimeOfDay
from src.lib.errors import UPSTREAM_DATA_UNAVAILABLE
from src.services.friction import FrictionInputs, classify_friction
from src.services.usage import UsageHistoryProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]
LatencySource = Callable[[int], Sequence[int]]


def local_now() -> datetime:
    """Default clock: aware local time."""
    return datetime.now().astimezone()


class ContextBuilder:
    """
    Builds InterventionContext instances.

    Usage:
        builder = ContextBuilder(provider, latency_source=tracker.recent_latencies)
        context = builder.build_context("com.example.feed", session_id="s-1")
    """

    def __init__(
        self,
        provider: UsageHistoryProvider,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        latency_source: LatencySource | None = None,
    ) -> None:
        """
        Args:
            provider: Default usage-history provider
            config: Engine configuration
            clock: Returns the current local time
            latency_source: Returns the newest N decision latencies
        """
        self.provider = provider
        self.config = config or EngineConfig()
        self.clock = clock or local_now
        self.latency_source = latency_source

    def build_context(
        self,
        target_app: str,
        session_id: str,
        provider: UsageHistoryProvider | None = None,
    ) -> InterventionContext:
        """
        Build the context for one decision.

        Args:
            target_app: Tracked application identifier
            session_id: Current session id
            provider: Per-call provider override

        Returns:
            A fully populated InterventionContext
        """
        source = provider or self.provider
        cfg = self.config
        now = self.clock()

        def read(name: str, call: Callable[[], T], default: T) -> T:
            return self._guarded(target_app, name, call, default)

        usage_today = read("usage_today_ms", lambda: source.usage_today_ms(target_app), 0)
        usage_yesterday = read("usage_yesterday_ms", lambda: source.usage_yesterday_ms(target_app), 0)
        weekly_average = read("weekly_average_ms", lambda: source.weekly_average_ms(target_app), 0)
        sessions_today = read("sessions_today", lambda: source.sessions_today(target_app), 0)
        current_session = read(
            "current_session_ms", lambda: source.current_session_ms(target_app, session_id), 0
        )
        goal = read("daily_goal_minutes", lambda: source.daily_goal_minutes(target_app), None)
        streak = read("streak_days", lambda: source.streak_days(target_app), 0)
        best_session = read("best_session_ms", lambda: source.best_session_ms(target_app), None)
        override = read("friction_override", lambda: _parse_tier(source.friction_override()), None)
        baseline = read("baseline_daily_usage_ms", lambda: source.baseline_daily_usage_ms(target_app), None)

        ms_since_last_end = read(
            "last_session_end", lambda: _ms_between(source.last_session_end(target_app), now), None
        )
        days_since_install = read("install_date", lambda: _days_since(source.install_date(), now), 0)

        latencies: Sequence[int] = ()
        if self.latency_source is not None:
            latencies = read("recent_latencies", lambda: self.latency_source(cfg.latency_window), ())

        friction = classify_friction(
            FrictionInputs(
                override=override,
                days_since_install=days_since_install,
                recent_latencies_ms=latencies,
                weekly_average_ms=max(0, weekly_average),
                baseline_daily_usage_ms=baseline,
            ),
            cfg,
        )

        hour = now.hour
        day_of_week = now.isoweekday()

        return InterventionContext(
            target_app=target_app,
            time_of_day=TimeOfDay.from_hour(hour),
            hour=hour,
            day_of_week=day_of_week,
            is_weekend=day_of_week >= 6,
            is_late_night=cfg.is_late_night(hour),
            current_session_ms=max(0, current_session),
            sessions_today=max(0, sessions_today),
            ms_since_last_session_end=ms_since_last_end,
            quick_reopen_attempt=ms_since_last_end is not None and ms_since_last_end < cfg.quick_reopen_ms,
            is_extended_session=current_session > cfg.extended_session_ms,
            total_usage_today_ms=max(0, usage_today),
            total_usage_yesterday_ms=max(0, usage_yesterday),
            weekly_average_ms=max(0, weekly_average),
            daily_goal_minutes=goal if goal is None or goal >= 0 else None,
            streak_days=max(0, streak),
            days_since_install=days_since_install,
            best_session_ms=best_session if best_session is None or best_session >= 0 else None,
            friction_tier=friction,
        )

    def _guarded(self, target_app: str, name: str, call: Callable[[], T], default: T) -> T:
        try:
            return call()
        except Exception as e:
            logger.warning(
                "usage_provider_call_failed code=%s call=%s target_app=%s error=%s",
                UPSTREAM_DATA_UNAVAILABLE,
                name,
                target_app,
                type(e).__name__,
            )
            return default


def _ms_between(earlier: datetime | None, now: datetime) -> int | None:
    """Milliseconds from `earlier` to `now`, clamped at 0; None if unknown."""
    if earlier is None:
        return None
    if (earlier.tzinfo is None) != (now.tzinfo is None):
        earlier = earlier.replace(tzinfo=now.tzinfo)
    delta_ms = int((now - earlier).total_seconds() * 1000)
    return max(0, delta_ms)


def _days_since(installed_on: date | datetime | None, now: datetime) -> int:
    """Whole days from the install date to `now`, clamped at 0; 0 if unknown."""
    if installed_on is None:
        return 0
    if isinstance(installed_on, datetime):
        installed_on = installed_on.date()
    return max(0, (now.date() - installed_on).days)


def _parse_tier(value: FrictionTier | str | int | None) -> FrictionTier | None:
    return None if value is None else FrictionTier.parse(value)
