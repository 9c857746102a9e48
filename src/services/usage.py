"""
Usage History Provider contract for Threshold.

The engine never tracks usage itself; it reads it through a provider. The
production provider sits on top of the platform's usage tracker. UsageSnapshot
is a static provider used by tests and by the HTTP adapter, where the client
sends its usage signals with every decision request.

Any provider method may raise (UpstreamDataUnavailable or otherwise); the
ContextBuilder guards every call and substitutes defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol, runtime_checkable

from src.core.types import FrictionTier


@runtime_checkable
class UsageHistoryProvider(Protocol):
    """Read-only view of a user's usage history for one device."""

    def usage_today_ms(self, target_app: str) -> int: ...

    def usage_yesterday_ms(self, target_app: str) -> int: ...

    def weekly_average_ms(self, target_app: str) -> int: ...

    def sessions_today(self, target_app: str) -> int: ...

    def last_session_end(self, target_app: str) -> datetime | None:
        """End time of the previous session, None if there was none."""
        ...

    def current_session_ms(self, target_app: str, session_id: str) -> int: ...

    def daily_goal_minutes(self, target_app: str) -> int | None: ...

    def streak_days(self, target_app: str) -> int: ...

    def install_date(self) -> date | None: ...

    def best_session_ms(self, target_app: str) -> int | None: ...

    def friction_override(self) -> FrictionTier | None:
        """Tier the user opted into manually, None when unset."""
        ...

    def baseline_daily_usage_ms(self, target_app: str) -> int | None:
        """Average daily usage measured over the first week, None if unknown."""
        ...


@dataclass(frozen=True)
class UsageSnapshot:
    """Static UsageHistoryProvider answering the same values for every app."""

    usage_today: int = 0
    usage_yesterday: int = 0
    weekly_average: int = 0
    session_count_today: int = 0
    last_end: datetime | None = None
    current_session: int = 0
    goal_minutes: int | None = None
    streak: int = 0
    installed_on: date | None = None
    best_session: int | None = None
    override: FrictionTier | None = None
    baseline_daily_usage: int | None = None

    @classmethod
    def from_relative(
        cls,
        now: datetime,
        *,
        days_since_install: int | None = None,
        ms_since_last_session_end: int | None = None,
        **values,
    ) -> UsageSnapshot:
        """
        Build a snapshot from values expressed relative to `now`.

        Args:
            now: Reference time (the engine clock)
            days_since_install: Tenure in days, None if unknown
            ms_since_last_session_end: Gap since the previous session ended
            **values: Remaining UsageSnapshot fields
        """
        installed_on = None if days_since_install is None else (now - timedelta(days=days_since_install)).date()
        last_end = None if ms_since_last_session_end is None else now - timedelta(milliseconds=ms_since_last_session_end)
        return cls(installed_on=installed_on, last_end=last_end, **values)

    def usage_today_ms(self, target_app: str) -> int:
        return self.usage_today

    def usage_yesterday_ms(self, target_app: str) -> int:
        return self.usage_yesterday

    def weekly_average_ms(self, target_app: str) -> int:
        return self.weekly_average

    def sessions_today(self, target_app: str) -> int:
        return self.session_count_today

    def last_session_end(self, target_app: str) -> datetime | None:
        return self.last_end

    def current_session_ms(self, target_app: str, session_id: str) -> int:
        return self.current_session

    def daily_goal_minutes(self, target_app: str) -> int | None:
        return self.goal_minutes

    def streak_days(self, target_app: str) -> int:
        return self.streak

    def install_date(self) -> date | None:
        return self.installed_on

    def best_session_ms(self, target_app: str) -> int | None:
        return self.best_session

    def friction_override(self) -> FrictionTier | None:
        return self.override

    def baseline_daily_usage_ms(self, target_app: str) -> int | None:
        return self.baseline_daily_usage


__all__ = ["UsageHistoryProvider", "UsageSnapshot"]
