"""
Effectiveness Tracker for Threshold.

Closes the feedback loop of the engine:
- Record every shown intervention and the user's choice (append-only)
- Patch the record once the session ends (final duration, ended normally)
- Aggregate went-back rates per content category on demand
- Flag underperforming categories
- Produce an effectiveness report (per category, time window, and app)

Aggregates are a pure projection of the outcome log and are never stored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from src.config.engine import EngineConfig
from src.core.outcome import InterventionOutcome
from src.core.types import ContentCategory
from src.lib.errors import PATCH_TARGET_NOT_FOUND
from src.lib.exceptions import OutcomeWriteFailure, PatchTargetNotFound, ValidationError
from src.services.outcome_store import OutcomeStore

logger = logging.getLogger(__name__)


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class EffectivenessAggregate:
    """
    Went-back statistics for one content category.

    Attributes:
        category: Content category
        total_shown: Outcomes recorded for the category
        went_back_count: Outcomes where the user went back
        went_back_rate: went_back_count / total_shown
        mean_decision_latency_ms: Average time to decide
        mean_post_proceed_session_ms: Average final session length after proceeding
            (None until a proceeded outcome has been patched)
    """

    category: ContentCategory
    total_shown: int
    went_back_count: int
    went_back_rate: float
    mean_decision_latency_ms: float
    mean_post_proceed_session_ms: float | None = None

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "total_shown": self.total_shown,
            "went_back_count": self.went_back_count,
            "went_back_rate": self.went_back_rate,
            "mean_decision_latency_ms": self.mean_decision_latency_ms,
            "mean_post_proceed_session_ms": self.mean_post_proceed_session_ms,
        }


@dataclass(frozen=True)
class BreakdownStats:
    """Went-back statistics for an arbitrary grouping (time window, app)."""

    label: str
    total: int
    went_back_count: int

    @property
    def went_back_rate(self) -> float:
        return self.went_back_count / self.total if self.total else 0.0

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "total": self.total,
            "went_back_count": self.went_back_count,
            "went_back_rate": self.went_back_rate,
        }


@dataclass
class EffectivenessReport:
    """Effectiveness report over the outcome log."""

    generated_at: datetime
    window_days: int | None

    # Summary stats
    total_interventions: int
    total_went_back: int
    overall_went_back_rate: float

    by_category: dict[ContentCategory, EffectivenessAggregate] = field(default_factory=dict)
    by_time_window: dict[str, BreakdownStats] = field(default_factory=dict)
    by_app: dict[str, BreakdownStats] = field(default_factory=dict)

    most_effective: ContentCategory | None = None
    least_effective: ContentCategory | None = None
    underperforming: list[ContentCategory] = field(default_factory=list)

    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at.isoformat(),
            "window_days": self.window_days,
            "total_interventions": self.total_interventions,
            "total_went_back": self.total_went_back,
            "overall_went_back_rate": self.overall_went_back_rate,
            "by_category": {c.value: a.to_dict() for c, a in self.by_category.items()},
            "by_time_window": {k: v.to_dict() for k, v in self.by_time_window.items()},
            "by_app": {k: v.to_dict() for k, v in self.by_app.items()},
            "most_effective": self.most_effective.value if self.most_effective else None,
            "least_effective": self.least_effective.value if self.least_effective else None,
            "underperforming": [c.value for c in self.underperforming],
            "recommendations": list(self.recommendations),
        }


# ============================================================================
# Pure aggregation helpers
# ============================================================================


def aggregate_outcomes(outcomes: Iterable[InterventionOutcome]) -> dict[ContentCategory, EffectivenessAggregate]:
    """Group outcomes by category and compute went-back statistics."""
    grouped: dict[ContentCategory, list[InterventionOutcome]] = {}
    for outcome in outcomes:
        grouped.setdefault(outcome.category, []).append(outcome)

    aggregates: dict[ContentCategory, EffectivenessAggregate] = {}
    for category, items in grouped.items():
        went_back = sum(1 for o in items if o.went_back)
        post_proceed = [
            o.final_session_duration_ms
            for o in items
            if not o.went_back and o.final_session_duration_ms is not None
        ]
        aggregates[category] = EffectivenessAggregate(
            category=category,
            total_shown=len(items),
            went_back_count=went_back,
            went_back_rate=went_back / len(items),
            mean_decision_latency_ms=sum(o.decision_latency_ms for o in items) / len(items),
            mean_post_proceed_session_ms=sum(post_proceed) / len(post_proceed) if post_proceed else None,
        )
    return aggregates


def time_window_label(hour: int) -> str:
    """Reporting window for an hour of the day."""
    if hour >= 22 or hour <= 5:
        return "late_night"
    if hour <= 11:
        return "morning"
    if hour <= 17:
        return "afternoon"
    return "evening"


def _outcome_hour(outcome: InterventionOutcome) -> int:
    hour = outcome.context.get("hour")
    return hour if isinstance(hour, int) else outcome.timestamp.hour


def _breakdown(outcomes: Iterable[InterventionOutcome], key: Callable[[InterventionOutcome], str]) -> dict[str, BreakdownStats]:
    totals: dict[str, list[int]] = {}
    for outcome in outcomes:
        bucket = totals.setdefault(key(outcome), [0, 0])
        bucket[0] += 1
        bucket[1] += 1 if outcome.went_back else 0
    return {label: BreakdownStats(label, total, went_back) for label, (total, went_back) in totals.items()}


# ============================================================================
# Tracker
# ============================================================================


class EffectivenessTracker:
    """
    Record intervention outcomes and measure per-category effectiveness.

    "Effective" means the user went back instead of proceeding into the app.
    """

    # Minimum samples for a category to be named most/least effective
    RANKING_MIN_SAMPLES = 3

    def __init__(
        self,
        store: OutcomeStore,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock or (lambda: datetime.now(UTC))

    def record(self, outcome: InterventionOutcome) -> None:
        """
        Append an outcome to the log.

        Raises:
            OutcomeWriteFailure: If the store could not persist it
        """
        try:
            self.store.append(outcome)
        except OutcomeWriteFailure:
            raise
        except Exception as e:
            logger.error("outcome_record_failed outcome_id=%s error=%s", outcome.outcome_id, type(e).__name__)
            raise OutcomeWriteFailure(f"Could not record outcome {outcome.outcome_id}") from e

        logger.info(
            "outcome_recorded category=%s content_id=%s choice=%s latency_ms=%d",
            outcome.category.value,
            outcome.content_id,
            outcome.choice.value,
            outcome.decision_latency_ms,
        )

    def patch_session_outcome(
        self,
        session_id: str,
        final_session_duration_ms: int,
        session_ended_normally: bool,
        strict: bool = False,
    ) -> bool:
        """
        Attach session-end data to the session's outcome record.

        Args:
            strict: Raise instead of logging when no record matches

        Returns:
            True if a record was patched, False if none matched (logged)

        Raises:
            ValidationError: On a negative duration
            PatchTargetNotFound: If strict and no unpatched record matches
            OutcomeWriteFailure: If the store could not persist the patch
        """
        if final_session_duration_ms < 0:
            raise ValidationError("final_session_duration_ms must be >= 0")

        patched = self.store.patch_session(session_id, final_session_duration_ms, session_ended_normally)
        if patched is None:
            if strict:
                raise PatchTargetNotFound(f"No unpatched outcome for session {session_id}")
            logger.warning("session_patch_target_not_found code=%s session_id=%s", PATCH_TARGET_NOT_FOUND, session_id)
            return False
        return True

    def aggregate(self, window_days: int | None = None) -> dict[ContentCategory, EffectivenessAggregate]:
        """Per-category aggregates, optionally over the last `window_days` days."""
        return aggregate_outcomes(self._outcomes(window_days))

    def underperforming(
        self,
        aggregates: Mapping[ContentCategory, EffectivenessAggregate],
        min_samples: int | None = None,
        floor: float | None = None,
    ) -> list[ContentCategory]:
        """
        Categories whose went-back rate is below `floor` with at least
        `min_samples` observations, worst first.
        """
        min_samples = self.config.underperforming_min_samples if min_samples is None else min_samples
        floor = self.config.underperforming_floor if floor is None else floor
        flagged = [
            a for a in aggregates.values()
            if a.total_shown >= min_samples and a.went_back_rate < floor
        ]
        flagged.sort(key=lambda a: a.went_back_rate)
        return [a.category for a in flagged]

    def recent_latencies(self, limit: int | None = None) -> list[int]:
        """Decision latencies of the newest outcomes, newest first."""
        limit = self.config.latency_window if limit is None else limit
        return [o.decision_latency_ms for o in self.store.recent(limit)]

    def report(self, window_days: int | None = None) -> EffectivenessReport:
        """
        Build an effectiveness report.

        Args:
            window_days: Only include outcomes from the last N days (all when None)

        Returns:
            EffectivenessReport with per-category, time-window and app breakdowns
        """
        outcomes = self._outcomes(window_days)
        aggregates = aggregate_outcomes(outcomes)

        total = len(outcomes)
        went_back = sum(1 for o in outcomes if o.went_back)

        ranked = sorted(
            (a for a in aggregates.values() if a.total_shown >= self.RANKING_MIN_SAMPLES),
            key=lambda a: a.went_back_rate,
            reverse=True,
        )
        most_effective = ranked[0].category if ranked else None
        least_effective = ranked[-1].category if len(ranked) > 1 else None

        underperforming = self.underperforming(aggregates)

        report = EffectivenessReport(
            generated_at=self.clock(),
            window_days=window_days,
            total_interventions=total,
            total_went_back=went_back,
            overall_went_back_rate=went_back / total if total else 0.0,
            by_category=aggregates,
            by_time_window=_breakdown(outcomes, lambda o: time_window_label(_outcome_hour(o))),
            by_app=_breakdown(outcomes, lambda o: o.target_app),
            most_effective=most_effective,
            least_effective=least_effective,
            underperforming=underperforming,
        )
        report.recommendations = self._recommendations(report)
        return report

    def _outcomes(self, window_days: int | None) -> tuple[InterventionOutcome, ...]:
        if window_days is None:
            return self.store.query()
        if window_days <= 0:
            raise ValidationError("window_days must be positive")
        return self.store.query(since=self.clock() - timedelta(days=window_days))

    def _recommendations(self, report: EffectivenessReport) -> list[str]:
        recommendations: list[str] = []

        for category in report.underperforming:
            aggregate = report.by_category[category]
            recommendations.append(
                f"Content category '{category.value}' has a low went-back rate "
                f"({aggregate.went_back_rate:.1%} over {aggregate.total_shown} shows). "
                f"Consider refreshing its content."
            )

        if report.most_effective is not None:
            aggregate = report.by_category[report.most_effective]
            recommendations.append(
                f"Content category '{report.most_effective.value}' is performing best "
                f"({aggregate.went_back_rate:.1%} went back). Consider showing it more often."
            )

        windows = [s for s in report.by_time_window.values() if s.total >= self.RANKING_MIN_SAMPLES]
        if len(windows) > 1:
            weakest = min(windows, key=lambda s: s.went_back_rate)
            recommendations.append(
                f"Interventions during the {weakest.label.replace('_', ' ')} window are least effective "
                f"({weakest.went_back_rate:.1%} went back)."
            )

        if report.total_interventions < self.config.cold_start_threshold:
            recommendations.append(
                f"Only {report.total_interventions} outcomes recorded. Selection stays in cold-start "
                f"mode until {self.config.cold_start_threshold} are available."
            )
        return recommendations


__all__ = [
    "EffectivenessAggregate",
    "BreakdownStats",
    "EffectivenessReport",
    "EffectivenessTracker",
    "aggregate_outcomes",
    "time_window_label",
]
