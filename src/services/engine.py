"""
Intervention Engine for Threshold.

The single entry point for the presentation layer:

    engine = InterventionEngine(provider, InMemoryOutcomeStore())
    decision = engine.decide("com.example.feed", session_id, InterventionKind.REMINDER)
    ...  # show decision.content, wait decision.friction_tier.delay_ms
    engine.report_decision(session_id, decision.content.id, UserChoice.WENT_BACK, latency_ms=8200)
    ...
    engine.report_session_end(session_id, final_duration_ms=45_000, ended_normally=True)

Per session the calls are causally ordered: decide -> report_decision ->
(optional) report_session_end. Pending shows and the recently shown ids are
the only mutable engine state and are guarded by a lock.
"""

from __future__ import annotations

import random
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import NamedTuple

import structlog

from src.config.engine import EngineConfig
from src.core.content import ContentInstance
from src.core.context import InterventionContext
from src.core.outcome import InterventionOutcome, new_outcome_id
from src.core.types import ContentCategory, FrictionTier, InterventionKind, UserChoice
from src.lib.exceptions import OutcomeWriteFailure, StateError, ValidationError
from src.lib.logging import decision_context
from src.services.catalog import ContentCatalog, default_catalog
from src.services.content_selector import ContentSelector
from src.services.context_builder import ContextBuilder, local_now
from src.services.effectiveness import EffectivenessReport, EffectivenessTracker
from src.services.outcome_store import OutcomeStore
from src.services.usage import UsageHistoryProvider

logger = structlog.get_logger(__name__)


class Decision(NamedTuple):
    """What to show and how much friction to apply."""
    content: ContentInstance
    friction_tier: FrictionTier


@dataclass(frozen=True)
class PendingShow:
    """A decision that has been shown but not yet answered."""
    target_app: str
    intervention_kind: InterventionKind
    content: ContentInstance
    context: InterventionContext
    shown_at: datetime


class InterventionEngine:
    """
    Facade over context building, selection, friction and effectiveness.

    Args:
        provider: Default usage-history provider
        store: Outcome log
        catalog: Content catalog (the built-in default when None)
        config: Engine configuration (defaults when None)
        rng: Random source for selection (seed it for reproducible draws)
        clock: Returns the current local time

    Raises:
        ConfigurationError: If the config is inconsistent or the catalog
            lacks a required category
    """

    def __init__(
        self,
        provider: UsageHistoryProvider,
        store: OutcomeStore,
        catalog: ContentCatalog | None = None,
        config: EngineConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = (config or EngineConfig()).validate()
        self.catalog = (catalog or default_catalog()).validate(self.config.base_weights.keys())
        self.clock = clock or local_now
        self.store = store

        self.tracker = EffectivenessTracker(store, self.config, clock=self._utc_now)
        self.context_builder = ContextBuilder(
            provider,
            self.config,
            clock=self.clock,
            latency_source=self.tracker.recent_latencies,
        )
        self.selector = ContentSelector(self.config, rng)

        self._pending: dict[str, PendingShow] = {}
        self._recent_ids: deque[str] = deque(maxlen=max(1, self.config.recent_window))
        self._lock = threading.Lock()

        logger.info(
            "engine_initialized",
            catalog_version=self.catalog.version,
            catalog_size=len(self.catalog),
        )

    def _utc_now(self) -> datetime:
        now = self.clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=UTC)
        return now.astimezone(UTC)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Decision flow
    # ------------------------------------------------------------------

    def decide(
        self,
        target_app: str,
        session_id: str,
        intervention_kind: InterventionKind,
        provider: UsageHistoryProvider | None = None,
    ) -> Decision:
        """
        Choose content and friction for an intervention about to be shown.

        Args:
            target_app: Tracked application identifier
            session_id: Current session id
            intervention_kind: Reminder (launch) or timer (elapsed time)
            provider: Per-call usage-history provider override

        Returns:
            Decision(content, friction_tier)

        Raises:
            ValidationError: On an empty target app, session id or unknown kind
            ConfigurationError: If the catalog cannot serve a required category
        """
        if not target_app or not session_id:
            raise ValidationError("target_app and session_id are required")
        try:
            intervention_kind = InterventionKind(intervention_kind)
        except ValueError as e:
            raise ValidationError(f"Unknown intervention kind: {intervention_kind!r}") from e

        with decision_context(session_id=session_id, target_app=target_app):
            context = self.context_builder.build_context(target_app, session_id, provider)
            aggregates = self._selection_aggregates()

        with self._lock:
            content = self.selector.select(
                context,
                intervention_kind,
                self.catalog,
                aggregates=aggregates,
                recent_ids=tuple(self._recent_ids),
            )
            self._recent_ids.append(content.id)
            self._pending[session_id] = PendingShow(
                target_app=target_app,
                intervention_kind=intervention_kind,
                content=content,
                context=context,
                shown_at=self._utc_now(),
            )

        logger.info(
            "intervention_decided",
            session_id=session_id,
            target_app=target_app,
            kind=intervention_kind.value,
            category=content.category.value,
            content_id=content.id,
            friction_tier=context.friction_tier.key,
        )
        return Decision(content=content, friction_tier=context.friction_tier)

    def report_decision(
        self,
        session_id: str,
        content_instance_id: str,
        user_choice: UserChoice | str,
        latency_ms: int,
    ) -> InterventionOutcome:
        """
        Record the user's response to a shown intervention.

        Raises:
            StateError: No intervention is pending for the session
            ValidationError: Content id mismatch, bad choice or negative latency
            OutcomeWriteFailure: The outcome could not be stored; the pending
                show is kept so the report can be retried
        """
        if latency_ms < 0:
            raise ValidationError("latency_ms must be >= 0")
        try:
            choice = UserChoice(user_choice)
        except ValueError as e:
            raise ValidationError(f"Unknown user choice: {user_choice!r}") from e

        with self._lock:
            pending = self._pending.get(session_id)
            if pending is None:
                raise StateError(f"No intervention pending for session {session_id}")
            if pending.content.id != content_instance_id:
                raise ValidationError(
                    f"Content {content_instance_id} was not shown in session {session_id}"
                )
            del self._pending[session_id]

        outcome = InterventionOutcome(
            outcome_id=new_outcome_id(),
            session_id=session_id,
            timestamp=self._utc_now(),
            target_app=pending.target_app,
            intervention_kind=pending.intervention_kind,
            category=pending.content.category,
            content_id=pending.content.id,
            context=pending.context.to_snapshot(),
            choice=choice,
            decision_latency_ms=latency_ms,
        )

        try:
            self.tracker.record(outcome)
        except OutcomeWriteFailure:
            with self._lock:
                self._pending.setdefault(session_id, pending)
            logger.warning("decision_report_failed", session_id=session_id, content_id=content_instance_id)
            raise

        return outcome

    def report_session_end(
        self,
        session_id: str,
        final_duration_ms: int,
        ended_normally: bool,
        strict: bool = False,
    ) -> bool:
        """
        Patch the session's outcome with its final duration.

        Returns False if nothing matched, or raises PatchTargetNotFound when
        `strict` is set.
        """
        return self.tracker.patch_session_outcome(session_id, final_duration_ms, ended_normally, strict=strict)

    # ------------------------------------------------------------------
    # Effectiveness
    # ------------------------------------------------------------------

    def get_effectiveness_report(self, window_days: int | None = None) -> EffectivenessReport:
        return self.tracker.report(window_days)

    def get_underperforming_categories(self, window_days: int | None = None) -> list[ContentCategory]:
        return self.tracker.underperforming(self.tracker.aggregate(window_days))

    def _selection_aggregates(self):
        try:
            return self.tracker.aggregate(self.config.selection_window_days)
        except Exception as e:
            # Selection is total: an unreadable log means cold start
            logger.warning("aggregates_unavailable", error=type(e).__name__)
            return None


__all__ = ["InterventionEngine", "Decision", "PendingShow"]
