"""
Intervention Outcome Model for Threshold.

Persistent form of the append-only outcome log. Each row is one shown
intervention; only the two session-end columns are ever updated, and only
once (guarded by the store, not the schema).

Data Classification: INTERNAL (behavioural usage metadata, no free text
from the user)
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String

from src.core.outcome import InterventionOutcome
from src.core.types import ContentCategory, InterventionKind, UserChoice
from src.models.base import Base


class InterventionOutcomeRecord(Base):
    """
    Row in the intervention_outcomes table.

    Attributes:
        id: Primary key
        outcome_id: Stable record id (uuid hex)
        session_id: Session the intervention was shown in; patch key
        timestamp: Decision time (stored as naive UTC)
        target_app: Tracked application identifier
        intervention_kind: reminder | timer
        category: Content category value
        content_id: Content instance id
        context: InterventionContext snapshot (JSON)
        choice: proceeded | went_back
        decision_latency_ms: Time from show to choice
        final_session_duration_ms: Session-end patch
        session_ended_normally: Session-end patch
    """

    __tablename__ = "intervention_outcomes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    outcome_id = Column(String(64), nullable=False, unique=True)
    session_id = Column(String(128), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, default=lambda: datetime.now(UTC).replace(tzinfo=None))

    target_app = Column(String(255), nullable=False)
    intervention_kind = Column(String(20), nullable=False)  # reminder | timer
    category = Column(String(40), nullable=False)
    content_id = Column(String(128), nullable=False)
    context = Column(JSON, nullable=False, default=dict)

    choice = Column(String(20), nullable=False)  # proceeded | went_back
    decision_latency_ms = Column(Integer, nullable=False)

    final_session_duration_ms = Column(Integer, nullable=True)
    session_ended_normally = Column(Boolean, nullable=True)

    __table_args__ = (
        Index("ix_intervention_outcomes_timestamp", "timestamp"),
        Index("ix_intervention_outcomes_category", "category"),
    )

    @classmethod
    def from_outcome(cls, outcome: InterventionOutcome) -> InterventionOutcomeRecord:
        timestamp = outcome.timestamp
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(UTC).replace(tzinfo=None)
        return cls(
            outcome_id=outcome.outcome_id,
            session_id=outcome.session_id,
            timestamp=timestamp,
            target_app=outcome.target_app,
            intervention_kind=outcome.intervention_kind.value,
            category=outcome.category.value,
            content_id=outcome.content_id,
            context=dict(outcome.context),
            choice=outcome.choice.value,
            decision_latency_ms=outcome.decision_latency_ms,
            final_session_duration_ms=outcome.final_session_duration_ms,
            session_ended_normally=outcome.session_ended_normally,
        )

    def to_outcome(self) -> InterventionOutcome:
        return InterventionOutcome(
            outcome_id=self.outcome_id,
            session_id=self.session_id,
            timestamp=self.timestamp.replace(tzinfo=UTC),
            target_app=self.target_app,
            intervention_kind=InterventionKind(self.intervention_kind),
            category=ContentCategory(self.category),
            content_id=self.content_id,
            context=dict(self.context or {}),
            choice=UserChoice(self.choice),
            decision_latency_ms=self.decision_latency_ms,
            final_session_duration_ms=self.final_session_duration_ms,
            session_ended_normally=self.session_ended_normally,
        )

    def __repr__(self) -> str:
        return (
            f"<InterventionOutcomeRecord(outcome_id={self.outcome_id}, session_id={self.session_id}, "
            f"category={self.category}, choice={self.choice})>"
        )
