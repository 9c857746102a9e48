"""
Intervention outcome record for Threshold.

One record is appended per decision. The record is immutable apart from a
single session-end patch (final duration + ended-normally), which produces a
new record via `patched()` rather than mutating in place.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from src.core.types import ContentCategory, InterventionKind, UserChoice
from src.lib.exceptions import StateError


def new_outcome_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class InterventionOutcome:
    """
    A shown intervention and the user's response to it.

    Attributes:
        outcome_id: Unique record id
        session_id: Session the intervention was shown in (patch key)
        timestamp: Decision time (UTC)
        target_app: Tracked application identifier
        intervention_kind: Reminder or timer
        category: Content category that was shown
        content_id: Content instance id that was shown
        context: Snapshot of the InterventionContext at decision time
        choice: What the user did
        decision_latency_ms: Time from show to choice
        final_session_duration_ms: Filled by the session-end patch
        session_ended_normally: Filled by the session-end patch
    """

    outcome_id: str
    session_id: str
    timestamp: datetime
    target_app: str
    intervention_kind: InterventionKind
    category: ContentCategory
    content_id: str
    context: dict[str, Any]
    choice: UserChoice
    decision_latency_ms: int
    final_session_duration_ms: int | None = None
    session_ended_normally: bool | None = None

    @property
    def went_back(self) -> bool:
        return self.choice == UserChoice.WENT_BACK

    @property
    def is_patched(self) -> bool:
        return self.final_session_duration_ms is not None or self.session_ended_normally is not None

    def patched(self, final_session_duration_ms: int, session_ended_normally: bool) -> InterventionOutcome:
        """
        Return a copy carrying the session-end fields.

        Raises:
            StateError: If this record has already been patched
        """
        if self.is_patched:
            raise StateError(f"Outcome {self.outcome_id} has already been patched")
        return replace(
            self,
            final_session_duration_ms=final_session_duration_ms,
            session_ended_normally=session_ended_normally,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome_id": self.outcome_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "target_app": self.target_app,
            "intervention_kind": self.intervention_kind.value,
            "category": self.category.value,
            "content_id": self.content_id,
            "context": dict(self.context),
            "choice": self.choice.value,
            "decision_latency_ms": self.decision_latency_ms,
            "final_session_duration_ms": self.final_session_duration_ms,
            "session_ended_normally": self.session_ended_normally,
        }
