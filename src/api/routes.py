"""
REST API Routes for Threshold.

All responses use the envelope from src.api.schemas. Engine exceptions are
translated into error envelopes by the handlers registered in create_app.

Endpoints (all under /api/v1 prefix):
- POST /decisions - Choose content + friction for an intervention
- POST /decisions/{session_id}/choice - Report the user's choice
- POST /sessions/{session_id}/end - Report the session's final duration
- GET /effectiveness - Effectiveness report
- GET /effectiveness/underperforming - Underperforming categories
- GET /health - Health check
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_engine
from src.api.schemas import ChoiceRequest, DecisionRequest, SessionEndRequest, UsageSignals, success_response
from src.core.types import FrictionTier
from src.services.engine import InterventionEngine
from src.services.usage import UsageSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def _snapshot_from_signals(engine: InterventionEngine, usage: UsageSignals) -> UsageSnapshot:
    return UsageSnapshot.from_relative(
        engine.clock(),
        days_since_install=usage.days_since_install,
        ms_since_last_session_end=usage.ms_since_last_session_end,
        usage_today=usage.usage_today_ms,
        usage_yesterday=usage.usage_yesterday_ms,
        weekly_average=usage.weekly_average_ms,
        session_count_today=usage.sessions_today,
        current_session=usage.current_session_ms,
        goal_minutes=usage.daily_goal_minutes,
        streak=usage.streak_days,
        best_session=usage.best_session_ms,
        override=FrictionTier.parse(usage.friction_override) if usage.friction_override else None,
        baseline_daily_usage=usage.baseline_daily_usage_ms,
    )


# =============================================================================
# Health
# =============================================================================


@router.get("/health")
def health_check(engine: InterventionEngine = Depends(get_engine)) -> dict[str, Any]:
    """Health check with the active catalog version."""
    return success_response({
        "status": "ok",
        "catalog_version": engine.catalog.version,
        "pending_decisions": engine.pending_count,
    })


# =============================================================================
# Decision flow
# =============================================================================


@router.post("/decisions")
def create_decision(
    body: DecisionRequest,
    engine: InterventionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """
    Choose what to show for an intervention.

    Returns:
        Envelope with the content instance and the friction to apply
    """
    provider = _snapshot_from_signals(engine, body.usage) if body.usage else None
    decision = engine.decide(body.target_app, body.session_id, body.kind, provider=provider)
    tier = decision.friction_tier

    return success_response({
        "session_id": body.session_id,
        "content": decision.content.to_dict(),
        "friction": {
            "tier": tier.key,
            "delay_ms": tier.delay_ms,
            "requires_secondary_step": tier.requires_secondary_step,
            "display_name": tier.profile.display_name,
            "description": tier.profile.description,
        },
    })


@router.post("/decisions/{session_id}/choice")
def report_choice(
    session_id: str,
    body: ChoiceRequest,
    engine: InterventionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Record whether the user proceeded or went back."""
    outcome = engine.report_decision(session_id, body.content_id, body.choice, body.latency_ms)
    return success_response(outcome.to_dict())


@router.post("/sessions/{session_id}/end")
def end_session(
    session_id: str,
    body: SessionEndRequest,
    engine: InterventionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Attach the final session duration to the session's outcome (404 when strict and unmatched)."""
    patched = engine.report_session_end(
        session_id, body.final_duration_ms, body.ended_normally, strict=body.strict
    )
    return success_response({"session_id": session_id, "patched": patched})


# =============================================================================
# Effectiveness
# =============================================================================


@router.get("/effectiveness")
def get_effectiveness(
    window_days: int | None = Query(default=None, ge=1, le=3650),
    engine: InterventionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Effectiveness report, optionally restricted to the last N days."""
    return success_response(engine.get_effectiveness_report(window_days).to_dict())


@router.get("/effectiveness/underperforming")
def get_underperforming(
    window_days: int | None = Query(default=None, ge=1, le=3650),
    engine: InterventionEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Categories with a low went-back rate and enough samples to trust it."""
    categories = engine.get_underperforming_categories(window_days)
    return success_response({"categories": [c.value for c in categories]})
