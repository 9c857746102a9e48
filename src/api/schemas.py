"""
Pydantic Schemas for the Threshold REST API.

Defines request schemas and the response envelope shared by every endpoint:

    {"success": true, "data": {...}, "error": null}
    {"success": false, "data": null, "error": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from src.core.types import FrictionTier, InterventionKind, UserChoice
from src.lib.errors import build_error_response

# =============================================================================
# Envelope
# =============================================================================


def success_response(data: Any) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data, "error": None}


def error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Wrap an error code in the failure envelope."""
    return {"success": False, "data": None, "error": build_error_response(code, message, details)}


# =============================================================================
# Decision Schemas
# =============================================================================


class UsageSignals(BaseModel):
    """Usage history reported by the client alongside a decision request."""

    usage_today_ms: int = Field(default=0, ge=0)
    usage_yesterday_ms: int = Field(default=0, ge=0)
    weekly_average_ms: int = Field(default=0, ge=0)
    sessions_today: int = Field(default=0, ge=0)
    ms_since_last_session_end: int | None = Field(default=None, ge=0)
    current_session_ms: int = Field(default=0, ge=0)
    daily_goal_minutes: int | None = Field(default=None, ge=0)
    streak_days: int = Field(default=0, ge=0)
    days_since_install: int | None = Field(default=None, ge=0)
    best_session_ms: int | None = Field(default=None, ge=0)
    friction_override: str | None = Field(default=None, max_length=20)
    baseline_daily_usage_ms: int | None = Field(default=None, ge=0)

    @field_validator("friction_override")
    @classmethod
    def validate_friction_override(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            return FrictionTier.parse(v).key
        except KeyError as e:
            raise ValueError(f"Unknown friction tier: {v}") from e


class DecisionRequest(BaseModel):
    """Request schema for a new intervention decision."""

    target_app: str = Field(..., min_length=1, max_length=255)
    session_id: str = Field(..., min_length=1, max_length=128)
    kind: InterventionKind = InterventionKind.REMINDER
    usage: UsageSignals | None = None


class ChoiceRequest(BaseModel):
    """Request schema for reporting the user's response to a shown intervention."""

    content_id: str = Field(..., min_length=1, max_length=128)
    choice: UserChoice
    latency_ms: int = Field(..., ge=0)


class SessionEndRequest(BaseModel):
    """Request schema for the session-end patch."""

    final_duration_ms: int = Field(..., ge=0)
    ended_normally: bool = True
    strict: bool = False


__all__ = [
    "success_response",
    "error_response",
    "UsageSignals",
    "DecisionRequest",
    "ChoiceRequest",
    "SessionEndRequest",
]
