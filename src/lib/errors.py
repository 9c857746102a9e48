"""
Centralized Error Response Builder for Threshold.

Provides consistent error codes and messages for the HTTP adapter and for
structured log events, so that a failure carries the same code whether it is
returned to the presentation layer or written to telemetry.

Error codes are constants that map to default message strings. The builder
returns structured error dicts compatible with the API response envelope.
"""

from __future__ import annotations

from typing import Any

from src.lib.exceptions import (
    ConfigurationError,
    OutcomeWriteFailure,
    PatchTargetNotFound,
    StateError,
    ThresholdException,
    UpstreamDataUnavailable,
    ValidationError,
)

# =============================================================================
# Error Code Constants
# =============================================================================

CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
UPSTREAM_DATA_UNAVAILABLE = "UPSTREAM_DATA_UNAVAILABLE"
OUTCOME_WRITE_FAILED = "OUTCOME_WRITE_FAILED"
PATCH_TARGET_NOT_FOUND = "PATCH_TARGET_NOT_FOUND"
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_STATE = "INVALID_STATE"
INTERNAL_ERROR = "INTERNAL_ERROR"

# =============================================================================
# Message Registry
# =============================================================================

_ERROR_MESSAGES: dict[str, str] = {
    CONFIGURATION_ERROR: "The content catalog or engine configuration is invalid.",
    UPSTREAM_DATA_UNAVAILABLE: "Usage history is temporarily unavailable.",
    OUTCOME_WRITE_FAILED: "The decision could not be recorded. Please retry.",
    PATCH_TARGET_NOT_FOUND: "No intervention was recorded for this session.",
    NOT_FOUND: "The requested resource was not found.",
    VALIDATION_ERROR: "Invalid input. Please check your request.",
    INVALID_STATE: "The request does not match the current session state.",
    INTERNAL_ERROR: "An internal error occurred. Please try again.",
}

_EXCEPTION_CODES: tuple[tuple[type[ThresholdException], str], ...] = (
    (ConfigurationError, CONFIGURATION_ERROR),
    (UpstreamDataUnavailable, UPSTREAM_DATA_UNAVAILABLE),
    (OutcomeWriteFailure, OUTCOME_WRITE_FAILED),
    (PatchTargetNotFound, PATCH_TARGET_NOT_FOUND),
    (ValidationError, VALIDATION_ERROR),
    (StateError, INVALID_STATE),
)


# =============================================================================
# Error Response Builder
# =============================================================================


def get_error_message(code: str) -> str:
    """
    Get the default message for a given error code.

    Falls back to a generic message if the error code is unknown.
    """
    return _ERROR_MESSAGES.get(code, "An error occurred.")


def error_code_for(exc: BaseException) -> str:
    """
    Map an exception to its error code constant.

    Args:
        exc: Any exception raised while serving a request

    Returns:
        The matching error code, INTERNAL_ERROR for anything unrecognised
    """
    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            return code
    return INTERNAL_ERROR


def build_error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a structured error response dict.

    Args:
        code: Error code constant (e.g. VALIDATION_ERROR, NOT_FOUND)
        message: Optional override message (bypasses the registry lookup)
        details: Optional additional error details

    Returns:
        Structured error dict: {"code": str, "message": str, "details": dict | None}
    """
    resolved_message = message if message is not None else get_error_message(code)
    error: dict[str, Any] = {
        "code": code,
        "message": resolved_message,
    }
    if details is not None:
        error["details"] = details
    return error


__all__ = [
    # Error code constants
    "CONFIGURATION_ERROR",
    "UPSTREAM_DATA_UNAVAILABLE",
    "OUTCOME_WRITE_FAILED",
    "PATCH_TARGET_NOT_FOUND",
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "INVALID_STATE",
    "INTERNAL_ERROR",
    # Functions
    "get_error_message",
    "error_code_for",
    "build_error_response",
]
