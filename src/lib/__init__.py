"""
Lib package for Threshold.

Contains shared utilities:
- exceptions.py: Exception hierarchy rooted at ThresholdException
- errors.py: Error codes and structured error response builder
- logging.py: structlog + stdlib logging setup
"""

from src.lib.errors import (
    CONFIGURATION_ERROR,
    INTERNAL_ERROR,
    INVALID_STATE,
    NOT_FOUND,
    OUTCOME_WRITE_FAILED,
    PATCH_TARGET_NOT_FOUND,
    UPSTREAM_DATA_UNAVAILABLE,
    VALIDATION_ERROR,
    build_error_response,
    error_code_for,
    get_error_message,
)
from src.lib.exceptions import (
    ConfigurationError,
    OutcomeWriteFailure,
    PatchTargetNotFound,
    StateError,
    ThresholdException,
    UpstreamDataUnavailable,
    ValidationError,
)

__all__ = [
    # Exceptions
    "ThresholdException",
    "ConfigurationError",
    "UpstreamDataUnavailable",
    "OutcomeWriteFailure",
    "PatchTargetNotFound",
    "ValidationError",
    "StateError",
    # Errors
    "CONFIGURATION_ERROR",
    "UPSTREAM_DATA_UNAVAILABLE",
    "OUTCOME_WRITE_FAILED",
    "PATCH_TARGET_NOT_FOUND",
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "INVALID_STATE",
    "INTERNAL_ERROR",
    "get_error_message",
    "error_code_for",
    "build_error_response",
]
