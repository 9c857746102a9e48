"""
Tests for the custom exception hierarchy.

Verifies:
- All exceptions are subclasses of ThresholdException
- Exception messages work correctly
- Each exception maps to its error code
"""

from __future__ import annotations

import pytest

from src.lib.errors import (
    CONFIGURATION_ERROR,
    INTERNAL_ERROR,
    INVALID_STATE,
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

EXCEPTION_CODES = [
    (ConfigurationError, CONFIGURATION_ERROR),
    (UpstreamDataUnavailable, UPSTREAM_DATA_UNAVAILABLE),
    (OutcomeWriteFailure, OUTCOME_WRITE_FAILED),
    (PatchTargetNotFound, PATCH_TARGET_NOT_FOUND),
    (ValidationError, VALIDATION_ERROR),
    (StateError, INVALID_STATE),
]


class TestExceptionHierarchy:
    """Test the exception class hierarchy."""

    def test_base_is_subclass_of_exception(self) -> None:
        assert issubclass(ThresholdException, Exception)

    @pytest.mark.parametrize("exc_class,_code", EXCEPTION_CODES)
    def test_all_are_subclass_of_threshold_exception(self, exc_class, _code) -> None:
        assert issubclass(exc_class, ThresholdException)

    @pytest.mark.parametrize("exc_class,_code", EXCEPTION_CODES)
    def test_message_preserved(self, exc_class, _code) -> None:
        with pytest.raises(ThresholdException, match="boom"):
            raise exc_class("boom")


class TestErrorCodes:
    """Exception -> error code mapping and response builder."""

    @pytest.mark.parametrize("exc_class,code", EXCEPTION_CODES)
    def test_error_code_for(self, exc_class, code) -> None:
        assert error_code_for(exc_class("x")) == code

    def test_unknown_exception_is_internal(self) -> None:
        assert error_code_for(RuntimeError("x")) == INTERNAL_ERROR

    def test_build_error_response_uses_registry(self) -> None:
        error = build_error_response(VALIDATION_ERROR)
        assert error == {"code": VALIDATION_ERROR, "message": get_error_message(VALIDATION_ERROR)}

    def test_build_error_response_with_override_and_details(self) -> None:
        error = build_error_response(INVALID_STATE, "No show", details={"session_id": "s"})
        assert error["message"] == "No show"
        assert error["details"] == {"session_id": "s"}

    def test_unknown_code_message(self) -> None:
        assert get_error_message("NOPE") == "An error occurred."
