"""
Custom exception hierarchy for Threshold.

Provides structured exception types for the intervention engine:
- Catalog / configuration problems (fatal at start-up)
- Usage-history provider failures (recovered with defaults)
- Outcome log write and patch failures
- Input validation and call-ordering errors

All exceptions inherit from ThresholdException, enabling a catch-all for
engine errors while keeping the ability to catch specific error types.
"""

from __future__ import annotations


class ThresholdException(Exception):
    """Base exception for all Threshold errors."""


class ConfigurationError(ThresholdException):
    """Invalid engine configuration or a catalog missing a required content category."""


class UpstreamDataUnavailable(ThresholdException):
    """The usage-history provider failed or timed out while answering a query."""


class OutcomeWriteFailure(ThresholdException):
    """An intervention outcome could not be appended to the outcome log."""


class PatchTargetNotFound(ThresholdException):
    """No outcome record matches the session id of a session-end patch."""


class ValidationError(ThresholdException):
    """Input validation, parsing, or type conversion failures."""


class StateError(ThresholdException):
    """A call arrived out of order, e.g. a decision reported before its show."""
