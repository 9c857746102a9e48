"""
Models package for Threshold.

This package exports all SQLAlchemy models.

Usage:
    from src.models import Base, InterventionOutcomeRecord
"""

from src.models.base import Base
from src.models.outcome import InterventionOutcomeRecord

__all__ = [
    "Base",
    "InterventionOutcomeRecord",
]
