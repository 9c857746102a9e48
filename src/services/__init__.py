"""
Services for Threshold.

This package contains the components of the intervention engine.

Services:
    - ContextBuilder: Derives the behavioural context from usage history
    - classify_friction: Progressive friction tier classification
    - ContentCatalog: Versioned static content pool
    - ContentSelector: Weighted, variety-preserving content selection
    - OutcomeStore: Append-only outcome log (in-memory and SQLAlchemy)
    - EffectivenessTracker: Outcome recording, aggregation and reporting
    - InterventionEngine: Facade used by the presentation layer
"""

from .catalog import ContentCatalog, default_catalog, load_catalog
from .content_selector import ContentSelector, SelectionMode, SelectionWeights
from .context_builder import ContextBuilder
from .effectiveness import (
    BreakdownStats,
    EffectivenessAggregate,
    EffectivenessReport,
    EffectivenessTracker,
    aggregate_outcomes,
)
from .engine import Decision, InterventionEngine
from .friction import FrictionInputs, classify_friction
from .outcome_store import InMemoryOutcomeStore, OutcomeStore, SqlOutcomeStore
from .usage import UsageHistoryProvider, UsageSnapshot

__all__ = [
    # Context
    "ContextBuilder",
    "UsageHistoryProvider",
    "UsageSnapshot",
    # Friction
    "FrictionInputs",
    "classify_friction",
    # Catalog & selection
    "ContentCatalog",
    "default_catalog",
    "load_catalog",
    "ContentSelector",
    "SelectionMode",
    "SelectionWeights",
    # Outcomes & effectiveness
    "OutcomeStore",
    "InMemoryOutcomeStore",
    "SqlOutcomeStore",
    "EffectivenessAggregate",
    "BreakdownStats",
    "EffectivenessReport",
    "EffectivenessTracker",
    "aggregate_outcomes",
    # Facade
    "InterventionEngine",
    "Decision",
]
