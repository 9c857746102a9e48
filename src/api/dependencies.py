"""
FastAPI Dependencies for the Threshold REST API.

The engine is created once per application and kept on `app.state`.
"""

from __future__ import annotations

import logging
import os

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.config.engine import EngineConfig
from src.models.base import Base
from src.services.catalog import load_catalog
from src.services.engine import InterventionEngine
from src.services.outcome_store import InMemoryOutcomeStore, OutcomeStore, SqlOutcomeStore
from src.services.usage import UsageSnapshot

logger = logging.getLogger(__name__)


def build_outcome_store() -> OutcomeStore:
    """
    Outcome store from the environment.

    THRESHOLD_DATABASE_URL selects the SQLAlchemy store (tables are created
    if missing); without it outcomes are kept in memory.
    """
    database_url = os.getenv("THRESHOLD_DATABASE_URL", "")
    if not database_url:
        logger.info("Outcome store: in-memory (THRESHOLD_DATABASE_URL not set)")
        return InMemoryOutcomeStore()

    db_engine = create_engine(database_url, pool_pre_ping=True)
    Base.metadata.create_all(db_engine)
    logger.info("Outcome store: SQL (%s)", db_engine.url.render_as_string(hide_password=True))
    return SqlOutcomeStore(sessionmaker(bind=db_engine))


def build_default_engine() -> InterventionEngine:
    """
    Engine configured from THRESHOLD_* environment variables.

    Usage history arrives with each request, so the default provider is an
    empty snapshot (a first-launch user).
    """
    config = EngineConfig.from_env()
    catalog_path = os.getenv("THRESHOLD_CATALOG_PATH", "")
    catalog = load_catalog(catalog_path) if catalog_path else None
    return InterventionEngine(UsageSnapshot(), build_outcome_store(), catalog=catalog, config=config)


def get_engine(request: Request) -> InterventionEngine:
    """Dependency returning the application's engine."""
    return request.app.state.engine
