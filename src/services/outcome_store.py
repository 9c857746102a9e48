"""
Outcome Store for Threshold.

The outcome log is append-only: records are written once per decision and
may receive exactly one session-end patch. Two implementations:

- InMemoryOutcomeStore: process-local list guarded by a lock (tests, demos,
  the default for the HTTP adapter)
- SqlOutcomeStore: SQLAlchemy-backed table `intervention_outcomes`, one
  transaction per write

Readers always receive an immutable snapshot (a tuple of frozen records),
never a live view.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.outcome import InterventionOutcome
from src.lib.exceptions import OutcomeWriteFailure
from src.models.outcome import InterventionOutcomeRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class OutcomeStore(Protocol):
    """Append-only outcome log."""

    def append(self, outcome: InterventionOutcome) -> None:
        """Persist a new record. Raises OutcomeWriteFailure on failure."""
        ...

    def patch_session(
        self,
        session_id: str,
        final_session_duration_ms: int,
        session_ended_normally: bool,
    ) -> InterventionOutcome | None:
        """
        Patch the newest unpatched record of a session.

        Returns:
            The patched record, None when the session has no unpatched record
        """
        ...

    def query(self, since: datetime | None = None) -> tuple[InterventionOutcome, ...]:
        """All records (oldest first), optionally only those at or after `since`."""
        ...

    def recent(self, limit: int) -> tuple[InterventionOutcome, ...]:
        """The newest `limit` records, newest first."""
        ...

    def count(self) -> int: ...


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryOutcomeStore:
    """Thread-safe list-backed outcome log."""

    def __init__(self) -> None:
        self._records: list[InterventionOutcome] = []
        self._lock = threading.Lock()

    def append(self, outcome: InterventionOutcome) -> None:
        with self._lock:
            self._records.append(outcome)

    def patch_session(
        self,
        session_id: str,
        final_session_duration_ms: int,
        session_ended_normally: bool,
    ) -> InterventionOutcome | None:
        with self._lock:
            for index in range(len(self._records) - 1, -1, -1):
                record = self._records[index]
                if record.session_id != session_id or record.is_patched:
                    continue
                patched = record.patched(final_session_duration_ms, session_ended_normally)
                self._records[index] = patched
                return patched
        return None

    def query(self, since: datetime | None = None) -> tuple[InterventionOutcome, ...]:
        with self._lock:
            snapshot = tuple(self._records)
        if since is None:
            return snapshot
        return tuple(r for r in snapshot if r.timestamp >= since)

    def recent(self, limit: int) -> tuple[InterventionOutcome, ...]:
        if limit <= 0:
            return ()
        with self._lock:
            return tuple(reversed(self._records[-limit:]))

    def count(self) -> int:
        with self._lock:
            return len(self._records)


# =============================================================================
# SQLAlchemy store
# =============================================================================


class SqlOutcomeStore:
    """
    SQLAlchemy-backed outcome log.

    Args:
        session_factory: Zero-argument callable returning a new Session
            (typically a `sessionmaker`)
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def append(self, outcome: InterventionOutcome) -> None:
        session = self._session_factory()
        try:
            session.add(InterventionOutcomeRecord.from_outcome(outcome))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("outcome_append_failed outcome_id=%s error=%s", outcome.outcome_id, type(e).__name__)
            raise OutcomeWriteFailure(f"Could not append outcome {outcome.outcome_id}") from e
        finally:
            session.close()

    def patch_session(
        self,
        session_id: str,
        final_session_duration_ms: int,
        session_ended_normally: bool,
    ) -> InterventionOutcome | None:
        session = self._session_factory()
        try:
            stmt = (
                select(InterventionOutcomeRecord)
                .where(
                    InterventionOutcomeRecord.session_id == session_id,
                    InterventionOutcomeRecord.final_session_duration_ms.is_(None),
                    InterventionOutcomeRecord.session_ended_normally.is_(None),
                )
                .order_by(InterventionOutcomeRecord.timestamp.desc(), InterventionOutcomeRecord.id.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                return None
            row.final_session_duration_ms = final_session_duration_ms
            row.session_ended_normally = session_ended_normally
            session.commit()
            return row.to_outcome()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("outcome_patch_failed session_id=%s error=%s", session_id, type(e).__name__)
            raise OutcomeWriteFailure(f"Could not patch outcome for session {session_id}") from e
        finally:
            session.close()

    def query(self, since: datetime | None = None) -> tuple[InterventionOutcome, ...]:
        with self._session_factory() as session:
            stmt = select(InterventionOutcomeRecord).order_by(
                InterventionOutcomeRecord.timestamp, InterventionOutcomeRecord.id
            )
            if since is not None:
                stmt = stmt.where(InterventionOutcomeRecord.timestamp >= _naive_utc(since))
            return tuple(row.to_outcome() for row in session.execute(stmt).scalars().all())

    def recent(self, limit: int) -> tuple[InterventionOutcome, ...]:
        if limit <= 0:
            return ()
        with self._session_factory() as session:
            stmt = (
                select(InterventionOutcomeRecord)
                .order_by(InterventionOutcomeRecord.timestamp.desc(), InterventionOutcomeRecord.id.desc())
                .limit(limit)
            )
            return tuple(row.to_outcome() for row in session.execute(stmt).scalars().all())

    def count(self) -> int:
        with self._session_factory() as session:
            return session.execute(select(func.count(InterventionOutcomeRecord.id))).scalar_one()


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


__all__ = ["OutcomeStore", "InMemoryOutcomeStore", "SqlOutcomeStore"]
