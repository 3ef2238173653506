"""
Database Persistence Layer - Progress Repository.

============================================================
RESPONSIBILITY
============================================================
PersistenceStore backed by SQLAlchemy.

- Session work is synchronous and runs in a worker thread
- SQLAlchemyError surfaces as PersistenceError
- Saves are upserts (session.merge)

============================================================
"""

from typing import List, Optional, Tuple
import asyncio
import json
import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.exceptions import PersistenceError
from participant_store.interfaces import PersistenceStore
from participant_store.models import HistoryEntry, ParticipantRecord

from .engine import get_db_session, get_session_factory, transaction_scope
from .models import ParticipantProgress, ProgressHistory


logger = logging.getLogger(__name__)


def _to_row(record: ParticipantRecord) -> ParticipantProgress:
    return ParticipantProgress(
        participant_id=str(record.participant_id),
        current_progress=record.current_progress,
        previous_progress=record.previous_progress,
        first_seen_ts=record.first_seen_ts,
        last_seen_ts=record.last_seen_ts,
        last_update_ts=record.last_update_ts,
        completed_milestones=json.dumps(sorted(record.completed_milestones)),
        last_known_equipment_value=record.last_known_equipment_value,
        total_loss_events=record.total_loss_events,
    )


def _from_row(row: ParticipantProgress) -> ParticipantRecord:
    return ParticipantRecord(
        participant_id=uuid.UUID(row.participant_id),
        current_progress=row.current_progress,
        previous_progress=row.previous_progress,
        first_seen_ts=row.first_seen_ts,
        last_seen_ts=row.last_seen_ts,
        last_update_ts=row.last_update_ts,
        completed_milestones=set(json.loads(row.completed_milestones or "[]")),
        last_known_equipment_value=row.last_known_equipment_value,
        total_loss_events=row.total_loss_events,
    )


class SqlAlchemyPersistenceStore(PersistenceStore):
    """
    Relational PersistenceStore.

    Usage:
        engine = create_database_engine("sqlite://")
        initialize_database(engine)
        store = SqlAlchemyPersistenceStore(get_session_factory(engine))
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._factory = session_factory or get_session_factory()

    # ----------------------------------------------------------
    # Sync implementations
    # ----------------------------------------------------------

    def _load_sync(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        try:
            with get_db_session(self._factory) as session:
                row = session.get(ParticipantProgress, str(participant_id))
                return _from_row(row) if row else None
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Load failed: {e}", operation="load", participant_id=participant_id, cause=e
            ) from e

    def _save_sync(self, record: ParticipantRecord) -> None:
        with transaction_scope(self._factory) as session:
            session.merge(_to_row(record))

    def _append_history_sync(self, participant_id: uuid.UUID, score: float, ts: float) -> None:
        with transaction_scope(self._factory) as session:
            session.add(ProgressHistory(
                participant_id=str(participant_id),
                score=score,
                recorded_at=ts,
            ))

    def _top_n_sync(self, limit: int) -> List[Tuple[uuid.UUID, float]]:
        try:
            with get_db_session(self._factory) as session:
                rows = session.execute(
                    select(ParticipantProgress.participant_id, ParticipantProgress.current_progress)
                    .order_by(ParticipantProgress.current_progress.desc())
                    .limit(limit)
                ).all()
                return [(uuid.UUID(pid), score) for pid, score in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Top-N query failed: {e}", operation="top_n", cause=e) from e

    def _get_history_sync(self, participant_id: uuid.UUID, limit: int) -> List[HistoryEntry]:
        try:
            with get_db_session(self._factory) as session:
                rows = session.execute(
                    select(ProgressHistory)
                    .where(ProgressHistory.participant_id == str(participant_id))
                    .order_by(ProgressHistory.recorded_at.desc(), ProgressHistory.id.desc())
                    .limit(limit)
                ).scalars().all()
                return [
                    HistoryEntry(participant_id=participant_id, score=r.score, recorded_at=r.recorded_at)
                    for r in rows
                ]
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"History query failed: {e}", operation="get_history",
                participant_id=participant_id, cause=e,
            ) from e

    def _cleanup_history_sync(self, older_than_ts: float) -> int:
        with transaction_scope(self._factory) as session:
            result = session.execute(
                delete(ProgressHistory).where(ProgressHistory.recorded_at < older_than_ts)
            )
            return result.rowcount or 0

    # ----------------------------------------------------------
    # PersistenceStore
    # ----------------------------------------------------------

    async def load(self, participant_id: uuid.UUID) -> Optional[ParticipantRecord]:
        return await asyncio.to_thread(self._load_sync, participant_id)

    async def save(self, record: ParticipantRecord) -> None:
        await asyncio.to_thread(self._save_sync, record.copy())
        logger.debug(f"Saved participant record | participant={record.participant_id}")

    async def append_history(self, participant_id: uuid.UUID, score: float, ts: float) -> None:
        await asyncio.to_thread(self._append_history_sync, participant_id, score, ts)

    async def top_n(self, limit: int) -> List[Tuple[uuid.UUID, float]]:
        return await asyncio.to_thread(self._top_n_sync, limit)

    async def get_history(self, participant_id: uuid.UUID, limit: int = 10) -> List[HistoryEntry]:
        return await asyncio.to_thread(self._get_history_sync, participant_id, limit)

    async def cleanup_history(self, older_than_ts: float) -> int:
        return await asyncio.to_thread(self._cleanup_history_sync, older_than_ts)
