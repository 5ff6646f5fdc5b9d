"""
SQL habit store.
"""

import logging
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func

from identityforge.core.db import Database
from identityforge.core.entities import Habit
from identityforge.core.models import HabitRecord
from identityforge.stores.base import HabitStore

logger = logging.getLogger(__name__)


class SqlHabitStore(HabitStore):
    """HabitStore bound to a SQLite Database."""

    def __init__(self, database: Database):
        self.database = database

    def list_active(self) -> List[Habit]:
        with self.database.session_scope() as session:
            records = (
                session.query(HabitRecord)
                .filter(HabitRecord.deleted_at.is_(None))
                .order_by(HabitRecord.created_at.desc())
                .all()
            )
            return [r.to_entity() for r in records]

    def get_active(self, habit_id: UUID) -> Optional[Habit]:
        with self.database.session_scope() as session:
            record = (
                session.query(HabitRecord)
                .filter(
                    HabitRecord.id == str(habit_id),
                    HabitRecord.deleted_at.is_(None),
                )
                .first()
            )
            return record.to_entity() if record else None

    def create(self, identity_id: UUID, name: str, now: int) -> Habit:
        # Identity existence is the caller's responsibility
        record = HabitRecord(
            id=str(uuid4()),
            identity_id=str(identity_id),
            name=name,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )

        with self.database.session_scope() as session:
            session.add(record)
            session.flush()
            habit = record.to_entity()

        logger.info(f"Created habit {habit.id}: {name!r} for identity {identity_id}")
        return habit

    def list_for_identity(self, identity_id: UUID) -> List[Habit]:
        with self.database.session_scope() as session:
            records = (
                session.query(HabitRecord)
                .filter(
                    HabitRecord.identity_id == str(identity_id),
                    HabitRecord.deleted_at.is_(None),
                )
                .order_by(HabitRecord.created_at.asc())
                .all()
            )
            return [r.to_entity() for r in records]

    def soft_delete(self, habit_id: UUID, now: int) -> bool:
        with self.database.session_scope() as session:
            changed = (
                session.query(HabitRecord)
                .filter(
                    HabitRecord.id == str(habit_id),
                    HabitRecord.deleted_at.is_(None),
                )
                .update(
                    {
                        HabitRecord.deleted_at: now,
                        HabitRecord.updated_at: func.max(HabitRecord.updated_at, now),
                    },
                    synchronize_session=False,
                )
            )

        if changed:
            logger.info(f"Soft-deleted habit {habit_id}")

        return changed > 0
