"""
SQL vote store.

Votes are append-only. Every read filters out soft-deleted rows even
though nothing in the normal flow deletes a vote.
"""

import logging
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func

from identityforge.core.db import Database
from identityforge.core.entities import Vote
from identityforge.core.exceptions import HabitNotFoundError
from identityforge.core.models import HabitRecord, VoteRecord
from identityforge.stores.base import DEFAULT_LIST_LIMIT, VoteStore, check_limit

logger = logging.getLogger(__name__)


class SqlVoteStore(VoteStore):
    """VoteStore bound to a SQLite Database."""

    def __init__(self, database: Database):
        self.database = database

    def list_for_habit(self, habit_id: UUID, limit: int = DEFAULT_LIST_LIMIT) -> List[Vote]:
        check_limit(limit)

        with self.database.session_scope() as session:
            records = (
                session.query(VoteRecord)
                .filter(
                    VoteRecord.habit_id == str(habit_id),
                    VoteRecord.deleted_at.is_(None),
                )
                .order_by(VoteRecord.created_at.desc())
                .limit(limit)
                .all()
            )
            return [r.to_entity() for r in records]

    def cast(self, habit_id: UUID, value: Optional[int], now: int) -> Vote:
        """
        Record a vote, copying the habit's identity_id onto it.

        The habit may be soft-deleted; it only has to exist.
        """
        with self.database.session_scope() as session:
            identity_id = (
                session.query(HabitRecord.identity_id)
                .filter(HabitRecord.id == str(habit_id))
                .scalar()
            )

            if identity_id is None:
                raise HabitNotFoundError(habit_id)

            record = VoteRecord(
                id=str(uuid4()),
                identity_id=identity_id,
                habit_id=str(habit_id),
                value=value,
                created_at=now,
                updated_at=now,
                deleted_at=None,
            )
            session.add(record)
            session.flush()
            vote = record.to_entity()

        logger.info(f"Vote {vote.id} cast for habit {habit_id} (value={value})")
        return vote

    def count_for_habit(self, habit_id: UUID) -> int:
        with self.database.session_scope() as session:
            count = (
                session.query(func.count(VoteRecord.id))
                .filter(
                    VoteRecord.habit_id == str(habit_id),
                    VoteRecord.deleted_at.is_(None),
                )
                .scalar()
            )
            return count or 0

    def last_vote_at(self, habit_id: UUID) -> Optional[int]:
        with self.database.session_scope() as session:
            return (
                session.query(func.max(VoteRecord.created_at))
                .filter(
                    VoteRecord.habit_id == str(habit_id),
                    VoteRecord.deleted_at.is_(None),
                )
                .scalar()
            )
