"""
SQL identity store.

Identity CRUD, soft delete, the dashboard rollup, global vote history,
and vote casting through an identity's default habit.
"""

import logging
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, case, func

from identityforge.core.db import Database
from identityforge.core.entities import (
    DEFAULT_HABIT_NAME,
    Identity,
    IdentityDashboardItem,
    Vote,
    VoteHistoryItem,
)
from identityforge.core.models import HabitRecord, IdentityRecord, VoteRecord
from identityforge.core.utils import start_of_day_ms, window_start_ms
from identityforge.stores.base import DEFAULT_LIST_LIMIT, IdentityStore, check_limit

logger = logging.getLogger(__name__)


class SqlIdentityStore(IdentityStore):
    """IdentityStore bound to a SQLite Database."""

    def __init__(self, database: Database):
        self.database = database

    def list_active(self) -> List[Identity]:
        with self.database.session_scope() as session:
            records = (
                session.query(IdentityRecord)
                .filter(IdentityRecord.deleted_at.is_(None))
                .order_by(IdentityRecord.created_at.desc())
                .all()
            )
            return [r.to_entity() for r in records]

    def get_active(self, identity_id: UUID) -> Optional[Identity]:
        with self.database.session_scope() as session:
            record = (
                session.query(IdentityRecord)
                .filter(
                    IdentityRecord.id == str(identity_id),
                    IdentityRecord.deleted_at.is_(None),
                )
                .first()
            )
            return record.to_entity() if record else None

    def create(self, name: str, now: int) -> Identity:
        record = IdentityRecord(
            id=str(uuid4()),
            name=name,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )

        with self.database.session_scope() as session:
            session.add(record)
            session.flush()
            identity = record.to_entity()

        logger.info(f"Created identity {identity.id}: {name!r}")
        return identity

    def soft_delete(self, identity_id: UUID, now: int) -> bool:
        with self.database.session_scope() as session:
            changed = (
                session.query(IdentityRecord)
                .filter(
                    IdentityRecord.id == str(identity_id),
                    IdentityRecord.deleted_at.is_(None),
                )
                .update(
                    {
                        IdentityRecord.deleted_at: now,
                        IdentityRecord.updated_at: func.max(IdentityRecord.updated_at, now),
                    },
                    synchronize_session=False,
                )
            )

        if changed:
            logger.info(f"Soft-deleted identity {identity_id}")
        else:
            logger.debug(f"Soft delete of identity {identity_id} was a no-op")

        return changed > 0

    def get_identity_dashboard_items(self, now: int) -> List[IdentityDashboardItem]:
        """
        Vote counts per active identity.

        Joins votes on their denormalized identity_id, not through habits.
        Identities without votes are included with zero counts.
        """
        day_start = start_of_day_ms(now)
        week_start = window_start_ms(now)

        votes_today = func.coalesce(
            func.sum(case((VoteRecord.created_at >= day_start, 1), else_=0)), 0
        )
        votes_last_7_days = func.coalesce(
            func.sum(case((VoteRecord.created_at >= week_start, 1), else_=0)), 0
        )

        with self.database.session_scope() as session:
            rows = (
                session.query(
                    IdentityRecord.id,
                    IdentityRecord.name,
                    votes_today.label("votes_today"),
                    func.count(VoteRecord.id).label("total_votes"),
                    votes_last_7_days.label("votes_last_7_days"),
                )
                .outerjoin(
                    VoteRecord,
                    and_(
                        VoteRecord.identity_id == IdentityRecord.id,
                        VoteRecord.deleted_at.is_(None),
                    ),
                )
                .filter(IdentityRecord.deleted_at.is_(None))
                .group_by(IdentityRecord.id, IdentityRecord.name, IdentityRecord.created_at)
                .order_by(IdentityRecord.created_at.desc())
                .all()
            )

            return [
                IdentityDashboardItem(
                    identity_id=UUID(row.id),
                    identity_name=row.name,
                    votes_today=int(row.votes_today),
                    total_votes=int(row.total_votes),
                    votes_last_7_days=int(row.votes_last_7_days),
                )
                for row in rows
            ]

    def cast_vote(self, identity_id: UUID, now: int) -> Vote:
        """
        Vote through the identity's oldest active habit.

        Runs under BEGIN IMMEDIATE so concurrent calls for a habit-less
        identity cannot each create their own default habit.
        """
        with self.database.session_scope(immediate=True) as session:
            habit = (
                session.query(HabitRecord)
                .filter(
                    HabitRecord.identity_id == str(identity_id),
                    HabitRecord.deleted_at.is_(None),
                )
                .order_by(HabitRecord.created_at.asc())
                .first()
            )

            if habit is None:
                habit = HabitRecord(
                    id=str(uuid4()),
                    identity_id=str(identity_id),
                    name=DEFAULT_HABIT_NAME,
                    created_at=now,
                    updated_at=now,
                    deleted_at=None,
                )
                session.add(habit)
                # Habit row must exist before the vote insert trigger runs
                session.flush()
                logger.info(f"Created {DEFAULT_HABIT_NAME!r} {habit.id} for identity {identity_id}")

            record = VoteRecord(
                id=str(uuid4()),
                identity_id=str(identity_id),
                habit_id=habit.id,
                value=None,
                created_at=now,
                updated_at=now,
                deleted_at=None,
            )
            session.add(record)
            session.flush()
            vote = record.to_entity()

        logger.info(f"Vote {vote.id} cast for identity {identity_id} via habit {vote.habit_id}")
        return vote

    def list_vote_history(self, limit: int = DEFAULT_LIST_LIMIT) -> List[VoteHistoryItem]:
        check_limit(limit)

        with self.database.session_scope() as session:
            rows = (
                session.query(VoteRecord.id, IdentityRecord.name, VoteRecord.created_at)
                .join(IdentityRecord, IdentityRecord.id == VoteRecord.identity_id)
                .filter(
                    VoteRecord.deleted_at.is_(None),
                    IdentityRecord.deleted_at.is_(None),
                )
                .order_by(VoteRecord.created_at.desc())
                .limit(limit)
                .all()
            )

            return [
                VoteHistoryItem(
                    vote_id=UUID(row.id),
                    identity_name=row.name,
                    created_at=row.created_at,
                )
                for row in rows
            ]
