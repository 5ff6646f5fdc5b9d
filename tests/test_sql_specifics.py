"""
Behavior that only the SQLite backend can show: triggers, persisted
soft deletes, transactions and cross-thread locking.
"""

import threading
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from identityforge.core.db import Database
from identityforge.core.models import HabitRecord, IdentityRecord, VoteRecord
from identityforge.stores import memory_stores, sql_stores


def _insert_vote(conn, identity_id: str, habit_id: str) -> None:
    conn.execute(
        text(
            "INSERT INTO votes(id, identity_id, habit_id, value, created_at, updated_at, deleted_at) "
            "VALUES (:id, :identity_id, :habit_id, NULL, 1, 1, NULL)"
        ),
        {"id": str(uuid4()), "identity_id": identity_id, "habit_id": habit_id},
    )


class TestVoteIdentityTrigger:
    """The database rejects votes whose identity differs from their habit."""

    def test_mismatched_identity_rejected(self, database):
        stores = sql_stores(database)
        owner = stores.identities.create("Owner", now=0)
        stranger = stores.identities.create("Stranger", now=1)
        habit = stores.habits.create(owner.id, "Walk", now=2)

        with pytest.raises(IntegrityError):
            with database.engine.begin() as conn:
                _insert_vote(conn, str(stranger.id), str(habit.id))

        assert stores.votes.count_for_habit(habit.id) == 0

    def test_null_identity_rejected(self, database):
        stores = sql_stores(database)
        owner = stores.identities.create("Owner", now=0)
        habit = stores.habits.create(owner.id, "Walk", now=2)

        with pytest.raises(IntegrityError):
            with database.engine.begin() as conn:
                _insert_vote(conn, None, str(habit.id))

    def test_matching_identity_accepted(self, database):
        stores = sql_stores(database)
        owner = stores.identities.create("Owner", now=0)
        habit = stores.habits.create(owner.id, "Walk", now=2)

        with database.engine.begin() as conn:
            _insert_vote(conn, str(owner.id), str(habit.id))

        assert stores.votes.count_for_habit(habit.id) == 1


class TestPersistence:
    """Rows as stored on disk."""

    def test_soft_deleted_row_kept(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Kept", now=0)
        stores.identities.soft_delete(identity.id, now=100)

        with database.session_scope() as session:
            record = session.get(IdentityRecord, str(identity.id))
            assert record is not None
            assert record.deleted_at == 100
            assert record.updated_at == 100

    def test_votes_kept_after_identity_deleted(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Kept", now=0)
        first = stores.identities.cast_vote(identity.id, now=10)
        second = stores.identities.cast_vote(identity.id, now=20)
        stores.identities.soft_delete(identity.id, now=100)

        assert stores.identities.list_vote_history() == []

        with database.session_scope() as session:
            votes = (
                session.query(VoteRecord)
                .filter(VoteRecord.identity_id == str(identity.id))
                .order_by(VoteRecord.created_at)
                .all()
            )
            assert [v.id for v in votes] == [str(first.id), str(second.id)]
            assert all(v.deleted_at is None for v in votes)
            assert session.get(HabitRecord, str(first.habit_id)).deleted_at is None

        assert stores.votes.count_for_habit(first.habit_id) == 2

    def test_soft_delete_with_earlier_clock(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Skewed", now=1_000)
        habit = stores.habits.create(identity.id, "Skewed habit", now=1_000)

        assert stores.habits.soft_delete(habit.id, now=400) is True
        assert stores.identities.soft_delete(identity.id, now=500) is True

        with database.session_scope() as session:
            identity_row = session.get(IdentityRecord, str(identity.id))
            habit_row = session.get(HabitRecord, str(habit.id))
            assert identity_row.deleted_at == 500
            assert identity_row.updated_at == 1_000
            assert habit_row.deleted_at == 400
            assert habit_row.updated_at == 1_000

    def test_ids_stored_as_canonical_uuid_text(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Canon", now=0)
        vote = stores.identities.cast_vote(identity.id, now=1)

        with database.engine.connect() as conn:
            identity_row = conn.execute(text("SELECT id FROM identities")).scalar()
            vote_row = conn.execute(text("SELECT id, identity_id, habit_id FROM votes")).one()

        assert identity_row == str(identity.id)
        assert str(UUID(identity_row)) == identity_row
        assert vote_row.id == str(vote.id)
        assert vote_row.identity_id == str(identity.id)
        assert vote_row.habit_id == str(vote.habit_id)

    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "reopen.db"
        first = Database(path)
        first.migrate()
        identity = sql_stores(first).identities.create("Durable", now=0)
        first.dispose()

        second = Database(path)
        assert second.migrate() == []
        assert sql_stores(second).identities.get_active(identity.id).name == "Durable"
        second.dispose()


class TestSessionScope:
    """Transaction handling."""

    def test_rollback_on_error(self, database):
        with pytest.raises(RuntimeError):
            with database.session_scope() as session:
                session.add(
                    IdentityRecord(id=str(uuid4()), name="Ghost", created_at=0, updated_at=0)
                )
                session.flush()
                raise RuntimeError("abort")

        assert sql_stores(database).identities.list_active() == []

    def test_commit_on_success(self, database):
        with database.session_scope() as session:
            session.add(IdentityRecord(id=str(uuid4()), name="Real", created_at=0, updated_at=0))

        assert [i.name for i in sql_stores(database).identities.list_active()] == ["Real"]

    def test_immediate_scope_commits(self, database):
        with database.session_scope(immediate=True) as session:
            session.add(IdentityRecord(id=str(uuid4()), name="Locked", created_at=0, updated_at=0))

        assert len(sql_stores(database).identities.list_active()) == 1


def _hammer_cast_vote(stores, identity_id, workers: int = 8) -> None:
    barrier = threading.Barrier(workers)
    errors = []

    def worker(i):
        try:
            barrier.wait()
            stores.identities.cast_vote(identity_id, now=1_000 + i)
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []


class TestConcurrentDefaultHabit:
    """Concurrent first votes create one default habit between them."""

    def test_sql(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Racer", now=0)

        _hammer_cast_vote(stores, identity.id)

        habits = stores.habits.list_for_identity(identity.id)
        assert len(habits) == 1
        assert stores.votes.count_for_habit(habits[0].id) == 8
        (item,) = stores.identities.get_identity_dashboard_items(now=2_000)
        assert item.total_votes == 8

    def test_memory(self):
        stores = memory_stores()
        identity = stores.identities.create("Racer", now=0)

        _hammer_cast_vote(stores, identity.id)

        habits = stores.habits.list_for_identity(identity.id)
        assert len(habits) == 1
        assert stores.votes.count_for_habit(habits[0].id) == 8
