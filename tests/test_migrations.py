"""
Unit tests for schema migrations.

Covers fresh installs, re-runs, upgrades of databases written by
older versions, and failure handling.
"""

import sqlite3
import threading
from pathlib import Path
from uuid import UUID

import pytest
from sqlalchemy import create_engine, text

from identityforge.core.db import Database
from identityforge.core.exceptions import MigrationError
from identityforge.core.migrations import (
    LATEST_SCHEMA_VERSION,
    MIGRATIONS,
    Migration,
    applied_migrations,
    column_exists,
    get_schema_version,
    run_migrations,
)
from identityforge.core.utils import DAY_MS
from identityforge.stores import sql_stores

# Schema v1 as first shipped: votes lack identity_id and updated_at.
_V1_SCHEMA = """
CREATE TABLE schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at INTEGER NOT NULL
);
INSERT INTO schema_migrations(version, applied_at) VALUES (1, 1);

CREATE TABLE identities (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    deleted_at INTEGER NULL
);
CREATE TABLE habits (
    id TEXT PRIMARY KEY,
    identity_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    deleted_at INTEGER NULL,
    FOREIGN KEY(identity_id) REFERENCES identities(id)
);
CREATE TABLE votes (
    id TEXT PRIMARY KEY,
    habit_id TEXT NOT NULL,
    value INTEGER NULL,
    created_at INTEGER NOT NULL,
    deleted_at INTEGER NULL,
    FOREIGN KEY(habit_id) REFERENCES habits(id)
);

INSERT INTO identities VALUES ('11111111-1111-4111-8111-111111111111', 'Runner', 100, 100, NULL);
INSERT INTO habits VALUES ('22222222-2222-4222-8222-222222222222', '11111111-1111-4111-8111-111111111111', 'Morning run', 200, 200, NULL);
INSERT INTO votes VALUES ('33333333-3333-4333-8333-333333333333', '22222222-2222-4222-8222-222222222222', 5, 300, NULL);
INSERT INTO votes VALUES ('44444444-4444-4444-8444-444444444444', '22222222-2222-4222-8222-222222222222', NULL, 400, NULL);
"""

# Written by a build that predates the ledger but already had identity_id.
_PRE_LEDGER_SCHEMA = """
CREATE TABLE identities (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    deleted_at INTEGER NULL
);
CREATE TABLE habits (
    id TEXT PRIMARY KEY,
    identity_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    deleted_at INTEGER NULL
);
CREATE TABLE votes (
    id TEXT PRIMARY KEY,
    identity_id TEXT NULL,
    habit_id TEXT NOT NULL,
    value INTEGER NULL,
    created_at INTEGER NOT NULL,
    deleted_at INTEGER NULL
);
"""


def _create_old_db(tmp_path: Path, schema_sql: str) -> Path:
    db_path = tmp_path / "old.db"
    conn = sqlite3.connect(str(db_path))
    conn.executescript(schema_sql)
    conn.close()
    return db_path


def _names(database: Database, kind: str) -> set:
    with database.engine.connect() as conn:
        rows = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = :kind"), {"kind": kind}
        ).all()
    return {row[0] for row in rows}


def _ledger_count(database: Database) -> int:
    with database.engine.connect() as conn:
        return conn.execute(text("SELECT COUNT(*) FROM schema_migrations")).scalar()


class TestFreshInstall:
    """Migrating an empty database."""

    def test_creates_all_tables(self, database):
        tables = _names(database, "table")
        assert {"schema_migrations", "identities", "habits", "votes"} <= tables

    def test_creates_indexes_and_trigger(self, database):
        indexes = _names(database, "index")
        assert "idx_habits_identity_id" in indexes
        assert "idx_votes_habit_id_created_at" in indexes
        assert "trg_votes_identity_matches_habit" in _names(database, "trigger")

    def test_votes_have_late_columns(self, database):
        with database.engine.connect() as conn:
            assert column_exists(conn, "votes", "identity_id")
            assert column_exists(conn, "votes", "updated_at")
            assert not column_exists(conn, "votes", "nonexistent")

    def test_ledger_records_every_version(self, database):
        versions = [v for v, _ in applied_migrations(database.engine)]
        assert versions == [m.version for m in MIGRATIONS]
        assert get_schema_version(database.engine) == LATEST_SCHEMA_VERSION

    def test_returns_applied_versions(self, tmp_path):
        db = Database(tmp_path / "fresh.db")
        assert db.migrate() == [1, 2, 3, 4]
        db.dispose()

    def test_unmigrated_database_reports_version_zero(self, tmp_path):
        db = Database(tmp_path / "empty.db")
        assert get_schema_version(db.engine) == 0
        db.dispose()


class TestIdempotence:
    """Re-running migrations."""

    def test_second_run_is_noop(self, database):
        assert database.migrate() == []
        assert _ledger_count(database) == LATEST_SCHEMA_VERSION

    def test_many_runs_never_duplicate_ledger(self, database):
        for _ in range(3):
            database.migrate()
        assert _ledger_count(database) == LATEST_SCHEMA_VERSION

    def test_rerun_keeps_data(self, database):
        stores = sql_stores(database)
        identity = stores.identities.create("Writer", now=10)
        database.migrate()
        assert stores.identities.get_active(identity.id) is not None

    @pytest.mark.parametrize("round_no", range(5))
    def test_concurrent_first_start(self, tmp_path, round_no):
        path = tmp_path / f"race_{round_no}.db"
        databases = [Database(path) for _ in range(4)]
        barrier = threading.Barrier(len(databases))
        applied = []
        errors = []

        def start(db):
            try:
                barrier.wait()
                applied.append(db.migrate())
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=start, args=(db,)) for db in databases]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(v for versions in applied for v in versions) == [1, 2, 3, 4]
        assert _ledger_count(databases[0]) == LATEST_SCHEMA_VERSION

        for db in databases:
            db.dispose()

    def test_clock_sets_applied_at(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'clock.db'}")
        run_migrations(engine, clock=lambda: 1234)
        assert {applied_at for _, applied_at in applied_migrations(engine)} == {1234}
        engine.dispose()


class TestLegacyUpgrade:
    """Databases written before votes carried identity_id and updated_at."""

    def test_applies_only_missing_versions(self, tmp_path):
        db = Database(_create_old_db(tmp_path, _V1_SCHEMA))
        assert db.migrate() == [2, 3, 4]
        db.dispose()

    def test_backfills_identity_and_updated_at(self, tmp_path):
        db = Database(_create_old_db(tmp_path, _V1_SCHEMA))
        db.migrate()

        with db.engine.connect() as conn:
            rows = conn.execute(
                text("SELECT identity_id, created_at, updated_at FROM votes ORDER BY created_at")
            ).all()

        assert [r.identity_id for r in rows] == ["11111111-1111-4111-8111-111111111111"] * 2
        assert all(r.updated_at == r.created_at for r in rows)
        db.dispose()

    def test_legacy_votes_visible_to_stores(self, tmp_path):
        db = Database(_create_old_db(tmp_path, _V1_SCHEMA))
        db.migrate()
        stores = sql_stores(db)

        items = stores.identities.get_identity_dashboard_items(now=DAY_MS - 1)
        assert len(items) == 1
        assert items[0].identity_name == "Runner"
        assert items[0].total_votes == 2

        history = stores.identities.list_vote_history()
        assert [h.created_at for h in history] == [400, 300]

        values = [v.value for v in stores.votes.list_for_habit(stores.habits.list_active()[0].id)]
        assert values == [None, 5]
        db.dispose()

    def test_orphaned_legacy_vote_keeps_null_identity(self, tmp_path):
        orphan = (
            "INSERT INTO votes VALUES ('55555555-5555-4555-8555-555555555555', "
            "'66666666-6666-4666-8666-666666666666', NULL, 500, NULL);"
        )
        db = Database(_create_old_db(tmp_path, _V1_SCHEMA + orphan))
        db.migrate()
        stores = sql_stores(db)

        (vote,) = stores.votes.list_for_habit(UUID("66666666-6666-4666-8666-666666666666"))

        assert vote.identity_id is None
        assert vote.updated_at == vote.created_at == 500
        assert len(stores.identities.list_vote_history()) == 2
        db.dispose()

    def test_existing_column_is_not_added_twice(self, tmp_path):
        db = Database(_create_old_db(tmp_path, _PRE_LEDGER_SCHEMA))
        assert db.migrate() == [1, 2, 3, 4]

        with db.engine.connect() as conn:
            assert column_exists(conn, "votes", "updated_at")
        db.dispose()


class TestFailure:
    """Migration errors are fatal and wrapped."""

    def test_failure_raises_migration_error(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'broken.db'}")

        def broken(conn):
            conn.execute(text("ALTER TABLE no_such_table ADD COLUMN x INTEGER"))

        migrations = [MIGRATIONS[0], Migration(99, "broken", broken)]

        with pytest.raises(MigrationError) as exc_info:
            run_migrations(engine, migrations=migrations)

        assert exc_info.value.version == 99
        assert exc_info.value.__cause__ is not None
        assert [v for v, _ in applied_migrations(engine)] == [1]
        engine.dispose()

    def test_failed_version_retried_on_next_start(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'retry.db'}")
        calls = []

        def flaky(conn):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("disk on fire")

        migrations = [Migration(1, "flaky", flaky)]

        with pytest.raises(MigrationError):
            run_migrations(engine, migrations=migrations)

        assert run_migrations(engine, migrations=migrations) == [1]
        engine.dispose()
