"""
Versioned schema migrations.

Each migration runs at most once per database, tracked in the
schema_migrations ledger. run_migrations() is safe to call on every
start, including against databases written by older versions.

Migrations never drop columns or tables.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import func, inspect, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from identityforge.core.exceptions import MigrationError
from identityforge.core.models import SchemaMigration
from identityforge.core.utils import now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """One schema version: DDL and/or backfill statements."""
    version: int
    description: str
    apply: Callable[[Connection], None]


LEDGER_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at INTEGER NOT NULL
)
"""


def column_exists(conn: Connection, table: str, column: str) -> bool:
    """Check the live schema for a column (ADD COLUMN is not idempotent)."""
    return any(col["name"] == column for col in inspect(conn).get_columns(table))


def _create_core_tables(conn: Connection) -> None:
    conn.execute(text(
        """
        CREATE TABLE IF NOT EXISTS identities (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            deleted_at INTEGER NULL
        )
        """
    ))
    conn.execute(text(
        """
        CREATE TABLE IF NOT EXISTS habits (
            id TEXT PRIMARY KEY,
            identity_id TEXT NOT NULL,
            name TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            deleted_at INTEGER NULL,
            FOREIGN KEY(identity_id) REFERENCES identities(id)
        )
        """
    ))
    conn.execute(text(
        """
        CREATE TABLE IF NOT EXISTS votes (
            id TEXT PRIMARY KEY,
            habit_id TEXT NOT NULL,
            value INTEGER NULL,
            created_at INTEGER NOT NULL,
            deleted_at INTEGER NULL,
            FOREIGN KEY(habit_id) REFERENCES habits(id)
        )
        """
    ))
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS idx_habits_identity_id ON habits(identity_id)"
    ))
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS idx_votes_habit_id_created_at "
        "ON votes(habit_id, created_at DESC)"
    ))


def _add_vote_identity_id(conn: Connection) -> None:
    if not column_exists(conn, "votes", "identity_id"):
        conn.execute(text(
            "ALTER TABLE votes ADD COLUMN identity_id TEXT NULL REFERENCES identities(id)"
        ))

    # Backfill from the owning habit
    conn.execute(text(
        """
        UPDATE votes
        SET identity_id = (
            SELECT h.identity_id FROM habits h WHERE h.id = votes.habit_id
        )
        WHERE identity_id IS NULL
        """
    ))


def _add_vote_updated_at(conn: Connection) -> None:
    if not column_exists(conn, "votes", "updated_at"):
        conn.execute(text("ALTER TABLE votes ADD COLUMN updated_at INTEGER NULL"))

    conn.execute(text(
        "UPDATE votes SET updated_at = created_at WHERE updated_at IS NULL"
    ))


def _enforce_vote_identity(conn: Connection) -> None:
    conn.execute(text(
        """
        CREATE TRIGGER IF NOT EXISTS trg_votes_identity_matches_habit
        BEFORE INSERT ON votes
        FOR EACH ROW
        WHEN NEW.identity_id IS NOT (
            SELECT identity_id FROM habits WHERE id = NEW.habit_id
        )
        BEGIN
            SELECT RAISE(ABORT, 'vote identity_id does not match its habit');
        END
        """
    ))


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(1, "create identities, habits and votes", _create_core_tables),
    Migration(2, "add votes.identity_id and backfill from habits", _add_vote_identity_id),
    Migration(3, "add votes.updated_at and backfill from created_at", _add_vote_updated_at),
    Migration(4, "reject votes whose identity differs from their habit", _enforce_vote_identity),
)

LATEST_SCHEMA_VERSION = max(m.version for m in MIGRATIONS)


def _is_applied(conn: Connection, version: int) -> bool:
    row = conn.execute(
        text("SELECT 1 FROM schema_migrations WHERE version = :version LIMIT 1"),
        {"version": version},
    ).first()
    return row is not None


def run_migrations(
    engine: Engine,
    migrations: Optional[Iterable[Migration]] = None,
    clock: Callable[[], int] = now_ms,
) -> List[int]:
    """
    Apply every migration missing from the ledger, in ascending order.

    Each migration body and its ledger row share one engine.begin()
    block opened with BEGIN IMMEDIATE, so processes starting together
    on the same file apply each version exactly once.

    Args:
        engine: Engine bound to the target database
        migrations: Migrations to consider (defaults to MIGRATIONS)
        clock: Source of applied_at timestamps

    Returns:
        Versions applied by this call (empty when up to date)

    Raises:
        MigrationError: on any failure; nothing is retried
    """
    ordered = sorted(migrations if migrations is not None else MIGRATIONS, key=lambda m: m.version)

    try:
        with engine.begin() as conn:
            conn.execute(text(LEDGER_DDL))
    except Exception as e:
        logger.error(f"Could not create migration ledger: {e}")
        raise MigrationError(None, str(e)) from e

    applied: List[int] = []

    for migration in ordered:
        try:
            with engine.begin() as conn:
                # Ledger check, body and ledger insert all run under the write lock
                conn.exec_driver_sql("BEGIN IMMEDIATE")
                if _is_applied(conn, migration.version):
                    continue

                logger.info(f"Applying migration {migration.version}: {migration.description}")
                migration.apply(conn)
                conn.execute(
                    text(
                        "INSERT INTO schema_migrations(version, applied_at) "
                        "VALUES (:version, :applied_at)"
                    ),
                    {"version": migration.version, "applied_at": clock()},
                )
        except Exception as e:
            logger.error(f"Migration {migration.version} failed: {e}")
            raise MigrationError(migration.version, str(e)) from e

        applied.append(migration.version)

    if not applied:
        logger.debug("Schema up to date")

    return applied


def applied_migrations(engine: Engine) -> List[Tuple[int, int]]:
    """Ledger contents as (version, applied_at), oldest version first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(SchemaMigration).order_by(SchemaMigration.version)
        ).all()
        return [(row.version, row.applied_at) for row in rows]


def get_schema_version(engine: Engine) -> int:
    """Highest applied version, or 0 for an unmigrated database."""
    if not inspect(engine).has_table("schema_migrations"):
        return 0

    with Session(engine) as session:
        version = session.scalar(select(func.max(SchemaMigration.version)))
        return version or 0
