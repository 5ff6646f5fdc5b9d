"""
Database session management.

Provides explicit ORM session handling with SQLAlchemy over a single
SQLite file. Every store call runs in its own session_scope.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from identityforge.core.config import Config
from identityforge.core.exceptions import MigrationError
from identityforge.core.migrations import run_migrations

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def get_engine(
    database_path: Union[str, Path],
    busy_timeout_seconds: float = 15.0,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine.

    Uses SQLite with WAL mode for better concurrency. ":memory:" gets a
    single shared connection and is meant for single-threaded use only.
    """
    connect_args = {
        "check_same_thread": False,
        "timeout": busy_timeout_seconds,
    }

    if str(database_path) == MEMORY_PATH:
        return create_engine(
            "sqlite://",
            echo=echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )

    db_path = Path(database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=echo,
        connect_args=connect_args,
    )

    # Enable WAL mode for better concurrent access
    with engine.connect() as conn:
        conn.execute(text("PRAGMA journal_mode=WAL"))
        conn.commit()

    return engine


class Database:
    """
    Handle to the single relational store.

    Passed explicitly to every store; there is no global connection.
    """

    def __init__(
        self,
        database_path: Union[str, Path],
        busy_timeout_seconds: float = 15.0,
        echo: bool = False,
    ):
        self.database_path = str(database_path)
        self.engine = get_engine(database_path, busy_timeout_seconds, echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: Config) -> "Database":
        return cls(
            config.database_path,
            busy_timeout_seconds=config.busy_timeout_seconds,
            echo=config.sql_echo,
        )

    def migrate(self) -> List[int]:
        """Apply pending schema migrations. Returns the versions applied."""
        return run_migrations(self.engine)

    @contextmanager
    def session_scope(self, immediate: bool = False) -> Generator[Session, None, None]:
        """
        Provide transactional scope around a series of operations.

        With immediate=True the scope opens with BEGIN IMMEDIATE, taking
        SQLite's write lock before the first read so that find-or-create
        sequences serialize against each other.

        Usage:
            with database.session_scope() as session:
                session.add(record)
        """
        session = self._session_factory()
        try:
            if immediate:
                session.execute(text("BEGIN IMMEDIATE"))
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"<Database {self.database_path}>"


def init_db(config: Config) -> Database:
    """
    Open the configured database and bring its schema up to date.

    Raises MigrationError if any migration fails; callers treat that
    as fatal.
    """
    database = Database.from_config(config)
    try:
        applied = database.migrate()
    except MigrationError:
        database.dispose()
        raise

    if applied:
        logger.info(f"Database {config.database_path} migrated: versions {applied}")
    return database
