"""
Exceptions raised by the IdentityForge storage layer.
"""

from typing import Optional
from uuid import UUID


class IdentityForgeError(Exception):
    """Base class for all IdentityForge errors."""


class HabitNotFoundError(IdentityForgeError, LookupError):
    """A vote was cast against a habit that does not exist."""

    def __init__(self, habit_id: UUID):
        self.habit_id = habit_id
        super().__init__(f"Habit not found for vote: {habit_id}")


class MigrationError(IdentityForgeError):
    """
    A schema migration failed.

    Fatal at startup. There is no partial-migration recovery.
    """

    def __init__(self, version: Optional[int], message: str):
        self.version = version
        prefix = f"Migration {version} failed" if version is not None else "Migration failed"
        super().__init__(f"{prefix}: {message}")
