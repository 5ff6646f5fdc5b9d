"""
Store interfaces.

Each store has one SQL implementation bound to a Database and one
in-memory implementation for tests. Callers depend on these
interfaces only.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from identityforge.core.entities import (
    Habit,
    Identity,
    IdentityDashboardItem,
    Vote,
    VoteHistoryItem,
)

DEFAULT_LIST_LIMIT = 200


def check_limit(limit: int) -> None:
    """Reject negative limits (SQLite would treat them as unlimited)."""
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")


class IdentityStore(ABC):
    """Identities, their soft-delete lifecycle, and identity-level rollups."""

    @abstractmethod
    def list_active(self) -> List[Identity]:
        """Active identities, newest first."""

    @abstractmethod
    def get_active(self, identity_id: UUID) -> Optional[Identity]:
        """Active identity by id, or None."""

    @abstractmethod
    def create(self, name: str, now: int) -> Identity:
        """Create an identity with created_at == updated_at == now."""

    @abstractmethod
    def soft_delete(self, identity_id: UUID, now: int) -> bool:
        """
        Mark an active identity deleted. False when already deleted or absent.

        updated_at never moves backwards, even for a late-running clock.
        """

    @abstractmethod
    def get_identity_dashboard_items(self, now: int) -> List[IdentityDashboardItem]:
        """One vote rollup per active identity, newest identity first."""

    @abstractmethod
    def cast_vote(self, identity_id: UUID, now: int) -> Vote:
        """
        Vote for an identity through its oldest active habit.

        Creates the identity's "Default Habit" first when it has none.
        """

    @abstractmethod
    def list_vote_history(self, limit: int = DEFAULT_LIST_LIMIT) -> List[VoteHistoryItem]:
        """Active votes of active identities, newest first."""


class HabitStore(ABC):
    """Habits, each owned by one identity."""

    @abstractmethod
    def list_active(self) -> List[Habit]:
        """Active habits, newest first."""

    @abstractmethod
    def get_active(self, habit_id: UUID) -> Optional[Habit]:
        """Active habit by id, or None."""

    @abstractmethod
    def create(self, identity_id: UUID, name: str, now: int) -> Habit:
        """Create a habit. The identity is not checked here."""

    @abstractmethod
    def list_for_identity(self, identity_id: UUID) -> List[Habit]:
        """Active habits of one identity, oldest first."""

    @abstractmethod
    def soft_delete(self, habit_id: UUID, now: int) -> bool:
        """
        Mark an active habit deleted. False when already deleted or absent.

        updated_at never moves backwards, even for a late-running clock.
        """


class VoteStore(ABC):
    """Append-only log of votes."""

    @abstractmethod
    def list_for_habit(self, habit_id: UUID, limit: int = DEFAULT_LIST_LIMIT) -> List[Vote]:
        """Active votes of a habit, newest first."""

    @abstractmethod
    def cast(self, habit_id: UUID, value: Optional[int], now: int) -> Vote:
        """
        Record a vote against a habit.

        Raises HabitNotFoundError when the habit does not exist.
        """

    @abstractmethod
    def count_for_habit(self, habit_id: UUID) -> int:
        """Number of active votes for a habit."""

    @abstractmethod
    def last_vote_at(self, habit_id: UUID) -> Optional[int]:
        """created_at of the most recent active vote, or None."""
