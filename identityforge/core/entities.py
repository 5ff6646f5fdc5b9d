"""
Domain entities for IdentityForge.

Immutable records returned by the stores. Storage rows are mapped
in identityforge.core.models and never leave a session.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

DEFAULT_HABIT_NAME = "Default Habit"


@dataclass(frozen=True)
class Identity:
    """
    An aspirational self-role, e.g. "Present father".

    Active while deleted_at is None.
    """
    id: UUID
    name: str
    created_at: int
    updated_at: int
    deleted_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


@dataclass(frozen=True)
class Habit:
    """A trackable behavior owned by exactly one identity."""
    id: UUID
    identity_id: UUID
    name: str
    created_at: int
    updated_at: int
    deleted_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


@dataclass(frozen=True)
class Vote:
    """
    A timestamped occurrence of a habit.

    identity_id is a copy of the habit's identity_id at creation time.
    It is None only for legacy rows whose habit no longer exists.
    value is optional; None is distinct from 0.
    """
    id: UUID
    identity_id: Optional[UUID]
    habit_id: UUID
    value: Optional[int]
    created_at: int
    updated_at: int
    deleted_at: Optional[int] = None


@dataclass(frozen=True)
class IdentityDashboardItem:
    """Per-identity vote rollup."""
    identity_id: UUID
    identity_name: str
    votes_today: int
    total_votes: int
    votes_last_7_days: int


@dataclass(frozen=True)
class VoteHistoryItem:
    """One line of the global vote history."""
    vote_id: UUID
    identity_name: str
    created_at: int


@dataclass(frozen=True)
class HabitWithStats:
    """A habit enriched with its owner and vote stats."""
    habit: Habit
    identity: Identity
    vote_count: int
    last_vote_at: Optional[int]
