"""
Storage module for IdentityForge.

Identity, habit and vote stores with SQL and in-memory implementations.
"""

from dataclasses import dataclass
from typing import Optional

from identityforge.core.db import Database
from identityforge.stores.base import HabitStore, IdentityStore, VoteStore
from identityforge.stores.habits import SqlHabitStore
from identityforge.stores.identities import SqlIdentityStore
from identityforge.stores.memory import (
    InMemoryHabitStore,
    InMemoryIdentityStore,
    InMemoryVoteStore,
    MemoryState,
)
from identityforge.stores.votes import SqlVoteStore


@dataclass(frozen=True)
class Stores:
    """The three stores a caller works with."""
    identities: IdentityStore
    habits: HabitStore
    votes: VoteStore


def sql_stores(database: Database) -> Stores:
    """Stores bound to one Database."""
    return Stores(
        identities=SqlIdentityStore(database),
        habits=SqlHabitStore(database),
        votes=SqlVoteStore(database),
    )


def memory_stores(state: Optional[MemoryState] = None) -> Stores:
    """Stores sharing one MemoryState (a fresh one by default)."""
    state = state or MemoryState()
    return Stores(
        identities=InMemoryIdentityStore(state),
        habits=InMemoryHabitStore(state),
        votes=InMemoryVoteStore(state),
    )


__all__ = [
    "Stores",
    "sql_stores",
    "memory_stores",
    "IdentityStore",
    "HabitStore",
    "VoteStore",
    "SqlIdentityStore",
    "SqlHabitStore",
    "SqlVoteStore",
    "InMemoryIdentityStore",
    "InMemoryHabitStore",
    "InMemoryVoteStore",
    "MemoryState",
]
