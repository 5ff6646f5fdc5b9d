"""
In-memory stores.

Same contracts as the SQL stores, backed by plain dicts. Used as a
test double and for dry runs; nothing is persisted.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from identityforge.core.entities import (
    DEFAULT_HABIT_NAME,
    Habit,
    Identity,
    IdentityDashboardItem,
    Vote,
    VoteHistoryItem,
)
from identityforge.core.exceptions import HabitNotFoundError
from identityforge.core.utils import start_of_day_ms, window_start_ms
from identityforge.stores.base import (
    DEFAULT_LIST_LIMIT,
    HabitStore,
    IdentityStore,
    VoteStore,
    check_limit,
)

logger = logging.getLogger(__name__)


@dataclass
class MemoryState:
    """Shared rows for one set of in-memory stores."""
    identities: Dict[UUID, Identity] = field(default_factory=dict)
    habits: Dict[UUID, Habit] = field(default_factory=dict)
    votes: Dict[UUID, Vote] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)


def _newest_first(rows, limit: Optional[int] = None) -> list:
    ordered = sorted(rows, key=lambda r: r.created_at, reverse=True)
    return ordered if limit is None else ordered[:limit]


class InMemoryIdentityStore(IdentityStore):
    """IdentityStore over a MemoryState."""

    def __init__(self, state: MemoryState):
        self.state = state

    def list_active(self) -> List[Identity]:
        with self.state.lock:
            return _newest_first(i for i in self.state.identities.values() if i.is_active)

    def get_active(self, identity_id: UUID) -> Optional[Identity]:
        with self.state.lock:
            identity = self.state.identities.get(identity_id)
            return identity if identity is not None and identity.is_active else None

    def create(self, name: str, now: int) -> Identity:
        identity = Identity(id=uuid4(), name=name, created_at=now, updated_at=now)
        with self.state.lock:
            self.state.identities[identity.id] = identity
        return identity

    def soft_delete(self, identity_id: UUID, now: int) -> bool:
        with self.state.lock:
            identity = self.state.identities.get(identity_id)
            if identity is None or not identity.is_active:
                return False
            self.state.identities[identity_id] = replace(
                identity, deleted_at=now, updated_at=max(identity.updated_at, now)
            )
            return True

    def get_identity_dashboard_items(self, now: int) -> List[IdentityDashboardItem]:
        day_start = start_of_day_ms(now)
        week_start = window_start_ms(now)

        with self.state.lock:
            items = []
            for identity in _newest_first(
                i for i in self.state.identities.values() if i.is_active
            ):
                stamps = [
                    v.created_at
                    for v in self.state.votes.values()
                    if v.identity_id == identity.id and v.deleted_at is None
                ]
                items.append(
                    IdentityDashboardItem(
                        identity_id=identity.id,
                        identity_name=identity.name,
                        votes_today=sum(1 for t in stamps if t >= day_start),
                        total_votes=len(stamps),
                        votes_last_7_days=sum(1 for t in stamps if t >= week_start),
                    )
                )
            return items

    def cast_vote(self, identity_id: UUID, now: int) -> Vote:
        # The lock covers find-or-create and the insert as one step
        with self.state.lock:
            candidates = [
                h for h in self.state.habits.values()
                if h.identity_id == identity_id and h.is_active
            ]

            if candidates:
                habit = min(candidates, key=lambda h: h.created_at)
            else:
                habit = Habit(
                    id=uuid4(),
                    identity_id=identity_id,
                    name=DEFAULT_HABIT_NAME,
                    created_at=now,
                    updated_at=now,
                )
                self.state.habits[habit.id] = habit
                logger.info(f"Created {DEFAULT_HABIT_NAME!r} {habit.id} for identity {identity_id}")

            vote = Vote(
                id=uuid4(),
                identity_id=identity_id,
                habit_id=habit.id,
                value=None,
                created_at=now,
                updated_at=now,
            )
            self.state.votes[vote.id] = vote
            return vote

    def list_vote_history(self, limit: int = DEFAULT_LIST_LIMIT) -> List[VoteHistoryItem]:
        check_limit(limit)

        with self.state.lock:
            rows = []
            for vote in self.state.votes.values():
                identity = self.state.identities.get(vote.identity_id)
                if vote.deleted_at is None and identity is not None and identity.is_active:
                    rows.append(
                        VoteHistoryItem(
                            vote_id=vote.id,
                            identity_name=identity.name,
                            created_at=vote.created_at,
                        )
                    )
            return _newest_first(rows, limit)


class InMemoryHabitStore(HabitStore):
    """HabitStore over a MemoryState."""

    def __init__(self, state: MemoryState):
        self.state = state

    def list_active(self) -> List[Habit]:
        with self.state.lock:
            return _newest_first(h for h in self.state.habits.values() if h.is_active)

    def get_active(self, habit_id: UUID) -> Optional[Habit]:
        with self.state.lock:
            habit = self.state.habits.get(habit_id)
            return habit if habit is not None and habit.is_active else None

    def create(self, identity_id: UUID, name: str, now: int) -> Habit:
        habit = Habit(
            id=uuid4(),
            identity_id=identity_id,
            name=name,
            created_at=now,
            updated_at=now,
        )
        with self.state.lock:
            self.state.habits[habit.id] = habit
        return habit

    def list_for_identity(self, identity_id: UUID) -> List[Habit]:
        with self.state.lock:
            return sorted(
                (
                    h for h in self.state.habits.values()
                    if h.identity_id == identity_id and h.is_active
                ),
                key=lambda h: h.created_at,
            )

    def soft_delete(self, habit_id: UUID, now: int) -> bool:
        with self.state.lock:
            habit = self.state.habits.get(habit_id)
            if habit is None or not habit.is_active:
                return False
            self.state.habits[habit_id] = replace(
                habit, deleted_at=now, updated_at=max(habit.updated_at, now)
            )
            return True


class InMemoryVoteStore(VoteStore):
    """VoteStore over a MemoryState."""

    def __init__(self, state: MemoryState):
        self.state = state

    def _active_for_habit(self, habit_id: UUID) -> List[Vote]:
        return [
            v for v in self.state.votes.values()
            if v.habit_id == habit_id and v.deleted_at is None
        ]

    def list_for_habit(self, habit_id: UUID, limit: int = DEFAULT_LIST_LIMIT) -> List[Vote]:
        check_limit(limit)
        with self.state.lock:
            return _newest_first(self._active_for_habit(habit_id), limit)

    def cast(self, habit_id: UUID, value: Optional[int], now: int) -> Vote:
        with self.state.lock:
            habit = self.state.habits.get(habit_id)
            if habit is None:
                raise HabitNotFoundError(habit_id)

            vote = Vote(
                id=uuid4(),
                identity_id=habit.identity_id,
                habit_id=habit_id,
                value=value,
                created_at=now,
                updated_at=now,
            )
            self.state.votes[vote.id] = vote
            return vote

    def count_for_habit(self, habit_id: UUID) -> int:
        with self.state.lock:
            return len(self._active_for_habit(habit_id))

    def last_vote_at(self, habit_id: UUID) -> Optional[int]:
        with self.state.lock:
            stamps = [v.created_at for v in self._active_for_habit(habit_id)]
            return max(stamps) if stamps else None
