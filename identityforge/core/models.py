"""
Database models for IdentityForge.

Models: SchemaMigration, IdentityRecord, HabitRecord, VoteRecord.

Tables are created and evolved by identityforge.core.migrations;
these mappings are used for queries only.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from identityforge.core.entities import Habit, Identity, Vote


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class SchemaMigration(Base):
    """A ledger row: one applied schema version."""

    __tablename__ = "schema_migrations"

    version: Mapped[int] = mapped_column(Integer, primary_key=True)
    applied_at: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<SchemaMigration {self.version} @ {self.applied_at}>"


class IdentityRecord(Base):
    """
    Stored identity row.

    Soft-deleted rows keep their data; deleted_at marks them inactive.
    """

    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def to_entity(self) -> Identity:
        return Identity(
            id=UUID(self.id),
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )

    def __repr__(self) -> str:
        return f"<IdentityRecord {self.id}: {self.name}>"


class HabitRecord(Base):
    """Stored habit row."""

    __tablename__ = "habits"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    identity_id: Mapped[str] = mapped_column(
        String, ForeignKey("identities.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def to_entity(self) -> Habit:
        return Habit(
            id=UUID(self.id),
            identity_id=UUID(self.identity_id),
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            deleted_at=self.deleted_at,
        )

    def __repr__(self) -> str:
        return f"<HabitRecord {self.id}: {self.name} identity={self.identity_id}>"


class VoteRecord(Base):
    """
    Stored vote row.

    identity_id and updated_at were added by later migrations,
    so they are nullable at the storage level.
    """

    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    habit_id: Mapped[str] = mapped_column(String, ForeignKey("habits.id"), nullable=False)
    value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    identity_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("identities.id"), nullable=True
    )
    updated_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def to_entity(self) -> Vote:
        return Vote(
            id=UUID(self.id),
            identity_id=UUID(self.identity_id) if self.identity_id is not None else None,
            habit_id=UUID(self.habit_id),
            value=self.value,
            created_at=self.created_at,
            updated_at=self.updated_at if self.updated_at is not None else self.created_at,
            deleted_at=self.deleted_at,
        )

    def __repr__(self) -> str:
        return f"<VoteRecord {self.id}: habit={self.habit_id} value={self.value}>"
