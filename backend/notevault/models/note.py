"""
NoteVault Backend — Note SQLAlchemy Models
============================================

What:  ORM models for the `notes` and `note_tags` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads these for migrations.
Who:   Used by SQLNoteStore for persistence and by Alembic for schema management.

Table Design:
    notes
        - UUID primary key: opaque, non-sequential identifier
        - owner: the caller identity that created the note; never updated
        - is_pinned / is_archived: flags flipped by the toggle endpoints
        - created_at / updated_at: UTC; updated_at refreshed by every mutation

    note_tags
        - One row per tag occurrence, ordered by `position`
        - Duplicates are allowed, so the primary key is a surrogate id
        - Indexed on `tag` for the tag filter and the stats breakdown

    Index (owner, is_pinned, updated_at):
        Matches the list query exactly: WHERE owner = :owner
        ORDER BY is_pinned DESC, updated_at DESC
"""

import uuid
from datetime import datetime, timezone
from typing import List, Sequence

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, TypeDecorator, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notevault.database import Base


# Column widths; request schemas and the auth dependency enforce the same limits
OWNER_MAX_LENGTH = 64
TAG_MAX_LENGTH = 255


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    PostgreSQL keeps the offset itself; SQLite stores a bare string and hands
    back naive values, so values are normalized to UTC on the way in and
    tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Note(Base):
    """
    A user-owned text note.

    Lifecycle:
        1. Created by POST /api/notes with the caller as owner
        2. Updated by PUT (partial) or PATCH pin/archive (toggle)
        3. Hard-deleted by DELETE; tag rows go with it
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Opaque note identifier",
    )

    owner: Mapped[str] = mapped_column(
        String(OWNER_MAX_LENGTH),
        nullable=False,
        comment="Caller identity of the user who created the note",
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    # selectin: the collection is loaded together with the note, so reading
    # or replacing tags never triggers lazy IO inside the async session.
    tag_rows: Mapped[List["NoteTag"]] = relationship(
        back_populates="note",
        order_by="NoteTag.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_notes_owner", "owner"),
        Index("idx_notes_owner_pinned_updated", "owner", "is_pinned", "updated_at"),
    )

    @property
    def tags(self) -> List[str]:
        return [row.tag for row in self.tag_rows]

    @tags.setter
    def tags(self, values: Sequence[str]) -> None:
        self.tag_rows = [NoteTag(position=i, tag=tag) for i, tag in enumerate(values)]

    def touch(self) -> None:
        """Refresh `updated_at`; called by every mutating service operation."""
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, owner='{self.owner}', "
            f"pinned={self.is_pinned}, archived={self.is_archived})>"
        )


class NoteTag(Base):
    """One tag occurrence on a note, kept in insertion order."""

    __tablename__ = "note_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    tag: Mapped[str] = mapped_column(String(TAG_MAX_LENGTH), nullable=False, index=True)

    note: Mapped["Note"] = relationship(back_populates="tag_rows")

    def __repr__(self) -> str:
        return f"<NoteTag(note_id={self.note_id}, position={self.position}, tag='{self.tag}')>"
