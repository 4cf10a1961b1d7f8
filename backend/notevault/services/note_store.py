"""
NoteVault Backend — Note Store (Persistence Client)
=====================================================

What:  The persistence contract NoteService depends on, plus its SQLAlchemy
       implementation.
How:   NoteStore is an abstract base class; SQLNoteStore implements it over a
       request-scoped AsyncSession. NoteService receives a store at
       construction and never touches the session directly.
Who:   Built per request by the notes router (`get_note_service`); replaced by
       AsyncMock(spec=NoteStore) in unit tests.

Error translation:
    SQLAlchemy errors are logged with the failing operation and re-raised as
    StoreError, which the global handler turns into an opaque 500.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notevault.exceptions import StoreError
from notevault.models.note import Note, NoteTag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteCriteria:
    """Filters for listing an owner's notes. `None` means "don't filter"."""
    owner: str
    archived: Optional[bool] = None
    tag: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class FlagCounts:
    total: int
    pinned: int
    archived: int


class NoteStore(ABC):
    """
    Abstract persistence interface for notes.

    Contract:
        - `get` returns None for unknown ids (never raises NotFoundError)
        - `find` orders pinned first, then updated_at descending, then id
        - `tag_counts` is ordered by count descending, then tag ascending
        - Implementation errors surface as StoreError
    """

    @abstractmethod
    async def add(self, note: Note) -> Note:
        """Persist a new note; id and timestamps are populated on return."""
        ...

    @abstractmethod
    async def get(self, note_id: UUID) -> Optional[Note]:
        ...

    @abstractmethod
    async def save(self, note: Note) -> Note:
        """Persist changes made to a note previously returned by this store."""
        ...

    @abstractmethod
    async def delete(self, note: Note) -> None:
        ...

    @abstractmethod
    async def count(self, criteria: NoteCriteria) -> int:
        ...

    @abstractmethod
    async def find(self, criteria: NoteCriteria, offset: int, limit: int) -> List[Note]:
        ...

    @abstractmethod
    async def flag_counts(self, owner: str) -> FlagCounts:
        ...

    @abstractmethod
    async def tag_counts(self, owner: str) -> List[Tuple[str, int]]:
        ...


def escape_like(value: str, escape: str = "\\") -> str:
    """Make `value` match literally inside a LIKE pattern."""
    return (
        value.replace(escape, escape * 2)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class SQLNoteStore(NoteStore):
    """NoteStore backed by an async SQLAlchemy session (one per request)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Store operation '%s' failed: %s", operation, str(e), exc_info=True)
            raise StoreError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e

    @staticmethod
    def _where(criteria: NoteCriteria) -> list:
        clauses = [Note.owner == criteria.owner]
        if criteria.archived is not None:
            clauses.append(Note.is_archived == criteria.archived)
        if criteria.tag:
            clauses.append(Note.tag_rows.any(NoteTag.tag == criteria.tag))
        if criteria.search:
            pattern = f"%{escape_like(criteria.search)}%"
            clauses.append(
                or_(
                    Note.title.ilike(pattern, escape="\\"),
                    Note.content.ilike(pattern, escape="\\"),
                )
            )
        return clauses

    async def add(self, note: Note) -> Note:
        with self._guard("add"):
            self.session.add(note)
            await self.session.flush()
        return note

    async def get(self, note_id: UUID) -> Optional[Note]:
        with self._guard("get"):
            return await self.session.get(Note, note_id)

    async def save(self, note: Note) -> Note:
        with self._guard("save"):
            await self.session.flush()
        return note

    async def delete(self, note: Note) -> None:
        with self._guard("delete"):
            await self.session.delete(note)
            await self.session.flush()

    async def count(self, criteria: NoteCriteria) -> int:
        query = select(func.count()).select_from(Note).where(*self._where(criteria))
        with self._guard("count"):
            total = await self.session.scalar(query)
        return total or 0

    async def find(self, criteria: NoteCriteria, offset: int, limit: int) -> List[Note]:
        query = (
            select(Note)
            .where(*self._where(criteria))
            .order_by(Note.is_pinned.desc(), Note.updated_at.desc(), Note.id)
            .offset(offset)
            .limit(limit)
        )
        with self._guard("find"):
            result = await self.session.scalars(query)
            return list(result.all())

    async def flag_counts(self, owner: str) -> FlagCounts:
        query = select(
            func.count(Note.id),
            func.coalesce(func.sum(case((Note.is_pinned, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Note.is_archived, 1), else_=0)), 0),
        ).where(Note.owner == owner)
        with self._guard("flag_counts"):
            total, pinned, archived = (await self.session.execute(query)).one()
        return FlagCounts(total=int(total), pinned=int(pinned), archived=int(archived))

    async def tag_counts(self, owner: str) -> List[Tuple[str, int]]:
        occurrences = func.count(NoteTag.id).label("count")
        query = (
            select(NoteTag.tag, occurrences)
            .join(Note, Note.id == NoteTag.note_id)
            .where(Note.owner == owner)
            .group_by(NoteTag.tag)
            .order_by(occurrences.desc(), NoteTag.tag)
        )
        with self._guard("tag_counts"):
            rows = (await self.session.execute(query)).all()
        return [(tag, int(count)) for tag, count in rows]
