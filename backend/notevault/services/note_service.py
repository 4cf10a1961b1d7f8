"""
NoteVault Backend — Note Service (Business Logic)
===================================================

What:  Note CRUD, ownership enforcement, filtering/pagination and tag statistics.
How:   Receives a NoteStore at construction; every operation takes the caller
       identity resolved by the auth dependency.
Who:   Called by the notes route handlers; calls the store.

Request Flow (PUT /api/notes/{id}):
    ┌──────────┐    ┌────────────┐    ┌─────────────┐    ┌──────────┐
    │  Route   │───▶│  Validate  │───▶│ Load + own  │───▶│  Save    │
    │ (shape)  │    │  changes   │    │   check     │    │ (store)  │
    └──────────┘    └────────────┘    └─────────────┘    └──────────┘

    Validation is finished before the store is touched; the ownership check
    (`_load_owned`) runs before any read or mutation of a single note.

Design Decision:
    The service holds nothing but its store. A new service is built for each
    request around that request's session, so there is no shared mutable state.
"""

import logging
import math
from typing import List, Optional, Sequence, Union
from uuid import UUID, uuid4

from notevault.auth import CallerIdentity, is_owner
from notevault.config import settings
from notevault.exceptions import ForbiddenError, NotFoundError, ValidationError
from notevault.models.note import TAG_MAX_LENGTH, Note, utcnow
from notevault.schemas.note import (
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
    PageMeta,
    StatsResponse,
    TagCount,
)
from notevault.services.note_store import NoteCriteria, NoteStore

logger = logging.getLogger(__name__)


# ── Pagination ────────────────────────────────────────────────────────────


# Keeps (page - 1) * limit well inside a signed 64-bit OFFSET
MAX_PAGE = 1_000_000_000


def normalize_page(page: Optional[int]) -> int:
    """Pages are 1-based; missing or below 1 becomes 1, above MAX_PAGE becomes MAX_PAGE."""
    if not page or page < 1:
        return 1
    return min(page, MAX_PAGE)


def normalize_limit(limit: Optional[int]) -> int:
    """
    Clamp the page size.

    Missing or 0 → default (20); above the maximum → maximum (100);
    negative → 1.
    """
    if not limit:
        return settings.default_page_limit
    return max(1, min(settings.max_page_limit, limit))


def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(message="Title is required", field="title")
    return cleaned


def _clean_tags(tags: Optional[Sequence[str]]) -> List[str]:
    cleaned = [tag.strip() for tag in tags or []]
    if any(len(tag) > TAG_MAX_LENGTH for tag in cleaned):
        raise ValidationError(
            message=f"Tags may be at most {TAG_MAX_LENGTH} characters", field="tags"
        )
    return cleaned


class NoteService:
    """
    Business logic layer for note operations.

    Error Handling Strategy:
        - ValidationError: bad input, raised before the store is called
        - NotFoundError / ForbiddenError: raised by `_load_owned`
        - StoreError: raised by the store; propagated unchanged
    """

    def __init__(self, store: NoteStore):
        self.store = store

    async def _load_owned(self, caller: CallerIdentity, note_id: Union[str, UUID]) -> Note:
        """
        Fetch a note and apply the ownership guard.

        A malformed id cannot name an existing note, so it is reported as
        not found rather than as a validation error.
        """
        try:
            key = note_id if isinstance(note_id, UUID) else UUID(str(note_id))
        except ValueError:
            raise NotFoundError(resource="note", resource_id=str(note_id))

        note = await self.store.get(key)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(key))

        if not is_owner(caller, note):
            logger.warning("User %s denied access to note %s", caller.user_id, key)
            raise ForbiddenError(resource="note", resource_id=str(key))

        return note

    async def create_note(
        self,
        caller: CallerIdentity,
        title: Optional[str],
        content: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> NoteResponse:
        """
        Create a note owned by the caller.

        Raises:
            ValidationError: title missing or blank (→ 400)
        """
        now = utcnow()
        note = Note(
            id=uuid4(),
            owner=caller.user_id,
            title=_clean_title(title),
            content=(content or "").strip(),
            tags=_clean_tags(tags),
            is_archived=False,
            is_pinned=False,
            created_at=now,
            updated_at=now,
        )
        await self.store.add(note)
        logger.info("Note %s created by user %s", note.id, caller.user_id)
        return NoteResponse.model_validate(note)

    async def list_notes(
        self,
        caller: CallerIdentity,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        archived: Optional[bool] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
    ) -> NoteListResponse:
        """
        One page of the caller's notes, pinned first, then most recently updated.

        `tag` matches one tag exactly; `search` is a case-insensitive substring
        match against title or content. Empty strings are treated as absent.
        """
        page = normalize_page(page)
        limit = normalize_limit(limit)
        criteria = NoteCriteria(
            owner=caller.user_id,
            archived=archived,
            tag=tag or None,
            search=search or None,
        )

        total = await self.store.count(criteria)
        offset = (page - 1) * limit
        notes = await self.store.find(criteria, offset=offset, limit=limit) if offset < total else []

        return NoteListResponse(
            meta=PageMeta(
                total=total,
                page=page,
                limit=limit,
                pages=math.ceil(total / limit),
            ),
            notes=[NoteResponse.model_validate(note) for note in notes],
        )

    async def get_note(self, caller: CallerIdentity, note_id: Union[str, UUID]) -> NoteResponse:
        note = await self._load_owned(caller, note_id)
        return NoteResponse.model_validate(note)

    async def update_note(
        self,
        caller: CallerIdentity,
        note_id: Union[str, UUID],
        changes: NoteUpdate,
    ) -> NoteResponse:
        """
        Apply the fields present in `changes` and refresh `updated_at`.

        Only title, content, tags, is_archived and is_pinned can change;
        owner and timestamps are not part of NoteUpdate.
        """
        fields = changes.changes()
        if "title" in fields:
            fields["title"] = _clean_title(fields["title"])
        if "content" in fields:
            fields["content"] = fields["content"].strip()
        if "tags" in fields:
            fields["tags"] = _clean_tags(fields["tags"])

        note = await self._load_owned(caller, note_id)
        for name, value in fields.items():
            setattr(note, name, value)
        note.touch()

        await self.store.save(note)
        logger.info("Note %s updated (%s)", note.id, ", ".join(sorted(fields)) or "no fields")
        return NoteResponse.model_validate(note)

    async def delete_note(self, caller: CallerIdentity, note_id: Union[str, UUID]) -> None:
        """Permanently remove the note. There is no tombstone."""
        note = await self._load_owned(caller, note_id)
        await self.store.delete(note)
        logger.info("Note %s deleted by user %s", note.id, caller.user_id)

    async def toggle_pin(self, caller: CallerIdentity, note_id: Union[str, UUID]) -> NoteResponse:
        note = await self._load_owned(caller, note_id)
        note.is_pinned = not note.is_pinned
        note.touch()
        await self.store.save(note)
        return NoteResponse.model_validate(note)

    async def toggle_archive(self, caller: CallerIdentity, note_id: Union[str, UUID]) -> NoteResponse:
        note = await self._load_owned(caller, note_id)
        note.is_archived = not note.is_archived
        note.touch()
        await self.store.save(note)
        return NoteResponse.model_validate(note)

    async def stats(self, caller: CallerIdentity) -> StatsResponse:
        """Counts of all, pinned and archived notes, plus tag occurrences by frequency."""
        flags = await self.store.flag_counts(caller.user_id)
        tag_counts = await self.store.tag_counts(caller.user_id)
        return StatsResponse(
            total=flags.total,
            pinned=flags.pinned,
            archived=flags.archived,
            tags=[TagCount(id=tag, tag=tag, count=count) for tag, count in tag_counts],
        )
