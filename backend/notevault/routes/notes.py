"""
NoteVault Backend — Notes Route Handlers
==========================================

What:  HTTP surface for note CRUD, toggles and statistics.
How:   Resolves the caller, validates body shape with pydantic, parses query
       parameters leniently, delegates to a request-scoped NoteService.
Who:   Mounted by main.py under the API prefix (default /api).

Route Inventory:
    POST   /notes               create            201 {note}
    GET    /notes               list              200 {meta, notes}
    GET    /notes/stats         statistics        200 {total, pinned, archived, tags}
    GET    /notes/{id}          detail            200 {note}
    PUT    /notes/{id}          partial update    200 {note}
    DELETE /notes/{id}          hard delete       204
    PATCH  /notes/{id}/pin      toggle pinned     200 {note}
    PATCH  /notes/{id}/archive  toggle archived   200 {note}

Query parsing:
    Pagination values are never rejected: non-numeric input falls back to
    the defaults and out-of-range input is clamped by the service.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from notevault.auth import CallerIdentity, get_current_user
from notevault.database import get_db_session
from notevault.schemas.note import (
    ErrorResponse,
    NoteCreate,
    NoteEnvelope,
    NoteListResponse,
    NoteUpdate,
    StatsResponse,
)
from notevault.services.note_service import NoteService
from notevault.services.note_store import SQLNoteStore

router = APIRouter(
    prefix="/notes",
    tags=["Notes"],
    responses={
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
)

_NOTE_ERRORS = {
    403: {"description": "Note belongs to another user", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
}


def get_note_service(db: AsyncSession = Depends(get_db_session)) -> NoteService:
    """Build a NoteService around this request's session."""
    return NoteService(SQLNoteStore(db))


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_archived(value: Optional[str]) -> Optional[bool]:
    # Any value other than "true" selects unarchived notes
    if value is None:
        return None
    return value == "true"


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=NoteEnvelope,
    responses={400: {"description": "Invalid body", "model": ErrorResponse}},
    summary="Create a note",
)
async def create_note(
    payload: NoteCreate,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    note = await service.create_note(
        caller,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
    )
    return NoteEnvelope(note=note)


@router.get(
    "",
    response_model=NoteListResponse,
    summary="List the caller's notes",
    description=(
        "Pinned notes first, then most recently updated. "
        "Filter by archive state, exact tag, or a case-insensitive search over title and content."
    ),
)
async def list_notes(
    response: Response,
    page: Optional[str] = Query(default=None, description="Page number, 1-based"),
    limit: Optional[str] = Query(default=None, description="Page size, clamped to 1-100 (default 20)"),
    archived: Optional[str] = Query(default=None, description="'true' or 'false'"),
    tag: Optional[str] = Query(default=None, description="Only notes carrying this tag"),
    search: Optional[str] = Query(default=None, description="Substring of title or content"),
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteListResponse:
    result = await service.list_notes(
        caller,
        page=_parse_int(page),
        limit=_parse_int(limit),
        archived=_parse_archived(archived),
        tag=tag,
        search=search,
    )
    response.headers["X-Total-Count"] = str(result.meta.total)
    return result


@router.get("/stats", response_model=StatsResponse, summary="Note counts and tag breakdown")
async def note_stats(
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> StatsResponse:
    return await service.stats(caller)


@router.get("/{note_id}", response_model=NoteEnvelope, responses=_NOTE_ERRORS, summary="Get a note")
async def get_note(
    note_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    return NoteEnvelope(note=await service.get_note(caller, note_id))


@router.put(
    "/{note_id}",
    response_model=NoteEnvelope,
    responses={**_NOTE_ERRORS, 400: {"description": "Invalid body", "model": ErrorResponse}},
    summary="Update some fields of a note",
)
async def update_note(
    note_id: str,
    changes: NoteUpdate,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    return NoteEnvelope(note=await service.update_note(caller, note_id, changes))


@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_NOTE_ERRORS,
    summary="Delete a note permanently",
)
async def delete_note(
    note_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> Response:
    await service.delete_note(caller, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{note_id}/pin", response_model=NoteEnvelope, responses=_NOTE_ERRORS, summary="Toggle pinned")
async def toggle_pin(
    note_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    return NoteEnvelope(note=await service.toggle_pin(caller, note_id))


@router.patch("/{note_id}/archive", response_model=NoteEnvelope, responses=_NOTE_ERRORS, summary="Toggle archived")
async def toggle_archive(
    note_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    service: NoteService = Depends(get_note_service),
) -> NoteEnvelope:
    return NoteEnvelope(note=await service.toggle_archive(caller, note_id))
