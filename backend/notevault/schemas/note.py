"""
NoteVault Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between clients and backend.
How:   FastAPI uses these models to validate request bodies, serialize responses,
       and generate OpenAPI documentation.
Who:   Used by route handlers and returned by NoteService.

Wire format:
    JSON keys are camelCase (`isPinned`, `updatedAt`), Python attributes are
    snake_case. `alias_generator=to_camel` bridges the two; FastAPI serializes
    response models by alias.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

from notevault.models.note import TAG_MAX_LENGTH

# One tag; longer values would not fit note_tags.tag
Tag = Annotated[str, StringConstraints(max_length=TAG_MAX_LENGTH)]


# ══════════════════════════════════════════════════════════════════════════
# Request Models: what clients send
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(BaseModel):
    """
    Body of POST /api/notes.

    `title` is required and must be non-empty after trimming. `content` and
    `tags` may be omitted or null; the service fills in "" and [].
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, description="Note title (required, non-empty)")
    content: Optional[str] = Field(default=None, description="Note body")
    tags: Optional[List[Tag]] = Field(default=None, description="Ordered tags; duplicates allowed")


class NoteUpdate(BaseModel):
    """
    Body of PUT /api/notes/{id}: every field is optional.

    Presence is tracked by pydantic (`model_fields_set`), so a field the client
    omitted is never applied, while a field sent explicitly is. Sending a field
    as `null` is rejected; there is no way to unset a title or a flag.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = None
    tags: Optional[List[Tag]] = None
    is_archived: Optional[bool] = None
    is_pinned: Optional[bool] = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "NoteUpdate":
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"Fields may not be null: {', '.join(to_camel(n) for n in nulls)}")
        return self

    def changes(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# ══════════════════════════════════════════════════════════════════════════
# Response Models: what the API returns
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """Full representation of a note."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: uuid.UUID = Field(description="Unique note identifier")
    owner: str = Field(description="Caller identity of the note's owner")
    title: str
    content: str
    tags: List[str]
    is_archived: bool
    is_pinned: bool
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(BaseModel):
    """Single-note responses are wrapped as `{"note": {...}}`."""
    note: NoteResponse


class PageMeta(BaseModel):
    """Pagination metadata for GET /api/notes."""
    total: int = Field(description="Notes matching the filters")
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Page size after clamping")
    pages: int = Field(description="ceil(total / limit)")


class NoteListResponse(BaseModel):
    meta: PageMeta
    notes: List[NoteResponse]


class TagCount(BaseModel):
    """
    One row of the tag breakdown.

    `_id` duplicates `tag`; clients built against the aggregation output
    read `_id`, newer ones read `tag`.
    """
    id: str = Field(serialization_alias="_id")
    tag: str
    count: int


class StatsResponse(BaseModel):
    total: int
    pinned: int
    archived: int
    tags: List[TagCount]


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "note with ID '…' was not found",
            "request_id": "1f0c9a2b"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
