"""
NoteVault Backend — Application Package Initializer
===================================================

What: Marks the `notevault` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a thin layered REST service:

    ┌─────────────────────────────────────┐
    │      Routes (HTTP + auth)           │  ← shape validation, status codes
    ├─────────────────────────────────────┤
    │      NoteService (business rules)   │  ← ownership, pagination, stats
    ├─────────────────────────────────────┤
    │      NoteStore (persistence client) │  ← SQLNoteStore over AsyncSession
    ├─────────────────────────────────────┤
    │      Models & Schemas (data)        │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘

    The service never reaches for a global connection: a store value is
    handed to it at construction, which is also how tests substitute doubles.
"""

__version__ = "1.0.0"
