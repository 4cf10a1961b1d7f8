# Services package init
"""
NoteVault Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and persistence.

Service Inventory:
    - NoteStore (abstract): persistence contract used by NoteService
    - SQLNoteStore: NoteStore over an async SQLAlchemy session
    - NoteService: ownership checks, pagination, updates, toggles, statistics
"""
