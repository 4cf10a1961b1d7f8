# Routes package init
"""
NoteVault Backend — API Routes Package
========================================

Route Inventory:
    - notes.py:   /api/notes ...           (note CRUD, toggles, stats; bearer auth)
    - health.py:  GET /  and  GET /health  (banner and health check)

Routes stay thin: resolve the caller, validate shape, call NoteService,
pick the status code. Business rules live in services.
"""
