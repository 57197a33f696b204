"""Unit tests for PMTrack web route modules.

Each route module has a corresponding test file. Routers are mounted on a
bare FastAPI app with the error handlers registered and ``get_db`` pointed
at a temporary SQLite database.
"""
