"""PMTrack API route modules.

Each module exports a ``router`` (APIRouter) that ``pmtrack.web.app``
includes.
"""

from pmtrack.web.routes import health, schedules, work_orders

__all__ = ["health", "schedules", "work_orders"]
