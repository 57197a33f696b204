"""Shared dependencies for PMTrack web routes.

Dependencies are injected using FastAPI's Depends() system. The clock lives
here so the core never reads the current time itself; tests override
``get_now``/``get_today`` to pin it.

Usage:
    from fastapi import Depends
    from pmtrack.web.dependencies import get_manager, get_today

    @router.get("/schedules/{schedule_id}/occurrences")
    async def occurrences(
        schedule_id: UUID,
        manager: PMScheduleManager = Depends(get_manager),
        today: date = Depends(get_today),
    ):
        ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timezone

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pmtrack.db.connection import get_session
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.scheduling.manager import PMScheduleManager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; committed on success, rolled back on error."""
    async with get_session() as session:
        yield session


async def get_repository(
    session: AsyncSession = Depends(get_db),
) -> MaintenanceRepository:
    return MaintenanceRepository(session)


async def get_manager(
    repository: MaintenanceRepository = Depends(get_repository),
) -> PMScheduleManager:
    return PMScheduleManager(repository)


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_today(
    today: date | None = Query(default=None, description="Evaluate statuses as of this date"),
) -> date:
    """Reference date for status resolution; defaults to the server's date."""
    return today or date.today()
