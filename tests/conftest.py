"""Pytest configuration and fixtures for PMTrack tests.

Provides sample schedules/work orders and an in-memory async database.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pmtrack.config import reset_config
from pmtrack.db.models import Base
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.models import (
    InventoryItem,
    PMSchedule,
    PMScheduleDefinition,
    RecurringPeriod,
    WorkOrder,
)
from pmtrack.notifications.events import CollectingSink


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def asset_id() -> UUID:
    return UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def technician_ids() -> list[UUID]:
    return [
        UUID("aaaaaaaa-0000-0000-0000-000000000001"),
        UUID("aaaaaaaa-0000-0000-0000-000000000002"),
    ]


@pytest.fixture
def monthly_definition(asset_id: UUID, technician_ids: list[UUID]) -> PMScheduleDefinition:
    """Three monthly occurrences starting 2024-01-01."""
    return PMScheduleDefinition(
        title="Compressor lubrication",
        description="Grease bearings and check oil level",
        asset_id=asset_id,
        maintenance_type="Lubrication",
        priority="high",
        start_date=date(2024, 1, 1),
        duration_hours=Decimal("2.5"),
        is_recurring=True,
        recurring_period="monthly",
        occurrences=3,
        created_by_id=uuid4(),
        technician_ids=technician_ids,
    )


@pytest.fixture
def monthly_schedule(asset_id: UUID) -> PMSchedule:
    return PMSchedule(
        title="Compressor lubrication",
        asset_id=asset_id,
        maintenance_type="Lubrication",
        start_date=date(2024, 1, 1),
        duration_hours=Decimal("2.5"),
        is_recurring=True,
        recurring_period=RecurringPeriod.MONTHLY,
        occurrences=3,
    )


@pytest.fixture
def make_work_order():
    """Factory for work orders with sensible defaults."""

    def _make(**overrides) -> WorkOrder:
        fields = {
            "work_order_number": f"WO-{uuid4().hex[:6]}",
            "title": "Replace filter",
            "date_requested": datetime(2024, 1, 1, 8, 0),
        }
        fields.update(overrides)
        return WorkOrder(**fields)

    return _make


@pytest.fixture
def bearing_item() -> InventoryItem:
    return InventoryItem(
        part_number="BRG-6204",
        name="Ball bearing 6204",
        unit_cost=Decimal("12.50"),
        quantity_in_stock=10,
        reorder_point=3,
    )


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def repository(db_session: AsyncSession) -> MaintenanceRepository:
    return MaintenanceRepository(db_session)
