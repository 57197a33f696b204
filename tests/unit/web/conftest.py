"""Fixtures for route tests: a file-backed SQLite database behind the routers."""

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pmtrack.db.models import Base
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.web.app import register_error_handlers
from pmtrack.web.dependencies import get_db, get_now
from pmtrack.web.routes import schedules, work_orders

FIXED_NOW = datetime(2024, 1, 15, 9, 0)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'pmtrack.db'}"


@pytest.fixture
def seed(database_url):
    """Run an async callable against the test database before requests are made."""

    def _seed(callback):
        async def _run():
            engine = create_async_engine(database_url, poolclass=NullPool)
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                session = async_sessionmaker(engine, expire_on_commit=False)()
                try:
                    result = await callback(MaintenanceRepository(session))
                    await session.commit()
                    return result
                finally:
                    await session.close()
            finally:
                await engine.dispose()

        return asyncio.run(_run())

    return _seed


@pytest.fixture
def app(database_url):
    """Create test FastAPI app with the schedule and work-order routers."""
    engine = create_async_engine(database_url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_db():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    test_app = FastAPI()
    register_error_handlers(test_app)
    test_app.include_router(schedules.router)
    test_app.include_router(work_orders.router)
    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_now] = lambda: FIXED_NOW
    return test_app


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def schedule_payload(asset_id, technician_ids):
    return {
        "title": "Compressor lubrication",
        "asset_id": str(asset_id),
        "maintenance_type": "Lubrication",
        "priority": "high",
        "start_date": "2024-01-01",
        "duration_hours": "2.5",
        "is_recurring": True,
        "recurring_period": "monthly",
        "occurrences": 3,
        "technician_ids": [str(t) for t in technician_ids],
    }
