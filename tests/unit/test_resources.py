"""Tests for work-order scheduling, assignment, labor and parts issuance."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from pmtrack.config import reset_config
from pmtrack.errors import (
    ConcurrencyError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from pmtrack.models import WorkOrderStatus
from pmtrack.notifications.events import EventKind
from pmtrack.workorders.lifecycle import change_status, transition
from pmtrack.workorders.resources import (
    assign_work_order,
    issue_parts,
    record_labor,
    schedule_work_order,
)

NOW = datetime(2024, 2, 1, 10, 0)


@pytest_asyncio.fixture()
async def work_order(repository, make_work_order):
    return await repository.save_work_order(make_work_order(work_order_number="WO-100"))


@pytest_asyncio.fixture()
async def stocked_item(repository, bearing_item):
    return await repository.save_inventory_item(bearing_item)


class TestScheduleAndAssign:
    @pytest.mark.asyncio
    async def test_schedule_sets_date_without_changing_status(self, repository, work_order):
        planned = datetime(2024, 2, 5, 7, 30)

        updated = await schedule_work_order(repository, work_order.id, planned)

        assert updated.date_scheduled == planned
        assert updated.status == WorkOrderStatus.REQUESTED
        assert updated.version == work_order.version + 1

    @pytest.mark.asyncio
    async def test_assign_emits_event(self, repository, work_order, sink):
        technician_id = uuid4()

        updated = await assign_work_order(repository, work_order.id, technician_id, NOW, sink=sink)

        assert updated.assigned_to_id == technician_id
        events = sink.of_kind(EventKind.WORK_ORDER_ASSIGNED)
        assert len(events) == 1
        assert events[0].payload["work_order_number"] == "WO-100"
        assert events[0].occurred_at == NOW

    @pytest.mark.asyncio
    async def test_reassigning_same_technician_is_silent(self, repository, work_order, sink):
        technician_id = uuid4()
        await assign_work_order(repository, work_order.id, technician_id, NOW, sink=sink)
        await assign_work_order(repository, work_order.id, technician_id, NOW, sink=sink)

        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_unassign(self, repository, work_order, sink):
        await assign_work_order(repository, work_order.id, uuid4(), NOW, sink=sink)

        updated = await assign_work_order(repository, work_order.id, None, NOW, sink=sink)

        assert updated.assigned_to_id is None
        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_closed_work_order_rejected(self, repository, work_order):
        await change_status(repository, work_order.id, "cancelled", NOW)

        with pytest.raises(ValidationError):
            await schedule_work_order(repository, work_order.id, NOW)

    @pytest.mark.asyncio
    async def test_unknown_work_order(self, repository):
        with pytest.raises(NotFoundError):
            await assign_work_order(repository, uuid4(), uuid4(), NOW)


class TestLabor:
    @pytest.mark.asyncio
    async def test_record_labor_with_rate(self, repository, work_order):
        entry = await record_labor(
            repository,
            work_order.id,
            technician_id=uuid4(),
            hours=Decimal("1.5"),
            performed_on=NOW,
            hourly_rate=Decimal("48"),
        )

        assert entry.labor_cost == Decimal("72.0")
        loaded = await repository.get_work_order(work_order.id)
        assert [e.id for e in loaded.labor] == [entry.id]

    @pytest.mark.asyncio
    async def test_labor_invalidates_a_completion_read_before_it(self, repository, work_order):
        for status in ("approved", "scheduled", "in_progress"):
            await change_status(repository, work_order.id, status, NOW)
        read_before_labor = await repository.get_work_order(work_order.id)

        await record_labor(
            repository,
            work_order.id,
            technician_id=uuid4(),
            hours=Decimal("3"),
            performed_on=NOW,
            hourly_rate=Decimal("40"),
        )

        current = await repository.get_work_order(work_order.id)
        assert current.version == read_before_labor.version + 1
        with pytest.raises(ConcurrencyError):
            await repository.save_work_order(
                transition(read_before_labor, "completed", NOW)
            )

        completed = await change_status(repository, work_order.id, "completed", NOW)
        assert completed.actual_cost == Decimal("120")

    @pytest.mark.asyncio
    async def test_default_rate_from_config(self, repository, work_order, monkeypatch):
        monkeypatch.setenv("DEFAULT_LABOR_RATE", "35.00")
        reset_config()

        entry = await record_labor(
            repository, work_order.id, technician_id=uuid4(), hours=Decimal("2"), performed_on=NOW
        )

        assert entry.hourly_rate == Decimal("35.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hours", [Decimal("0"), Decimal("-1")])
    async def test_non_positive_hours(self, repository, work_order, hours):
        with pytest.raises(ValidationError):
            await record_labor(
                repository, work_order.id, technician_id=uuid4(), hours=hours, performed_on=NOW
            )

        assert (await repository.get_work_order(work_order.id)).labor == []


class TestIssueParts:
    @pytest.mark.asyncio
    async def test_issue_decrements_stock_and_snapshots_cost(
        self, repository, work_order, stocked_item
    ):
        part = await issue_parts(repository, work_order.id, stocked_item.id, 4, NOW)

        assert part.unit_cost == Decimal("12.50")
        assert part.total_cost == Decimal("50.00")
        assert (await repository.get_inventory_item(stocked_item.id)).quantity_in_stock == 6

    @pytest.mark.asyncio
    async def test_over_issue_leaves_stock_unchanged(self, repository, work_order, stocked_item):
        with pytest.raises(InsufficientStockError) as exc_info:
            await issue_parts(repository, work_order.id, stocked_item.id, 11, NOW)

        assert exc_info.value.context["available"] == 10
        assert exc_info.value.context["requested"] == 11
        assert (await repository.get_inventory_item(stocked_item.id)).quantity_in_stock == 10
        assert (await repository.get_work_order(work_order.id)).parts == []

    @pytest.mark.asyncio
    async def test_issue_exact_stock_leaves_zero(self, repository, work_order, stocked_item, sink):
        await issue_parts(repository, work_order.id, stocked_item.id, 10, NOW, sink=sink)

        assert (await repository.get_inventory_item(stocked_item.id)).quantity_in_stock == 0
        events = sink.of_kind(EventKind.INVENTORY_LOW)
        assert len(events) == 1
        assert events[0].payload["quantity_in_stock"] == 0

    @pytest.mark.asyncio
    async def test_low_stock_event_only_at_reorder_point(
        self, repository, work_order, stocked_item, sink
    ):
        await issue_parts(repository, work_order.id, stocked_item.id, 6, NOW, sink=sink)
        assert sink.of_kind(EventKind.INVENTORY_LOW) == []

        await issue_parts(repository, work_order.id, stocked_item.id, 1, NOW, sink=sink)
        assert len(sink.of_kind(EventKind.INVENTORY_LOW)) == 1

    @pytest.mark.asyncio
    async def test_cost_snapshot_survives_price_change(
        self, repository, work_order, stocked_item
    ):
        await issue_parts(repository, work_order.id, stocked_item.id, 2, NOW)
        current = await repository.get_inventory_item(stocked_item.id)
        await repository.save_inventory_item(
            current.model_copy(update={"unit_cost": Decimal("20.00")})
        )

        for status in ("approved", "scheduled", "in_progress", "completed"):
            completed = await change_status(repository, work_order.id, status, NOW)

        assert completed.actual_cost == Decimal("25.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -3])
    async def test_non_positive_quantity(self, repository, work_order, stocked_item, quantity):
        with pytest.raises(ValidationError):
            await issue_parts(repository, work_order.id, stocked_item.id, quantity, NOW)

    @pytest.mark.asyncio
    async def test_inactive_item(self, repository, work_order, stocked_item):
        await repository.save_inventory_item(stocked_item.model_copy(update={"is_active": False}))

        with pytest.raises(ValidationError):
            await issue_parts(repository, work_order.id, stocked_item.id, 1, NOW)

    @pytest.mark.asyncio
    async def test_unknown_item(self, repository, work_order):
        with pytest.raises(NotFoundError):
            await issue_parts(repository, work_order.id, uuid4(), 1, NOW)

    @pytest.mark.asyncio
    async def test_issue_bumps_work_order_version(self, repository, work_order, stocked_item):
        await issue_parts(repository, work_order.id, stocked_item.id, 1, NOW)

        assert (await repository.get_work_order(work_order.id)).version == work_order.version + 1
