"""Tests for the maintenance repository persistence guards."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from pmtrack.errors import ConcurrencyError, InsufficientStockError, NotFoundError
from pmtrack.models import PMSchedule, RecurringPeriod, WorkOrderStatus
from pmtrack.workorders.lifecycle import change_status

NOW = datetime(2024, 1, 15, 9, 0)


class TestSchedules:
    @pytest.mark.asyncio
    async def test_get_missing_schedule(self, repository):
        with pytest.raises(NotFoundError) as exc_info:
            await repository.get_schedule(uuid4())
        assert exc_info.value.kind == "not_found"

    @pytest.mark.asyncio
    async def test_technician_order_is_preserved(self, repository, monthly_schedule):
        ids = [uuid4() for _ in range(4)]
        await repository.save_schedule(monthly_schedule.model_copy(update={"technician_ids": ids}))

        loaded = await repository.get_schedule(monthly_schedule.id)

        assert loaded.technician_ids == ids

    @pytest.mark.asyncio
    async def test_list_orders_by_start_date(self, repository):
        later = PMSchedule(title="B", start_date=date(2024, 6, 1))
        earlier = PMSchedule(
            title="A",
            start_date=date(2024, 1, 1),
            is_recurring=True,
            recurring_period=RecurringPeriod.WEEKLY,
            occurrences=4,
        )
        await repository.save_schedule(later)
        await repository.save_schedule(earlier)

        assert [s.id for s in await repository.list_schedules()] == [earlier.id, later.id]


class TestWorkOrderVersioning:
    @pytest.mark.asyncio
    async def test_stale_save_is_rejected(self, repository, make_work_order):
        original = await repository.save_work_order(make_work_order())
        await repository.save_work_order(original.model_copy(update={"title": "First edit"}))

        with pytest.raises(ConcurrencyError) as exc_info:
            await repository.save_work_order(original.model_copy(update={"title": "Second edit"}))

        assert exc_info.value.context["expected_version"] == 1
        assert exc_info.value.context["current_version"] == 2
        assert (await repository.get_work_order(original.id)).title == "First edit"

    @pytest.mark.asyncio
    async def test_change_status_checks_expected_version(self, repository, make_work_order):
        work_order = await repository.save_work_order(make_work_order())
        await change_status(repository, work_order.id, "approved", NOW)

        with pytest.raises(ConcurrencyError):
            await change_status(
                repository, work_order.id, "scheduled", NOW, expected_version=work_order.version
            )

        current = await repository.get_work_order(work_order.id)
        assert current.status == WorkOrderStatus.APPROVED
        updated = await change_status(
            repository, work_order.id, "scheduled", NOW, expected_version=current.version
        )
        assert updated.status == WorkOrderStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_missing_work_order(self, repository):
        with pytest.raises(NotFoundError):
            await repository.get_work_order(uuid4())


class TestMaterializedInsert:
    @pytest.mark.asyncio
    async def test_losing_insert_returns_existing_row(
        self, repository, monthly_schedule, make_work_order
    ):
        await repository.save_schedule(monthly_schedule)
        winner = make_work_order(
            work_order_number="WO-001", schedule_id=monthly_schedule.id, sequence_index=0
        )
        loser = make_work_order(
            work_order_number="WO-002", schedule_id=monthly_schedule.id, sequence_index=0
        )

        saved, created = await repository.insert_materialized_work_order(winner)
        existing, created_again = await repository.insert_materialized_work_order(loser)

        assert created is True
        assert created_again is False
        assert existing.id == saved.id
        assert len(await repository.list_work_orders_for_schedule(monthly_schedule.id)) == 1

    @pytest.mark.asyncio
    async def test_stale_number_is_redrawn(
        self, repository, monthly_schedule, make_work_order
    ):
        await repository.save_schedule(monthly_schedule)
        stale_number = await repository.next_work_order_number()
        # Another request takes the number first, for a different occurrence
        await repository.insert_materialized_work_order(
            make_work_order(
                work_order_number=stale_number,
                schedule_id=monthly_schedule.id,
                sequence_index=0,
            )
        )

        saved, created = await repository.insert_materialized_work_order(
            make_work_order(
                work_order_number=stale_number,
                schedule_id=monthly_schedule.id,
                sequence_index=1,
            )
        )

        assert created is True
        assert stale_number == "WO-001"
        assert saved.work_order_number == "WO-002"
        assert saved.sequence_index == 1
        assert len(await repository.list_work_orders_for_schedule(monthly_schedule.id)) == 2

    @pytest.mark.asyncio
    async def test_number_retries_are_bounded(
        self, repository, monthly_schedule, make_work_order, monkeypatch
    ):
        await repository.save_schedule(monthly_schedule)
        await repository.save_work_order(make_work_order(work_order_number="WO-001"))

        async def always_taken(prefix="WO", width=3):
            return "WO-001"

        monkeypatch.setattr(repository, "next_work_order_number", always_taken)

        with pytest.raises(ConcurrencyError) as exc_info:
            await repository.insert_materialized_work_order(
                make_work_order(
                    work_order_number="WO-001",
                    schedule_id=monthly_schedule.id,
                    sequence_index=0,
                ),
                max_attempts=3,
            )

        assert exc_info.value.context["attempts"] == 3
        assert await repository.list_work_orders_for_schedule(monthly_schedule.id) == []

    @pytest.mark.asyncio
    async def test_find_by_back_reference(self, repository, monthly_schedule, make_work_order):
        await repository.save_schedule(monthly_schedule)
        work_order = await repository.save_work_order(
            make_work_order(schedule_id=monthly_schedule.id, sequence_index=2)
        )

        found = await repository.find_work_order_by_back_reference(monthly_schedule.id, 2)

        assert found.id == work_order.id
        assert await repository.find_work_order_by_back_reference(monthly_schedule.id, 1) is None


class TestNumbering:
    @pytest.mark.asyncio
    async def test_first_number(self, repository):
        assert await repository.next_work_order_number() == "WO-001"

    @pytest.mark.asyncio
    async def test_skips_numbers_already_taken(self, repository, make_work_order):
        await repository.save_work_order(make_work_order(work_order_number="WO-002"))

        assert await repository.next_work_order_number() == "WO-003"

    @pytest.mark.asyncio
    async def test_prefix_and_width(self, repository, make_work_order):
        await repository.save_work_order(make_work_order(work_order_number="LEGACY-9"))

        assert await repository.next_work_order_number("PM", 5) == "PM-00002"


class TestInventory:
    @pytest.mark.asyncio
    async def test_adjust_up_and_down(self, repository, bearing_item):
        await repository.save_inventory_item(bearing_item)

        assert (await repository.adjust_inventory_quantity(bearing_item.id, 5)).quantity_in_stock == 15
        assert (await repository.adjust_inventory_quantity(bearing_item.id, -15)).quantity_in_stock == 0

    @pytest.mark.asyncio
    async def test_adjust_below_zero(self, repository, bearing_item):
        await repository.save_inventory_item(bearing_item)

        with pytest.raises(InsufficientStockError):
            await repository.adjust_inventory_quantity(bearing_item.id, -11)

        assert (await repository.get_inventory_item(bearing_item.id)).quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_adjust_missing_item(self, repository):
        with pytest.raises(NotFoundError):
            await repository.adjust_inventory_quantity(uuid4(), -1)

    @pytest.mark.asyncio
    async def test_unit_cost_round_trip(self, repository, bearing_item):
        await repository.save_inventory_item(bearing_item)
        loaded = await repository.get_inventory_item(bearing_item.id)
        assert loaded.unit_cost == Decimal("12.50")
        assert loaded.is_low_stock is False
