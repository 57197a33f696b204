"""Persistence boundary for schedules, work orders and inventory.

The core only ever sees pydantic domain objects; ORM rows stay in here.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from pmtrack.db.models import (
    InventoryItemModel,
    PMScheduleModel,
    PMTechnicianModel,
    WorkOrderLaborModel,
    WorkOrderModel,
    WorkOrderPartModel,
)
from pmtrack.errors import ConcurrencyError, InsufficientStockError, NotFoundError
from pmtrack.models import (
    InventoryItem,
    LaborEntry,
    PartIssue,
    PMSchedule,
    WorkOrder,
)

logger = structlog.get_logger(__name__)

_SCHEDULE_FIELDS = (
    "asset_id",
    "title",
    "description",
    "maintenance_type",
    "start_date",
    "duration_hours",
    "is_recurring",
    "occurrences",
    "is_active",
    "allow_legacy_links",
    "notes",
    "created_by_id",
)

# Labor/parts are attached through their own calls, never through save_work_order
_WORK_ORDER_FIELDS = (
    "work_order_number",
    "title",
    "description",
    "asset_id",
    "requested_by_id",
    "assigned_to_id",
    "date_requested",
    "date_needed",
    "date_scheduled",
    "date_started",
    "date_completed",
    "estimated_hours",
    "actual_hours",
    "estimated_cost",
    "actual_cost",
    "completion_notes",
    "schedule_id",
    "sequence_index",
)

_INVENTORY_FIELDS = (
    "part_number",
    "name",
    "description",
    "unit_cost",
    "quantity_in_stock",
    "reorder_point",
    "location",
    "is_active",
)


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


class MaintenanceRepository:
    """Async repository over one request-scoped session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def get_schedule(self, schedule_id: UUID) -> PMSchedule:
        """Load a schedule with its ordered technician list.

        Raises:
            NotFoundError: If no schedule has this id
        """
        row = await self.session.get(PMScheduleModel, schedule_id)
        if row is None:
            raise NotFoundError("schedule not found", schedule_id=schedule_id)
        technicians = await self._technician_ids(schedule_id)
        return _schedule_from_row(row, technicians)

    async def list_schedules(self, active_only: bool = False) -> list[PMSchedule]:
        stmt = select(PMScheduleModel).order_by(
            PMScheduleModel.start_date, PMScheduleModel.title
        )
        if active_only:
            stmt = stmt.where(PMScheduleModel.is_active.is_(True))
        rows = (await self.session.execute(stmt)).scalars().all()

        schedules = []
        for row in rows:
            schedules.append(_schedule_from_row(row, await self._technician_ids(row.id)))
        return schedules

    async def save_schedule(self, schedule: PMSchedule) -> PMSchedule:
        """Insert or update a schedule and replace its technician set."""
        row = await self.session.get(PMScheduleModel, schedule.id)
        if row is None:
            row = PMScheduleModel(id=schedule.id)
            self.session.add(row)

        for name in _SCHEDULE_FIELDS:
            setattr(row, name, getattr(schedule, name))
        row.priority = _enum_value(schedule.priority)
        row.recurring_period = (
            _enum_value(schedule.recurring_period) if schedule.is_recurring else None
        )

        await self.session.flush()
        await self._replace_technicians(schedule.id, schedule.technician_ids)
        await self.session.refresh(row)
        return _schedule_from_row(row, list(schedule.technician_ids))

    async def list_schedules_with_linked_work_orders(
        self, active_only: bool = True
    ) -> list[tuple[PMSchedule, list[WorkOrder]]]:
        """Every schedule paired with the work orders that may link to it.

        Legacy candidates (no back-reference, same asset) are included only
        for schedules that opted into heuristic linking.
        """
        pairs = []
        for schedule in await self.list_schedules(active_only=active_only):
            work_orders = await self.list_work_orders_for_schedule(schedule.id)
            if schedule.allow_legacy_links and schedule.asset_id is not None:
                work_orders.extend(await self.list_legacy_work_orders(schedule.asset_id))
            pairs.append((schedule, work_orders))
        return pairs

    async def _technician_ids(self, schedule_id: UUID) -> list[UUID]:
        stmt = (
            select(PMTechnicianModel.technician_id)
            .where(PMTechnicianModel.schedule_id == schedule_id)
            .order_by(PMTechnicianModel.position)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def _replace_technicians(
        self, schedule_id: UUID, technician_ids: list[UUID]
    ) -> None:
        await self.session.execute(
            delete(PMTechnicianModel).where(PMTechnicianModel.schedule_id == schedule_id)
        )
        self.session.add_all(
            PMTechnicianModel(
                schedule_id=schedule_id, technician_id=technician_id, position=position
            )
            for position, technician_id in enumerate(technician_ids)
        )
        await self.session.flush()

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------

    async def get_work_order(self, work_order_id: UUID) -> WorkOrder:
        """Load a work order with its labor and parts entries.

        Raises:
            NotFoundError: If no work order has this id
        """
        row = await self.session.get(WorkOrderModel, work_order_id)
        if row is None:
            raise NotFoundError("work order not found", work_order_id=work_order_id)
        return await self._hydrate(row)

    async def find_work_order_by_back_reference(
        self, schedule_id: UUID, sequence_index: int
    ) -> WorkOrder | None:
        stmt = select(WorkOrderModel).where(
            WorkOrderModel.schedule_id == schedule_id,
            WorkOrderModel.sequence_index == sequence_index,
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return await self._hydrate(row) if row is not None else None

    async def list_work_orders_for_schedule(self, schedule_id: UUID) -> list[WorkOrder]:
        stmt = (
            select(WorkOrderModel)
            .where(WorkOrderModel.schedule_id == schedule_id)
            .order_by(WorkOrderModel.sequence_index)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [await self._hydrate(row) for row in rows]

    async def list_legacy_work_orders(self, asset_id: UUID) -> list[WorkOrder]:
        """Work orders on an asset that carry no PM back-reference."""
        stmt = (
            select(WorkOrderModel)
            .where(
                WorkOrderModel.asset_id == asset_id,
                WorkOrderModel.schedule_id.is_(None),
            )
            .order_by(WorkOrderModel.date_requested)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [await self._hydrate(row) for row in rows]

    async def save_work_order(self, work_order: WorkOrder) -> WorkOrder:
        """Insert a new work order or update an existing one.

        Updates are guarded by the version the caller read: if the stored row
        moved on in the meantime nothing is written.

        Raises:
            ConcurrencyError: On version mismatch or a concurrent UPDATE
        """
        row = await self.session.get(WorkOrderModel, work_order.id)
        if row is None:
            row = WorkOrderModel(id=work_order.id)
            self.session.add(row)
        elif row.version != work_order.version:
            raise ConcurrencyError(
                "stale work order",
                work_order_id=work_order.id,
                expected_version=work_order.version,
                current_version=row.version,
            )

        for name in _WORK_ORDER_FIELDS:
            setattr(row, name, getattr(work_order, name))
        row.priority = _enum_value(work_order.priority)
        row.status = _enum_value(work_order.status)

        try:
            await self.session.flush()
        except StaleDataError:
            raise ConcurrencyError(
                "work order updated concurrently", work_order_id=work_order.id
            ) from None

        return await self._hydrate(row)

    async def insert_materialized_work_order(
        self,
        work_order: WorkOrder,
        prefix: str = "WO",
        width: int = 3,
        max_attempts: int = 5,
    ) -> tuple[WorkOrder, bool]:
        """Insert a PM-generated work order unless its occurrence already has one.

        The (schedule_id, sequence_index) unique constraint is the final
        arbiter: if a concurrent request won the race, its row is returned.
        If instead the work-order number was taken in the meantime, a fresh
        number is drawn and the insert retried, up to ``max_attempts`` times.

        Returns:
            (work order, created) where created is False for an existing row

        Raises:
            ConcurrencyError: If no free number was found within max_attempts
        """
        for attempt in range(1, max_attempts + 1):
            try:
                async with self.session.begin_nested():
                    saved = await self.save_work_order(work_order)
            except IntegrityError:
                existing = await self.find_work_order_by_back_reference(
                    work_order.schedule_id, work_order.sequence_index
                )
                if existing is not None:
                    return existing, False
                if not await self._number_taken(work_order.work_order_number):
                    raise
                number = await self.next_work_order_number(prefix, width)
                logger.warning(
                    "work_order_number_collision",
                    work_order_number=work_order.work_order_number,
                    retry_number=number,
                    attempt=attempt,
                )
                work_order = work_order.model_copy(update={"work_order_number": number})
                continue
            return saved, True

        raise ConcurrencyError(
            "could not allocate a work order number",
            schedule_id=work_order.schedule_id,
            sequence_index=work_order.sequence_index,
            attempts=max_attempts,
        )

    async def _number_taken(self, number: str) -> bool:
        stmt = select(WorkOrderModel.id).where(WorkOrderModel.work_order_number == number)
        return (await self.session.execute(stmt)).first() is not None

    async def next_work_order_number(self, prefix: str = "WO", width: int = 3) -> str:
        count = (
            await self.session.execute(select(func.count()).select_from(WorkOrderModel))
        ).scalar_one()
        sequence = count + 1
        while True:
            candidate = f"{prefix}-{sequence:0{width}d}"
            if not await self._number_taken(candidate):
                return candidate
            sequence += 1

    async def touch_work_order(self, work_order: WorkOrder) -> int:
        """Bump the version of a work order whose labor or parts are changing.

        Labor and parts rows have no version of their own; the parent's
        version covers them.

        Raises:
            ConcurrencyError: If the stored version moved past the one read
        """
        row = await self.session.get(WorkOrderModel, work_order.id)
        if row is None:
            raise NotFoundError("work order not found", work_order_id=work_order.id)
        if row.version != work_order.version:
            raise ConcurrencyError(
                "stale work order",
                work_order_id=work_order.id,
                expected_version=work_order.version,
                current_version=row.version,
            )

        flag_modified(row, "status")
        try:
            await self.session.flush()
        except StaleDataError:
            raise ConcurrencyError(
                "work order updated concurrently", work_order_id=work_order.id
            ) from None
        return row.version

    async def add_labor_entry(self, entry: LaborEntry) -> LaborEntry:
        self.session.add(
            WorkOrderLaborModel(
                id=entry.id,
                work_order_id=entry.work_order_id,
                technician_id=entry.technician_id,
                hours=entry.hours,
                hourly_rate=entry.hourly_rate,
                date_performed=entry.date_performed,
                notes=entry.notes,
            )
        )
        await self.session.flush()
        return entry

    async def add_part_issue(self, part: PartIssue) -> PartIssue:
        self.session.add(
            WorkOrderPartModel(
                id=part.id,
                work_order_id=part.work_order_id,
                inventory_item_id=part.inventory_item_id,
                quantity=part.quantity,
                unit_cost=part.unit_cost,
                date_issued=part.date_issued,
            )
        )
        await self.session.flush()
        return part

    async def _hydrate(self, row: WorkOrderModel) -> WorkOrder:
        labor_rows = (
            await self.session.execute(
                select(WorkOrderLaborModel)
                .where(WorkOrderLaborModel.work_order_id == row.id)
                .order_by(WorkOrderLaborModel.date_performed)
            )
        ).scalars().all()
        part_rows = (
            await self.session.execute(
                select(WorkOrderPartModel)
                .where(WorkOrderPartModel.work_order_id == row.id)
                .order_by(WorkOrderPartModel.date_issued)
            )
        ).scalars().all()

        return WorkOrder(
            id=row.id,
            work_order_number=row.work_order_number,
            title=row.title,
            description=row.description,
            asset_id=row.asset_id,
            priority=row.priority,
            status=row.status,
            requested_by_id=row.requested_by_id,
            assigned_to_id=row.assigned_to_id,
            date_requested=row.date_requested,
            date_needed=row.date_needed,
            date_scheduled=row.date_scheduled,
            date_started=row.date_started,
            date_completed=row.date_completed,
            estimated_hours=row.estimated_hours,
            actual_hours=row.actual_hours,
            estimated_cost=row.estimated_cost,
            actual_cost=row.actual_cost,
            completion_notes=row.completion_notes,
            schedule_id=row.schedule_id,
            sequence_index=row.sequence_index,
            version=row.version,
            labor=[
                LaborEntry(
                    id=labor.id,
                    work_order_id=labor.work_order_id,
                    technician_id=labor.technician_id,
                    hours=labor.hours,
                    hourly_rate=labor.hourly_rate,
                    date_performed=labor.date_performed,
                    notes=labor.notes,
                )
                for labor in labor_rows
            ],
            parts=[
                PartIssue(
                    id=part.id,
                    work_order_id=part.work_order_id,
                    inventory_item_id=part.inventory_item_id,
                    quantity=part.quantity,
                    unit_cost=part.unit_cost,
                    date_issued=part.date_issued,
                )
                for part in part_rows
            ],
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def get_inventory_item(self, item_id: UUID) -> InventoryItem:
        row = await self.session.get(InventoryItemModel, item_id, populate_existing=True)
        if row is None:
            raise NotFoundError("inventory item not found", inventory_item_id=item_id)
        return _inventory_from_row(row)

    async def save_inventory_item(self, item: InventoryItem) -> InventoryItem:
        row = await self.session.get(InventoryItemModel, item.id)
        if row is None:
            row = InventoryItemModel(id=item.id)
            self.session.add(row)
        for name in _INVENTORY_FIELDS:
            setattr(row, name, getattr(item, name))
        await self.session.flush()
        return _inventory_from_row(row)

    async def adjust_inventory_quantity(self, item_id: UUID, delta: int) -> InventoryItem:
        """Atomically add ``delta`` to stock (negative to issue).

        A single conditional UPDATE does the check and the write, so two
        concurrent issues can never both succeed past zero.

        Raises:
            NotFoundError: If the item does not exist
            InsufficientStockError: If stock would drop below zero (unchanged)
        """
        stmt = (
            update(InventoryItemModel)
            .where(
                InventoryItemModel.id == item_id,
                InventoryItemModel.quantity_in_stock + delta >= 0,
            )
            .values(quantity_in_stock=InventoryItemModel.quantity_in_stock + delta)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount == 0:
            item = await self.get_inventory_item(item_id)
            raise InsufficientStockError(
                "insufficient stock",
                inventory_item_id=item_id,
                available=item.quantity_in_stock,
                requested=-delta,
            )

        return await self.get_inventory_item(item_id)


def _schedule_from_row(row: PMScheduleModel, technician_ids: list[UUID]) -> PMSchedule:
    return PMSchedule(
        id=row.id,
        title=row.title,
        description=row.description,
        asset_id=row.asset_id,
        maintenance_type=row.maintenance_type,
        priority=row.priority,
        start_date=row.start_date,
        duration_hours=row.duration_hours,
        is_recurring=row.is_recurring,
        recurring_period=row.recurring_period,
        occurrences=row.occurrences,
        is_active=row.is_active,
        created_by_id=row.created_by_id,
        technician_ids=technician_ids,
        notes=row.notes,
        allow_legacy_links=row.allow_legacy_links,
        created_at=row.created_at,
    )


def _inventory_from_row(row: InventoryItemModel) -> InventoryItem:
    return InventoryItem(
        id=row.id,
        part_number=row.part_number,
        name=row.name,
        description=row.description,
        unit_cost=row.unit_cost,
        quantity_in_stock=row.quantity_in_stock,
        reorder_point=row.reorder_point,
        location=row.location,
        is_active=row.is_active,
    )
