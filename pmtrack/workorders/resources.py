"""Work-order resource operations: scheduling, assignment, labor and parts.

None of these change lifecycle status; they only attach data to an open
work order.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import pydantic
import structlog

from pmtrack.config import get_config
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.errors import ValidationError
from pmtrack.models import LaborEntry, PartIssue, WorkOrder
from pmtrack.notifications.events import (
    LoggingSink,
    NotificationSink,
    inventory_low,
    work_order_assigned,
)

logger = structlog.get_logger(__name__)


async def _open_work_order(repository: MaintenanceRepository, work_order_id: UUID) -> WorkOrder:
    work_order = await repository.get_work_order(work_order_id)
    if work_order.is_closed:
        raise ValidationError(
            "work order is closed",
            work_order_id=work_order_id,
            status=work_order.status,
        )
    return work_order


async def schedule_work_order(
    repository: MaintenanceRepository,
    work_order_id: UUID,
    scheduled_for: datetime,
) -> WorkOrder:
    """Set the planned execution time.

    This is the only operation that writes ``date_scheduled``; moving the
    work order to the ``scheduled`` status is a separate lifecycle step.
    """
    work_order = await _open_work_order(repository, work_order_id)
    saved = await repository.save_work_order(
        work_order.model_copy(update={"date_scheduled": scheduled_for})
    )
    logger.info(
        "work_order_scheduled",
        work_order_id=str(work_order_id),
        scheduled_for=scheduled_for.isoformat(),
    )
    return saved


async def assign_work_order(
    repository: MaintenanceRepository,
    work_order_id: UUID,
    technician_id: UUID | None,
    now: datetime,
    sink: NotificationSink | None = None,
) -> WorkOrder:
    """Assign (or with None, unassign) a technician."""
    work_order = await _open_work_order(repository, work_order_id)
    saved = await repository.save_work_order(
        work_order.model_copy(update={"assigned_to_id": technician_id})
    )
    if technician_id is not None and technician_id != work_order.assigned_to_id:
        (sink or LoggingSink()).emit(work_order_assigned(saved, now))
    return saved


async def record_labor(
    repository: MaintenanceRepository,
    work_order_id: UUID,
    technician_id: UUID,
    hours: Decimal,
    performed_on: datetime,
    hourly_rate: Decimal | None = None,
    notes: str | None = None,
) -> LaborEntry:
    """Book technician hours; the rate is stored with the entry."""
    work_order = await _open_work_order(repository, work_order_id)

    if hourly_rate is None:
        hourly_rate = get_config().costing.default_labor_rate

    try:
        entry = LaborEntry(
            work_order_id=work_order_id,
            technician_id=technician_id,
            hours=hours,
            hourly_rate=hourly_rate,
            date_performed=performed_on,
            notes=notes,
        )
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "invalid labor entry", work_order_id=work_order_id, errors=exc.errors()
        ) from None

    await repository.touch_work_order(work_order)
    saved = await repository.add_labor_entry(entry)
    logger.info(
        "labor_recorded",
        work_order_id=str(work_order_id),
        technician_id=str(technician_id),
        hours=str(entry.hours),
        labor_cost=str(entry.labor_cost),
    )
    return saved


async def issue_parts(
    repository: MaintenanceRepository,
    work_order_id: UUID,
    inventory_item_id: UUID,
    quantity: int,
    issued_at: datetime,
    sink: NotificationSink | None = None,
) -> PartIssue:
    """Issue stock to a work order.

    Stock is decremented in one conditional UPDATE. When the request exceeds
    what is on hand, InsufficientStockError is raised and stock is unchanged.
    The item's current unit cost is frozen onto the issue record.

    Raises:
        ValidationError: Non-positive quantity, closed work order, inactive item
        NotFoundError: Unknown work order or inventory item
        InsufficientStockError: quantity > quantity_in_stock
        ConcurrencyError: If the work order changed since it was read
    """
    if quantity <= 0:
        raise ValidationError(
            "quantity must be positive", field="quantity", value=quantity
        )

    work_order = await _open_work_order(repository, work_order_id)
    item = await repository.get_inventory_item(inventory_item_id)
    if not item.is_active:
        raise ValidationError(
            "inventory item is inactive", inventory_item_id=inventory_item_id
        )

    remaining = await repository.adjust_inventory_quantity(inventory_item_id, -quantity)
    await repository.touch_work_order(work_order)

    part = await repository.add_part_issue(
        PartIssue(
            work_order_id=work_order_id,
            inventory_item_id=inventory_item_id,
            quantity=quantity,
            unit_cost=item.unit_cost,
            date_issued=issued_at,
        )
    )
    logger.info(
        "parts_issued",
        work_order_id=str(work_order_id),
        inventory_item_id=str(inventory_item_id),
        quantity=quantity,
        unit_cost=str(item.unit_cost),
        remaining=remaining.quantity_in_stock,
    )

    if remaining.reorder_point is not None and remaining.is_low_stock:
        (sink or LoggingSink()).emit(inventory_low(remaining, issued_at))
    return part
