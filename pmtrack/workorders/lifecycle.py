"""Work-order lifecycle state machine.

Legal transitions::

    requested   -> approved, cancelled
    approved    -> scheduled, on_hold, cancelled
    scheduled   -> in_progress, on_hold, cancelled
    in_progress -> completed, on_hold
    on_hold     -> in_progress, cancelled
    cancelled   -> requested
    completed   -> (terminal)

``transition`` is pure: it returns an updated copy and never touches storage.
``change_status`` wraps it in a guarded read-modify-write against the
repository.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from pmtrack.errors import ConcurrencyError, InvalidTransitionError, ValidationError
from pmtrack.models import WorkOrder, WorkOrderStatus

if TYPE_CHECKING:
    from pmtrack.db.repository import MaintenanceRepository

logger = structlog.get_logger(__name__)

INITIAL_STATUS = WorkOrderStatus.REQUESTED

TRANSITIONS: dict[WorkOrderStatus, frozenset[WorkOrderStatus]] = {
    WorkOrderStatus.REQUESTED: frozenset(
        {WorkOrderStatus.APPROVED, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.APPROVED: frozenset(
        {WorkOrderStatus.SCHEDULED, WorkOrderStatus.ON_HOLD, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.SCHEDULED: frozenset(
        {WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.ON_HOLD, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.IN_PROGRESS: frozenset(
        {WorkOrderStatus.COMPLETED, WorkOrderStatus.ON_HOLD}
    ),
    WorkOrderStatus.ON_HOLD: frozenset(
        {WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.CANCELLED: frozenset({WorkOrderStatus.REQUESTED}),
    WorkOrderStatus.COMPLETED: frozenset(),
}


def parse_status(value: WorkOrderStatus | str) -> WorkOrderStatus:
    if isinstance(value, WorkOrderStatus):
        return value
    try:
        return WorkOrderStatus(value)
    except ValueError:
        raise ValidationError("unknown work order status", status=value) from None


def allowed_transitions(status: WorkOrderStatus | str) -> frozenset[WorkOrderStatus]:
    return TRANSITIONS[parse_status(status)]


def can_transition(current: WorkOrderStatus | str, target: WorkOrderStatus | str) -> bool:
    return parse_status(target) in allowed_transitions(current)


def labor_cost(work_order: WorkOrder) -> Decimal:
    return sum((entry.labor_cost for entry in work_order.labor), Decimal("0"))


def parts_cost(work_order: WorkOrder) -> Decimal:
    # Uses the unit cost captured when the part was issued
    return sum((part.total_cost for part in work_order.parts), Decimal("0"))


def total_cost(work_order: WorkOrder) -> Decimal:
    return labor_cost(work_order) + parts_cost(work_order)


def transition(
    work_order: WorkOrder,
    target_status: WorkOrderStatus | str,
    now: datetime,
) -> WorkOrder:
    """Apply one lifecycle step and its side effects.

    Args:
        work_order: Current work order (not modified)
        target_status: Requested status
        now: Clock value for completion/start stamps

    Returns:
        Updated copy of the work order

    Raises:
        InvalidTransitionError: If (current, target) is not in TRANSITIONS
    """
    target = parse_status(target_status)
    current = work_order.status

    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            "transition not allowed",
            work_order_id=work_order.id,
            current_status=current,
            requested_status=target,
        )

    changes: dict = {"status": target}

    if target == WorkOrderStatus.IN_PROGRESS and work_order.date_started is None:
        changes["date_started"] = now

    if target == WorkOrderStatus.COMPLETED:
        if work_order.date_completed is None:
            changes["date_completed"] = now
        changes["actual_hours"] = sum(
            (entry.hours for entry in work_order.labor), Decimal("0")
        )
        changes["actual_cost"] = total_cost(work_order)

    return work_order.model_copy(update=changes)


async def change_status(
    repository: MaintenanceRepository,
    work_order_id: UUID,
    target_status: WorkOrderStatus | str,
    now: datetime,
    expected_version: int | None = None,
    completion_notes: str | None = None,
) -> WorkOrder:
    """Load, transition and persist a work order.

    ``expected_version`` lets callers assert they are acting on the state they
    last read; a mismatch raises ConcurrencyError before anything is written.
    """
    work_order = await repository.get_work_order(work_order_id)

    if expected_version is not None and expected_version != work_order.version:
        raise ConcurrencyError(
            "work order changed since it was read",
            work_order_id=work_order_id,
            expected_version=expected_version,
            current_version=work_order.version,
        )

    updated = transition(work_order, target_status, now)
    if completion_notes and updated.status == WorkOrderStatus.COMPLETED:
        updated = updated.model_copy(update={"completion_notes": completion_notes})

    saved = await repository.save_work_order(updated)

    logger.info(
        "work_order_transitioned",
        work_order_id=str(saved.id),
        from_status=work_order.status.value,
        to_status=saved.status.value,
        version=saved.version,
    )
    return saved
