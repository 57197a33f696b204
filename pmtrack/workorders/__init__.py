"""Work-order lifecycle state machine and resource operations."""

from pmtrack.workorders.lifecycle import (
    INITIAL_STATUS,
    TRANSITIONS,
    allowed_transitions,
    change_status,
    transition,
)
from pmtrack.workorders.resources import (
    assign_work_order,
    issue_parts,
    record_labor,
    schedule_work_order,
)

__all__ = [
    "INITIAL_STATUS",
    "TRANSITIONS",
    "allowed_transitions",
    "change_status",
    "transition",
    "assign_work_order",
    "issue_parts",
    "record_labor",
    "schedule_work_order",
]
