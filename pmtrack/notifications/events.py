"""Structured notification events emitted by the scheduling and work-order core.

The core only produces event data. Formatting and delivery (email, chat,
in-app) belong to whatever sink the application wires in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol

import structlog

from pmtrack.config import get_config

logger = structlog.get_logger(__name__)


class EventKind(str, Enum):
    WORK_ORDER_ASSIGNED = "work_order_assigned"
    PM_DUE = "pm_due"
    INVENTORY_LOW = "inventory_low"


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    kind: EventKind
    occurred_at: datetime | date
    payload: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "event": self.kind.value,
            "occurred_at": self.occurred_at.isoformat(),
            "data": {key: _plain(value) for key, value in self.payload.items()},
        }


class NotificationSink(Protocol):
    def emit(self, event: NotificationEvent) -> None: ...


class LoggingSink:
    """Default sink: records events in the structured log."""

    def emit(self, event: NotificationEvent) -> None:
        if not get_config().notifications.enabled:
            return
        payload = event.as_dict()
        logger.info(
            "notification_event",
            kind=payload["event"],
            occurred_at=payload["occurred_at"],
            data=payload["data"],
        )


class CollectingSink:
    """Keeps events in memory, for callers that batch or inspect them."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> list[NotificationEvent]:
        return [event for event in self.events if event.kind == kind]


def work_order_assigned(work_order, now: datetime) -> NotificationEvent:
    return NotificationEvent(
        kind=EventKind.WORK_ORDER_ASSIGNED,
        occurred_at=now,
        payload={
            "work_order_id": work_order.id,
            "work_order_number": work_order.work_order_number,
            "assigned_to_id": work_order.assigned_to_id,
            "title": work_order.title,
            "priority": work_order.priority,
        },
    )


def pm_due(schedule, occurrence, today: date) -> NotificationEvent:
    return NotificationEvent(
        kind=EventKind.PM_DUE,
        occurred_at=today,
        payload={
            "schedule_id": schedule.id,
            "asset_id": schedule.asset_id,
            "title": schedule.title,
            "sequence_index": occurrence.sequence_index,
            "due_date": occurrence.due_date,
            "status": occurrence.status,
            "technician_ids": list(schedule.technician_ids),
        },
    )


def inventory_low(item, now: datetime) -> NotificationEvent:
    return NotificationEvent(
        kind=EventKind.INVENTORY_LOW,
        occurred_at=now,
        payload={
            "inventory_item_id": item.id,
            "part_number": item.part_number,
            "quantity_in_stock": item.quantity_in_stock,
            "reorder_point": item.reorder_point,
        },
    )


def _plain(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
