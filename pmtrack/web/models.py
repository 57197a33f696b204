"""Request/response models for the PMTrack HTTP API.

Shapes only; every business rule is enforced by the core operation the route
delegates to.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from pmtrack.models import WorkOrderStatus
from pmtrack.scheduling.models import Occurrence


class ScheduleUpdateRequest(BaseModel):
    """Partial schedule update; unset fields keep their stored value."""

    title: str | None = None
    description: str | None = None
    asset_id: UUID | None = None
    maintenance_type: str | None = None
    priority: str | None = None
    start_date: date | None = None
    duration_hours: Decimal | None = None
    is_recurring: bool | None = None
    recurring_period: str | None = None
    occurrences: int | None = None
    is_active: bool | None = None
    technician_ids: list[UUID] | None = None
    notes: str | None = None
    allow_legacy_links: bool | None = None


class TechnicianAssignmentRequest(BaseModel):
    technician_ids: list[UUID]


class OccurrenceResponse(BaseModel):
    schedule_id: UUID
    sequence_index: int
    due_date: date
    status: str
    work_order_id: UUID | None = None
    link_source: str | None = None

    @classmethod
    def from_occurrence(cls, occurrence: Occurrence) -> OccurrenceResponse:
        return cls(
            schedule_id=occurrence.schedule_id,
            sequence_index=occurrence.sequence_index,
            due_date=occurrence.due_date,
            status=occurrence.status.value,
            work_order_id=occurrence.work_order_id,
            link_source=occurrence.link_source.value if occurrence.link_source else None,
        )


class TransitionRequest(BaseModel):
    status: WorkOrderStatus
    expected_version: int | None = None
    completion_notes: str | None = None


class ScheduleWorkOrderRequest(BaseModel):
    scheduled_for: datetime


class AssignWorkOrderRequest(BaseModel):
    technician_id: UUID | None = None


class LaborRequest(BaseModel):
    technician_id: UUID
    hours: Decimal
    hourly_rate: Decimal | None = None
    date_performed: datetime | None = None
    notes: str | None = None


class PartIssueRequest(BaseModel):
    inventory_item_id: UUID
    quantity: int = Field(..., description="Units to issue from stock")
    date_issued: datetime | None = None


class ErrorResponse(BaseModel):
    error: str
    context: dict[str, Any] = Field(default_factory=dict)


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation or configuration error"},
    404: {"model": ErrorResponse, "description": "Referenced entity not found"},
    409: {"model": ErrorResponse, "description": "Conflicts with current state"},
}
