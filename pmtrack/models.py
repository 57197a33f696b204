"""PMTrack Pydantic models for type-safe data validation.

Domain objects passed between the scheduling engine, the work-order lifecycle
and the repository. Persisted rows live in ``pmtrack.db.models``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class RecurringPeriod(str, Enum):
    """Supported recurrence steps for a PM schedule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"

    @classmethod
    def _missing_(cls, value):
        # Spellings stored by older schedule records
        if isinstance(value, str):
            return _PERIOD_ALIASES.get(value.strip().lower())
        return None


_PERIOD_ALIASES = {
    "semiannually": RecurringPeriod.SEMIANNUAL,
    "semi-annual": RecurringPeriod.SEMIANNUAL,
    "annually": RecurringPeriod.ANNUAL,
    "yearly": RecurringPeriod.ANNUAL,
    "bi-weekly": RecurringPeriod.BIWEEKLY,
}


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WorkOrderStatus(str, Enum):
    """Work-order lifecycle states."""

    REQUESTED = "requested"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PMScheduleDefinition(BaseModel):
    """Input for creating a preventive maintenance schedule.

    ``recurring_period`` is kept as a raw string here so that an unknown
    period surfaces as a configuration problem rather than a shape error.
    """

    title: str
    description: str | None = None
    asset_id: UUID | None = None
    maintenance_type: str = "General Inspection"
    priority: Priority = Priority.MEDIUM
    start_date: date
    duration_hours: Decimal = Decimal("1")
    is_recurring: bool = False
    recurring_period: str | None = None
    occurrences: int | None = None
    is_active: bool = True
    created_by_id: UUID | None = None
    technician_ids: list[UUID] = Field(default_factory=list)
    notes: str | None = None
    allow_legacy_links: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Compressor lubrication",
                "asset_id": "550e8400-e29b-41d4-a716-446655440000",
                "maintenance_type": "Lubrication",
                "priority": "high",
                "start_date": "2024-01-31",
                "duration_hours": "2.5",
                "is_recurring": True,
                "recurring_period": "monthly",
                "occurrences": 12,
            }
        }


class PMSchedule(BaseModel):
    """Validated, persisted preventive maintenance schedule."""

    id: UUID = Field(default_factory=uuid4)
    title: str
    description: str | None = None
    asset_id: UUID | None = None
    maintenance_type: str = "General Inspection"
    priority: Priority = Priority.MEDIUM
    start_date: date
    duration_hours: Decimal = Decimal("1")
    is_recurring: bool = False
    recurring_period: RecurringPeriod | None = None
    occurrences: int = 1
    is_active: bool = True
    created_by_id: UUID | None = None
    technician_ids: list[UUID] = Field(default_factory=list)
    notes: str | None = None
    allow_legacy_links: bool = False
    created_at: datetime | None = None

    @property
    def default_assignee_id(self) -> UUID | None:
        """First assigned technician receives newly materialized work orders."""
        return self.technician_ids[0] if self.technician_ids else None


class LaborEntry(BaseModel):
    """Hours booked against a work order at a snapshotted hourly rate."""

    id: UUID = Field(default_factory=uuid4)
    work_order_id: UUID
    technician_id: UUID
    hours: Decimal
    hourly_rate: Decimal = Decimal("0")
    date_performed: datetime
    notes: str | None = None

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("hours must be positive")
        return v

    @field_validator("hourly_rate")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("hourly_rate must be non-negative")
        return v

    @property
    def labor_cost(self) -> Decimal:
        return self.hours * self.hourly_rate


class PartIssue(BaseModel):
    """Inventory consumed by a work order; unit cost frozen at issue time."""

    id: UUID = Field(default_factory=uuid4)
    work_order_id: UUID
    inventory_item_id: UUID
    quantity: int
    unit_cost: Decimal
    date_issued: datetime

    @property
    def total_cost(self) -> Decimal:
        return self.unit_cost * self.quantity


class InventoryItem(BaseModel):
    """Stocked part available for issue to work orders."""

    id: UUID = Field(default_factory=uuid4)
    part_number: str
    name: str
    description: str | None = None
    unit_cost: Decimal = Decimal("0")
    quantity_in_stock: int = 0
    reorder_point: int | None = None
    location: str | None = None
    is_active: bool = True

    @field_validator("quantity_in_stock")
    @classmethod
    def validate_stock(cls, v: int) -> int:
        if v < 0:
            raise ValueError("quantity_in_stock must be non-negative")
        return v

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_in_stock <= (self.reorder_point or 0)


class WorkOrder(BaseModel):
    """Maintenance work order.

    ``schedule_id``/``sequence_index`` form the back-reference to the PM
    occurrence the work order was materialized from (both None otherwise).
    """

    id: UUID = Field(default_factory=uuid4)
    work_order_number: str
    title: str
    description: str | None = None
    asset_id: UUID | None = None
    priority: Priority = Priority.MEDIUM
    status: WorkOrderStatus = WorkOrderStatus.REQUESTED
    requested_by_id: UUID | None = None
    assigned_to_id: UUID | None = None

    date_requested: datetime
    date_needed: date | None = None
    date_scheduled: datetime | None = None
    date_started: datetime | None = None
    date_completed: datetime | None = None

    estimated_hours: Decimal | None = None
    actual_hours: Decimal | None = None
    estimated_cost: Decimal | None = None
    actual_cost: Decimal | None = None
    completion_notes: str | None = None

    schedule_id: UUID | None = None
    sequence_index: int | None = None

    labor: list[LaborEntry] = Field(default_factory=list)
    parts: list[PartIssue] = Field(default_factory=list)

    version: int = 1

    @property
    def back_reference(self) -> tuple[UUID, int] | None:
        if self.schedule_id is None or self.sequence_index is None:
            return None
        return (self.schedule_id, self.sequence_index)

    @property
    def is_closed(self) -> bool:
        return self.status in (WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED)
