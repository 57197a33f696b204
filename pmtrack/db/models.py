"""SQLAlchemy async database models for PMTrack.

Concurrency guards live here: a unique (schedule_id, sequence_index) pair on
work orders blocks double materialization, ``version`` is the optimistic lock
column for work-order updates, and stock can never go negative.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PMScheduleModel(Base):
    """Preventive maintenance schedule definition."""

    __tablename__ = "pm_schedules"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    asset_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    maintenance_type: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")

    # Recurrence
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_period: Mapped[str | None] = mapped_column(String(16))
    occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_legacy_links: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # Audit
    created_by_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("occurrences >= 1", name="check_pm_occurrences_positive"),
        CheckConstraint(
            "is_recurring = false OR recurring_period IS NOT NULL",
            name="check_pm_recurring_has_period",
        ),
    )


class PMTechnicianModel(Base):
    """Technician assigned to a PM schedule; position 0 is the default assignee."""

    __tablename__ = "pm_technicians"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    schedule_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pm_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    technician_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("schedule_id", "technician_id", name="uq_pm_technician"),
    )


class WorkOrderModel(Base):
    """Maintenance work order, optionally materialized from a PM occurrence."""

    __tablename__ = "work_orders"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    asset_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="requested", index=True
    )

    requested_by_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    assigned_to_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)

    date_requested: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    date_needed: Mapped[date | None] = mapped_column(Date)
    date_scheduled: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    date_started: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    date_completed: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    estimated_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    actual_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    estimated_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    actual_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    completion_notes: Mapped[str | None] = mapped_column(Text)

    # Back-reference to the PM occurrence this work order was generated from
    schedule_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("pm_schedules.id"), index=True
    )
    sequence_index: Mapped[int | None] = mapped_column(Integer)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "schedule_id", "sequence_index", name="uq_work_orders_pm_occurrence"
        ),
        CheckConstraint(
            "(schedule_id IS NULL) = (sequence_index IS NULL)",
            name="check_work_orders_back_reference_complete",
        ),
        Index("idx_work_orders_asset_needed", "asset_id", "date_needed"),
    )


class WorkOrderLaborModel(Base):
    """Labor hours booked against a work order."""

    __tablename__ = "work_order_labor"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("work_orders.id"), nullable=False, index=True
    )
    technician_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    date_performed: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (CheckConstraint("hours > 0", name="check_labor_hours_positive"),)


class WorkOrderPartModel(Base):
    """Parts issued from inventory to a work order (unit cost snapshotted)."""

    __tablename__ = "work_order_parts"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    work_order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("work_orders.id"), nullable=False, index=True
    )
    inventory_item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("inventory_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    date_issued: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (CheckConstraint("quantity > 0", name="check_part_quantity_positive"),)


class InventoryItemModel(Base):
    """Stocked part."""

    __tablename__ = "inventory_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    part_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    quantity_in_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_point: Mapped[int | None] = mapped_column(Integer)
    location: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("quantity_in_stock >= 0", name="check_inventory_non_negative"),
    )
