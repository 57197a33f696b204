"""PM schedule management: definitions, technicians, occurrences, materialization."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import pydantic
import structlog

from pmtrack.config import AppConfig, get_config
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.errors import (
    InactiveScheduleError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from pmtrack.models import PMSchedule, PMScheduleDefinition, WorkOrder
from pmtrack.notifications.events import (
    LoggingSink,
    NotificationSink,
    pm_due,
    work_order_assigned,
)
from pmtrack.scheduling.models import Occurrence
from pmtrack.scheduling.recurrence import occurrence_date, parse_period, schedule_dates
from pmtrack.scheduling.status import build_occurrences
from pmtrack.workorders.lifecycle import INITIAL_STATUS

logger = structlog.get_logger(__name__)


def validate_definition(
    definition: PMScheduleDefinition, schedule_id: UUID | None = None
) -> PMSchedule:
    """Check schedule invariants and build the normalized schedule.

    Raises:
        ValidationError: On a broken invariant (missing period, bad count, ...)
        ConfigurationError: If the recurring period is not supported
    """
    if not definition.title or not definition.title.strip():
        raise ValidationError("title is required", field="title")

    if definition.duration_hours <= 0:
        raise ValidationError(
            "duration must be positive",
            field="duration_hours",
            value=definition.duration_hours,
        )

    if definition.is_recurring:
        if not definition.recurring_period:
            raise ValidationError(
                "recurring schedule needs a period", field="recurring_period"
            )
        period = parse_period(definition.recurring_period)
        if definition.occurrences is None or definition.occurrences < 1:
            raise ValidationError(
                "recurring schedule needs at least one occurrence",
                field="occurrences",
                value=definition.occurrences,
            )
        occurrences = definition.occurrences
        # Last due date must still be a representable calendar date
        occurrence_date(definition.start_date, period, occurrences - 1)
    else:
        if definition.occurrences not in (None, 1):
            raise ValidationError(
                "one-off schedule has exactly one occurrence",
                field="occurrences",
                value=definition.occurrences,
            )
        period = None
        occurrences = 1

    fields: dict[str, Any] = definition.model_dump(
        exclude={"recurring_period", "occurrences", "technician_ids"}
    )
    fields.update(
        recurring_period=period,
        occurrences=occurrences,
        technician_ids=_dedupe(definition.technician_ids),
    )
    if schedule_id is not None:
        fields["id"] = schedule_id
    return PMSchedule(**fields)


class PMScheduleManager:
    """Orchestrates schedule definitions and their work-order materialization.

    All clock values are passed in by the caller; nothing here reads the
    current date.
    """

    def __init__(
        self,
        repository: MaintenanceRepository,
        sink: NotificationSink | None = None,
        config: AppConfig | None = None,
    ):
        self.repository = repository
        self.sink = sink or LoggingSink()
        self._config = config

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = get_config()
        return self._config

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    async def create_schedule(self, definition: PMScheduleDefinition) -> PMSchedule:
        schedule = validate_definition(definition)
        saved = await self.repository.save_schedule(schedule)
        logger.info(
            "pm_schedule_created",
            schedule_id=str(saved.id),
            recurring_period=saved.recurring_period.value if saved.recurring_period else None,
            occurrences=saved.occurrences,
            technicians=len(saved.technician_ids),
        )
        return saved

    async def update_schedule(
        self, schedule_id: UUID, changes: dict[str, Any]
    ) -> PMSchedule:
        """Apply a partial update and re-check every invariant."""
        current = await self.repository.get_schedule(schedule_id)

        merged = current.model_dump(exclude={"id", "created_at"})
        if merged["recurring_period"] is not None:
            merged["recurring_period"] = merged["recurring_period"].value
        merged.update(changes)
        if not merged.get("is_recurring") and "occurrences" not in changes:
            merged["occurrences"] = 1

        try:
            definition = PMScheduleDefinition(**merged)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                "invalid schedule update", schedule_id=schedule_id, errors=exc.errors()
            ) from None

        schedule = validate_definition(definition, schedule_id=schedule_id)
        schedule = schedule.model_copy(update={"created_at": current.created_at})
        saved = await self.repository.save_schedule(schedule)
        logger.info(
            "pm_schedule_updated", schedule_id=str(schedule_id), fields=sorted(changes)
        )
        return saved

    async def deactivate_schedule(self, schedule_id: UUID) -> PMSchedule:
        schedule = await self.repository.get_schedule(schedule_id)
        saved = await self.repository.save_schedule(
            schedule.model_copy(update={"is_active": False})
        )
        logger.info("pm_schedule_deactivated", schedule_id=str(schedule_id))
        return saved

    # ------------------------------------------------------------------
    # Technicians
    # ------------------------------------------------------------------

    async def assign_technicians(
        self, schedule_id: UUID, technician_ids: list[UUID]
    ) -> None:
        """Replace the full technician set; the first id becomes default assignee."""
        schedule = await self.repository.get_schedule(schedule_id)
        technicians = _dedupe(technician_ids)
        await self.repository.save_schedule(
            schedule.model_copy(update={"technician_ids": technicians})
        )
        logger.info(
            "pm_technicians_assigned",
            schedule_id=str(schedule_id),
            technician_ids=[str(t) for t in technicians],
        )

    async def remove_technician(self, schedule_id: UUID, technician_id: UUID) -> None:
        schedule = await self.repository.get_schedule(schedule_id)
        if technician_id not in schedule.technician_ids:
            raise NotFoundError(
                "technician not assigned",
                schedule_id=schedule_id,
                technician_id=technician_id,
            )
        remaining = [t for t in schedule.technician_ids if t != technician_id]
        await self.repository.save_schedule(
            schedule.model_copy(update={"technician_ids": remaining})
        )
        logger.info(
            "pm_technician_removed",
            schedule_id=str(schedule_id),
            technician_id=str(technician_id),
        )

    # ------------------------------------------------------------------
    # Occurrences
    # ------------------------------------------------------------------

    async def list_occurrences(self, schedule: PMSchedule, today: date) -> list[Occurrence]:
        work_orders = await self.repository.list_work_orders_for_schedule(schedule.id)
        if schedule.allow_legacy_links and schedule.asset_id is not None:
            work_orders.extend(
                await self.repository.list_legacy_work_orders(schedule.asset_id)
            )
        return build_occurrences(
            schedule,
            work_orders,
            today,
            legacy_label=self.config.scheduling.legacy_title_label,
        )

    async def list_due_occurrences(self, today: date) -> list[Occurrence]:
        """Due and overdue occurrences across all active schedules.

        Emits a ``pm_due`` event for each one returned.
        """
        due: list[Occurrence] = []
        pairs = await self.repository.list_schedules_with_linked_work_orders(
            active_only=True
        )
        for schedule, work_orders in pairs:
            for occurrence in build_occurrences(
                schedule,
                work_orders,
                today,
                legacy_label=self.config.scheduling.legacy_title_label,
            ):
                if occurrence.needs_attention:
                    due.append(occurrence)
                    self.sink.emit(pm_due(schedule, occurrence, today))

        due.sort(key=lambda o: (o.due_date, str(o.schedule_id), o.sequence_index))
        return due

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    async def materialize_occurrence(
        self, schedule: PMSchedule, sequence_index: int, now: datetime
    ) -> WorkOrder:
        """Turn one occurrence into a persisted work order (idempotent).

        Raises:
            InactiveScheduleError: If the schedule is deactivated
            OutOfRangeError: If sequence_index is outside [0, occurrences)
        """
        if not schedule.is_active:
            raise InactiveScheduleError(
                "schedule is inactive", schedule_id=schedule.id
            )
        if sequence_index < 0 or sequence_index >= schedule.occurrences:
            raise OutOfRangeError(
                "sequence index outside schedule",
                schedule_id=schedule.id,
                sequence_index=sequence_index,
                occurrences=schedule.occurrences,
            )

        existing = await self.repository.find_work_order_by_back_reference(
            schedule.id, sequence_index
        )
        if existing is not None:
            return existing

        due_date = schedule_dates(schedule)[sequence_index]
        scheduling = self.config.scheduling
        number = await self.repository.next_work_order_number(
            scheduling.work_order_prefix, scheduling.work_order_number_width
        )

        title = schedule.title
        if schedule.is_recurring:
            title = f"{schedule.title} ({sequence_index + 1}/{schedule.occurrences})"

        work_order = WorkOrder(
            work_order_number=number,
            title=title,
            description=schedule.description,
            asset_id=schedule.asset_id,
            priority=schedule.priority,
            status=INITIAL_STATUS,
            requested_by_id=schedule.created_by_id,
            assigned_to_id=schedule.default_assignee_id,
            date_requested=now,
            date_needed=due_date,
            estimated_hours=Decimal(schedule.duration_hours),
            schedule_id=schedule.id,
            sequence_index=sequence_index,
        )

        saved, created = await self.repository.insert_materialized_work_order(
            work_order,
            prefix=scheduling.work_order_prefix,
            width=scheduling.work_order_number_width,
        )
        if not created:
            return saved

        logger.info(
            "occurrence_materialized",
            schedule_id=str(schedule.id),
            sequence_index=sequence_index,
            work_order_id=str(saved.id),
            work_order_number=saved.work_order_number,
            due_date=due_date.isoformat(),
        )
        if saved.assigned_to_id is not None:
            self.sink.emit(work_order_assigned(saved, now))
        return saved

    async def materialize_all(self, schedule: PMSchedule, now: datetime) -> list[WorkOrder]:
        """Materialize every occurrence; already-generated ones are returned as-is."""
        return [
            await self.materialize_occurrence(schedule, index, now)
            for index in range(schedule.occurrences)
        ]


def _dedupe(ids: list[UUID]) -> list[UUID]:
    seen: set[UUID] = set()
    ordered = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered
