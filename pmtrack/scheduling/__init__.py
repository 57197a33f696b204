"""Preventive maintenance recurrence, occurrence status and materialization."""

from pmtrack.scheduling.manager import PMScheduleManager, validate_definition
from pmtrack.scheduling.models import LinkSource, Occurrence, OccurrenceStatus
from pmtrack.scheduling.recurrence import (
    generate_occurrence_dates,
    occurrence_date,
    schedule_dates,
)
from pmtrack.scheduling.status import build_occurrences, link_work_orders, resolve

__all__ = [
    "PMScheduleManager",
    "validate_definition",
    "LinkSource",
    "Occurrence",
    "OccurrenceStatus",
    "generate_occurrence_dates",
    "occurrence_date",
    "schedule_dates",
    "build_occurrences",
    "link_work_orders",
    "resolve",
]
