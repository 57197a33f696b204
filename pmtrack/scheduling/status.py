"""Occurrence status resolution and work-order linking.

Status is a pure function of (due date, today, linked work order status):

1. linked work order completed -> completed (overrides the date)
2. due date == today           -> due
3. due date <  today           -> overdue
4. otherwise                   -> upcoming

Linking prefers the explicit (schedule_id, sequence_index) back-reference.
Schedules flagged ``allow_legacy_links`` may additionally match work orders
that predate back-references by asset, calendar day and PM title label.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from uuid import UUID

from pmtrack.models import PMSchedule, WorkOrder, WorkOrderStatus
from pmtrack.scheduling.models import LinkSource, Occurrence, OccurrenceStatus
from pmtrack.scheduling.recurrence import schedule_dates, to_calendar_day

DEFAULT_LEGACY_LABEL = "Preventive Maintenance"


def resolve(
    due_date: date,
    today: date,
    linked_work_order: WorkOrder | None = None,
) -> OccurrenceStatus:
    """Derive the display status of a single occurrence."""
    if (
        linked_work_order is not None
        and linked_work_order.status == WorkOrderStatus.COMPLETED
    ):
        return OccurrenceStatus.COMPLETED

    due = to_calendar_day(due_date)
    current = to_calendar_day(today)
    if due == current:
        return OccurrenceStatus.DUE
    if due < current:
        return OccurrenceStatus.OVERDUE
    return OccurrenceStatus.UPCOMING


def link_work_orders(
    schedule: PMSchedule,
    due_dates: Sequence[date],
    work_orders: Iterable[WorkOrder],
    legacy_label: str = DEFAULT_LEGACY_LABEL,
) -> dict[int, tuple[WorkOrder, LinkSource]]:
    """Map sequence index -> (work order, link source) for one schedule."""
    links: dict[int, tuple[WorkOrder, LinkSource]] = {}
    legacy_candidates: list[WorkOrder] = []

    for work_order in work_orders:
        reference = work_order.back_reference
        if reference is None:
            legacy_candidates.append(work_order)
            continue
        schedule_id, index = reference
        if schedule_id == schedule.id and 0 <= index < len(due_dates):
            links[index] = (work_order, LinkSource.EXPLICIT)

    if not schedule.allow_legacy_links or schedule.asset_id is None:
        return links

    label = legacy_label.casefold()
    candidates = sorted(
        (
            wo
            for wo in legacy_candidates
            if wo.asset_id == schedule.asset_id and label in wo.title.casefold()
        ),
        key=lambda wo: (wo.date_requested, wo.work_order_number),
    )
    claimed: set[UUID] = set()
    for index, due in enumerate(due_dates):
        if index in links:
            continue
        for candidate in candidates:
            if candidate.id in claimed:
                continue
            if due in _work_order_days(candidate):
                links[index] = (candidate, LinkSource.HEURISTIC_MATCH)
                claimed.add(candidate.id)
                break

    return links


def build_occurrences(
    schedule: PMSchedule,
    work_orders: Iterable[WorkOrder],
    today: date,
    legacy_label: str = DEFAULT_LEGACY_LABEL,
) -> list[Occurrence]:
    """Compute every occurrence of ``schedule`` with its live status."""
    due_dates = schedule_dates(schedule)
    links = link_work_orders(schedule, due_dates, work_orders, legacy_label)

    occurrences = []
    for index, due in enumerate(due_dates):
        work_order, source = links.get(index, (None, None))
        occurrences.append(
            Occurrence(
                schedule_id=schedule.id,
                sequence_index=index,
                due_date=due,
                status=resolve(due, today, work_order),
                work_order_id=work_order.id if work_order else None,
                link_source=source,
            )
        )
    return occurrences


def _work_order_days(work_order: WorkOrder) -> set[date]:
    days = set()
    if work_order.date_needed is not None:
        days.add(to_calendar_day(work_order.date_needed))
    if work_order.date_scheduled is not None:
        days.add(to_calendar_day(work_order.date_scheduled))
    return days
