"""Computed occurrence structures (never persisted)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class OccurrenceStatus(str, Enum):
    UPCOMING = "upcoming"
    DUE = "due"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class LinkSource(str, Enum):
    """How an occurrence was matched to its work order."""

    EXPLICIT = "explicit"  # (schedule_id, sequence_index) back-reference
    HEURISTIC_MATCH = "heuristic_match"  # legacy asset/day/title match


@dataclass(slots=True, frozen=True)
class Occurrence:
    schedule_id: UUID
    sequence_index: int
    due_date: date
    status: OccurrenceStatus
    work_order_id: UUID | None = None
    link_source: LinkSource | None = None

    @property
    def is_materialized(self) -> bool:
        return self.work_order_id is not None

    @property
    def needs_attention(self) -> bool:
        return self.status in (OccurrenceStatus.DUE, OccurrenceStatus.OVERDUE)
