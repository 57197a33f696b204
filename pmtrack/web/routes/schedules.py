"""Preventive maintenance schedule routes.

Routes:
- POST   /schedules                                   - Create schedule
- GET    /schedules                                   - List schedules
- GET    /schedules/{id}                              - Get schedule
- PATCH  /schedules/{id}                              - Partial update
- POST   /schedules/{id}/deactivate                   - Stop materialization
- PUT    /schedules/{id}/technicians                  - Replace technician set
- DELETE /schedules/{id}/technicians/{technician_id}  - Remove one technician
- GET    /schedules/{id}/occurrences                  - Occurrences with status
- GET    /schedules/{id}/work-orders                  - Materialized work orders
- POST   /schedules/{id}/occurrences/{index}/materialize
- POST   /schedules/{id}/materialize                  - Materialize all
- GET    /occurrences/due                             - Due/overdue across schedules
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status

from pmtrack.db.repository import MaintenanceRepository
from pmtrack.models import PMSchedule, PMScheduleDefinition, WorkOrder
from pmtrack.scheduling.manager import PMScheduleManager
from pmtrack.web.dependencies import get_manager, get_now, get_repository, get_today
from pmtrack.web.models import (
    ERROR_RESPONSES,
    OccurrenceResponse,
    ScheduleUpdateRequest,
    TechnicianAssignmentRequest,
)

router = APIRouter(tags=["schedules"], responses=ERROR_RESPONSES)


@router.post("/schedules", status_code=status.HTTP_201_CREATED, response_model=PMSchedule)
async def create_schedule(
    definition: PMScheduleDefinition,
    manager: PMScheduleManager = Depends(get_manager),
):
    return await manager.create_schedule(definition)


@router.get("/schedules", response_model=list[PMSchedule])
async def list_schedules(
    active_only: bool = False,
    repository: MaintenanceRepository = Depends(get_repository),
):
    return await repository.list_schedules(active_only=active_only)


@router.get("/schedules/{schedule_id}", response_model=PMSchedule)
async def get_schedule(
    schedule_id: UUID,
    repository: MaintenanceRepository = Depends(get_repository),
):
    return await repository.get_schedule(schedule_id)


@router.patch("/schedules/{schedule_id}", response_model=PMSchedule)
async def update_schedule(
    schedule_id: UUID,
    request: ScheduleUpdateRequest,
    manager: PMScheduleManager = Depends(get_manager),
):
    return await manager.update_schedule(schedule_id, request.model_dump(exclude_unset=True))


@router.post("/schedules/{schedule_id}/deactivate", response_model=PMSchedule)
async def deactivate_schedule(
    schedule_id: UUID,
    manager: PMScheduleManager = Depends(get_manager),
):
    return await manager.deactivate_schedule(schedule_id)


@router.put("/schedules/{schedule_id}/technicians", response_model=PMSchedule)
async def assign_technicians(
    schedule_id: UUID,
    request: TechnicianAssignmentRequest,
    manager: PMScheduleManager = Depends(get_manager),
):
    await manager.assign_technicians(schedule_id, request.technician_ids)
    return await manager.repository.get_schedule(schedule_id)


@router.delete(
    "/schedules/{schedule_id}/technicians/{technician_id}",
    response_model=PMSchedule,
)
async def remove_technician(
    schedule_id: UUID,
    technician_id: UUID,
    manager: PMScheduleManager = Depends(get_manager),
):
    await manager.remove_technician(schedule_id, technician_id)
    return await manager.repository.get_schedule(schedule_id)


@router.get(
    "/schedules/{schedule_id}/occurrences", response_model=list[OccurrenceResponse]
)
async def list_occurrences(
    schedule_id: UUID,
    manager: PMScheduleManager = Depends(get_manager),
    today: date = Depends(get_today),
):
    schedule = await manager.repository.get_schedule(schedule_id)
    occurrences = await manager.list_occurrences(schedule, today)
    return [OccurrenceResponse.from_occurrence(o) for o in occurrences]


@router.get("/schedules/{schedule_id}/work-orders", response_model=list[WorkOrder])
async def list_schedule_work_orders(
    schedule_id: UUID,
    repository: MaintenanceRepository = Depends(get_repository),
):
    await repository.get_schedule(schedule_id)
    return await repository.list_work_orders_for_schedule(schedule_id)


@router.post(
    "/schedules/{schedule_id}/occurrences/{sequence_index}/materialize",
    response_model=WorkOrder,
)
async def materialize_occurrence(
    schedule_id: UUID,
    sequence_index: int,
    manager: PMScheduleManager = Depends(get_manager),
    now: datetime = Depends(get_now),
):
    schedule = await manager.repository.get_schedule(schedule_id)
    return await manager.materialize_occurrence(schedule, sequence_index, now)


@router.post("/schedules/{schedule_id}/materialize", response_model=list[WorkOrder])
async def materialize_all(
    schedule_id: UUID,
    manager: PMScheduleManager = Depends(get_manager),
    now: datetime = Depends(get_now),
):
    schedule = await manager.repository.get_schedule(schedule_id)
    return await manager.materialize_all(schedule, now)


@router.get("/occurrences/due", response_model=list[OccurrenceResponse])
async def list_due_occurrences(
    manager: PMScheduleManager = Depends(get_manager),
    today: date = Depends(get_today),
):
    occurrences = await manager.list_due_occurrences(today)
    return [OccurrenceResponse.from_occurrence(o) for o in occurrences]
