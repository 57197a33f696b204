"""Work-order lifecycle and resource routes.

Routes:
- GET  /work-orders/{id}              - Work order with labor and parts
- GET  /work-orders/{id}/transitions  - Statuses reachable from the current one
- POST /work-orders/{id}/transition   - Lifecycle status change
- POST /work-orders/{id}/schedule     - Set planned execution time
- POST /work-orders/{id}/assign       - Assign technician
- POST /work-orders/{id}/labor        - Book labor hours
- POST /work-orders/{id}/parts        - Issue parts from inventory
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status

from pmtrack.db.repository import MaintenanceRepository
from pmtrack.models import LaborEntry, PartIssue, WorkOrder
from pmtrack.workorders import lifecycle, resources
from pmtrack.web.dependencies import get_now, get_repository
from pmtrack.web.models import (
    ERROR_RESPONSES,
    AssignWorkOrderRequest,
    LaborRequest,
    PartIssueRequest,
    ScheduleWorkOrderRequest,
    TransitionRequest,
)

router = APIRouter(
    prefix="/work-orders", tags=["work-orders"], responses=ERROR_RESPONSES
)


@router.get("/{work_order_id}", response_model=WorkOrder)
async def get_work_order(
    work_order_id: UUID,
    repository: MaintenanceRepository = Depends(get_repository),
):
    return await repository.get_work_order(work_order_id)


@router.get("/{work_order_id}/transitions")
async def list_transitions(
    work_order_id: UUID,
    repository: MaintenanceRepository = Depends(get_repository),
):
    work_order = await repository.get_work_order(work_order_id)
    return {
        "status": work_order.status.value,
        "allowed": sorted(s.value for s in lifecycle.allowed_transitions(work_order.status)),
    }


@router.post("/{work_order_id}/transition", response_model=WorkOrder)
async def transition_work_order(
    work_order_id: UUID,
    request: TransitionRequest,
    repository: MaintenanceRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
):
    return await lifecycle.change_status(
        repository,
        work_order_id,
        request.status,
        now,
        expected_version=request.expected_version,
        completion_notes=request.completion_notes,
    )


@router.post("/{work_order_id}/schedule", response_model=WorkOrder)
async def schedule_work_order(
    work_order_id: UUID,
    request: ScheduleWorkOrderRequest,
    repository: MaintenanceRepository = Depends(get_repository),
):
    return await resources.schedule_work_order(
        repository, work_order_id, request.scheduled_for
    )


@router.post("/{work_order_id}/assign", response_model=WorkOrder)
async def assign_work_order(
    work_order_id: UUID,
    request: AssignWorkOrderRequest,
    repository: MaintenanceRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
):
    return await resources.assign_work_order(
        repository, work_order_id, request.technician_id, now
    )


@router.post(
    "/{work_order_id}/labor",
    status_code=status.HTTP_201_CREATED,
    response_model=LaborEntry,
)
async def record_labor(
    work_order_id: UUID,
    request: LaborRequest,
    repository: MaintenanceRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
):
    return await resources.record_labor(
        repository,
        work_order_id,
        technician_id=request.technician_id,
        hours=request.hours,
        performed_on=request.date_performed or now,
        hourly_rate=request.hourly_rate,
        notes=request.notes,
    )


@router.post(
    "/{work_order_id}/parts",
    status_code=status.HTTP_201_CREATED,
    response_model=PartIssue,
)
async def issue_parts(
    work_order_id: UUID,
    request: PartIssueRequest,
    repository: MaintenanceRepository = Depends(get_repository),
    now: datetime = Depends(get_now),
):
    return await resources.issue_parts(
        repository,
        work_order_id,
        request.inventory_item_id,
        request.quantity,
        issued_at=request.date_issued or now,
    )
