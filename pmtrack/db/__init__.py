"""Database layer for PMTrack with async SQLAlchemy."""

from pmtrack.db.connection import get_session, init_db
from pmtrack.db.models import (
    Base,
    InventoryItemModel,
    PMScheduleModel,
    PMTechnicianModel,
    WorkOrderLaborModel,
    WorkOrderModel,
    WorkOrderPartModel,
)
from pmtrack.db.repository import MaintenanceRepository

__all__ = [
    "Base",
    "PMScheduleModel",
    "PMTechnicianModel",
    "WorkOrderModel",
    "WorkOrderLaborModel",
    "WorkOrderPartModel",
    "InventoryItemModel",
    "MaintenanceRepository",
    "get_session",
    "init_db",
]
