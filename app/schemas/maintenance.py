"""
Pydantic schemas for maintenance requests.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models.maintenance import MaintenanceStatus, MaintenancePriority
from app.schemas.common import PageMeta


class MaintenanceRequestCreate(BaseModel):
    unit_id: str
    title: str = Field(..., min_length=1, max_length=255, examples=["Leaking faucet"])
    description: str = Field(..., min_length=1, max_length=5000)
    priority: MaintenancePriority = MaintenancePriority.MEDIUM


class MaintenanceRequestUpdate(BaseModel):
    status: Optional[MaintenanceStatus] = None
    priority: Optional[MaintenancePriority] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)


class MaintenanceRequestResponse(BaseModel):
    id: str
    unit_id: str
    tenant_id: str
    title: str
    description: str
    priority: MaintenancePriority
    status: MaintenanceStatus
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class MaintenanceRequestListResponse(PageMeta):
    requests: List[MaintenanceRequestResponse]
