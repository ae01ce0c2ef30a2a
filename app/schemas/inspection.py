"""
Pydantic schemas for inspections and checklist items.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from app.models.inspection import InspectionType, InspectionStatus, ConditionRating
from app.schemas.common import PageMeta


class InspectionItemCreate(BaseModel):
    room: str = Field(..., min_length=1, max_length=100, examples=["Kitchen"])
    item: str = Field(..., min_length=1, max_length=100, examples=["Countertop"])
    condition: ConditionRating
    notes: Optional[str] = None
    estimated_repair_cost: Decimal = Field(Decimal("0"), ge=0)
    charge_to_tenant: bool = False


class InspectionItemResponse(BaseModel):
    id: str
    inspection_id: str
    room: str
    item: str
    condition: ConditionRating
    notes: Optional[str] = None
    estimated_repair_cost: float
    charge_to_tenant: bool


class InspectionCreate(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    lease_id: Optional[str] = None
    inspection_type: InspectionType
    scheduled_date: date
    notes: Optional[str] = None
    items: List[InspectionItemCreate] = Field(default_factory=list)


class InspectionUpdate(BaseModel):
    inspection_type: Optional[InspectionType] = None
    status: Optional[InspectionStatus] = Field(
        None,
        description="Use the complete endpoint to finish an inspection"
    )
    scheduled_date: Optional[date] = None
    overall_condition: Optional[ConditionRating] = None
    notes: Optional[str] = None


class InspectionComplete(BaseModel):
    overall_condition: Optional[ConditionRating] = None
    notes: Optional[str] = None


class InspectionResponse(BaseModel):
    id: str
    property_id: str
    unit_id: Optional[str] = None
    lease_id: Optional[str] = None
    inspector_id: str
    inspection_type: InspectionType
    status: InspectionStatus
    scheduled_date: date
    completed_date: Optional[datetime] = None
    overall_condition: Optional[ConditionRating] = None
    notes: Optional[str] = None
    total_repair_cost: float
    items: Optional[List[InspectionItemResponse]] = None
    created_at: datetime
    updated_at: datetime


class InspectionListResponse(PageMeta):
    inspections: List[InspectionResponse]


class InspectionChargeEntry(BaseModel):
    inspection_id: str
    item_count: int
    amount: float


class InspectionChargesSummary(BaseModel):
    """Repair costs charged to tenants."""

    total: float
    inspections: List[InspectionChargeEntry] = Field(default_factory=list)
