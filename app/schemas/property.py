"""
Pydantic schemas for properties, units and tenant assignments.
"""

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from app.models.property import PropertyType, UnitStatus, AssignmentStatus
from app.schemas.common import PageMeta


class PropertyBase(BaseModel):
    """Base property schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Maple Court"])
    address: str = Field(..., min_length=1, max_length=255, examples=["12 Maple St"])
    city: str = Field(..., min_length=1, max_length=100, examples=["Austin"])
    state: str = Field(..., min_length=1, max_length=50, examples=["TX"])
    zip_code: str = Field(..., min_length=3, max_length=20, examples=["73301"])
    property_type: PropertyType = Field(PropertyType.APARTMENT, description="Kind of building")

    @field_validator('name', 'address', 'city', 'state', 'zip_code')
    @classmethod
    def strip_text(cls, v):
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class PropertyCreate(PropertyBase):
    """Schema for creating a property. Admins may assign it to another manager."""

    property_manager_id: Optional[str] = Field(
        None,
        description="Owning property manager (admin only; defaults to the caller)"
    )


class PropertyUpdate(BaseModel):
    """Schema for updating an existing property."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=50)
    zip_code: Optional[str] = Field(None, min_length=3, max_length=20)
    property_type: Optional[PropertyType] = None

    @field_validator('name', 'address', 'city', 'state', 'zip_code')
    @classmethod
    def strip_text(cls, v):
        if v is not None:
            if not v.strip():
                raise ValueError("Field cannot be empty")
            return v.strip()
        return v


class PropertyResponse(PropertyBase):
    """Schema for property response."""

    id: str
    created_by: str
    property_manager_id: str
    unit_count: Optional[int] = Field(None, description="Number of units in the property")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PropertyListResponse(PageMeta):
    """Paginated property list."""

    properties: List[PropertyResponse]


# Units

class UnitCreate(BaseModel):
    unit_number: str = Field(..., min_length=1, max_length=50, examples=["2B"])
    bedrooms: int = Field(1, ge=0, le=50)
    bathrooms: Decimal = Field(Decimal("1"), ge=0, le=50)
    square_feet: Optional[int] = Field(None, gt=0, le=1000000)
    rent_amount: Decimal = Field(..., gt=0, description="Monthly rent", examples=[1450.00])
    status: UnitStatus = UnitStatus.AVAILABLE

    @field_validator('unit_number')
    @classmethod
    def strip_unit_number(cls, v):
        if not v.strip():
            raise ValueError("Unit number cannot be empty")
        return v.strip()


class UnitUpdate(BaseModel):
    unit_number: Optional[str] = Field(None, min_length=1, max_length=50)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[Decimal] = Field(None, ge=0, le=50)
    square_feet: Optional[int] = Field(None, gt=0, le=1000000)
    rent_amount: Optional[Decimal] = Field(None, gt=0)
    status: Optional[UnitStatus] = None


class UnitResponse(BaseModel):
    id: str
    property_id: str
    unit_number: str
    bedrooms: int
    bathrooms: float
    square_feet: Optional[int] = None
    rent_amount: float
    status: UnitStatus
    created_at: datetime
    updated_at: datetime


# Tenant assignments

class TenantAssignmentCreate(BaseModel):
    """Assign a tenant to a unit."""

    tenant_id: str = Field(..., description="User id of the tenant")
    unit_id: str = Field(..., description="Unit to assign")
    lease_start: date
    lease_end: Optional[date] = None
    rent_amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the unit's rent")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.lease_end is not None and self.lease_end <= self.lease_start:
            raise ValueError("lease_end must be after lease_start")
        return self


class TenantAssignmentResponse(BaseModel):
    id: str
    tenant_id: str
    unit_id: str
    lease_start: date
    lease_end: Optional[date] = None
    rent_amount: float
    status: AssignmentStatus
    created_at: datetime
    updated_at: datetime


class TenantListItem(TenantAssignmentResponse):
    """Assignment joined with tenant, unit and property names."""

    tenant_first_name: str
    tenant_last_name: str
    tenant_email: str
    unit_number: str
    property_id: str
    property_name: str
