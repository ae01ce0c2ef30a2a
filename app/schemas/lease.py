"""
Pydantic schemas for leases and their e-signature requests.
"""

from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from app.models.lease import LeaseStatus, SignatureStatus
from app.schemas.common import PageMeta


class LeaseCreate(BaseModel):
    property_id: str
    unit_id: str
    tenant_id: str
    start_date: date
    end_date: date
    rent_amount: Decimal = Field(..., gt=0, examples=[1450.00])
    security_deposit: Decimal = Field(Decimal("0"), ge=0)
    pet_deposit: Decimal = Field(Decimal("0"), ge=0)
    late_fee: Decimal = Field(Decimal("50"), ge=0)
    grace_period_days: int = Field(5, ge=0, le=31)
    content: Optional[str] = Field(None, max_length=100000, description="Agreement text")
    status: LeaseStatus = LeaseStatus.DRAFT

    @model_validator(mode='after')
    def validate_dates(self):
        """End date must come after the start date."""
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class LeaseUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount: Optional[Decimal] = Field(None, gt=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    pet_deposit: Optional[Decimal] = Field(None, ge=0)
    late_fee: Optional[Decimal] = Field(None, ge=0)
    grace_period_days: Optional[int] = Field(None, ge=0, le=31)
    content: Optional[str] = Field(None, max_length=100000)
    status: Optional[LeaseStatus] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class LeaseResponse(BaseModel):
    id: str
    property_id: str
    unit_id: str
    tenant_id: str
    start_date: date
    end_date: date
    rent_amount: float
    security_deposit: float
    pet_deposit: float
    late_fee: float
    grace_period_days: int
    content: Optional[str] = None
    status: LeaseStatus
    signature_status: SignatureStatus
    signature_request_id: Optional[str] = None
    signed_document_path: Optional[str] = None
    tenant_signed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeaseListResponse(PageMeta):
    leases: List[LeaseResponse]


class SignatureRequestCreate(BaseModel):
    """Signer defaults to the lease's tenant."""

    signer_email: Optional[EmailStr] = None
    signer_name: Optional[str] = Field(None, max_length=200)
    title: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = Field(None, max_length=2000)


class SignatureEntry(BaseModel):
    signature_id: str
    signer_email: str
    status: Optional[str] = None


class SignatureRequestResponse(BaseModel):
    """Result of sending a lease for embedded signing."""

    signature_request_id: str
    title: str
    signatures: List[SignatureEntry] = Field(default_factory=list)


class SignUrlResponse(BaseModel):
    sign_url: str
    expires_at: Optional[int] = Field(None, description="Unix timestamp when the URL stops working")
