"""
Pydantic schemas for rental applicants and screening.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any, Literal
from datetime import date, datetime
from decimal import Decimal
from app.models.applicant import ApplicantStatus, ScreeningType, ScreeningRecommendation
from app.schemas.common import PageMeta


class ApplicantCreate(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    desired_move_in: Optional[date] = None
    monthly_income: Optional[Decimal] = Field(None, ge=0)
    employer: Optional[str] = Field(None, max_length=255)
    employment_status: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    status: ApplicantStatus = Field(
        ApplicantStatus.INVITED,
        description="Initial status; 'invited' emails the applicant an invitation"
    )

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()

    @field_validator('status')
    @classmethod
    def validate_initial_status(cls, v):
        if v not in (ApplicantStatus.INVITED, ApplicantStatus.STARTED, ApplicantStatus.SUBMITTED):
            raise ValueError("New applicants must start as invited, started or submitted")
        return v


class ApplicantUpdate(BaseModel):
    unit_id: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    desired_move_in: Optional[date] = None
    monthly_income: Optional[Decimal] = Field(None, ge=0)
    employer: Optional[str] = Field(None, max_length=255)
    employment_status: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    status: Optional[Literal["started", "submitted"]] = Field(
        None,
        description="Applicants progress through the form; decisions use the decision endpoint"
    )


class ApplicantResponse(BaseModel):
    id: str
    property_id: str
    unit_id: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    desired_move_in: Optional[date] = None
    monthly_income: Optional[float] = None
    employer: Optional[str] = None
    employment_status: Optional[str] = None
    notes: Optional[str] = None
    status: ApplicantStatus
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ApplicantListResponse(PageMeta):
    applicants: List[ApplicantResponse]


class ApplicantDecision(BaseModel):
    decision: Literal["approve", "reject"]
    notes: Optional[str] = None


class ApplicantConvert(BaseModel):
    """Turn an approved applicant into a tenant of a unit."""

    tenant_id: Optional[str] = Field(None, description="Existing tenant user for the applicant")
    unit_id: Optional[str] = Field(None, description="Unit to assign; defaults to the applicant's unit")
    lease_start: Optional[date] = None
    lease_end: Optional[date] = None
    rent_amount: Optional[Decimal] = Field(None, gt=0)


class ApplicantConvertResponse(BaseModel):
    applicant: ApplicantResponse
    assignment_id: Optional[str] = None


class ScreeningRequest(BaseModel):
    screening_types: List[ScreeningType] = Field(
        default_factory=lambda: [ScreeningType.FULL],
        min_length=1
    )
    rent_amount: Optional[Decimal] = Field(
        None,
        gt=0,
        description="Monthly rent used for the income ratio; defaults to the applicant's unit rent"
    )


class ScreeningReportResponse(BaseModel):
    id: str
    applicant_id: str
    requested_by: str
    screening_type: ScreeningType
    status: str
    provider: str
    credit_score: Optional[int] = None
    income_ratio: Optional[float] = None
    recommendation: ScreeningRecommendation
    flags: List[str] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    created_at: datetime
