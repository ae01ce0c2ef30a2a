"""
Rental applicant and tenant screening models.
"""

from sqlalchemy import String, Text, Integer, Numeric, Date, DateTime, JSON, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import Any, Dict, List, Optional


class ApplicantStatus(str, enum.Enum):
    INVITED = "invited"
    STARTED = "started"
    SUBMITTED = "submitted"
    SCREENING = "screening"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"
    WITHDRAWN = "withdrawn"


class ScreeningType(str, enum.Enum):
    CREDIT = "credit"
    BACKGROUND = "background"
    EVICTION = "eviction"
    INCOME = "income"
    FULL = "full"


class ScreeningRecommendation(str, enum.Enum):
    APPROVE = "approve"
    REVIEW = "review"
    DENY = "deny"


class Applicant(Base):
    """Prospective tenant applying for a property (optionally a specific unit)."""

    __tablename__ = "applicants"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    unit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="SET NULL"),
        nullable=True
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    desired_move_in: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    monthly_income: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=12, scale=2), nullable=True)
    employer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    employment_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ApplicantStatus] = mapped_column(
        SQLEnum(ApplicantStatus),
        nullable=False,
        default=ApplicantStatus.INVITED,
        index=True
    )

    decided_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "unit_id": str(self.unit_id) if self.unit_id else None,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "desired_move_in": isoformat(self.desired_move_in),
            "monthly_income": float(self.monthly_income) if self.monthly_income is not None else None,
            "employer": self.employer,
            "employment_status": self.employment_status,
            "notes": self.notes,
            "status": self.status.value,
            "decided_by": str(self.decided_by) if self.decided_by else None,
            "decided_at": isoformat(self.decided_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ScreeningReport(Base):
    """Result of one screening run for an applicant."""

    __tablename__ = "screening_reports"

    applicant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("applicants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    screening_type: Mapped[ScreeningType] = mapped_column(SQLEnum(ScreeningType), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="completed")
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="mock")

    credit_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    income_ratio: Mapped[Optional[Decimal]] = mapped_column(Numeric(precision=6, scale=2), nullable=True)
    recommendation: Mapped[ScreeningRecommendation] = mapped_column(SQLEnum(ScreeningRecommendation), nullable=False)

    flags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    results: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "applicant_id": str(self.applicant_id),
            "requested_by": str(self.requested_by),
            "screening_type": self.screening_type.value,
            "status": self.status,
            "provider": self.provider,
            "credit_score": self.credit_score,
            "income_ratio": float(self.income_ratio) if self.income_ratio is not None else None,
            "recommendation": self.recommendation.value,
            "flags": list(self.flags or []),
            "results": dict(self.results or {}),
            "completed_at": isoformat(self.completed_at),
            "created_at": self.created_at.isoformat(),
        }
