"""
Lease model with e-signature tracking.
"""

from sqlalchemy import String, Text, Integer, Numeric, Date, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import Optional


class LeaseStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SIGNED = "signed"
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"
    RENEWED = "renewed"


class SignatureStatus(str, enum.Enum):
    """Dropbox Sign request progress mirrored on the lease."""
    NOT_SENT = "not_sent"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_SIGNED = "partially_signed"
    COMPLETED = "completed"
    DECLINED = "declined"
    EXPIRED = "expired"


class Lease(Base):
    """
    Rental agreement between a property manager and a tenant for one unit.
    """

    __tablename__ = "leases"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    rent_amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("0"))
    pet_deposit: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("0"))
    late_fee: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("50"))
    grace_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Agreement text sent for signature")

    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus),
        nullable=False,
        default=LeaseStatus.DRAFT,
        index=True
    )

    signature_status: Mapped[SignatureStatus] = mapped_column(
        SQLEnum(SignatureStatus),
        nullable=False,
        default=SignatureStatus.NOT_SENT
    )
    signature_request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    signed_document_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    tenant_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Lease(id={self.id}, status={self.status}, signature_status={self.signature_status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "unit_id": str(self.unit_id),
            "tenant_id": str(self.tenant_id),
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "rent_amount": float(self.rent_amount),
            "security_deposit": float(self.security_deposit),
            "pet_deposit": float(self.pet_deposit),
            "late_fee": float(self.late_fee),
            "grace_period_days": self.grace_period_days,
            "content": self.content,
            "status": self.status.value,
            "signature_status": self.signature_status.value,
            "signature_request_id": self.signature_request_id,
            "signed_document_path": self.signed_document_path,
            "tenant_signed_at": isoformat(self.tenant_signed_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
