"""
Dwolla ACH models: a user's processor account and the transfers made through it.
"""

from sqlalchemy import String, Numeric, DateTime, Enum as SQLEnum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import datetime
from decimal import Decimal
import enum
import uuid
from typing import Optional


class ProcessorStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentProcessor(Base):
    """Dwolla customer and funding source linked to a user."""

    __tablename__ = "payment_processors"
    __table_args__ = (
        UniqueConstraint("user_id", "processor", name="uq_payment_processors_user_processor"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    processor: Mapped[str] = mapped_column(String(30), nullable=False, default="dwolla")
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    customer_url: Mapped[str] = mapped_column(String(500), nullable=False)
    customer_type: Mapped[str] = mapped_column(String(30), nullable=False, default="personal")
    funding_source_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    funding_source_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    funding_source_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    verification_status: Mapped[str] = mapped_column(String(30), nullable=False, default="unverified")
    status: Mapped[ProcessorStatus] = mapped_column(
        SQLEnum(ProcessorStatus),
        nullable=False,
        default=ProcessorStatus.PENDING
    )

    @property
    def can_transfer(self) -> bool:
        return self.status == ProcessorStatus.ACTIVE and bool(self.funding_source_url)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "processor": self.processor,
            "customer_id": self.customer_id,
            "customer_type": self.customer_type,
            "funding_source_id": self.funding_source_id,
            "funding_source_name": self.funding_source_name,
            "verification_status": self.verification_status,
            "status": self.status.value,
            "updated_at": self.updated_at.isoformat(),
        }


class DwollaTransfer(Base):
    __tablename__ = "dwolla_transfers"

    rent_payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rent_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    transfer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    transfer_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    source_funding_source: Mapped[str] = mapped_column(String(500), nullable=False)
    destination_funding_source: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    fee: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    status: Mapped[TransferStatus] = mapped_column(
        SQLEnum(TransferStatus),
        nullable=False,
        default=TransferStatus.PENDING
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "rent_payment_id": str(self.rent_payment_id),
            "transfer_id": self.transfer_id,
            "correlation_id": self.correlation_id,
            "amount": float(self.amount),
            "fee": float(self.fee),
            "net_amount": float(self.net_amount),
            "status": self.status.value,
            "failure_reason": self.failure_reason,
            "completed_at": isoformat(self.completed_at),
            "created_at": self.created_at.isoformat(),
        }
