"""
Rent payment models: payments, provider transactions, stored payment methods,
receipts, audit log, per-property payment configuration and Stripe Connect accounts.
"""

from sqlalchemy import (
    String, Integer, Numeric, Boolean, Date, DateTime, JSON, Enum as SQLEnum,
    ForeignKey, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import Any, Dict, List, Optional


class RentPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethodKind(str, enum.Enum):
    """How a rent payment was (or will be) made."""
    CARD = "card"
    ACH = "ach"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StoredMethodType(str, enum.Enum):
    CARD = "card"
    BANK_ACCOUNT = "bank_account"


class StoredMethodStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    VERIFIED = "verified"
    REMOVED = "removed"


class ConnectAccountStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    INACTIVE = "inactive"


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class RentPayment(Base):
    """A rent charge owed by a tenant for a unit."""

    __tablename__ = "rent_payments"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[RentPaymentStatus] = mapped_column(
        SQLEnum(RentPaymentStatus),
        nullable=False,
        default=RentPaymentStatus.PENDING,
        index=True
    )
    payment_method: Mapped[Optional[PaymentMethodKind]] = mapped_column(SQLEnum(PaymentMethodKind), nullable=True)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "unit_id": str(self.unit_id),
            "amount": float(self.amount),
            "due_date": isoformat(self.due_date),
            "paid_at": isoformat(self.paid_at),
            "status": self.status.value,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "invoice_number": self.invoice_number,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class PaymentTransaction(Base):
    """Provider-side attempt to settle a rent payment."""

    __tablename__ = "payment_transactions"

    rent_payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rent_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    stripe_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("0"))
    status: Mapped[TransactionStatus] = mapped_column(
        SQLEnum(TransactionStatus),
        nullable=False,
        default=TransactionStatus.PENDING
    )
    validation_status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    validation_errors: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "rent_payment_id": str(self.rent_payment_id),
            "stripe_session_id": self.stripe_session_id,
            "stripe_payment_intent_id": self.stripe_payment_intent_id,
            "amount": float(self.amount),
            "platform_fee": float(self.platform_fee),
            "status": self.status.value,
            "validation_status": self.validation_status,
            "validation_errors": self.validation_errors,
            "created_at": self.created_at.isoformat(),
        }


class PaymentMethod(Base):
    """Card (Stripe) or bank account (Dwolla) saved for a user."""

    __tablename__ = "payment_methods"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    method_type: Mapped[StoredMethodType] = mapped_column(SQLEnum(StoredMethodType), nullable=False)
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    provider_method_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    exp_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exp_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[StoredMethodStatus] = mapped_column(
        SQLEnum(StoredMethodStatus),
        nullable=False,
        default=StoredMethodStatus.ACTIVE
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "method_type": self.method_type.value,
            "provider": self.provider,
            "last4": self.last4,
            "brand": self.brand,
            "exp_month": self.exp_month,
            "exp_year": self.exp_year,
            "bank_name": self.bank_name,
            "status": self.status.value,
            "is_default": self.is_default,
            "created_at": self.created_at.isoformat(),
        }


class PaymentReceipt(Base):
    __tablename__ = "payment_receipts"

    rent_payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rent_payments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    receipt_number: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    generated_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "rent_payment_id": str(self.rent_payment_id),
            "receipt_number": self.receipt_number,
            "generated_by": str(self.generated_by),
            "created_at": self.created_at.isoformat(),
        }


class PaymentAuditLog(Base):
    """Append-only record of payment and signature events."""

    __tablename__ = "payment_audit_logs"

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    changes: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id) if self.user_id else None,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": self.changes,
            "ip_address": self.ip_address,
            "created_at": self.created_at.isoformat(),
        }


class PaymentConfig(Base):
    """Per-property rent collection and late fee settings."""

    __tablename__ = "payment_configs"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    late_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(precision=5, scale=2), nullable=False, default=Decimal("5"))
    grace_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    rent_due_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    allow_partial_payments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    minimum_payment_percentage: Mapped[Decimal] = mapped_column(Numeric(precision=5, scale=2), nullable=False, default=Decimal("100"))
    automatic_late_fees: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    payment_methods: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=lambda: ["card", "ach"])

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "late_fee_percentage": float(self.late_fee_percentage),
            "grace_period_days": self.grace_period_days,
            "rent_due_day": self.rent_due_day,
            "allow_partial_payments": self.allow_partial_payments,
            "minimum_payment_percentage": float(self.minimum_payment_percentage),
            "automatic_late_fees": self.automatic_late_fees,
            "payment_methods": list(self.payment_methods or []),
            "updated_at": self.updated_at.isoformat(),
        }


class PropertyStripeAccount(Base):
    """Stripe Connect account that receives rent for a property."""

    __tablename__ = "property_stripe_accounts"
    __table_args__ = (
        UniqueConstraint("property_id", "stripe_account_id", name="uq_property_stripe_account"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    stripe_account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    account_status: Mapped[ConnectAccountStatus] = mapped_column(
        SQLEnum(ConnectAccountStatus),
        nullable=False,
        default=ConnectAccountStatus.PENDING
    )
    verification_status: Mapped[VerificationStatus] = mapped_column(
        SQLEnum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING
    )
    onboarding_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    @property
    def is_ready_for_payments(self) -> bool:
        return (
            self.is_active
            and self.account_status == ConnectAccountStatus.COMPLETED
            and self.verification_status == VerificationStatus.VERIFIED
        )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "stripe_account_id": self.stripe_account_id,
            "is_active": self.is_active,
            "account_status": self.account_status.value,
            "verification_status": self.verification_status.value,
            "updated_at": self.updated_at.isoformat(),
        }
