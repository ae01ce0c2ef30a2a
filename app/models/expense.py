"""
Property expense model.
"""

from sqlalchemy import String, Text, Numeric, Boolean, Date, Enum as SQLEnum, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import date
from decimal import Decimal
import enum
import uuid
from typing import Optional


class ExpenseCategory(str, enum.Enum):
    REPAIRS = "repairs"
    UTILITIES = "utilities"
    TAXES = "taxes"
    INSURANCE = "insurance"
    MANAGEMENT = "management"
    MORTGAGE = "mortgage"
    HOA = "hoa"
    LANDSCAPING = "landscaping"
    CLEANING = "cleaning"
    LEGAL = "legal"
    ADVERTISING = "advertising"
    SUPPLIES = "supplies"
    OTHER = "other"


class Expense(Base):
    """Operating expense recorded against a property (optionally a unit)."""

    __tablename__ = "expenses"

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
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    category: Mapped[ExpenseCategory] = mapped_column(SQLEnum(ExpenseCategory), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    vendor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "unit_id": str(self.unit_id) if self.unit_id else None,
            "created_by": str(self.created_by),
            "category": self.category.value,
            "amount": float(self.amount),
            "expense_date": isoformat(self.expense_date),
            "vendor": self.vendor,
            "description": self.description,
            "receipt_url": self.receipt_url,
            "is_recurring": self.is_recurring,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


expenses_property_date_index = Index(
    "idx_expenses_property_date",
    Expense.property_id,
    Expense.expense_date
)
