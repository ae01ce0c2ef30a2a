"""
Pydantic schemas for property expenses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
from app.models.expense import ExpenseCategory
from app.schemas.common import PageMeta


class ExpenseCreate(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, examples=[125.50])
    expense_date: date
    vendor: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)
    is_recurring: bool = False


class ExpenseUpdate(BaseModel):
    unit_id: Optional[str] = None
    category: Optional[ExpenseCategory] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    expense_date: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    receipt_url: Optional[str] = Field(None, max_length=500)
    is_recurring: Optional[bool] = None


class ExpenseResponse(BaseModel):
    id: str
    property_id: str
    unit_id: Optional[str] = None
    created_by: str
    category: ExpenseCategory
    amount: float
    expense_date: date
    vendor: Optional[str] = None
    description: Optional[str] = None
    receipt_url: Optional[str] = None
    is_recurring: bool
    created_at: datetime
    updated_at: datetime


class ExpenseListResponse(PageMeta):
    expenses: List[ExpenseResponse]


class ExpenseSummary(BaseModel):
    """Expense totals for one calendar year."""

    year: int
    by_category: Dict[str, float] = Field(default_factory=dict)
    total: float
