"""
Expense repository with filtered listing and yearly summaries.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from app.repositories.base import BaseRepository
from app.models.expense import Expense, ExpenseCategory
from typing import Optional, List, Dict, Tuple
from datetime import date
from decimal import Decimal
import uuid


class ExpenseFilters:
    """Filters for expense listing."""

    def __init__(
        self,
        property_id: Optional[uuid.UUID] = None,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None
    ):
        self.property_id = property_id
        self.category = category
        self.start_date = start_date
        self.end_date = end_date
        self.search = search


class ExpenseRepository(BaseRepository[Expense]):

    def __init__(self, db: AsyncSession):
        super().__init__(Expense, db)

    async def list_expenses(
        self,
        property_ids: Optional[List[uuid.UUID]],
        filters: ExpenseFilters,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Expense], int]:
        conditions = []
        if property_ids is not None:
            conditions.append(Expense.property_id.in_(property_ids))
        if filters.property_id:
            conditions.append(Expense.property_id == filters.property_id)
        if filters.category:
            conditions.append(Expense.category == filters.category)
        if filters.start_date:
            conditions.append(Expense.expense_date >= filters.start_date)
        if filters.end_date:
            conditions.append(Expense.expense_date <= filters.end_date)
        if filters.search and filters.search.strip():
            pattern = f"%{filters.search.strip()}%"
            conditions.append(or_(Expense.description.ilike(pattern), Expense.vendor.ilike(pattern)))

        query = (
            select(Expense)
            .where(*conditions)
            .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = (await self.db.execute(select(func.count(Expense.id)).where(*conditions))).scalar() or 0
        return list(result.scalars().all()), total

    async def totals_by_category(
        self,
        year: int,
        property_ids: Optional[List[uuid.UUID]] = None
    ) -> Dict[str, Decimal]:
        """Sum of expense amounts per category for expenses dated within the year."""
        query = (
            select(Expense.category, func.coalesce(func.sum(Expense.amount), 0))
            .where(Expense.expense_date >= date(year, 1, 1), Expense.expense_date <= date(year, 12, 31))
            .group_by(Expense.category)
        )
        if property_ids is not None:
            query = query.where(Expense.property_id.in_(property_ids))

        result = await self.db.execute(query)
        return {category.value: Decimal(str(total)) for category, total in result.all()}
