"""
Expense service: property expense tracking and yearly summaries for managers.
"""

from typing import Optional, List, Dict, Any, Tuple
from datetime import date
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.expense import ExpenseRepository, ExpenseFilters
from app.models.expense import Expense
from app.models.user import User
from app.schemas.expense import ExpenseCreate, ExpenseUpdate
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ValidationError,
    BadRequestError,
    InsufficientPermissionsError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


class ExpenseService:

    def __init__(self, db_session: AsyncSession, property_service: Optional[PropertyService] = None):
        self.db = db_session
        self.expense_repo = ExpenseRepository(db_session)
        self.property_service = property_service or PropertyService(db_session)

    async def _validate_unit(self, unit_id: Optional[uuid.UUID], property_id: uuid.UUID) -> None:
        if not unit_id:
            return
        unit = await self.property_service.property_repo.get_unit(unit_id)
        if not unit or unit.property_id != property_id:
            raise ValidationError("Unit does not belong to this property")

    async def get_expense(self, expense_id: uuid.UUID, current_user: User) -> Expense:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage expenses")
        expense = await self.expense_repo.get_by_id(expense_id)
        if not expense:
            raise NotFoundError("Expense", str(expense_id))
        await self.property_service.get_managed_property(expense.property_id, current_user)
        return expense

    async def create_expense(self, expense_data: ExpenseCreate, current_user: User) -> Expense:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage expenses")

        property_id = ValidationUtils.validate_uuid(expense_data.property_id, "property_id")
        unit_id = ValidationUtils.validate_optional_uuid(expense_data.unit_id, "unit_id")

        try:
            await self.property_service.get_managed_property(property_id, current_user)
            await self._validate_unit(unit_id, property_id)

            create_data = expense_data.model_dump()
            create_data.update({"property_id": property_id, "unit_id": unit_id, "created_by": current_user.id})
            expense = await self.expense_repo.create(create_data)

            logger.info(f"Expense recorded by {current_user.email}: {expense.category.value} {expense.amount}")
            return expense
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create expense: {e}")
            raise BadRequestError(f"Failed to create expense: {str(e)}")

    async def list_expenses(
        self,
        current_user: User,
        filters: ExpenseFilters,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Expense], int]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage expenses")
        if filters.start_date and filters.end_date and filters.end_date < filters.start_date:
            raise ValidationError("end_date must not be before start_date")

        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.expense_repo.list_expenses(property_ids, filters, skip, limit)

    async def update_expense(self, expense_id: uuid.UUID, expense_data: ExpenseUpdate, current_user: User) -> Expense:
        try:
            expense = await self.get_expense(expense_id, current_user)
            update_data = expense_data.model_dump(exclude_unset=True)

            if "unit_id" in update_data:
                unit_id = ValidationUtils.validate_optional_uuid(update_data["unit_id"], "unit_id")
                await self._validate_unit(unit_id, expense.property_id)
                expense.unit_id = unit_id
                update_data.pop("unit_id")

            for field, value in update_data.items():
                if value is not None:
                    setattr(expense, field, value)

            expense = await self.expense_repo.save(expense)
            logger.info(f"Expense {expense_id} updated by {current_user.email}")
            return expense
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update expense {expense_id}: {e}")
            raise BadRequestError(f"Failed to update expense: {str(e)}")

    async def delete_expense(self, expense_id: uuid.UUID, current_user: User) -> bool:
        await self.get_expense(expense_id, current_user)
        deleted = await self.expense_repo.delete(expense_id)
        logger.info(f"Expense {expense_id} deleted by {current_user.email}")
        return deleted

    async def get_summary(self, current_user: User, year: Optional[int] = None) -> Dict[str, Any]:
        """
        Expense totals per category and overall for a calendar year.

        Args:
            year: Defaults to the current year
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage expenses")
        year = year or date.today().year

        property_ids = await self.property_service.managed_property_ids(current_user)
        if property_ids is not None and not property_ids:
            totals = {}
        else:
            totals = await self.expense_repo.totals_by_category(year, property_ids)

        total = sum(totals.values(), Decimal("0"))
        return {
            "year": year,
            "by_category": {category: float(amount) for category, amount in totals.items()},
            "total": float(total),
        }
