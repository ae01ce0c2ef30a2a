"""
Property expense API endpoints.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from datetime import date
from uuid import UUID

from app.models.expense import ExpenseCategory
from app.models.user import User
from app.repositories.expense import ExpenseFilters
from app.services.expense import ExpenseService
from app.schemas.common import build_page_meta
from app.schemas.expense import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseListResponse,
    ExpenseSummary
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import get_current_manager_user, get_expense_service


router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.post(
    "",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record expense",
    responses=get_crud_error_responses()
)
async def create_expense(
    expense_data: ExpenseCreate,
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> ExpenseResponse:
    expense = await expense_service.create_expense(expense_data, current_user)
    return ExpenseResponse.model_validate(expense.to_dict())


@router.get(
    "",
    response_model=ExpenseListResponse,
    summary="List expenses",
    description="Expenses on the caller's properties, newest first",
    responses=get_error_responses(401, 403, 422)
)
async def list_expenses(
    property_id: Optional[UUID] = Query(None),
    category: Optional[ExpenseCategory] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, max_length=200, description="Matches vendor or description"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> ExpenseListResponse:
    filters = ExpenseFilters(
        property_id=property_id,
        category=category,
        start_date=start_date,
        end_date=end_date,
        search=search
    )
    expenses, total = await expense_service.list_expenses(current_user, filters, page=page, page_size=page_size)
    return ExpenseListResponse(
        expenses=[ExpenseResponse.model_validate(e.to_dict()) for e in expenses],
        **build_page_meta(total, page, page_size)
    )


@router.get("/summary", response_model=ExpenseSummary, summary="Yearly expense summary")
async def get_expense_summary(
    year: Optional[int] = Query(None, ge=1900, le=2100, description="Defaults to the current year"),
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> ExpenseSummary:
    summary = await expense_service.get_summary(current_user, year=year)
    return ExpenseSummary.model_validate(summary)


@router.get(
    "/{expense_id}",
    response_model=ExpenseResponse,
    summary="Get expense",
    responses=get_error_responses(401, 403, 404)
)
async def get_expense(
    expense_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> ExpenseResponse:
    expense = await expense_service.get_expense(expense_id, current_user)
    return ExpenseResponse.model_validate(expense.to_dict())


@router.put(
    "/{expense_id}",
    response_model=ExpenseResponse,
    summary="Update expense",
    responses=get_crud_error_responses()
)
async def update_expense(
    expense_data: ExpenseUpdate,
    expense_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> ExpenseResponse:
    expense = await expense_service.update_expense(expense_id, expense_data, current_user)
    return ExpenseResponse.model_validate(expense.to_dict())


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete expense",
    responses=get_crud_error_responses()
)
async def delete_expense(
    expense_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    expense_service: ExpenseService = Depends(get_expense_service)
) -> None:
    await expense_service.delete_expense(expense_id, current_user)
