"""
Unit inspection API endpoints: scheduling, checklist items, completion and
repair costs charged back to tenants.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from app.models.inspection import InspectionStatus
from app.models.user import User
from app.services.inspection import InspectionService
from app.schemas.common import StatusCounts, build_page_meta
from app.schemas.inspection import (
    InspectionCreate,
    InspectionUpdate,
    InspectionComplete,
    InspectionResponse,
    InspectionListResponse,
    InspectionItemCreate,
    InspectionItemResponse,
    InspectionChargesSummary
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import get_current_manager_user, get_inspection_service


router = APIRouter(prefix="/inspections", tags=["Inspections"])


@router.post(
    "",
    response_model=InspectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule inspection",
    description="Create an inspection with an optional initial checklist",
    responses=get_crud_error_responses()
)
async def create_inspection(
    inspection_data: InspectionCreate,
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionResponse:
    inspection = await inspection_service.create_inspection(inspection_data, current_user)
    return InspectionResponse.model_validate(inspection.to_dict(include_items=True))


@router.get("", response_model=InspectionListResponse, summary="List inspections")
async def list_inspections(
    property_id: Optional[UUID] = Query(None),
    inspection_status: Optional[InspectionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionListResponse:
    inspections, total = await inspection_service.list_inspections(
        current_user,
        property_id=property_id,
        status=inspection_status,
        page=page,
        page_size=page_size
    )
    return InspectionListResponse(
        inspections=[InspectionResponse.model_validate(i.to_dict()) for i in inspections],
        **build_page_meta(total, page, page_size)
    )


@router.get("/counts", response_model=StatusCounts, summary="Inspection counts per status")
async def get_inspection_counts(
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> StatusCounts:
    counts = await inspection_service.get_inspection_counts(current_user)
    return StatusCounts(counts=counts, total=sum(counts.values()))


@router.get(
    "/tenant-charges",
    response_model=InspectionChargesSummary,
    summary="Tenant-chargeable repairs",
    description="Repair costs flagged as chargeable to the tenant, per inspection"
)
async def get_tenant_charges(
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionChargesSummary:
    charges = await inspection_service.get_tenant_charges(current_user)
    return InspectionChargesSummary.model_validate(charges)


@router.get(
    "/{inspection_id}",
    response_model=InspectionResponse,
    summary="Get inspection",
    responses=get_error_responses(401, 403, 404)
)
async def get_inspection(
    inspection_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionResponse:
    inspection = await inspection_service.get_inspection(inspection_id, current_user)
    return InspectionResponse.model_validate(inspection.to_dict(include_items=True))


@router.put(
    "/{inspection_id}",
    response_model=InspectionResponse,
    summary="Update inspection",
    responses=get_crud_error_responses()
)
async def update_inspection(
    inspection_data: InspectionUpdate,
    inspection_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionResponse:
    inspection = await inspection_service.update_inspection(inspection_id, inspection_data, current_user)
    return InspectionResponse.model_validate(inspection.to_dict(include_items=True))


@router.delete(
    "/{inspection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete inspection",
    responses=get_crud_error_responses()
)
async def delete_inspection(
    inspection_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> None:
    await inspection_service.delete_inspection(inspection_id, current_user)


@router.post(
    "/{inspection_id}/items",
    response_model=InspectionItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add checklist item",
    responses=get_crud_error_responses()
)
async def add_inspection_item(
    item_data: InspectionItemCreate,
    inspection_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionItemResponse:
    item = await inspection_service.add_item(inspection_id, item_data, current_user)
    return InspectionItemResponse.model_validate(item.to_dict())


@router.delete(
    "/{inspection_id}/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove checklist item",
    responses=get_crud_error_responses()
)
async def remove_inspection_item(
    inspection_id: UUID = Path(...),
    item_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> None:
    await inspection_service.remove_item(inspection_id, item_id, current_user)


@router.post(
    "/{inspection_id}/complete",
    response_model=InspectionResponse,
    summary="Complete inspection",
    description="Marks the inspection completed and totals the repair cost of its items",
    responses=get_crud_error_responses()
)
async def complete_inspection(
    complete_data: InspectionComplete,
    inspection_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    inspection_service: InspectionService = Depends(get_inspection_service)
) -> InspectionResponse:
    inspection = await inspection_service.complete_inspection(inspection_id, complete_data, current_user)
    return InspectionResponse.model_validate(inspection.to_dict(include_items=True))
