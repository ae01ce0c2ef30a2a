"""
Maintenance request API endpoints. Tenants file requests for their own units;
managers triage the requests on their properties.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from app.models.maintenance import MaintenanceStatus
from app.models.user import User
from app.services.maintenance import MaintenanceService
from app.schemas.common import build_page_meta
from app.schemas.maintenance import (
    MaintenanceRequestCreate,
    MaintenanceRequestUpdate,
    MaintenanceRequestResponse,
    MaintenanceRequestListResponse
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import get_current_active_user, get_maintenance_service


router = APIRouter(prefix="/maintenance-requests", tags=["Maintenance"])


@router.post(
    "",
    response_model=MaintenanceRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File maintenance request",
    description="Notifies the property's manager by email and in-app notification",
    responses=get_crud_error_responses()
)
async def create_maintenance_request(
    request_data: MaintenanceRequestCreate,
    current_user: User = Depends(get_current_active_user),
    maintenance_service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceRequestResponse:
    maintenance_request = await maintenance_service.create_request(request_data, current_user)
    return MaintenanceRequestResponse.model_validate(maintenance_request.to_dict())


@router.get("", response_model=MaintenanceRequestListResponse, summary="List maintenance requests")
async def list_maintenance_requests(
    request_status: Optional[MaintenanceStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    maintenance_service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceRequestListResponse:
    requests, total = await maintenance_service.list_requests(
        current_user, status=request_status, page=page, page_size=page_size
    )
    return MaintenanceRequestListResponse(
        requests=[MaintenanceRequestResponse.model_validate(r.to_dict()) for r in requests],
        **build_page_meta(total, page, page_size)
    )


@router.get(
    "/{request_id}",
    response_model=MaintenanceRequestResponse,
    summary="Get maintenance request",
    responses=get_error_responses(401, 403, 404)
)
async def get_maintenance_request(
    request_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    maintenance_service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceRequestResponse:
    maintenance_request = await maintenance_service.get_request(request_id, current_user)
    return MaintenanceRequestResponse.model_validate(maintenance_request.to_dict())


@router.put(
    "/{request_id}",
    response_model=MaintenanceRequestResponse,
    summary="Update maintenance request",
    description="Status changes email the tenant",
    responses=get_crud_error_responses()
)
async def update_maintenance_request(
    request_data: MaintenanceRequestUpdate,
    request_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    maintenance_service: MaintenanceService = Depends(get_maintenance_service)
) -> MaintenanceRequestResponse:
    maintenance_request = await maintenance_service.update_request(request_id, request_data, current_user)
    return MaintenanceRequestResponse.model_validate(maintenance_request.to_dict())


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete maintenance request",
    responses=get_crud_error_responses()
)
async def delete_maintenance_request(
    request_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    maintenance_service: MaintenanceService = Depends(get_maintenance_service)
) -> None:
    await maintenance_service.delete_request(request_id, current_user)
