"""
Property management API endpoints: properties, their units and tenant assignments.
Managers work on the properties they own, admins on all, tenants read the
properties they live in.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional, List
from uuid import UUID

from app.models.user import User
from app.models.property import PropertyType, UnitStatus
from app.services.property import PropertyService
from app.schemas.common import build_page_meta
from app.schemas.property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyListResponse,
    UnitCreate,
    UnitUpdate,
    UnitResponse,
    TenantAssignmentCreate,
    TenantAssignmentResponse,
    TenantListItem
)
from app.utils.dependencies import (
    get_current_active_user,
    get_current_manager_user,
    get_property_service
)
from app.utils.exceptions import (
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    ConflictError
)
from app.schemas.error import get_crud_error_responses, get_error_responses


router = APIRouter(prefix="/properties", tags=["Properties"])
units_router = APIRouter(prefix="/units", tags=["Units"])
tenants_router = APIRouter(prefix="/tenants", tags=["Tenants"])


@router.post(
    "",
    response_model=PropertyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new property",
    description="Create a property. Requires property manager or admin role.",
    responses=get_crud_error_responses()
)
async def create_property(
    property_data: PropertyCreate,
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    """
    Create a new property.

    Args:
        property_data: Property creation data
        current_user: Current authenticated user
        property_service: Property service instance

    Returns:
        Created property with details

    Raises:
        ForbiddenError: If user doesn't have permission to create properties
        ValidationError: If property data is invalid
    """
    try:
        property_obj = await property_service.create_property(property_data, current_user)
        return PropertyResponse.model_validate(property_obj.to_dict(unit_count=0))

    except (ForbiddenError, ValidationError, BadRequestError, NotFoundError):
        raise
    except Exception as e:
        raise BadRequestError(f"Failed to create property: {str(e)}")


@router.get(
    "",
    response_model=PropertyListResponse,
    status_code=status.HTTP_200_OK,
    summary="List properties",
    description="Paginated list of the properties visible to the caller"
)
async def list_properties(
    query: Optional[str] = Query(None, description="Search over name and address"),
    city: Optional[str] = Query(None, description="City filter"),
    property_type: Optional[PropertyType] = Query(None, description="Property type filter"),
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of properties per page"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyListResponse:
    rows, total = await property_service.list_properties(
        current_user,
        search_text=query,
        city=city,
        property_type=property_type,
        page=page,
        page_size=page_size
    )
    return PropertyListResponse(
        properties=[
            PropertyResponse.model_validate(property_obj.to_dict(unit_count=unit_count))
            for property_obj, unit_count in rows
        ],
        **build_page_meta(total, page, page_size)
    )


@router.get(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Get property by ID",
    responses=get_crud_error_responses()
)
async def get_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.get_property(property_id, current_user)
    return PropertyResponse.model_validate(property_obj.to_dict())


@router.put(
    "/{property_id}",
    response_model=PropertyResponse,
    summary="Update property",
    description="Update a property. Only its manager or an admin may.",
    responses=get_crud_error_responses()
)
async def update_property(
    property_data: PropertyUpdate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> PropertyResponse:
    property_obj = await property_service.update_property(property_id, property_data, current_user)
    return PropertyResponse.model_validate(property_obj.to_dict())


@router.delete(
    "/{property_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete property",
    description="Delete a property and its units",
    responses=get_crud_error_responses()
)
async def delete_property(
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> None:
    await property_service.delete_property(property_id, current_user)


# Units

@router.post(
    "/{property_id}/units",
    response_model=UnitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add unit",
    responses=get_crud_error_responses()
)
async def create_unit(
    unit_data: UnitCreate,
    property_id: UUID = Path(..., description="Property ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> UnitResponse:
    unit = await property_service.create_unit(property_id, unit_data, current_user)
    return UnitResponse.model_validate(unit.to_dict())


@router.get(
    "/{property_id}/units",
    response_model=List[UnitResponse],
    summary="List units of a property",
    responses=get_error_responses(401, 403, 404)
)
async def list_units(
    property_id: UUID = Path(..., description="Property ID"),
    unit_status: Optional[UnitStatus] = Query(None, alias="status", description="Unit status filter"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> List[UnitResponse]:
    units = await property_service.list_units(property_id, current_user, status=unit_status)
    return [UnitResponse.model_validate(unit.to_dict()) for unit in units]


@units_router.get(
    "/{unit_id}",
    response_model=UnitResponse,
    summary="Get unit",
    responses=get_error_responses(401, 403, 404)
)
async def get_unit(
    unit_id: UUID = Path(..., description="Unit ID"),
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service)
) -> UnitResponse:
    unit = await property_service.get_unit(unit_id, current_user)
    return UnitResponse.model_validate(unit.to_dict())


@units_router.put(
    "/{unit_id}",
    response_model=UnitResponse,
    summary="Update unit",
    responses=get_crud_error_responses()
)
async def update_unit(
    unit_data: UnitUpdate,
    unit_id: UUID = Path(..., description="Unit ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> UnitResponse:
    unit = await property_service.update_unit(unit_id, unit_data, current_user)
    return UnitResponse.model_validate(unit.to_dict())


@units_router.delete(
    "/{unit_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete unit",
    responses=get_crud_error_responses()
)
async def delete_unit(
    unit_id: UUID = Path(..., description="Unit ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> None:
    await property_service.delete_unit(unit_id, current_user)


# Tenant assignments

@tenants_router.get(
    "",
    response_model=List[TenantListItem],
    summary="List tenants",
    description="Tenants of the caller's properties with unit and property names"
)
async def list_tenants(
    include_inactive: bool = Query(False, description="Include ended assignments"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> List[TenantListItem]:
    tenants = await property_service.list_tenants(current_user, include_inactive=include_inactive)
    return [TenantListItem.model_validate(tenant) for tenant in tenants]


@tenants_router.post(
    "/assignments",
    response_model=TenantAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign tenant to unit",
    description="Creates the active assignment, marks the unit occupied and welcomes the tenant",
    responses=get_crud_error_responses()
)
async def assign_tenant(
    assignment_data: TenantAssignmentCreate,
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> TenantAssignmentResponse:
    try:
        assignment = await property_service.assign_tenant(assignment_data, current_user)
        return TenantAssignmentResponse.model_validate(assignment.to_dict())
    except (ConflictError, ForbiddenError, NotFoundError, ValidationError, BadRequestError):
        raise
    except Exception as e:
        raise BadRequestError(f"Failed to assign tenant: {str(e)}")


@tenants_router.post(
    "/assignments/{assignment_id}/end",
    response_model=TenantAssignmentResponse,
    summary="End tenant assignment",
    description="Sets the assignment inactive and returns the unit to available",
    responses=get_crud_error_responses()
)
async def end_assignment(
    assignment_id: UUID = Path(..., description="Assignment ID"),
    current_user: User = Depends(get_current_manager_user),
    property_service: PropertyService = Depends(get_property_service)
) -> TenantAssignmentResponse:
    assignment = await property_service.end_assignment(assignment_id, current_user)
    return TenantAssignmentResponse.model_validate(assignment.to_dict())
