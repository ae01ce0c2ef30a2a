"""
Lease API endpoints, including sending a lease for e-signature.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional
from uuid import UUID

from app.models.lease import LeaseStatus
from app.models.user import User
from app.services.esignature import ESignatureService
from app.services.lease import LeaseService
from app.schemas.common import StatusCounts, build_page_meta
from app.schemas.lease import (
    LeaseCreate,
    LeaseUpdate,
    LeaseResponse,
    LeaseListResponse,
    SignatureRequestCreate,
    SignatureRequestResponse,
    SignUrlResponse
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import (
    get_current_active_user,
    get_current_manager_user,
    get_lease_service,
    get_esignature_service
)


router = APIRouter(prefix="/leases", tags=["Leases"])


@router.post(
    "",
    response_model=LeaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create lease",
    responses=get_crud_error_responses()
)
async def create_lease(
    lease_data: LeaseCreate,
    current_user: User = Depends(get_current_manager_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> LeaseResponse:
    lease = await lease_service.create_lease(lease_data, current_user)
    return LeaseResponse.model_validate(lease.to_dict())


@router.get(
    "",
    response_model=LeaseListResponse,
    summary="List leases",
    description="Leases on the caller's properties, or the tenant's own leases"
)
async def list_leases(
    lease_status: Optional[LeaseStatus] = Query(None, alias="status"),
    property_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> LeaseListResponse:
    leases, total = await lease_service.list_leases(
        current_user, status=lease_status, property_id=property_id, page=page, page_size=page_size
    )
    return LeaseListResponse(
        leases=[LeaseResponse.model_validate(lease.to_dict()) for lease in leases],
        **build_page_meta(total, page, page_size)
    )


@router.get("/counts", response_model=StatusCounts, summary="Lease counts per status")
async def get_lease_counts(
    current_user: User = Depends(get_current_active_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> StatusCounts:
    counts = await lease_service.get_lease_counts(current_user)
    return StatusCounts(counts=counts, total=sum(counts.values()))


@router.get(
    "/signature/sign-url/{signature_id}",
    response_model=SignUrlResponse,
    summary="Embedded signing URL",
    description="Short-lived URL for the embedded Dropbox Sign signing frame",
    responses=get_error_responses(400, 401, 502, 503)
)
async def get_sign_url(
    signature_id: str = Path(..., min_length=1),
    current_user: User = Depends(get_current_active_user),
    esignature_service: ESignatureService = Depends(get_esignature_service)
) -> SignUrlResponse:
    result = await esignature_service.get_sign_url(signature_id)
    return SignUrlResponse(**result)


@router.get(
    "/{lease_id}",
    response_model=LeaseResponse,
    summary="Get lease",
    responses=get_error_responses(401, 403, 404)
)
async def get_lease(
    lease_id: UUID = Path(..., description="Lease ID"),
    current_user: User = Depends(get_current_active_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> LeaseResponse:
    lease = await lease_service.get_lease(lease_id, current_user)
    return LeaseResponse.model_validate(lease.to_dict())


@router.put(
    "/{lease_id}",
    response_model=LeaseResponse,
    summary="Update lease",
    responses=get_crud_error_responses()
)
async def update_lease(
    lease_data: LeaseUpdate,
    lease_id: UUID = Path(..., description="Lease ID"),
    current_user: User = Depends(get_current_manager_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> LeaseResponse:
    lease = await lease_service.update_lease(lease_id, lease_data, current_user)
    return LeaseResponse.model_validate(lease.to_dict())


@router.delete(
    "/{lease_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lease",
    responses=get_crud_error_responses()
)
async def delete_lease(
    lease_id: UUID = Path(..., description="Lease ID"),
    current_user: User = Depends(get_current_manager_user),
    lease_service: LeaseService = Depends(get_lease_service)
) -> None:
    await lease_service.delete_lease(lease_id, current_user)


@router.post(
    "/{lease_id}/signature",
    response_model=SignatureRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send lease for signature",
    description="Creates an embedded Dropbox Sign request for the lease's tenant",
    responses=get_error_responses(400, 401, 403, 404, 502, 503)
)
async def send_for_signature(
    request: SignatureRequestCreate,
    lease_id: UUID = Path(..., description="Lease ID"),
    current_user: User = Depends(get_current_manager_user),
    esignature_service: ESignatureService = Depends(get_esignature_service)
) -> SignatureRequestResponse:
    result = await esignature_service.send_for_signature(str(lease_id), request, current_user)
    return SignatureRequestResponse(**result)
