"""
Rental applicant API endpoints: the applicant pipeline, decisions, conversion
to a tenant and mock tenant screening.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional, List
from uuid import UUID

from app.models.applicant import ApplicantStatus
from app.models.user import User
from app.services.applicant import ApplicantService
from app.services.screening import ScreeningService
from app.schemas.common import StatusCounts, build_page_meta
from app.schemas.applicant import (
    ApplicantCreate,
    ApplicantUpdate,
    ApplicantResponse,
    ApplicantListResponse,
    ApplicantDecision,
    ApplicantConvert,
    ApplicantConvertResponse,
    ScreeningRequest,
    ScreeningReportResponse
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import (
    get_current_manager_user,
    get_applicant_service,
    get_screening_service,
    get_request_origin
)


router = APIRouter(prefix="/applicants", tags=["Applicants"])


@router.post(
    "",
    response_model=ApplicantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create applicant",
    description="Add an applicant. New applicants in 'invited' status get an invitation email.",
    responses=get_crud_error_responses()
)
async def create_applicant(
    applicant_data: ApplicantCreate,
    origin: Optional[str] = Depends(get_request_origin),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantResponse:
    applicant = await applicant_service.create_applicant(applicant_data, current_user, origin=origin)
    return ApplicantResponse.model_validate(applicant.to_dict())


@router.get("", response_model=ApplicantListResponse, summary="List applicants")
async def list_applicants(
    property_id: Optional[UUID] = Query(None),
    applicant_status: Optional[ApplicantStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200, description="Matches name or email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantListResponse:
    applicants, total = await applicant_service.list_applicants(
        current_user,
        property_id=property_id,
        status=applicant_status,
        search=search,
        page=page,
        page_size=page_size
    )
    return ApplicantListResponse(
        applicants=[ApplicantResponse.model_validate(a.to_dict()) for a in applicants],
        **build_page_meta(total, page, page_size)
    )


@router.get("/counts", response_model=StatusCounts, summary="Applicant counts per status")
async def get_applicant_counts(
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> StatusCounts:
    counts = await applicant_service.get_applicant_counts(current_user)
    return StatusCounts(counts=counts, total=sum(counts.values()))


@router.get(
    "/{applicant_id}",
    response_model=ApplicantResponse,
    summary="Get applicant",
    responses=get_error_responses(401, 403, 404)
)
async def get_applicant(
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantResponse:
    applicant = await applicant_service.get_applicant(applicant_id, current_user)
    return ApplicantResponse.model_validate(applicant.to_dict())


@router.put(
    "/{applicant_id}",
    response_model=ApplicantResponse,
    summary="Update applicant",
    responses=get_crud_error_responses()
)
async def update_applicant(
    applicant_data: ApplicantUpdate,
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantResponse:
    applicant = await applicant_service.update_applicant(applicant_id, applicant_data, current_user)
    return ApplicantResponse.model_validate(applicant.to_dict())


@router.post(
    "/{applicant_id}/decision",
    response_model=ApplicantResponse,
    summary="Approve or reject",
    description="Allowed while the applicant is submitted or in screening",
    responses=get_crud_error_responses()
)
async def decide_applicant(
    decision: ApplicantDecision,
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantResponse:
    applicant = await applicant_service.decide(applicant_id, decision, current_user)
    return ApplicantResponse.model_validate(applicant.to_dict())


@router.post(
    "/{applicant_id}/withdraw",
    response_model=ApplicantResponse,
    summary="Withdraw applicant",
    responses=get_crud_error_responses()
)
async def withdraw_applicant(
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantResponse:
    applicant = await applicant_service.withdraw(applicant_id, current_user)
    return ApplicantResponse.model_validate(applicant.to_dict())


@router.post(
    "/{applicant_id}/convert",
    response_model=ApplicantConvertResponse,
    summary="Convert to tenant",
    description="Marks an approved applicant converted and assigns the tenant to the unit when given",
    responses=get_crud_error_responses()
)
async def convert_applicant(
    convert_data: ApplicantConvert,
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ApplicantConvertResponse:
    applicant, assignment = await applicant_service.convert_to_tenant(applicant_id, convert_data, current_user)
    return ApplicantConvertResponse(
        applicant=ApplicantResponse.model_validate(applicant.to_dict()),
        assignment_id=str(assignment.id) if assignment else None
    )


@router.post(
    "/{applicant_id}/screening",
    response_model=List[ScreeningReportResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Run tenant screening",
    description="Runs the mock screening provider and stores one report per screening type",
    responses=get_crud_error_responses()
)
async def run_screening(
    request: ScreeningRequest,
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    screening_service: ScreeningService = Depends(get_screening_service)
) -> List[ScreeningReportResponse]:
    reports = await screening_service.run_screening(applicant_id, request, current_user)
    return [ScreeningReportResponse.model_validate(report.to_dict()) for report in reports]


@router.get(
    "/{applicant_id}/screening",
    response_model=List[ScreeningReportResponse],
    summary="Screening reports",
    responses=get_error_responses(401, 403, 404)
)
async def list_screening_reports(
    applicant_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    screening_service: ScreeningService = Depends(get_screening_service)
) -> List[ScreeningReportResponse]:
    reports = await screening_service.list_reports(applicant_id, current_user)
    return [ScreeningReportResponse.model_validate(report.to_dict()) for report in reports]
