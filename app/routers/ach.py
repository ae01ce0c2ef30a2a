"""
ACH bank payment endpoints backed by Dwolla.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from typing import Optional

from app.models.user import User
from app.services.ach import ACHService, TRANSFER_INITIATED_MESSAGE
from app.schemas.ach import (
    CustomerCreateRequest,
    ProcessorResponse,
    FundingSourceRequest,
    FundingSourceResponse,
    TransferRequest,
    TransferResponse
)
from app.schemas.error import get_error_responses, get_payment_error_responses
from app.utils.dependencies import (
    get_current_active_user,
    enforce_payment_rate_limit,
    get_ach_service,
    get_client_ip
)
from app.utils.exceptions import APIException
from app.utils.security import get_safe_error_message


router = APIRouter(prefix="/ach", tags=["ACH"])


@router.get(
    "/customer",
    response_model=ProcessorResponse,
    summary="Dwolla customer",
    responses=get_error_responses(401, 404)
)
async def get_customer(
    current_user: User = Depends(get_current_active_user),
    ach_service: ACHService = Depends(get_ach_service)
) -> ProcessorResponse:
    processor = await ach_service.get_processor(current_user)
    return ProcessorResponse.model_validate(processor.to_dict())


@router.post(
    "/customer",
    response_model=ProcessorResponse,
    summary="Create Dwolla customer",
    description="Returns 201 for a new customer and 200 when the caller already has one",
    responses=get_payment_error_responses()
)
async def create_customer(
    customer_data: CustomerCreateRequest,
    client_ip: Optional[str] = Depends(get_client_ip),
    current_user: User = Depends(get_current_active_user),
    ach_service: ACHService = Depends(get_ach_service)
):
    processor, created = await ach_service.create_customer(
        current_user, customer_type=customer_data.customer_type, ip_address=client_ip
    )
    body = ProcessorResponse.model_validate(processor.to_dict())
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=body.model_dump(mode="json")
    )


@router.post(
    "/funding-source",
    response_model=FundingSourceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Link bank account",
    responses=get_payment_error_responses()
)
async def add_funding_source(
    funding_data: FundingSourceRequest,
    current_user: User = Depends(get_current_active_user),
    ach_service: ACHService = Depends(get_ach_service)
) -> FundingSourceResponse:
    result = await ach_service.add_funding_source(
        current_user,
        funding_data.routing_number,
        funding_data.account_number,
        funding_data.bank_account_type,
        funding_data.name
    )
    return FundingSourceResponse(
        funding_source_id=result["funding_source_id"],
        name=result["name"],
        status=result["status"],
        processor=ProcessorResponse.model_validate(result["processor"].to_dict())
    )


@router.post(
    "/transfer",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pay rent by ACH",
    description="Pulls the rent from the tenant's linked bank account into the landlord's",
    responses=get_payment_error_responses()
)
async def initiate_transfer(
    transfer_data: TransferRequest,
    current_user: User = Depends(enforce_payment_rate_limit),
    ach_service: ACHService = Depends(get_ach_service)
) -> TransferResponse:
    try:
        transfer = await ach_service.initiate_transfer(current_user, transfer_data.rent_payment_id)
    except APIException as e:
        raise APIException(
            status_code=e.status_code,
            detail=get_safe_error_message(e),
            error_code=e.error_code,
            headers=e.headers
        )
    return TransferResponse.model_validate({**transfer.to_dict(), "message": TRANSFER_INITIATED_MESSAGE})
