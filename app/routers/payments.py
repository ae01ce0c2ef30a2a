"""
Rent payment API endpoints: Stripe Checkout and billing portal sessions,
payment history, receipts, late fees and per-property payment configuration.
"""

from fastapi import APIRouter, Depends, Query, Path
from fastapi.responses import HTMLResponse
from typing import Optional
from uuid import UUID

from app.models.payment import RentPaymentStatus
from app.models.user import User
from app.services.late_fee import LateFeeService
from app.services.payment import PaymentService
from app.services.property import PropertyService
from app.schemas.common import build_page_meta
from app.schemas.payment import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    RentPaymentResponse,
    PaymentHistoryResponse,
    LateFeeRequest,
    LateFeeResponse,
    PaymentConfigUpdate,
    PaymentConfigResponse
)
from app.schemas.error import get_crud_error_responses, get_error_responses, get_payment_error_responses
from app.utils.dependencies import (
    get_current_active_user,
    get_current_manager_user,
    enforce_payment_rate_limit,
    get_payment_service,
    get_late_fee_service,
    get_property_service,
    get_request_origin,
    get_client_ip
)
from app.utils.exceptions import APIException
from app.utils.security import get_safe_error_message
from app.utils.validators import ValidationUtils
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def _client_safe(exc: APIException) -> APIException:
    """Same status, but only whitelisted messages reach the client."""
    return APIException(
        status_code=exc.status_code,
        detail=get_safe_error_message(exc),
        error_code=exc.error_code,
        headers=exc.headers
    )


@router.post(
    "/checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create Stripe Checkout session",
    description="Starts a card payment of rent for a unit the caller rents",
    responses=get_payment_error_responses()
)
async def create_checkout_session(
    checkout_data: CheckoutSessionRequest,
    origin: Optional[str] = Depends(get_request_origin),
    client_ip: Optional[str] = Depends(get_client_ip),
    current_user: User = Depends(enforce_payment_rate_limit),
    payment_service: PaymentService = Depends(get_payment_service)
) -> CheckoutSessionResponse:
    try:
        result = await payment_service.create_checkout_session(
            current_user,
            checkout_data.unit_id,
            checkout_data.amount,
            origin=origin,
            due_date=checkout_data.due_date,
            ip_address=client_ip
        )
    except APIException as e:
        logger.error(f"Checkout session failed for {current_user.id}: {e.detail}")
        raise _client_safe(e)
    return CheckoutSessionResponse(**result)


@router.post(
    "/portal-session",
    response_model=PortalSessionResponse,
    summary="Create billing portal session",
    responses=get_payment_error_responses()
)
async def create_portal_session(
    portal_data: PortalSessionRequest,
    current_user: User = Depends(enforce_payment_rate_limit),
    payment_service: PaymentService = Depends(get_payment_service)
) -> PortalSessionResponse:
    try:
        result = await payment_service.create_portal_session(current_user, portal_data.return_url)
    except APIException as e:
        logger.error(f"Portal session failed for {current_user.id}: {e.detail}")
        raise _client_safe(e)
    return PortalSessionResponse(**result)


@router.get("", response_model=PaymentHistoryResponse, summary="Payment history")
async def get_payment_history(
    payment_status: Optional[RentPaymentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> PaymentHistoryResponse:
    payments, total = await payment_service.get_payment_history(
        current_user, status=payment_status, page=page, page_size=page_size
    )
    return PaymentHistoryResponse(
        payments=[RentPaymentResponse.model_validate(p.to_dict()) for p in payments],
        **build_page_meta(total, page, page_size)
    )


@router.post(
    "/late-fee",
    response_model=LateFeeResponse,
    summary="Calculate late fee",
    description="Late fee owed on a payment under the property's grace period and percentage",
    responses=get_error_responses(401, 403, 404, 422)
)
async def calculate_late_fee(
    late_fee_data: LateFeeRequest,
    current_user: User = Depends(get_current_active_user),
    property_service: PropertyService = Depends(get_property_service),
    late_fee_service: LateFeeService = Depends(get_late_fee_service)
) -> LateFeeResponse:
    property_id = ValidationUtils.validate_uuid(late_fee_data.property_id, "property_id")
    await property_service.get_property(property_id, current_user)
    result = await late_fee_service.calculate_late_fee(
        late_fee_data.payment_amount,
        late_fee_data.due_date,
        property_id,
        today=late_fee_data.as_of
    )
    return LateFeeResponse(**result)


@router.get(
    "/config/{property_id}",
    response_model=PaymentConfigResponse,
    summary="Get payment configuration",
    description="The property's stored configuration, or the defaults",
    responses=get_error_responses(401, 403, 404)
)
async def get_payment_config(
    property_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    late_fee_service: LateFeeService = Depends(get_late_fee_service)
) -> PaymentConfigResponse:
    config = await late_fee_service.get_payment_config(property_id, current_user)
    return PaymentConfigResponse.model_validate(config)


@router.put(
    "/config/{property_id}",
    response_model=PaymentConfigResponse,
    summary="Update payment configuration",
    responses=get_crud_error_responses()
)
async def update_payment_config(
    config_data: PaymentConfigUpdate,
    property_id: UUID = Path(...),
    current_user: User = Depends(get_current_manager_user),
    late_fee_service: LateFeeService = Depends(get_late_fee_service)
) -> PaymentConfigResponse:
    config = await late_fee_service.update_payment_config(property_id, config_data, current_user)
    return PaymentConfigResponse.model_validate(config.to_dict())


@router.get(
    "/{payment_id}",
    response_model=RentPaymentResponse,
    summary="Get payment",
    responses=get_error_responses(401, 403, 404)
)
async def get_payment(
    payment_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> RentPaymentResponse:
    payment = await payment_service.get_payment(payment_id, current_user)
    return RentPaymentResponse.model_validate(payment.to_dict())


@router.get(
    "/{payment_id}/receipt",
    response_class=HTMLResponse,
    summary="Payment receipt",
    description="HTML receipt for the paying tenant or the property's manager",
    responses=get_error_responses(401, 403, 404)
)
async def get_payment_receipt(
    payment_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> HTMLResponse:
    html, receipt = await payment_service.generate_receipt(payment_id, current_user)
    logger.info(f"Receipt {receipt.receipt_number} served to {current_user.id}")
    return HTMLResponse(content=html)
