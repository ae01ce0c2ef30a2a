"""
Stripe Connect onboarding endpoints for property managers.
"""

from fastapi import APIRouter, Depends
from typing import Optional

from app.models.user import User
from app.services.stripe_connect import StripeConnectService
from app.schemas.payment import ConnectAccountStatusResponse, ConnectOAuthRequest, ConnectOAuthResponse
from app.schemas.error import get_payment_error_responses
from app.utils.dependencies import get_current_manager_user, get_stripe_connect_service, get_request_origin


router = APIRouter(prefix="/connect", tags=["Stripe Connect"])


@router.get(
    "/account-status",
    response_model=ConnectAccountStatusResponse,
    summary="Connected account status",
    description="Charges, payouts and outstanding requirements, with a remediation link while anything is due",
    responses=get_payment_error_responses()
)
async def get_account_status(
    origin: Optional[str] = Depends(get_request_origin),
    current_user: User = Depends(get_current_manager_user),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service)
) -> ConnectAccountStatusResponse:
    account_status = await connect_service.get_account_status(current_user, origin=origin)
    return ConnectAccountStatusResponse(**account_status)


@router.post(
    "/oauth",
    response_model=ConnectOAuthResponse,
    summary="Complete Stripe Connect OAuth",
    description="Exchanges the authorization code and routes rent for the chosen properties to the account",
    responses=get_payment_error_responses()
)
async def complete_oauth(
    oauth_data: ConnectOAuthRequest,
    current_user: User = Depends(get_current_manager_user),
    connect_service: StripeConnectService = Depends(get_stripe_connect_service)
) -> ConnectOAuthResponse:
    result = await connect_service.complete_oauth(current_user, oauth_data.code, oauth_data.property_ids)
    return ConnectOAuthResponse(**result)
