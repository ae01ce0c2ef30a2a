"""
Authentication API endpoints for registration, login, token refresh and the caller's profile.
Provides JWT-based authentication with role-based access control.
"""

from fastapi import APIRouter, Depends, status
from app.models.user import User
from app.services.auth import AuthService
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
    CurrentUserResponse
)
from app.schemas.user import UserCreate, UserUpdate
from app.schemas.error import get_auth_error_responses, get_error_responses
from app.utils.dependencies import (
    get_auth_service,
    get_current_active_user
)
from app.utils.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    InactiveUserError,
    ValidationError
)
from app.config import settings
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _current_user_response(user: User, auth_service: AuthService) -> CurrentUserResponse:
    return CurrentUserResponse.model_validate({
        **user.to_dict(),
        "permissions": auth_service.get_permissions(user),
    })


@router.post(
    "/register",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create a property manager or tenant account and return JWT tokens",
    responses=get_error_responses(403, 409, 422)
)
async def register(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    user, access_token, refresh_token = await auth_service.register(user_data)
    return LoginResponse(
        user=_current_user_response(user, auth_service),
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="User login",
    description="Authenticate user with email and password, returns JWT tokens",
    responses=get_auth_error_responses()
)
async def login(
    login_data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Args:
        login_data: Login credentials (email and password)
        auth_service: Authentication service

    Returns:
        Login response with user info and JWT tokens

    Raises:
        InvalidCredentialsError: If credentials are invalid
        InactiveUserError: If user account is inactive
    """
    try:
        user, access_token, refresh_token = await auth_service.login(
            email=login_data.email,
            password=login_data.password
        )

        return LoginResponse(
            user=_current_user_response(user, auth_service),
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60
        )

    except (InvalidCredentialsError, InactiveUserError, ValidationError):
        raise
    except Exception as e:
        logger.error(f"Login failed for {login_data.email}: {e}")
        raise InvalidCredentialsError()


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
    description="Generate new access token using refresh token",
    responses=get_auth_error_responses()
)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> AccessTokenResponse:
    """
    Create new access token from refresh token.

    Raises:
        InvalidTokenError: If refresh token is invalid
        TokenExpiredError: If refresh token is expired
        InactiveUserError: If user account is inactive
    """
    try:
        access_token = await auth_service.refresh_access_token(
            refresh_token=refresh_data.refresh_token
        )

        return AccessTokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.access_token_expire_minutes * 60
        )

    except (InvalidTokenError, TokenExpiredError, InactiveUserError):
        raise
    except Exception:
        raise InvalidTokenError("Failed to refresh token")


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Get current authenticated user information",
    responses=get_auth_error_responses()
)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUserResponse:
    return _current_user_response(current_user, auth_service)


@router.patch(
    "/me",
    response_model=CurrentUserResponse,
    summary="Update profile",
    description="Update the caller's name and phone number",
    responses=get_error_responses(401, 422)
)
async def update_current_user(
    update_data: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> CurrentUserResponse:
    user = await auth_service.update_profile(current_user, update_data)
    return _current_user_response(user, auth_service)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="User logout",
    description="Logout user (client-side token removal)"
)
async def logout(
    current_user: User = Depends(get_current_active_user)
) -> None:
    """
    Logout user.

    JWT tokens are stateless, so the client discards them; this endpoint only
    confirms the caller was authenticated.
    """
    logger.info(f"User logged out: {current_user.email}")
