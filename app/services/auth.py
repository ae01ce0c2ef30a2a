"""
Authentication service for registration, login, token management and profiles.
"""

from typing import List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.user import UserRepository
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserUpdate
from app.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token,
)
from app.utils.exceptions import (
    APIException,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    InactiveUserError,
    NotFoundError,
    ValidationError,
    BadRequestError,
    InsufficientPermissionsError
)
from jose import JWTError
import uuid
import logging

logger = logging.getLogger(__name__)

ROLE_PERMISSIONS = {
    UserRole.ADMIN: [
        "manage_users",
        "manage_all_properties",
        "view_all_payments",
        "send_email",
    ],
    UserRole.PROPERTY_MANAGER: [
        "manage_own_properties",
        "manage_tenants",
        "manage_leases",
        "manage_applicants",
        "manage_expenses",
        "view_property_payments",
        "send_email",
    ],
    UserRole.TENANT: [
        "view_own_units",
        "pay_rent",
        "create_maintenance_request",
        "message_landlord",
    ],
}


class AuthService:
    """
    Authentication service for managing registration, authentication and tokens.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.user_repo = UserRepository(db_session)

    async def register(self, user_data: UserCreate) -> Tuple[User, str, str]:
        """
        Register a new account and sign it in.

        Returns:
            Tuple of (user, access_token, refresh_token)

        Raises:
            ConflictError: If the email is already registered
            InsufficientPermissionsError: If an admin account is requested
        """
        if user_data.role == UserRole.ADMIN:
            raise InsufficientPermissionsError("register admin accounts")

        if not await self.user_repo.check_email_availability(user_data.email):
            raise ConflictError(f"Email {user_data.email} is already registered")

        try:
            user = await self.user_repo.create_user(user_data.model_dump())
        except ValueError as e:
            raise ValidationError(str(e))
        except Exception as e:
            logger.error(f"Failed to register {user_data.email}: {e}")
            raise BadRequestError(f"Failed to create user: {str(e)}")

        logger.info(f"User registered: {user.email} (role: {user.role.value})")
        access_token, refresh_token = self.create_tokens(user)
        return user, access_token, refresh_token

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            InactiveUserError: If user account is inactive
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")
        if not password:
            raise ValidationError("Password is required")

        user = await self.user_repo.get_by_email(email)
        if not user or not user.verify_password(password):
            logger.warning(f"Failed authentication attempt for email: {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            raise InactiveUserError()

        logger.info(f"User authenticated successfully: {user.email}")
        return user

    def create_tokens(self, user: User) -> Tuple[str, str]:
        """Create (access_token, refresh_token) for a user."""
        access_token = create_access_token(user_id=user.id, email=user.email, role=user.role)
        refresh_token = create_refresh_token(user_id=user.id, email=user.email)
        return access_token, refresh_token

    async def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate user and create tokens.

        Returns:
            Tuple of (user, access_token, refresh_token)
        """
        user = await self.authenticate_user(email, password)
        access_token, refresh_token = self.create_tokens(user)
        return user, access_token, refresh_token

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Create new access token from refresh token.

        Raises:
            InvalidTokenError: If refresh token is invalid
            TokenExpiredError: If refresh token is expired
            InactiveUserError: If user account is inactive
        """
        user = await self._user_from_token(refresh_token, "refresh")
        return create_access_token(user_id=user.id, email=user.email, role=user.role)

    async def get_current_user(self, token: str) -> User:
        """
        Get current user from access token.

        Raises:
            InvalidTokenError: If token is invalid or its user is gone
            TokenExpiredError: If token is expired
            InactiveUserError: If user account is inactive
        """
        return await self._user_from_token(token, "access")

    async def update_profile(self, user: User, update_data: UserUpdate) -> User:
        """Update the caller's own name and phone."""
        try:
            updated = await self.user_repo.update(user.id, update_data.model_dump(exclude_unset=True))
            if not updated:
                raise NotFoundError("User", str(user.id))
            logger.info(f"Profile updated: {updated.email}")
            return updated
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update profile {user.id}: {e}")
            raise BadRequestError(f"Failed to update profile: {str(e)}")

    def get_permissions(self, user: User) -> List[str]:
        return list(ROLE_PERMISSIONS.get(user.role, []))

    async def _user_from_token(self, token: str, token_type: str) -> User:
        try:
            token_payload = verify_token(token, token_type=token_type)
            user_id = uuid.UUID(token_payload.user_id)
        except JWTError as e:
            if "expired" in str(e).lower():
                raise TokenExpiredError()
            raise InvalidTokenError(str(e))
        except ValueError:
            raise InvalidTokenError("Invalid token subject")

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise InvalidTokenError("User no longer exists")

        if not user.is_active:
            raise InactiveUserError()

        return user
