"""
Pydantic schemas for user requests and responses.
Handles registration, profile updates and validation with email normalisation.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from typing import Optional
from datetime import datetime
from app.models.user import UserRole, OnboardingStatus


def _clean_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.strip():
        raise ValueError("Name cannot be empty")
    return v.strip()


class UserBase(BaseModel):
    """Base user schema with common fields."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["manager@example.com"]
    )

    first_name: str = Field(..., min_length=1, max_length=100, examples=["Jane"])
    last_name: str = Field(..., min_length=1, max_length=100, examples=["Doe"])
    phone: Optional[str] = Field(None, max_length=30, examples=["+1 555 0100"])

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        return _clean_name(v)


class UserCreate(UserBase):
    """Schema for self-registration."""

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        examples=["securepassword123"]
    )

    role: UserRole = Field(
        UserRole.TENANT,
        description="Account role; admin accounts cannot be self-registered",
        examples=["property_manager"]
    )

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Validate password strength."""
        has_letter = any(c.isalpha() for c in v)
        has_number = any(c.isdigit() for c in v)

        if not has_letter:
            raise ValueError("Password must contain at least one letter")

        if not has_number:
            raise ValueError("Password must contain at least one number")

        return v

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return v

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "email": "manager@example.com",
            "first_name": "Jane",
            "last_name": "Doe",
            "password": "securepassword123",
            "role": "property_manager"
        }
    })


class UserUpdate(BaseModel):
    """Schema for profile updates by the user themselves."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        return _clean_name(v)


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    id: str = Field(..., description="User's unique identifier")
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    stripe_onboarding_status: Optional[OnboardingStatus] = None
    has_connect_account: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Minimal user information embedded in other responses."""

    id: str
    email: EmailStr
    full_name: str
    role: UserRole
