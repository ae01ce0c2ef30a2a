"""
Validation utilities for the TenantMate API.
Provides reusable validators for identifiers, pagination, URLs and bank details.
"""

import re
import uuid
from typing import Any, Optional, Tuple
from urllib.parse import urlparse

from app.config import settings
from app.utils.exceptions import ValidationError


class ValidationUtils:
    """
    Utility class for common validation operations.
    """

    ROUTING_NUMBER_PATTERN = re.compile(r'^\d{9}$')
    ACCOUNT_NUMBER_PATTERN = re.compile(r'^\d{4,17}$')

    @staticmethod
    def validate_uuid(value: Any, field_name: str = "id") -> uuid.UUID:
        """
        Parse a UUID given as a string or UUID.

        Raises:
            ValidationError: If the value is missing or malformed
        """
        if isinstance(value, uuid.UUID):
            return value
        if not value:
            raise ValidationError(f"{field_name} is required")

        try:
            return uuid.UUID(str(value).strip())
        except ValueError:
            raise ValidationError(
                f"Invalid UUID format for {field_name}",
                field_errors=[{"field": field_name, "message": "Invalid UUID format", "type": "uuid"}]
            )

    @staticmethod
    def validate_optional_uuid(value: Any, field_name: str = "id") -> Optional[uuid.UUID]:
        if value is None or value == "":
            return None
        return ValidationUtils.validate_uuid(value, field_name)

    @staticmethod
    def validate_pagination(page: int = 1, page_size: Optional[int] = None) -> Tuple[int, int]:
        """
        Clamp pagination parameters.

        Returns:
            Tuple of (skip, limit)
        """
        if page < 1:
            raise ValidationError("Page must be greater than 0")

        page_size = page_size or settings.default_page_size
        if page_size < 1:
            raise ValidationError("Page size must be greater than 0")
        page_size = min(page_size, settings.max_page_size)

        return (page - 1) * page_size, page_size

    @staticmethod
    def validate_http_url(value: Optional[str], field_name: str = "url") -> str:
        """Require an absolute http(s) URL."""
        if not value or not str(value).strip():
            raise ValidationError(f"{field_name} is required")

        parsed = urlparse(str(value).strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid {field_name}")
        return str(value).strip()

    @staticmethod
    def validate_routing_number(value: str) -> str:
        cleaned = (value or "").strip()
        if not ValidationUtils.ROUTING_NUMBER_PATTERN.match(cleaned):
            raise ValidationError("Routing number must be 9 digits")
        return cleaned

    @staticmethod
    def validate_account_number(value: str) -> str:
        cleaned = (value or "").strip()
        if not ValidationUtils.ACCOUNT_NUMBER_PATTERN.match(cleaned):
            raise ValidationError("Account number must be 4 to 17 digits")
        return cleaned
