"""
Configuration management using Pydantic settings.
Handles database URL, JWT secrets, CORS origins and payment/e-signature provider credentials.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


DEFAULT_ALLOWED_ORIGINS = (
    "https://tenant-mate.vercel.app,"
    "https://momomojo.github.io,"
    "http://localhost:8080,"
    "http://localhost:5173,"
    "http://localhost:4173"
)

DWOLLA_API_URLS = {
    "sandbox": "https://api-sandbox.dwolla.com",
    "production": "https://api.dwolla.com",
}


class Settings(BaseSettings):
    """Application settings loaded from the environment and an optional .env file."""

    # Application configuration
    app_name: str = "TenantMate API"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/tenantmate"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 7

    # API configuration
    api_v1_prefix: str = "/api/v1"
    allowed_origins: str = DEFAULT_ALLOWED_ORIGINS
    max_request_size: int = 10 * 1024 * 1024  # 10MB

    # Pagination defaults
    default_page_size: int = 20
    max_page_size: int = 100

    # Stripe
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com"
    stripe_connect_base: str = "https://connect.stripe.com"
    stripe_connect_client_id: Optional[str] = None
    stripe_portal_configuration_id: Optional[str] = None
    stripe_webhook_tolerance_seconds: int = 300
    platform_fee_percent: float = 5.0

    # Dwolla
    dwolla_key: Optional[str] = None
    dwolla_secret: Optional[str] = None
    dwolla_environment: str = "sandbox"
    dwolla_webhook_secret: Optional[str] = None
    dwolla_transfer_fee: float = 0.25

    # Dropbox Sign
    dropbox_sign_api_key: Optional[str] = None
    dropbox_sign_client_id: Optional[str] = None
    dropbox_sign_api_base: str = "https://api.hellosign.com/v3"
    dropbox_sign_test_mode: bool = True
    document_storage_dir: str = "./documents"

    # Email (Resend)
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com/emails"
    from_email: str = "noreply@tenantmate.app"

    # Payment safeguards
    max_payment_amount: float = 100000.0
    payment_rate_limit_requests: int = 10
    payment_rate_limit_window: int = 60
    provider_timeout_seconds: float = 30.0

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure an async driver is used."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v and v.startswith("sqlite:///"):
            return v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return v

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("dwolla_environment")
    @classmethod
    def validate_dwolla_environment(cls, v):
        v = (v or "sandbox").lower().strip()
        if v not in DWOLLA_API_URLS:
            raise ValueError(f"DWOLLA_ENVIRONMENT must be one of: {list(DWOLLA_API_URLS)}")
        return v

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def normalize_allowed_origins(cls, v):
        """Strip whitespace and trailing slashes from the comma-separated origin list."""
        if not v or not str(v).strip():
            return DEFAULT_ALLOWED_ORIGINS
        origins = [origin.strip().rstrip("/") for origin in str(v).split(",")]
        return ",".join(origin for origin in origins if origin)

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins as a list, in configured order."""
        return [origin for origin in self.allowed_origins.split(",") if origin]

    @property
    def dwolla_api_url(self) -> str:
        return DWOLLA_API_URLS[self.dwolla_environment]

    @property
    def is_dwolla_sandbox(self) -> bool:
        return self.dwolla_environment == "sandbox"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
