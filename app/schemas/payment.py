"""
Pydantic schemas for rent payments, Stripe checkout/portal, receipts,
late fees, payment configuration and Stripe Connect onboarding.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal
from app.models.payment import RentPaymentStatus, PaymentMethodKind, StoredMethodType, StoredMethodStatus
from app.schemas.common import PageMeta


class CheckoutSessionRequest(BaseModel):
    unit_id: str = Field(..., description="Unit the rent is paid for")
    amount: Any = Field(..., description="Payment amount in dollars", examples=[1450.00])
    due_date: Optional[date] = Field(None, description="Defaults to today")


class CheckoutSessionResponse(BaseModel):
    url: str
    payment_id: str
    transaction_id: str


class PortalSessionRequest(BaseModel):
    return_url: Optional[str] = Field(None, description="Where Stripe sends the user back to")


class PortalSessionResponse(BaseModel):
    url: str


class RentPaymentResponse(BaseModel):
    id: str
    tenant_id: str
    unit_id: str
    amount: float
    due_date: date
    paid_at: Optional[datetime] = None
    status: RentPaymentStatus
    payment_method: Optional[PaymentMethodKind] = None
    invoice_number: str
    created_at: datetime
    updated_at: datetime


class PaymentHistoryResponse(PageMeta):
    payments: List[RentPaymentResponse]


class PaymentMethodResponse(BaseModel):
    id: str
    user_id: str
    method_type: StoredMethodType
    provider: str
    last4: Optional[str] = None
    brand: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None
    bank_name: Optional[str] = None
    status: StoredMethodStatus
    is_default: bool
    created_at: datetime


# Late fees and configuration

class LateFeeRequest(BaseModel):
    property_id: str
    payment_amount: Decimal = Field(..., gt=0)
    due_date: date
    as_of: Optional[date] = Field(None, description="Date to evaluate lateness on; defaults to today")


class LateFeeResponse(BaseModel):
    late_fee: float
    days_late: int
    grace_period_days: int
    late_fee_percentage: float
    total_due: float


class PaymentConfigUpdate(BaseModel):
    late_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    grace_period_days: Optional[int] = Field(None, ge=0, le=31)
    rent_due_day: Optional[int] = Field(None, ge=1, le=28)
    allow_partial_payments: Optional[bool] = None
    minimum_payment_percentage: Optional[Decimal] = Field(None, gt=0, le=100)
    automatic_late_fees: Optional[bool] = None
    payment_methods: Optional[List[str]] = None

    @field_validator('payment_methods')
    @classmethod
    def validate_payment_methods(cls, v):
        if v is None:
            return v
        allowed = {kind.value for kind in PaymentMethodKind}
        cleaned = [method.lower().strip() for method in v]
        invalid = [method for method in cleaned if method not in allowed]
        if invalid or not cleaned:
            raise ValueError(f"Payment methods must be a non-empty subset of: {sorted(allowed)}")
        return list(dict.fromkeys(cleaned))


class PaymentConfigResponse(BaseModel):
    property_id: str
    late_fee_percentage: float
    grace_period_days: int
    rent_due_day: int
    allow_partial_payments: bool
    minimum_payment_percentage: float
    automatic_late_fees: bool
    payment_methods: List[str]


# Stripe Connect

class ConnectAccountStatusResponse(BaseModel):
    account_id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    requirements: Dict[str, Any] = Field(default_factory=dict)
    remediation_link: Optional[str] = None


class ConnectOAuthRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Authorization code from Stripe's OAuth redirect")
    property_ids: Optional[List[str]] = Field(
        None,
        description="Properties to route rent to this account; defaults to all of the caller's properties"
    )


class ConnectOAuthResponse(BaseModel):
    account_id: str
    onboarding_status: str
    linked_properties: int


class WebhookAck(BaseModel):
    received: bool = True
    error: Optional[str] = None
