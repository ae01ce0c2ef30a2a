"""
Pydantic schemas for Dwolla ACH onboarding and transfers.
"""

from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime
from app.models.ach import ProcessorStatus, TransferStatus


class CustomerCreateRequest(BaseModel):
    customer_type: Literal["personal", "business"] = "personal"


class ProcessorResponse(BaseModel):
    id: str
    user_id: str
    processor: str
    customer_id: str
    customer_type: str
    funding_source_id: Optional[str] = None
    funding_source_name: Optional[str] = None
    verification_status: str
    status: ProcessorStatus
    updated_at: datetime


class FundingSourceRequest(BaseModel):
    routing_number: str = Field(..., description="9-digit ABA routing number", examples=["222222226"])
    account_number: str = Field(..., description="Bank account number", examples=["123456789"])
    bank_account_type: Literal["checking", "savings"] = "checking"
    name: str = Field(..., min_length=1, max_length=100, examples=["My Checking"])


class FundingSourceResponse(BaseModel):
    funding_source_id: str
    name: str
    status: str
    processor: ProcessorResponse


class TransferRequest(BaseModel):
    rent_payment_id: str


class TransferResponse(BaseModel):
    id: str
    rent_payment_id: str
    transfer_id: Optional[str] = None
    correlation_id: str
    amount: float
    fee: float
    net_amount: float
    status: TransferStatus
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    message: Optional[str] = None
