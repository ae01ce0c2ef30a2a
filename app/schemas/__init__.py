"""
Pydantic schemas for request/response validation.
"""

# Authentication schemas
from .auth import (
    LoginRequest,
    TokenResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
    CurrentUserResponse,
    LoginResponse,
)

# User schemas
from .user import UserCreate, UserUpdate, UserResponse, UserSummary

from .common import PageMeta, MessageResponse, StatusCounts, build_page_meta

# Property schemas
from .property import (
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyListResponse,
    UnitCreate,
    UnitUpdate,
    UnitResponse,
    TenantAssignmentCreate,
    TenantAssignmentResponse,
    TenantListItem,
)

from .lease import (
    LeaseCreate,
    LeaseUpdate,
    LeaseResponse,
    LeaseListResponse,
    SignatureRequestResponse,
    SignUrlResponse,
)

from .applicant import (
    ApplicantCreate,
    ApplicantUpdate,
    ApplicantResponse,
    ApplicantListResponse,
    ApplicantDecision,
    ApplicantConvert,
    ApplicantConvertResponse,
    ScreeningRequest,
    ScreeningReportResponse,
)

from .inspection import (
    InspectionCreate,
    InspectionUpdate,
    InspectionComplete,
    InspectionResponse,
    InspectionListResponse,
    InspectionItemCreate,
    InspectionItemResponse,
    InspectionChargesSummary,
)

from .expense import ExpenseCreate, ExpenseUpdate, ExpenseResponse, ExpenseListResponse, ExpenseSummary

from .messaging import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse as ChatMessageResponse,
    MarkReadResponse,
    UnreadCountResponse,
)

from .maintenance import (
    MaintenanceRequestCreate,
    MaintenanceRequestUpdate,
    MaintenanceRequestResponse,
    MaintenanceRequestListResponse,
)

from .notification import (
    NotificationResponse,
    NotificationListResponse,
    MarkAllReadResponse,
    EmailSendRequest,
    EmailSendResponse,
)

from .payment import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    RentPaymentResponse,
    PaymentHistoryResponse,
    PaymentMethodResponse,
    LateFeeRequest,
    LateFeeResponse,
    PaymentConfigUpdate,
    PaymentConfigResponse,
    ConnectAccountStatusResponse,
    ConnectOAuthRequest,
    ConnectOAuthResponse,
    WebhookAck,
)

from .ach import (
    CustomerCreateRequest,
    ProcessorResponse,
    FundingSourceRequest,
    FundingSourceResponse,
    TransferRequest,
    TransferResponse,
)

from .dashboard import DashboardResponse

__all__ = [
    "LoginRequest",
    "TokenResponse",
    "RefreshTokenRequest",
    "AccessTokenResponse",
    "CurrentUserResponse",
    "LoginResponse",
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "UserSummary",
    "PageMeta",
    "MessageResponse",
    "StatusCounts",
    "build_page_meta",
    "PropertyCreate",
    "PropertyUpdate",
    "PropertyResponse",
    "PropertyListResponse",
    "UnitCreate",
    "UnitUpdate",
    "UnitResponse",
    "TenantAssignmentCreate",
    "TenantAssignmentResponse",
    "TenantListItem",
    "LeaseCreate",
    "LeaseUpdate",
    "LeaseResponse",
    "LeaseListResponse",
    "SignatureRequestResponse",
    "SignUrlResponse",
    "ApplicantCreate",
    "ApplicantUpdate",
    "ApplicantResponse",
    "ApplicantListResponse",
    "ApplicantDecision",
    "ApplicantConvert",
    "ApplicantConvertResponse",
    "ScreeningRequest",
    "ScreeningReportResponse",
    "InspectionCreate",
    "InspectionUpdate",
    "InspectionComplete",
    "InspectionResponse",
    "InspectionListResponse",
    "InspectionItemCreate",
    "InspectionItemResponse",
    "InspectionChargesSummary",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ExpenseResponse",
    "ExpenseListResponse",
    "ExpenseSummary",
    "ConversationCreate",
    "ConversationResponse",
    "MessageCreate",
    "ChatMessageResponse",
    "MarkReadResponse",
    "UnreadCountResponse",
    "MaintenanceRequestCreate",
    "MaintenanceRequestUpdate",
    "MaintenanceRequestResponse",
    "MaintenanceRequestListResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "MarkAllReadResponse",
    "EmailSendRequest",
    "EmailSendResponse",
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "PortalSessionRequest",
    "PortalSessionResponse",
    "RentPaymentResponse",
    "PaymentHistoryResponse",
    "PaymentMethodResponse",
    "LateFeeRequest",
    "LateFeeResponse",
    "PaymentConfigUpdate",
    "PaymentConfigResponse",
    "ConnectAccountStatusResponse",
    "ConnectOAuthRequest",
    "ConnectOAuthResponse",
    "WebhookAck",
    "CustomerCreateRequest",
    "ProcessorResponse",
    "FundingSourceRequest",
    "FundingSourceResponse",
    "TransferRequest",
    "TransferResponse",
    "DashboardResponse",
]
