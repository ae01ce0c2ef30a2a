"""
In-app notification endpoints and the templated email sender.
"""

from fastapi import APIRouter, Depends, Query, Path
from uuid import UUID

from app.models.user import User
from app.services.email import EmailService
from app.services.notification import NotificationService
from app.schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    MarkAllReadResponse,
    EmailSendRequest,
    EmailSendResponse
)
from app.schemas.error import get_error_responses
from app.utils.dependencies import (
    get_current_active_user,
    get_current_manager_user,
    get_notification_service,
    get_email_service
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="List notifications")
async def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service)
) -> NotificationListResponse:
    notifications = await notification_service.list_notifications(
        current_user, unread_only=unread_only, skip=skip, limit=limit
    )
    unread = await notification_service.get_unread_count(current_user)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n.to_dict()) for n in notifications],
        unread_count=unread
    )


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications read"
)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service)
) -> MarkAllReadResponse:
    marked = await notification_service.mark_all_read(current_user)
    return MarkAllReadResponse(marked_read=marked)


@router.post(
    "/email",
    response_model=EmailSendResponse,
    summary="Send templated email",
    description="Renders one of the email templates and sends it through Resend",
    responses=get_error_responses(401, 403, 422)
)
async def send_email(
    email_request: EmailSendRequest,
    current_user: User = Depends(get_current_manager_user),
    email_service: EmailService = Depends(get_email_service)
) -> EmailSendResponse:
    logger.info(f"User {current_user.id} sending '{email_request.template}' email")
    result = await email_service.send_template(email_request.to, email_request.template, email_request.data)
    return EmailSendResponse(**result)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification read",
    responses=get_error_responses(401, 404)
)
async def mark_notification_read(
    notification_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service)
) -> NotificationResponse:
    notification = await notification_service.mark_read(notification_id, current_user)
    return NotificationResponse.model_validate(notification.to_dict())
