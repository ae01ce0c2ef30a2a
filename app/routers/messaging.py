"""
Landlord/tenant messaging API endpoints.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import List
from uuid import UUID

from app.models.user import User
from app.services.messaging import MessagingService
from app.schemas.messaging import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    MarkReadResponse,
    UnreadCountResponse
)
from app.schemas.error import get_crud_error_responses, get_error_responses
from app.utils.dependencies import get_current_active_user, get_messaging_service


router = APIRouter(prefix="/conversations", tags=["Messaging"])


def _conversation_response(conversation, current_user: User) -> ConversationResponse:
    return ConversationResponse.model_validate(conversation.to_dict(viewer_id=current_user.id))


@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start conversation",
    description="Returns the existing conversation when the pair already has one for the property",
    responses=get_crud_error_responses()
)
async def start_conversation(
    conversation_data: ConversationCreate,
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> ConversationResponse:
    conversation = await messaging_service.start_conversation(conversation_data, current_user)
    return _conversation_response(conversation, current_user)


@router.get("", response_model=List[ConversationResponse], summary="List conversations")
async def list_conversations(
    include_archived: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> List[ConversationResponse]:
    conversations = await messaging_service.list_conversations(
        current_user, include_archived=include_archived, skip=skip, limit=limit
    )
    return [_conversation_response(conversation, current_user) for conversation in conversations]


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Unread message count")
async def get_unread_count(
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> UnreadCountResponse:
    unread = await messaging_service.get_unread_count(current_user)
    return UnreadCountResponse(unread_count=unread)


@router.get(
    "/{conversation_id}",
    response_model=ConversationResponse,
    summary="Get conversation",
    responses=get_error_responses(401, 403, 404)
)
async def get_conversation(
    conversation_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> ConversationResponse:
    conversation = await messaging_service.get_conversation(conversation_id, current_user)
    return _conversation_response(conversation, current_user)


@router.get(
    "/{conversation_id}/messages",
    response_model=List[MessageResponse],
    summary="List messages",
    description="Messages oldest first",
    responses=get_error_responses(401, 403, 404)
)
async def list_messages(
    conversation_id: UUID = Path(...),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> List[MessageResponse]:
    messages = await messaging_service.list_messages(conversation_id, current_user, skip=skip, limit=limit)
    return [MessageResponse.model_validate(message.to_dict()) for message in messages]


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    responses=get_crud_error_responses()
)
async def send_message(
    message_data: MessageCreate,
    conversation_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> MessageResponse:
    message = await messaging_service.send_message(conversation_id, message_data, current_user)
    return MessageResponse.model_validate(message.to_dict())


@router.post(
    "/{conversation_id}/read",
    response_model=MarkReadResponse,
    summary="Mark messages read",
    description="Marks the other party's messages read and clears the caller's unread counter",
    responses=get_error_responses(401, 403, 404)
)
async def mark_messages_read(
    conversation_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> MarkReadResponse:
    marked = await messaging_service.mark_messages_read(conversation_id, current_user)
    return MarkReadResponse(conversation_id=str(conversation_id), marked_read=marked)


@router.post(
    "/{conversation_id}/archive",
    response_model=ConversationResponse,
    summary="Archive conversation",
    responses=get_error_responses(401, 403, 404)
)
async def archive_conversation(
    conversation_id: UUID = Path(...),
    current_user: User = Depends(get_current_active_user),
    messaging_service: MessagingService = Depends(get_messaging_service)
) -> ConversationResponse:
    conversation = await messaging_service.archive_conversation(conversation_id, current_user)
    return _conversation_response(conversation, current_user)
