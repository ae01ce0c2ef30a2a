"""
Messaging service for landlord/tenant conversations.
"""

from typing import Optional, List, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.messaging import ConversationRepository
from app.repositories.property import PropertyRepository
from app.repositories.user import UserRepository
from app.models.messaging import Conversation, Message
from app.models.user import User, UserRole
from app.schemas.messaging import ConversationCreate, MessageCreate
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


class MessagingService:

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.conversation_repo = ConversationRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.user_repo = UserRepository(db_session)

    async def _resolve_participants(
        self,
        current_user: User,
        participant_id: uuid.UUID
    ) -> Tuple[uuid.UUID, uuid.UUID]:
        """(landlord_id, tenant_id) for a conversation between the caller and participant."""
        participant = await self.user_repo.get_by_id(participant_id)
        if not participant or not participant.is_active:
            raise NotFoundError("User", str(participant_id))

        if current_user.is_tenant:
            if participant.role == UserRole.TENANT:
                raise ValidationError("Tenants can only message landlords")
            return participant.id, current_user.id

        if participant.role != UserRole.TENANT:
            raise ValidationError("Landlords can only message tenants")
        return current_user.id, participant.id

    async def get_or_create_conversation(
        self,
        landlord_id: uuid.UUID,
        tenant_id: uuid.UUID,
        property_id: Optional[uuid.UUID] = None,
        unit_id: Optional[uuid.UUID] = None,
        subject: Optional[str] = None
    ) -> Conversation:
        """
        Reuse the conversation for (landlord, tenant, property) when one exists,
        unarchiving it, otherwise open a new one.
        """
        conversation = await self.conversation_repo.find_conversation(landlord_id, tenant_id, property_id)
        if conversation:
            if conversation.is_archived:
                conversation.is_archived = False
                conversation = await self.conversation_repo.save(conversation)
                logger.info(f"Conversation {conversation.id} unarchived")
            return conversation

        conversation = await self.conversation_repo.create({
            "landlord_id": landlord_id,
            "tenant_id": tenant_id,
            "property_id": property_id,
            "unit_id": unit_id,
            "subject": subject,
        })
        logger.info(f"Conversation {conversation.id} opened between {landlord_id} and {tenant_id}")
        return conversation

    async def start_conversation(self, conversation_data: ConversationCreate, current_user: User) -> Conversation:
        participant_id = ValidationUtils.validate_uuid(conversation_data.participant_id, "participant_id")
        property_id = ValidationUtils.validate_optional_uuid(conversation_data.property_id, "property_id")
        unit_id = ValidationUtils.validate_optional_uuid(conversation_data.unit_id, "unit_id")

        if participant_id == current_user.id:
            raise ValidationError("You cannot start a conversation with yourself")

        try:
            landlord_id, tenant_id = await self._resolve_participants(current_user, participant_id)

            if property_id:
                property_obj = await self.property_repo.get_by_id(property_id)
                if not property_obj:
                    raise NotFoundError("Property", str(property_id))
            if unit_id:
                unit = await self.property_repo.get_unit(unit_id)
                if not unit or (property_id and unit.property_id != property_id):
                    raise ValidationError("Unit does not belong to this property")

            return await self.get_or_create_conversation(
                landlord_id, tenant_id, property_id, unit_id, conversation_data.subject
            )
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to start conversation for {current_user.id}: {e}")
            raise BadRequestError(f"Failed to start conversation: {str(e)}")

    async def get_conversation(self, conversation_id: uuid.UUID, current_user: User) -> Conversation:
        """
        Raises:
            NotFoundError: If the conversation doesn't exist
            ForbiddenError: If the caller is not a participant
        """
        conversation = await self.conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", str(conversation_id))
        if not conversation.is_participant(current_user.id):
            raise ForbiddenError("You are not a participant in this conversation")
        return conversation

    async def list_conversations(
        self,
        current_user: User,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Conversation]:
        return await self.conversation_repo.list_for_user(current_user.id, include_archived, skip, limit)

    async def list_messages(
        self,
        conversation_id: uuid.UUID,
        current_user: User,
        skip: int = 0,
        limit: int = 100
    ) -> List[Message]:
        await self.get_conversation(conversation_id, current_user)
        return await self.conversation_repo.list_messages(conversation_id, skip, limit)

    async def send_message(
        self,
        conversation_id: uuid.UUID,
        message_data: MessageCreate,
        current_user: User
    ) -> Message:
        """
        Post a message. The other party's unread counter goes up by one.
        """
        conversation = await self.get_conversation(conversation_id, current_user)

        try:
            now = datetime.now(timezone.utc)
            conversation.last_message_at = now
            conversation.last_message_preview = message_data.content[:PREVIEW_LENGTH]
            if current_user.id == conversation.landlord_id:
                conversation.tenant_unread_count = (conversation.tenant_unread_count or 0) + 1
            else:
                conversation.landlord_unread_count = (conversation.landlord_unread_count or 0) + 1

            message = await self.conversation_repo.add_message(conversation, {
                "sender_id": current_user.id,
                "content": message_data.content,
                "message_type": message_data.message_type,
                "attachment_url": message_data.attachment_url,
                "attachment_name": message_data.attachment_name,
            })
            logger.info(f"Message {message.id} sent in conversation {conversation_id} by {current_user.id}")
            return message
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to send message in {conversation_id}: {e}")
            raise BadRequestError(f"Failed to send message: {str(e)}")

    async def mark_messages_read(self, conversation_id: uuid.UUID, current_user: User) -> int:
        conversation = await self.get_conversation(conversation_id, current_user)
        return await self.conversation_repo.mark_read(conversation, current_user.id, datetime.now(timezone.utc))

    async def archive_conversation(self, conversation_id: uuid.UUID, current_user: User) -> Conversation:
        conversation = await self.get_conversation(conversation_id, current_user)
        conversation.is_archived = True
        conversation = await self.conversation_repo.save(conversation)
        logger.info(f"Conversation {conversation_id} archived by {current_user.id}")
        return conversation

    async def get_unread_count(self, current_user: User) -> int:
        return await self.conversation_repo.unread_total(current_user.id)
