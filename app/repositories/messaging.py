"""
Conversation and message repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, and_, func, case
from app.repositories.base import BaseRepository
from app.models.messaging import Conversation, Message
from datetime import datetime
from typing import Optional, List, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation]):

    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    async def find_conversation(
        self,
        landlord_id: uuid.UUID,
        tenant_id: uuid.UUID,
        property_id: Optional[uuid.UUID]
    ) -> Optional[Conversation]:
        query = select(Conversation).where(
            Conversation.landlord_id == landlord_id,
            Conversation.tenant_id == tenant_id
        )
        if property_id is None:
            query = query.where(Conversation.property_id.is_(None))
        else:
            query = query.where(Conversation.property_id == property_id)
        result = await self.db.execute(query.order_by(Conversation.created_at))
        return result.scalars().first()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Conversation]:
        query = select(Conversation).where(
            or_(Conversation.landlord_id == user_id, Conversation.tenant_id == user_id)
        )
        if not include_archived:
            query = query.where(Conversation.is_archived.is_(False))
        query = query.order_by(
            Conversation.last_message_at.desc().nulls_last(),
            Conversation.created_at.desc()
        ).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_total(self, user_id: uuid.UUID) -> int:
        """Sum of the caller's own unread counter over non-archived conversations."""
        own_counter = case(
            (Conversation.landlord_id == user_id, Conversation.landlord_unread_count),
            else_=Conversation.tenant_unread_count
        )
        result = await self.db.execute(
            select(func.coalesce(func.sum(own_counter), 0)).where(
                or_(Conversation.landlord_id == user_id, Conversation.tenant_id == user_id),
                Conversation.is_archived.is_(False)
            )
        )
        return int(result.scalar() or 0)

    async def add_message(self, conversation: Conversation, message_data: Dict[str, Any]) -> Message:
        """Insert a message and apply the conversation counters in the same commit."""
        try:
            message = Message(conversation_id=conversation.id, **message_data)
            self.db.add(message)
            self.db.add(conversation)
            await self.db.commit()
            await self.db.refresh(message)
            await self.db.refresh(conversation)
            return message
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to store message in conversation {conversation.id}: {e}")
            raise

    async def list_messages(
        self,
        conversation_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100
    ) -> List[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, conversation: Conversation, reader_id: uuid.UUID, read_at: datetime) -> int:
        """
        Stamp read_at on the other party's unread messages and zero the reader's counter.

        Returns:
            Number of messages marked read
        """
        try:
            result = await self.db.execute(
                update(Message)
                .where(and_(
                    Message.conversation_id == conversation.id,
                    Message.sender_id != reader_id,
                    Message.read_at.is_(None)
                ))
                .values(read_at=read_at)
            )
            if reader_id == conversation.landlord_id:
                conversation.landlord_unread_count = 0
            else:
                conversation.tenant_unread_count = 0
            self.db.add(conversation)
            await self.db.commit()
            await self.db.refresh(conversation)
            return result.rowcount or 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to mark conversation {conversation.id} read: {e}")
            raise
