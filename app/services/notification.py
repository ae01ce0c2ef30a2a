"""
In-app notification service.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.notification import NotificationRepository
from app.models.notification import Notification
from app.models.user import User
from app.utils.exceptions import APIException, NotFoundError, BadRequestError
import uuid
import logging

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.notification_repo = NotificationRepository(db_session)

    async def notify(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        notification_type: str = "info",
        data: Optional[Dict[str, Any]] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[uuid.UUID] = None
    ) -> Notification:
        notification = await self.notification_repo.create({
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": notification_type,
            "data": data or {},
            "related_entity_type": related_entity_type,
            "related_entity_id": related_entity_id,
        })
        logger.info(f"Notification '{title}' created for user {user_id}")
        return notification

    async def list_notifications(
        self,
        current_user: User,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Notification]:
        return await self.notification_repo.list_for_user(current_user.id, unread_only, skip, limit)

    async def get_unread_count(self, current_user: User) -> int:
        return await self.notification_repo.count_unread(current_user.id)

    async def mark_read(self, notification_id: uuid.UUID, current_user: User) -> Notification:
        """
        Mark one of the caller's notifications read. Other users' notifications look missing.

        Raises:
            NotFoundError: If the notification doesn't exist or isn't the caller's
        """
        try:
            notification = await self.notification_repo.get_by_id(notification_id)
            if not notification or notification.user_id != current_user.id:
                raise NotFoundError("Notification", str(notification_id))

            if notification.read_at is None:
                notification.read_at = datetime.now(timezone.utc)
                notification = await self.notification_repo.save(notification)
            return notification
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to mark notification {notification_id} read: {e}")
            raise BadRequestError(f"Failed to update notification: {str(e)}")

    async def mark_all_read(self, current_user: User) -> int:
        marked = await self.notification_repo.mark_all_read(current_user.id, datetime.now(timezone.utc))
        logger.info(f"Marked {marked} notifications read for user {current_user.id}")
        return marked
