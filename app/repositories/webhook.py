"""
Webhook event store repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.repositories.base import BaseRepository
from app.models.webhook import WebhookEvent, WebhookProvider
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple
import logging

logger = logging.getLogger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEvent]):

    def __init__(self, db: AsyncSession):
        super().__init__(WebhookEvent, db)

    async def get_event(self, provider: WebhookProvider, event_id: str) -> Optional[WebhookEvent]:
        result = await self.db.execute(
            select(WebhookEvent).where(
                WebhookEvent.provider == provider,
                WebhookEvent.event_id == event_id
            )
        )
        return result.scalar_one_or_none()

    async def record_event(
        self,
        provider: WebhookProvider,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
        resource_id: Optional[str] = None
    ) -> Tuple[WebhookEvent, bool]:
        """
        Store an inbound event once per (provider, event_id).

        Returns:
            Tuple of (event, created); created is False for a redelivery
        """
        existing = await self.get_event(provider, event_id)
        if existing:
            return existing, False

        event = await self.create({
            "provider": provider,
            "event_id": event_id,
            "event_type": event_type,
            "resource_id": resource_id,
            "payload": payload,
        })
        return event, True

    async def mark_processed(self, event: WebhookEvent, error: Optional[str] = None) -> WebhookEvent:
        event.processed = error is None
        event.processed_at = datetime.now(timezone.utc)
        event.error = error
        return await self.save(event)
