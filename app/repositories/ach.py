"""
Dwolla processor account and transfer repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.repositories.base import BaseRepository
from app.models.ach import PaymentProcessor, DwollaTransfer
from typing import Optional, List, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)

DWOLLA = "dwolla"


class PaymentProcessorRepository(BaseRepository[PaymentProcessor]):

    def __init__(self, db: AsyncSession):
        super().__init__(PaymentProcessor, db)

    async def get_for_user(self, user_id: uuid.UUID, processor: str = DWOLLA) -> Optional[PaymentProcessor]:
        result = await self.db.execute(
            select(PaymentProcessor).where(
                PaymentProcessor.user_id == user_id,
                PaymentProcessor.processor == processor
            )
        )
        return result.scalar_one_or_none()

    async def get_by_customer(self, customer_id: str) -> Optional[PaymentProcessor]:
        result = await self.db.execute(
            select(PaymentProcessor).where(PaymentProcessor.customer_id == customer_id)
        )
        return result.scalars().first()

    async def get_by_funding_source(self, funding_source_id: str) -> Optional[PaymentProcessor]:
        result = await self.db.execute(
            select(PaymentProcessor).where(PaymentProcessor.funding_source_id == funding_source_id)
        )
        return result.scalars().first()

    async def upsert_for_user(self, user_id: uuid.UUID, values: Dict[str, Any]) -> PaymentProcessor:
        """Insert or update the user's Dwolla row (one per user and processor)."""
        existing = await self.get_for_user(user_id, values.get("processor", DWOLLA))
        if existing:
            for field, value in values.items():
                setattr(existing, field, value)
            return await self.save(existing)
        return await self.create({"user_id": user_id, "processor": DWOLLA, **values})


class DwollaTransferRepository(BaseRepository[DwollaTransfer]):

    def __init__(self, db: AsyncSession):
        super().__init__(DwollaTransfer, db)

    async def get_by_transfer_id(self, transfer_id: str) -> Optional[DwollaTransfer]:
        result = await self.db.execute(
            select(DwollaTransfer).where(DwollaTransfer.transfer_id == transfer_id)
        )
        return result.scalar_one_or_none()

    async def get_by_correlation_id(self, correlation_id: str) -> Optional[DwollaTransfer]:
        result = await self.db.execute(
            select(DwollaTransfer).where(DwollaTransfer.correlation_id == correlation_id)
        )
        return result.scalar_one_or_none()

    async def list_for_payment(self, rent_payment_id: uuid.UUID) -> List[DwollaTransfer]:
        return await self.get_multi(filters={"rent_payment_id": rent_payment_id}, order_by="-created_at")
