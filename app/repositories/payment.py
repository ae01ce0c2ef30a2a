"""
Payment repositories: rent payments with their transactions, receipts and audit
log, stored payment methods, per-property payment config and Connect accounts.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from app.repositories.base import BaseRepository
from app.models.payment import (
    RentPayment,
    RentPaymentStatus,
    PaymentTransaction,
    PaymentMethod,
    PaymentReceipt,
    PaymentAuditLog,
    PaymentConfig,
    PropertyStripeAccount,
)
from app.models.property import Unit
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class RentPaymentRepository(BaseRepository[RentPayment]):

    def __init__(self, db: AsyncSession):
        super().__init__(RentPayment, db)

    async def history(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None,
        status: Optional[RentPaymentStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[RentPayment], int]:
        """
        Payments visible to a caller: a tenant's own payments, or payments
        for units on the given properties.
        """
        conditions = []
        if tenant_id is not None:
            conditions.append(RentPayment.tenant_id == tenant_id)
        if property_ids is not None:
            conditions.append(
                RentPayment.unit_id.in_(select(Unit.id).where(Unit.property_id.in_(property_ids)))
            )
        if status:
            conditions.append(RentPayment.status == status)

        query = (
            select(RentPayment)
            .where(*conditions)
            .order_by(RentPayment.due_date.desc(), RentPayment.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = (await self.db.execute(select(func.count(RentPayment.id)).where(*conditions))).scalar() or 0
        return list(result.scalars().all()), total

    async def count_pending(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None
    ) -> int:
        conditions = [RentPayment.status.in_([RentPaymentStatus.PENDING, RentPaymentStatus.PROCESSING])]
        if tenant_id is not None:
            conditions.append(RentPayment.tenant_id == tenant_id)
        if property_ids is not None:
            conditions.append(
                RentPayment.unit_id.in_(select(Unit.id).where(Unit.property_id.in_(property_ids)))
            )
        result = await self.db.execute(select(func.count(RentPayment.id)).where(*conditions))
        return result.scalar() or 0

    # Transactions

    async def create_transaction(self, transaction_data: Dict[str, Any]) -> PaymentTransaction:
        try:
            transaction = PaymentTransaction(**transaction_data)
            self.db.add(transaction)
            await self.db.commit()
            await self.db.refresh(transaction)
            return transaction
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create payment transaction: {e}")
            raise

    async def get_transaction(self, transaction_id: uuid.UUID) -> Optional[PaymentTransaction]:
        return await self.db.get(PaymentTransaction, transaction_id)

    async def get_transaction_by_session(self, session_id: str) -> Optional[PaymentTransaction]:
        result = await self.db.execute(
            select(PaymentTransaction).where(PaymentTransaction.stripe_session_id == session_id)
        )
        return result.scalars().first()

    async def get_transaction_by_intent(self, payment_intent_id: str) -> Optional[PaymentTransaction]:
        result = await self.db.execute(
            select(PaymentTransaction).where(PaymentTransaction.stripe_payment_intent_id == payment_intent_id)
        )
        return result.scalars().first()

    # Receipts

    async def get_receipt(self, rent_payment_id: uuid.UUID) -> Optional[PaymentReceipt]:
        result = await self.db.execute(
            select(PaymentReceipt).where(PaymentReceipt.rent_payment_id == rent_payment_id)
        )
        return result.scalar_one_or_none()

    async def create_receipt(self, receipt_data: Dict[str, Any]) -> PaymentReceipt:
        try:
            receipt = PaymentReceipt(**receipt_data)
            self.db.add(receipt)
            await self.db.commit()
            await self.db.refresh(receipt)
            return receipt
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create receipt: {e}")
            raise

    # Audit log

    async def add_audit_entry(self, entry_data: Dict[str, Any]) -> PaymentAuditLog:
        try:
            entry = PaymentAuditLog(**entry_data)
            self.db.add(entry)
            await self.db.commit()
            await self.db.refresh(entry)
            return entry
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to write audit log entry: {e}")
            raise

    async def list_audit_entries(self, entity_id: str) -> List[PaymentAuditLog]:
        result = await self.db.execute(
            select(PaymentAuditLog)
            .where(PaymentAuditLog.entity_id == entity_id)
            .order_by(PaymentAuditLog.created_at)
        )
        return list(result.scalars().all())


class PaymentMethodRepository(BaseRepository[PaymentMethod]):

    def __init__(self, db: AsyncSession):
        super().__init__(PaymentMethod, db)

    async def get_by_provider_id(self, provider_method_id: str) -> Optional[PaymentMethod]:
        result = await self.db.execute(
            select(PaymentMethod).where(PaymentMethod.provider_method_id == provider_method_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: uuid.UUID, include_removed: bool = False) -> List[PaymentMethod]:
        filters: Dict[str, Any] = {"user_id": user_id}
        methods = await self.get_multi(limit=100, filters=filters, order_by="-created_at")
        if include_removed:
            return methods
        return [m for m in methods if m.status.value != "removed"]

    async def set_status_for_user(self, user_id: uuid.UUID, provider: str, status) -> int:
        """Bulk status change for one user's methods at one provider."""
        try:
            result = await self.db.execute(
                update(PaymentMethod)
                .where(PaymentMethod.user_id == user_id, PaymentMethod.provider == provider)
                .values(status=status)
            )
            await self.db.commit()
            return result.rowcount or 0
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update payment methods for {user_id}: {e}")
            raise


class PaymentConfigRepository(BaseRepository[PaymentConfig]):

    def __init__(self, db: AsyncSession):
        super().__init__(PaymentConfig, db)

    async def get_for_property(self, property_id: uuid.UUID) -> Optional[PaymentConfig]:
        result = await self.db.execute(
            select(PaymentConfig).where(PaymentConfig.property_id == property_id)
        )
        return result.scalar_one_or_none()


class StripeAccountRepository(BaseRepository[PropertyStripeAccount]):

    def __init__(self, db: AsyncSession):
        super().__init__(PropertyStripeAccount, db)

    async def get_active_for_property(self, property_id: uuid.UUID) -> Optional[PropertyStripeAccount]:
        result = await self.db.execute(
            select(PropertyStripeAccount)
            .where(
                PropertyStripeAccount.property_id == property_id,
                PropertyStripeAccount.is_active.is_(True)
            )
            .order_by(PropertyStripeAccount.created_at.desc())
        )
        return result.scalars().first()

    async def list_by_account(self, stripe_account_id: str) -> List[PropertyStripeAccount]:
        result = await self.db.execute(
            select(PropertyStripeAccount).where(PropertyStripeAccount.stripe_account_id == stripe_account_id)
        )
        return list(result.scalars().all())

    async def get_link(self, property_id: uuid.UUID, stripe_account_id: str) -> Optional[PropertyStripeAccount]:
        result = await self.db.execute(
            select(PropertyStripeAccount).where(
                PropertyStripeAccount.property_id == property_id,
                PropertyStripeAccount.stripe_account_id == stripe_account_id
            )
        )
        return result.scalar_one_or_none()
