"""
Dashboard summary service.
"""

from typing import Any, Dict
from datetime import date
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.lease import LeaseRepository
from app.repositories.maintenance import MaintenanceRepository
from app.repositories.messaging import ConversationRepository
from app.repositories.notification import NotificationRepository
from app.repositories.payment import RentPaymentRepository
from app.repositories.expense import ExpenseRepository
from app.models.property import UnitStatus
from app.models.user import User
from app.services.property import PropertyService
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


class DashboardService:

    def __init__(self, db_session: AsyncSession, property_service: PropertyService = None):
        self.db = db_session
        self.property_service = property_service or PropertyService(db_session)
        self.property_repo = self.property_service.property_repo
        self.lease_repo = LeaseRepository(db_session)
        self.maintenance_repo = MaintenanceRepository(db_session)
        self.conversation_repo = ConversationRepository(db_session)
        self.notification_repo = NotificationRepository(db_session)
        self.payment_repo = RentPaymentRepository(db_session)
        self.expense_repo = ExpenseRepository(db_session)

    async def get_summary(self, current_user: User) -> Dict[str, Any]:
        if current_user.is_tenant:
            summary = await self._tenant_summary(current_user)
        else:
            summary = await self._manager_summary(current_user)

        summary["role"] = current_user.role.value
        summary["unread_notifications"] = await self.notification_repo.count_unread(current_user.id)
        return summary

    async def _manager_summary(self, current_user: User) -> Dict[str, Any]:
        property_ids = await self.property_service.managed_property_ids(current_user)
        property_count = await self.property_repo.count() if property_ids is None else len(property_ids)

        unit_counts = await self.property_repo.unit_status_counts(property_ids)
        if property_ids is not None and not property_ids:
            expenses: Dict[str, Decimal] = {}
        else:
            expenses = await self.expense_repo.totals_by_category(date.today().year, property_ids)

        return {
            "property_count": property_count,
            "unit_count": sum(unit_counts.values()),
            "occupied_units": unit_counts.get(UnitStatus.OCCUPIED.value, 0),
            "active_tenants": await self.property_repo.count_active_tenants(property_ids),
            "lease_counts": await self.lease_repo.status_counts(property_ids=property_ids),
            "open_maintenance": await self.maintenance_repo.count_open(property_ids=property_ids),
            "pending_payments": await self.payment_repo.count_pending(property_ids=property_ids),
            "expenses_this_year": float(sum(expenses.values(), Decimal("0"))),
        }

    async def _tenant_summary(self, current_user: User) -> Dict[str, Any]:
        unit_ids = await self.property_repo.get_tenant_unit_ids(current_user.id)
        return {
            "units": len(unit_ids),
            "open_maintenance": await self.maintenance_repo.count_open(tenant_id=current_user.id),
            "pending_payments": await self.payment_repo.count_pending(tenant_id=current_user.id),
            "unread_messages": await self.conversation_repo.unread_total(current_user.id),
        }
