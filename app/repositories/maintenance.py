"""
Maintenance request repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.repositories.base import BaseRepository
from app.models.maintenance import MaintenanceRequest, MaintenanceStatus
from app.models.property import Unit
from typing import Optional, List, Tuple
import uuid


class MaintenanceRepository(BaseRepository[MaintenanceRequest]):

    def __init__(self, db: AsyncSession):
        super().__init__(MaintenanceRequest, db)

    def _scope(self, property_ids: Optional[List[uuid.UUID]], tenant_id: Optional[uuid.UUID]):
        conditions = []
        if property_ids is not None:
            conditions.append(
                MaintenanceRequest.unit_id.in_(select(Unit.id).where(Unit.property_id.in_(property_ids)))
            )
        if tenant_id is not None:
            conditions.append(MaintenanceRequest.tenant_id == tenant_id)
        return conditions

    async def list_requests(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None,
        status: Optional[MaintenanceStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[MaintenanceRequest], int]:
        conditions = self._scope(property_ids, tenant_id)
        if status:
            conditions.append(MaintenanceRequest.status == status)

        query = (
            select(MaintenanceRequest)
            .where(*conditions)
            .order_by(MaintenanceRequest.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = (await self.db.execute(
            select(func.count(MaintenanceRequest.id)).where(*conditions)
        )).scalar() or 0
        return list(result.scalars().all()), total

    async def count_open(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None
    ) -> int:
        conditions = self._scope(property_ids, tenant_id)
        conditions.append(MaintenanceRequest.status.in_([MaintenanceStatus.PENDING, MaintenanceStatus.IN_PROGRESS]))
        result = await self.db.execute(select(func.count(MaintenanceRequest.id)).where(*conditions))
        return result.scalar() or 0
