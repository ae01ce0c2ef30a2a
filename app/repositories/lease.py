"""
Lease repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from app.repositories.base import BaseRepository
from app.models.lease import Lease, LeaseStatus
from typing import Optional, List, Dict, Tuple
import uuid


class LeaseRepository(BaseRepository[Lease]):

    def __init__(self, db: AsyncSession):
        super().__init__(Lease, db)

    def _visibility(self, property_ids: Optional[List[uuid.UUID]], tenant_id: Optional[uuid.UUID]):
        """
        Condition for leases a caller can see: leases on the given properties
        and/or leases where the caller is the tenant. Both None means everything.
        """
        clauses = []
        if property_ids is not None:
            clauses.append(Lease.property_id.in_(property_ids))
        if tenant_id is not None:
            clauses.append(Lease.tenant_id == tenant_id)
        if not clauses:
            return None
        return or_(*clauses)

    async def list_leases(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None,
        status: Optional[LeaseStatus] = None,
        property_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Lease], int]:
        conditions = []
        visibility = self._visibility(property_ids, tenant_id)
        if visibility is not None:
            conditions.append(visibility)
        if status:
            conditions.append(Lease.status == status)
        if property_id:
            conditions.append(Lease.property_id == property_id)

        query = select(Lease).where(*conditions).order_by(Lease.start_date.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        total = (await self.db.execute(select(func.count(Lease.id)).where(*conditions))).scalar() or 0
        return list(result.scalars().all()), total

    async def status_counts(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        tenant_id: Optional[uuid.UUID] = None
    ) -> Dict[str, int]:
        query = select(Lease.status, func.count(Lease.id)).group_by(Lease.status)
        visibility = self._visibility(property_ids, tenant_id)
        if visibility is not None:
            query = query.where(visibility)
        result = await self.db.execute(query)
        return {status.value: count for status, count in result.all()}

    async def get_by_signature_request(self, signature_request_id: str) -> Optional[Lease]:
        result = await self.db.execute(
            select(Lease).where(Lease.signature_request_id == signature_request_id)
        )
        return result.scalars().first()
