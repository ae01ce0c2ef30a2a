"""
Inspection repository with checklist item operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from app.repositories.base import BaseRepository
from app.models.inspection import Inspection, InspectionItem, InspectionStatus
from typing import Optional, List, Dict, Any, Tuple
from decimal import Decimal
import uuid
import logging

logger = logging.getLogger(__name__)


class InspectionRepository(BaseRepository[Inspection]):

    def __init__(self, db: AsyncSession):
        super().__init__(Inspection, db)

    async def list_inspections(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[InspectionStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Inspection], int]:
        conditions = []
        if property_ids is not None:
            conditions.append(Inspection.property_id.in_(property_ids))
        if property_id:
            conditions.append(Inspection.property_id == property_id)
        if status:
            conditions.append(Inspection.status == status)

        query = (
            select(Inspection)
            .where(*conditions)
            .order_by(Inspection.scheduled_date.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        total = (await self.db.execute(select(func.count(Inspection.id)).where(*conditions))).scalar() or 0
        return list(result.scalars().all()), total

    async def add_item(self, inspection: Inspection, item_data: Dict[str, Any]) -> InspectionItem:
        try:
            item = InspectionItem(inspection_id=inspection.id, **item_data)
            self.db.add(item)
            await self.db.commit()
            await self.db.refresh(item)
            await self.db.refresh(inspection, attribute_names=["items"])
            return item
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to add item to inspection {inspection.id}: {e}")
            raise

    async def get_item(self, item_id: uuid.UUID) -> Optional[InspectionItem]:
        return await self.db.get(InspectionItem, item_id)

    async def remove_item(self, inspection: Inspection, item: InspectionItem) -> None:
        try:
            await self.db.delete(item)
            await self.db.commit()
            await self.db.refresh(inspection, attribute_names=["items"])
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to remove item {item.id}: {e}")
            raise

    async def tenant_charges(self, property_ids: Optional[List[uuid.UUID]] = None) -> Dict[str, Any]:
        """Total repair cost of items charged to tenants, per inspection."""
        query = (
            select(
                InspectionItem.inspection_id,
                func.count(InspectionItem.id),
                func.coalesce(func.sum(InspectionItem.estimated_repair_cost), 0)
            )
            .join(Inspection, Inspection.id == InspectionItem.inspection_id)
            .where(InspectionItem.charge_to_tenant.is_(True))
            .group_by(InspectionItem.inspection_id)
        )
        if property_ids is not None:
            query = query.where(Inspection.property_id.in_(property_ids))

        result = await self.db.execute(query)
        by_inspection = []
        total = Decimal("0")
        for inspection_id, item_count, amount in result.all():
            amount = Decimal(str(amount))
            total += amount
            by_inspection.append({
                "inspection_id": str(inspection_id),
                "item_count": item_count,
                "amount": float(amount),
            })

        return {"total": float(total), "inspections": by_inspection}
