"""
Property repository covering properties, their units and tenant assignments.
Also answers the ownership questions other services use for access scoping.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from app.repositories.base import BaseRepository
from app.models.property import Property, PropertyType, Unit, UnitStatus, TenantUnit, AssignmentStatus
from app.models.user import User
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertySearchFilters:
    """Data class for property list filters."""

    def __init__(
        self,
        search_text: Optional[str] = None,
        city: Optional[str] = None,
        property_type: Optional[PropertyType] = None,
        manager_id: Optional[uuid.UUID] = None,
        property_ids: Optional[List[uuid.UUID]] = None
    ):
        self.search_text = search_text
        self.city = city
        self.property_type = property_type
        self.manager_id = manager_id
        # Restricts results to these ids when not None (tenant visibility)
        self.property_ids = property_ids


class PropertyRepository(BaseRepository[Property]):
    """
    Repository for properties plus unit and tenant-assignment queries.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Property, db)

    async def search_properties(
        self,
        filters: PropertySearchFilters,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Tuple[Property, int]], int]:
        """
        List properties with their unit counts.

        Args:
            filters: Search filters
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of ([(property, unit_count)], total_count)
        """
        conditions = []
        if filters.search_text:
            pattern = f"%{filters.search_text.strip()}%"
            conditions.append(or_(
                Property.name.ilike(pattern),
                Property.address.ilike(pattern),
                Property.city.ilike(pattern)
            ))
        if filters.city:
            conditions.append(Property.city.ilike(filters.city.strip()))
        if filters.property_type:
            conditions.append(Property.property_type == filters.property_type)
        if filters.manager_id:
            conditions.append(Property.property_manager_id == filters.manager_id)
        if filters.property_ids is not None:
            conditions.append(Property.id.in_(filters.property_ids))

        unit_count = (
            select(func.count(Unit.id))
            .where(Unit.property_id == Property.id)
            .correlate(Property)
            .scalar_subquery()
        )

        query = select(Property, unit_count).where(*conditions).order_by(Property.name).offset(skip).limit(limit)
        count_query = select(func.count(Property.id)).where(*conditions)

        result = await self.db.execute(query)
        rows = [(row[0], row[1]) for row in result.all()]
        total = (await self.db.execute(count_query)).scalar() or 0

        logger.debug(f"Property search returned {len(rows)} of {total}")
        return rows, total

    async def get_managed_property_ids(self, manager_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(Property.id).where(Property.property_manager_id == manager_id)
        )
        return list(result.scalars().all())

    async def get_tenant_property_ids(self, tenant_id: uuid.UUID) -> List[uuid.UUID]:
        """Properties where the tenant holds an active unit assignment."""
        result = await self.db.execute(
            select(Unit.property_id)
            .join(TenantUnit, TenantUnit.unit_id == Unit.id)
            .where(TenantUnit.tenant_id == tenant_id, TenantUnit.status == AssignmentStatus.ACTIVE)
            .distinct()
        )
        return list(result.scalars().all())

    # Units

    async def create_unit(self, unit_data: Dict[str, Any]) -> Unit:
        try:
            unit = Unit(**unit_data)
            self.db.add(unit)
            await self.db.commit()
            await self.db.refresh(unit)
            logger.info(f"Created unit {unit.unit_number} for property {unit.property_id}")
            return unit
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create unit: {e}")
            raise

    async def get_unit(self, unit_id: uuid.UUID) -> Optional[Unit]:
        return await self.db.get(Unit, unit_id)

    async def get_unit_with_property(self, unit_id: uuid.UUID) -> Optional[Tuple[Unit, Property]]:
        result = await self.db.execute(
            select(Unit, Property)
            .join(Property, Property.id == Unit.property_id)
            .where(Unit.id == unit_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def get_unit_by_number(self, property_id: uuid.UUID, unit_number: str) -> Optional[Unit]:
        result = await self.db.execute(
            select(Unit).where(Unit.property_id == property_id, Unit.unit_number == unit_number)
        )
        return result.scalar_one_or_none()

    async def list_units(
        self,
        property_id: uuid.UUID,
        status: Optional[UnitStatus] = None
    ) -> List[Unit]:
        query = select(Unit).where(Unit.property_id == property_id)
        if status:
            query = query.where(Unit.status == status)
        result = await self.db.execute(query.order_by(Unit.unit_number))
        return list(result.scalars().all())

    async def unit_status_counts(self, property_ids: Optional[List[uuid.UUID]]) -> Dict[str, int]:
        """Units per status. None means every property."""
        query = select(Unit.status, func.count(Unit.id)).group_by(Unit.status)
        if property_ids is not None:
            if not property_ids:
                return {}
            query = query.where(Unit.property_id.in_(property_ids))
        result = await self.db.execute(query)
        return {status.value: count for status, count in result.all()}

    async def delete_unit(self, unit_id: uuid.UUID) -> bool:
        unit = await self.get_unit(unit_id)
        if not unit:
            return False
        try:
            await self.db.delete(unit)
            await self.db.commit()
            return True
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to delete unit {unit_id}: {e}")
            raise

    # Tenant assignments

    async def get_assignment(self, assignment_id: uuid.UUID) -> Optional[TenantUnit]:
        return await self.db.get(TenantUnit, assignment_id)

    async def get_active_assignment(self, unit_id: uuid.UUID) -> Optional[TenantUnit]:
        result = await self.db.execute(
            select(TenantUnit).where(
                TenantUnit.unit_id == unit_id,
                TenantUnit.status == AssignmentStatus.ACTIVE
            )
        )
        return result.scalars().first()

    async def get_tenant_assignment(self, tenant_id: uuid.UUID, unit_id: uuid.UUID) -> Optional[TenantUnit]:
        """Active assignment of this tenant to this unit."""
        result = await self.db.execute(
            select(TenantUnit).where(
                TenantUnit.tenant_id == tenant_id,
                TenantUnit.unit_id == unit_id,
                TenantUnit.status == AssignmentStatus.ACTIVE
            )
        )
        return result.scalars().first()

    async def get_tenant_unit_ids(self, tenant_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(TenantUnit.unit_id).where(
                TenantUnit.tenant_id == tenant_id,
                TenantUnit.status == AssignmentStatus.ACTIVE
            )
        )
        return list(result.scalars().all())

    async def create_assignment(self, assignment_data: Dict[str, Any]) -> TenantUnit:
        try:
            assignment = TenantUnit(**assignment_data)
            self.db.add(assignment)
            await self.db.commit()
            await self.db.refresh(assignment)
            return assignment
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create tenant assignment: {e}")
            raise

    async def list_tenants(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        include_inactive: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Tenant assignments joined with tenant, unit and property names.

        Args:
            property_ids: Restrict to these properties (None means all)
            include_inactive: Include ended assignments
        """
        query = (
            select(TenantUnit, User, Unit, Property)
            .join(User, User.id == TenantUnit.tenant_id)
            .join(Unit, Unit.id == TenantUnit.unit_id)
            .join(Property, Property.id == Unit.property_id)
        )
        if property_ids is not None:
            query = query.where(Property.id.in_(property_ids))
        if not include_inactive:
            query = query.where(TenantUnit.status == AssignmentStatus.ACTIVE)

        result = await self.db.execute(query.order_by(Property.name, Unit.unit_number))

        tenants = []
        for assignment, tenant, unit, property_obj in result.all():
            tenants.append({
                **assignment.to_dict(),
                "tenant_first_name": tenant.first_name,
                "tenant_last_name": tenant.last_name,
                "tenant_email": tenant.email,
                "unit_number": unit.unit_number,
                "property_id": str(property_obj.id),
                "property_name": property_obj.name,
            })
        return tenants

    async def count_active_tenants(self, property_ids: Optional[List[uuid.UUID]] = None) -> int:
        """Distinct tenants with an active assignment, optionally within some properties."""
        query = select(func.count(func.distinct(TenantUnit.tenant_id))).where(
            TenantUnit.status == AssignmentStatus.ACTIVE
        )
        if property_ids is not None:
            query = query.where(
                TenantUnit.unit_id.in_(select(Unit.id).where(Unit.property_id.in_(property_ids)))
            )
        result = await self.db.execute(query)
        return result.scalar() or 0
