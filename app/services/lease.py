"""
Lease service: lease CRUD limited to the property's manager, read access for the lease's tenant.
"""

from typing import Optional, List, Dict, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.lease import LeaseRepository
from app.models.lease import Lease, LeaseStatus
from app.models.user import User, UserRole
from app.schemas.lease import LeaseCreate, LeaseUpdate
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    InsufficientPermissionsError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


class LeaseService:

    def __init__(self, db_session: AsyncSession, property_service: Optional[PropertyService] = None):
        self.db = db_session
        self.lease_repo = LeaseRepository(db_session)
        self.property_service = property_service or PropertyService(db_session)

    async def _scope(self, current_user: User) -> Tuple[Optional[List[uuid.UUID]], Optional[uuid.UUID]]:
        """(property_ids, tenant_id) visibility arguments for the lease repository."""
        if current_user.is_admin:
            return None, None
        if current_user.is_property_manager:
            return await self.property_service.managed_property_ids(current_user), None
        return None, current_user.id

    async def create_lease(self, lease_data: LeaseCreate, current_user: User) -> Lease:
        """
        Raises:
            ForbiddenError: If the caller doesn't manage the property
            ValidationError: If the unit isn't in the property or the tenant isn't a tenant
        """
        property_id = ValidationUtils.validate_uuid(lease_data.property_id, "property_id")
        unit_id = ValidationUtils.validate_uuid(lease_data.unit_id, "unit_id")
        tenant_id = ValidationUtils.validate_uuid(lease_data.tenant_id, "tenant_id")

        try:
            await self.property_service.get_managed_property(property_id, current_user)

            unit = await self.property_service.property_repo.get_unit(unit_id)
            if not unit or unit.property_id != property_id:
                raise ValidationError("Unit does not belong to this property")

            tenant = await self.property_service.user_repo.get_by_id(tenant_id)
            if not tenant or tenant.role != UserRole.TENANT:
                raise ValidationError("tenant_id must reference a tenant account")

            create_data = lease_data.model_dump()
            create_data.update({"property_id": property_id, "unit_id": unit_id, "tenant_id": tenant_id})
            lease = await self.lease_repo.create(create_data)

            logger.info(f"Lease created by {current_user.email}: {lease.id} for unit {unit.unit_number}")
            return lease
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create lease: {e}")
            raise BadRequestError(f"Failed to create lease: {str(e)}")

    async def get_lease(self, lease_id: uuid.UUID, current_user: User) -> Lease:
        lease = await self.lease_repo.get_by_id(lease_id)
        if not lease:
            raise NotFoundError("Lease", str(lease_id))

        if current_user.is_tenant:
            if lease.tenant_id != current_user.id:
                raise ForbiddenError("You don't have permission to view this lease")
            return lease

        await self.property_service.get_managed_property(lease.property_id, current_user)
        return lease

    async def get_managed_lease(self, lease_id: uuid.UUID, current_user: User) -> Lease:
        lease = await self.lease_repo.get_by_id(lease_id)
        if not lease:
            raise NotFoundError("Lease", str(lease_id))
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage leases")
        await self.property_service.get_managed_property(lease.property_id, current_user)
        return lease

    async def list_leases(
        self,
        current_user: User,
        status: Optional[LeaseStatus] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Lease], int]:
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        property_ids, tenant_id = await self._scope(current_user)
        return await self.lease_repo.list_leases(property_ids, tenant_id, status, property_id, skip, limit)

    async def update_lease(self, lease_id: uuid.UUID, lease_data: LeaseUpdate, current_user: User) -> Lease:
        try:
            lease = await self.get_managed_lease(lease_id, current_user)
            update_data = lease_data.model_dump(exclude_unset=True)

            start = update_data.get("start_date") or lease.start_date
            end = update_data.get("end_date") or lease.end_date
            if end <= start:
                raise ValidationError("end_date must be after start_date")

            for field, value in update_data.items():
                if value is not None:
                    setattr(lease, field, value)
            lease = await self.lease_repo.save(lease)
            logger.info(f"Lease updated by {current_user.email}: {lease_id}")
            return lease
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update lease {lease_id}: {e}")
            raise BadRequestError(f"Failed to update lease: {str(e)}")

    async def delete_lease(self, lease_id: uuid.UUID, current_user: User) -> bool:
        await self.get_managed_lease(lease_id, current_user)
        deleted = await self.lease_repo.delete(lease_id)
        logger.info(f"Lease deleted by {current_user.email}: {lease_id}")
        return deleted

    async def get_lease_counts(self, current_user: User) -> Dict[str, int]:
        """Lease count per status over the leases the caller can see."""
        property_ids, tenant_id = await self._scope(current_user)
        if property_ids is not None and not property_ids:
            return {}
        return await self.lease_repo.status_counts(property_ids, tenant_id)
