"""
Property service for properties, units and tenant assignments.
Also owns the access-scoping rules the other services build on:
admins see everything, managers see the properties they own and tenants
see the properties of the units they are assigned to.
"""

from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.repositories.user import UserRepository
from app.models.property import Property, PropertyType, Unit, UnitStatus, TenantUnit, AssignmentStatus
from app.models.user import User, UserRole
from app.schemas.property import PropertyCreate, PropertyUpdate, UnitCreate, UnitUpdate, TenantAssignmentCreate
from app.services.email import EmailService
from app.services.notification import NotificationService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    ValidationError,
    BadRequestError,
    InsufficientPermissionsError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


class PropertyService:
    """
    Property service handling ownership validation, unit management and tenant assignment.
    """

    def __init__(self, db_session: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db_session
        self.property_repo = PropertyRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.email_service = email_service or EmailService()
        self.notification_service = NotificationService(db_session)

    # Access scoping

    async def visible_property_ids(self, current_user: User) -> Optional[List[uuid.UUID]]:
        """
        Properties the user may read. None means no restriction (admin).
        """
        if current_user.is_admin:
            return None
        if current_user.is_property_manager:
            return await self.property_repo.get_managed_property_ids(current_user.id)
        return await self.property_repo.get_tenant_property_ids(current_user.id)

    async def managed_property_ids(self, current_user: User) -> Optional[List[uuid.UUID]]:
        """Properties the user may change. None means all (admin); tenants manage none."""
        if current_user.is_admin:
            return None
        if current_user.is_property_manager:
            return await self.property_repo.get_managed_property_ids(current_user.id)
        return []

    async def get_managed_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """
        Load a property the caller is allowed to manage.

        Raises:
            NotFoundError: If property doesn't exist
            ForbiddenError: If the caller is not its manager or an admin
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise NotFoundError("Property", str(property_id))
        if not current_user.can_manage_property(property_obj.property_manager_id):
            raise ForbiddenError("You don't have permission to manage this property")
        return property_obj

    async def get_managed_unit(self, unit_id: uuid.UUID, current_user: User) -> Tuple[Unit, Property]:
        row = await self.property_repo.get_unit_with_property(unit_id)
        if not row:
            raise NotFoundError("Unit", str(unit_id))
        unit, property_obj = row
        if not current_user.can_manage_property(property_obj.property_manager_id):
            raise ForbiddenError("You don't have permission to manage this unit")
        return unit, property_obj

    # Properties

    async def create_property(self, property_data: PropertyCreate, current_user: User) -> Property:
        """
        Create a property owned by the caller. Admins may name another manager as owner.

        Raises:
            InsufficientPermissionsError: If the caller is a tenant
            ValidationError: If the named manager is not a property manager
        """
        try:
            if current_user.is_tenant:
                raise InsufficientPermissionsError("create properties")

            create_data = property_data.model_dump(exclude={"property_manager_id"})
            create_data["created_by"] = current_user.id
            create_data["property_manager_id"] = current_user.id

            if property_data.property_manager_id and current_user.is_admin:
                manager_id = ValidationUtils.validate_uuid(property_data.property_manager_id, "property_manager_id")
                manager = await self.user_repo.get_by_id(manager_id)
                if not manager or manager.role != UserRole.PROPERTY_MANAGER:
                    raise ValidationError("property_manager_id must reference a property manager")
                create_data["property_manager_id"] = manager_id

            property_obj = await self.property_repo.create(create_data)
            logger.info(f"Property created by {current_user.email}: {property_obj.name} (ID: {property_obj.id})")
            return property_obj
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create property for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create property: {str(e)}")

    async def get_property(self, property_id: uuid.UUID, current_user: User) -> Property:
        """
        Raises:
            NotFoundError: If property doesn't exist
            ForbiddenError: If the caller can't see it
        """
        property_obj = await self.property_repo.get_by_id(property_id)
        if not property_obj:
            raise NotFoundError("Property", str(property_id))

        visible = await self.visible_property_ids(current_user)
        if visible is not None and property_obj.id not in visible:
            raise ForbiddenError("You don't have permission to view this property")
        return property_obj

    async def list_properties(
        self,
        current_user: User,
        search_text: Optional[str] = None,
        city: Optional[str] = None,
        property_type: Optional[PropertyType] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Tuple[Property, int]], int]:
        """
        Properties visible to the caller, with unit counts.

        Returns:
            Tuple of ([(property, unit_count)], total_count)
        """
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        filters = PropertySearchFilters(
            search_text=search_text,
            city=city,
            property_type=property_type,
        )
        if current_user.is_property_manager:
            filters.manager_id = current_user.id
        elif current_user.is_tenant:
            filters.property_ids = await self.property_repo.get_tenant_property_ids(current_user.id)

        return await self.property_repo.search_properties(filters, skip, limit)

    async def update_property(
        self,
        property_id: uuid.UUID,
        property_data: PropertyUpdate,
        current_user: User
    ) -> Property:
        try:
            await self.get_managed_property(property_id, current_user)
            updated = await self.property_repo.update(property_id, property_data.model_dump(exclude_unset=True))
            logger.info(f"Property updated by {current_user.email}: {property_id}")
            return updated
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update property {property_id}: {e}")
            raise BadRequestError(f"Failed to update property: {str(e)}")

    async def delete_property(self, property_id: uuid.UUID, current_user: User) -> bool:
        """Delete a property; its units go with it."""
        try:
            await self.get_managed_property(property_id, current_user)
            deleted = await self.property_repo.delete(property_id)
            logger.info(f"Property deleted by {current_user.email}: {property_id}")
            return deleted
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete property {property_id}: {e}")
            raise BadRequestError(f"Failed to delete property: {str(e)}")

    # Units

    async def create_unit(self, property_id: uuid.UUID, unit_data: UnitCreate, current_user: User) -> Unit:
        """
        Raises:
            ConflictError: If the unit number is already used in this property
        """
        try:
            await self.get_managed_property(property_id, current_user)
            if await self.property_repo.get_unit_by_number(property_id, unit_data.unit_number):
                raise ConflictError(f"Unit {unit_data.unit_number} already exists in this property")

            unit = await self.property_repo.create_unit({**unit_data.model_dump(), "property_id": property_id})
            return unit
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create unit for property {property_id}: {e}")
            raise BadRequestError(f"Failed to create unit: {str(e)}")

    async def list_units(
        self,
        property_id: uuid.UUID,
        current_user: User,
        status: Optional[UnitStatus] = None
    ) -> List[Unit]:
        await self.get_property(property_id, current_user)
        return await self.property_repo.list_units(property_id, status)

    async def get_unit(self, unit_id: uuid.UUID, current_user: User) -> Unit:
        row = await self.property_repo.get_unit_with_property(unit_id)
        if not row:
            raise NotFoundError("Unit", str(unit_id))
        unit, property_obj = row

        visible = await self.visible_property_ids(current_user)
        if visible is not None and property_obj.id not in visible:
            raise ForbiddenError("You don't have permission to view this unit")
        return unit

    async def update_unit(self, unit_id: uuid.UUID, unit_data: UnitUpdate, current_user: User) -> Unit:
        try:
            unit, property_obj = await self.get_managed_unit(unit_id, current_user)
            update_data = unit_data.model_dump(exclude_unset=True)

            new_number = update_data.get("unit_number")
            if new_number and new_number != unit.unit_number:
                if await self.property_repo.get_unit_by_number(property_obj.id, new_number):
                    raise ConflictError(f"Unit {new_number} already exists in this property")

            for field, value in update_data.items():
                if value is not None:
                    setattr(unit, field, value)
            return await self.property_repo.save(unit)
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update unit {unit_id}: {e}")
            raise BadRequestError(f"Failed to update unit: {str(e)}")

    async def delete_unit(self, unit_id: uuid.UUID, current_user: User) -> bool:
        await self.get_managed_unit(unit_id, current_user)
        return await self.property_repo.delete_unit(unit_id)

    # Tenant assignments

    async def assign_tenant(self, assignment_data: TenantAssignmentCreate, current_user: User) -> TenantUnit:
        """
        Assign a tenant to a unit, mark the unit occupied, then send the
        welcome email and in-app notification.

        Raises:
            ConflictError: If the unit already has an active tenant
            ValidationError: If tenant_id doesn't reference a tenant
        """
        unit_id = ValidationUtils.validate_uuid(assignment_data.unit_id, "unit_id")
        tenant_id = ValidationUtils.validate_uuid(assignment_data.tenant_id, "tenant_id")

        try:
            unit, property_obj = await self.get_managed_unit(unit_id, current_user)

            tenant = await self.user_repo.get_by_id(tenant_id)
            if not tenant or tenant.role != UserRole.TENANT:
                raise ValidationError("tenant_id must reference a tenant account")

            if await self.property_repo.get_active_assignment(unit.id):
                raise ConflictError("Unit already has an active tenant")

            assignment = await self.property_repo.create_assignment({
                "tenant_id": tenant.id,
                "unit_id": unit.id,
                "lease_start": assignment_data.lease_start,
                "lease_end": assignment_data.lease_end,
                "rent_amount": assignment_data.rent_amount or unit.rent_amount,
                "status": AssignmentStatus.ACTIVE,
            })

            unit.status = UnitStatus.OCCUPIED
            await self.property_repo.save(unit)
            logger.info(f"Tenant {tenant.email} assigned to unit {unit.unit_number} of {property_obj.name}")
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to assign tenant {tenant_id} to unit {unit_id}: {e}")
            raise BadRequestError(f"Failed to assign tenant: {str(e)}")

        await self._welcome_tenant(tenant, unit, property_obj, assignment)
        return assignment

    async def _welcome_tenant(self, tenant: User, unit: Unit, property_obj: Property, assignment: TenantUnit) -> None:
        await self.email_service.send_template(tenant.email, "tenant_assigned", {
            "propertyName": property_obj.name,
            "unitNumber": unit.unit_number,
            "monthlyRent": float(assignment.rent_amount),
            "leaseStart": assignment.lease_start.isoformat(),
            "leaseEnd": assignment.lease_end.isoformat() if assignment.lease_end else "",
        })
        await self.notification_service.notify(
            tenant.id,
            "Welcome to your new home",
            f"You have been assigned to unit {unit.unit_number} at {property_obj.name}.",
            notification_type="tenant_assigned",
            related_entity_type="tenant_unit",
            related_entity_id=assignment.id,
        )

    async def end_assignment(self, assignment_id: uuid.UUID, current_user: User) -> TenantUnit:
        """Set the assignment inactive and return the unit to available."""
        assignment = await self.property_repo.get_assignment(assignment_id)
        if not assignment:
            raise NotFoundError("Tenant assignment", str(assignment_id))

        unit, _ = await self.get_managed_unit(assignment.unit_id, current_user)
        if assignment.status == AssignmentStatus.INACTIVE:
            return assignment

        try:
            assignment.status = AssignmentStatus.INACTIVE
            assignment = await self.property_repo.save(assignment)
            unit.status = UnitStatus.AVAILABLE
            await self.property_repo.save(unit)
            logger.info(f"Ended tenant assignment {assignment_id}")
            return assignment
        except Exception as e:
            logger.error(f"Failed to end assignment {assignment_id}: {e}")
            raise BadRequestError(f"Failed to end assignment: {str(e)}")

    async def list_tenants(self, current_user: User, include_inactive: bool = False) -> List[Dict[str, Any]]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("list tenants")
        property_ids = await self.managed_property_ids(current_user)
        return await self.property_repo.list_tenants(property_ids, include_inactive)
