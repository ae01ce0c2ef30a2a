"""
Maintenance request service.
Tenants report issues for their own units; the property's manager works them through to completion.
"""

from typing import Optional, List, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.maintenance import MaintenanceRepository
from app.models.maintenance import MaintenanceRequest, MaintenanceStatus
from app.models.property import Property, Unit
from app.models.user import User
from app.schemas.maintenance import MaintenanceRequestCreate, MaintenanceRequestUpdate
from app.services.email import EmailService, format_status
from app.services.notification import NotificationService
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    InsufficientPermissionsError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


class MaintenanceService:

    def __init__(
        self,
        db_session: AsyncSession,
        property_service: Optional[PropertyService] = None,
        email_service: Optional[EmailService] = None
    ):
        self.db = db_session
        self.maintenance_repo = MaintenanceRepository(db_session)
        self.email_service = email_service or EmailService()
        self.property_service = property_service or PropertyService(db_session, self.email_service)
        self.notification_service = NotificationService(db_session)

    async def _load_unit(self, unit_id: uuid.UUID) -> Tuple[Unit, Property]:
        row = await self.property_service.property_repo.get_unit_with_property(unit_id)
        if not row:
            raise NotFoundError("Unit", str(unit_id))
        return row

    async def create_request(self, request_data: MaintenanceRequestCreate, current_user: User) -> MaintenanceRequest:
        """
        File a maintenance request and alert the landlord by email and in-app notification.

        Raises:
            InsufficientPermissionsError: If the caller is not a tenant
            ForbiddenError: If the tenant isn't assigned to the unit
        """
        if not current_user.is_tenant:
            raise InsufficientPermissionsError("submit maintenance requests")

        unit_id = ValidationUtils.validate_uuid(request_data.unit_id, "unit_id")
        unit, property_obj = await self._load_unit(unit_id)

        assignment = await self.property_service.property_repo.get_tenant_assignment(current_user.id, unit_id)
        if not assignment:
            raise ForbiddenError("You can only submit requests for your own unit")

        try:
            maintenance_request = await self.maintenance_repo.create({
                "unit_id": unit_id,
                "tenant_id": current_user.id,
                "title": request_data.title,
                "description": request_data.description,
                "priority": request_data.priority,
                "status": MaintenanceStatus.PENDING,
            })
            logger.info(f"Maintenance request {maintenance_request.id} created by {current_user.email}")
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create maintenance request: {e}")
            raise BadRequestError(f"Failed to create maintenance request: {str(e)}")

        landlord = await self.property_service.user_repo.get_by_id(property_obj.property_manager_id)
        if landlord:
            await self.email_service.send_template(landlord.email, "maintenance_created", {
                "title": maintenance_request.title,
                "description": maintenance_request.description,
                "priority": maintenance_request.priority.value,
                "propertyName": property_obj.name,
                "unitNumber": unit.unit_number,
                "tenantName": current_user.full_name,
            })
            await self.notification_service.notify(
                landlord.id,
                "New Maintenance Request",
                f"{current_user.full_name} reported \"{maintenance_request.title}\" for unit {unit.unit_number}.",
                notification_type="maintenance",
                related_entity_type="maintenance_request",
                related_entity_id=maintenance_request.id,
            )

        return maintenance_request

    async def get_request(self, request_id: uuid.UUID, current_user: User) -> MaintenanceRequest:
        maintenance_request = await self.maintenance_repo.get_by_id(request_id)
        if not maintenance_request:
            raise NotFoundError("Maintenance request", str(request_id))

        if current_user.is_tenant:
            if maintenance_request.tenant_id != current_user.id:
                raise ForbiddenError("You don't have permission to view this request")
            return maintenance_request

        await self.property_service.get_managed_unit(maintenance_request.unit_id, current_user)
        return maintenance_request

    async def list_requests(
        self,
        current_user: User,
        status: Optional[MaintenanceStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[MaintenanceRequest], int]:
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        if current_user.is_tenant:
            return await self.maintenance_repo.list_requests(None, current_user.id, status, skip, limit)
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.maintenance_repo.list_requests(property_ids, None, status, skip, limit)

    async def update_request(
        self,
        request_id: uuid.UUID,
        request_data: MaintenanceRequestUpdate,
        current_user: User
    ) -> MaintenanceRequest:
        """
        Update a request. A status change emails and notifies the tenant;
        'completed' stamps completed_at.
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("update maintenance requests")

        maintenance_request = await self.get_request(request_id, current_user)
        unit, property_obj = await self._load_unit(maintenance_request.unit_id)
        previous_status = maintenance_request.status

        try:
            update_data = request_data.model_dump(exclude_unset=True)
            for field, value in update_data.items():
                if value is not None:
                    setattr(maintenance_request, field, value)

            if maintenance_request.status == MaintenanceStatus.COMPLETED and previous_status != MaintenanceStatus.COMPLETED:
                maintenance_request.completed_at = datetime.now(timezone.utc)
            elif maintenance_request.status != MaintenanceStatus.COMPLETED:
                maintenance_request.completed_at = None

            maintenance_request = await self.maintenance_repo.save(maintenance_request)
            logger.info(f"Maintenance request {request_id} updated by {current_user.email}")
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update maintenance request {request_id}: {e}")
            raise BadRequestError(f"Failed to update maintenance request: {str(e)}")

        if maintenance_request.status != previous_status:
            tenant = await self.property_service.user_repo.get_by_id(maintenance_request.tenant_id)
            if tenant:
                status = maintenance_request.status.value
                await self.email_service.send_template(tenant.email, "maintenance_status_changed", {
                    "title": maintenance_request.title,
                    "status": status,
                    "propertyName": property_obj.name,
                    "unitNumber": unit.unit_number,
                })
                await self.notification_service.notify(
                    tenant.id,
                    "Maintenance Request Updated",
                    f"\"{maintenance_request.title}\" is now {format_status(status)}.",
                    notification_type="maintenance",
                    data={"status": status, "previous_status": previous_status.value},
                    related_entity_type="maintenance_request",
                    related_entity_id=maintenance_request.id,
                )

        return maintenance_request

    async def delete_request(self, request_id: uuid.UUID, current_user: User) -> bool:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("delete maintenance requests")
        await self.get_request(request_id, current_user)
        deleted = await self.maintenance_repo.delete(request_id)
        logger.info(f"Maintenance request {request_id} deleted by {current_user.email}")
        return deleted
