"""
Inspection service: move-in/move-out and routine inspections with room-by-room checklist items.
"""

from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.inspection import InspectionRepository
from app.repositories.lease import LeaseRepository
from app.models.inspection import Inspection, InspectionItem, InspectionStatus
from app.models.user import User
from app.schemas.inspection import InspectionCreate, InspectionUpdate, InspectionComplete, InspectionItemCreate
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ValidationError,
    BadRequestError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError
)
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)


class InspectionService:

    def __init__(self, db_session: AsyncSession, property_service: Optional[PropertyService] = None):
        self.db = db_session
        self.inspection_repo = InspectionRepository(db_session)
        self.lease_repo = LeaseRepository(db_session)
        self.property_service = property_service or PropertyService(db_session)

    async def get_inspection(self, inspection_id: uuid.UUID, current_user: User) -> Inspection:
        """
        Raises:
            NotFoundError: If the inspection doesn't exist
            ForbiddenError: If the caller doesn't manage the inspection's property
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage inspections")
        inspection = await self.inspection_repo.get_by_id(inspection_id)
        if not inspection:
            raise NotFoundError("Inspection", str(inspection_id))
        await self.property_service.get_managed_property(inspection.property_id, current_user)
        return inspection

    async def create_inspection(self, inspection_data: InspectionCreate, current_user: User) -> Inspection:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage inspections")

        property_id = ValidationUtils.validate_uuid(inspection_data.property_id, "property_id")
        unit_id = ValidationUtils.validate_optional_uuid(inspection_data.unit_id, "unit_id")
        lease_id = ValidationUtils.validate_optional_uuid(inspection_data.lease_id, "lease_id")

        try:
            await self.property_service.get_managed_property(property_id, current_user)

            if unit_id:
                unit = await self.property_service.property_repo.get_unit(unit_id)
                if not unit or unit.property_id != property_id:
                    raise ValidationError("Unit does not belong to this property")
            if lease_id:
                lease = await self.lease_repo.get_by_id(lease_id)
                if not lease or lease.property_id != property_id:
                    raise ValidationError("Lease does not belong to this property")

            inspection = await self.inspection_repo.create({
                "property_id": property_id,
                "unit_id": unit_id,
                "lease_id": lease_id,
                "inspector_id": current_user.id,
                "inspection_type": inspection_data.inspection_type,
                "scheduled_date": inspection_data.scheduled_date,
                "notes": inspection_data.notes,
                "status": InspectionStatus.SCHEDULED,
            })
            for item_data in inspection_data.items:
                await self.inspection_repo.add_item(inspection, item_data.model_dump())

            logger.info(f"Inspection {inspection.id} scheduled by {current_user.email} with {len(inspection_data.items)} items")
            return inspection
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create inspection: {e}")
            raise BadRequestError(f"Failed to create inspection: {str(e)}")

    async def list_inspections(
        self,
        current_user: User,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[InspectionStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Inspection], int]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage inspections")
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.inspection_repo.list_inspections(property_ids, property_id, status, skip, limit)

    async def update_inspection(
        self,
        inspection_id: uuid.UUID,
        inspection_data: InspectionUpdate,
        current_user: User
    ) -> Inspection:
        try:
            inspection = await self.get_inspection(inspection_id, current_user)
            update_data = inspection_data.model_dump(exclude_unset=True)

            new_status = update_data.pop("status", None)
            if new_status is not None:
                if new_status == InspectionStatus.COMPLETED:
                    raise ValidationError("Use the complete endpoint to finish an inspection")
                if inspection.status in (InspectionStatus.COMPLETED, InspectionStatus.CANCELLED):
                    raise InvalidStatusTransitionError("inspection", inspection.status.value, new_status.value)
                inspection.status = new_status

            for field, value in update_data.items():
                if value is not None:
                    setattr(inspection, field, value)

            inspection = await self.inspection_repo.save(inspection)
            logger.info(f"Inspection {inspection_id} updated by {current_user.email}")
            return inspection
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update inspection {inspection_id}: {e}")
            raise BadRequestError(f"Failed to update inspection: {str(e)}")

    async def delete_inspection(self, inspection_id: uuid.UUID, current_user: User) -> bool:
        await self.get_inspection(inspection_id, current_user)
        deleted = await self.inspection_repo.delete(inspection_id)
        logger.info(f"Inspection {inspection_id} deleted by {current_user.email}")
        return deleted

    async def add_item(
        self,
        inspection_id: uuid.UUID,
        item_data: InspectionItemCreate,
        current_user: User
    ) -> InspectionItem:
        inspection = await self.get_inspection(inspection_id, current_user)
        if inspection.status in (InspectionStatus.COMPLETED, InspectionStatus.CANCELLED):
            raise BadRequestError(f"Cannot add items to a {inspection.status.value} inspection")
        return await self.inspection_repo.add_item(inspection, item_data.model_dump())

    async def remove_item(self, inspection_id: uuid.UUID, item_id: uuid.UUID, current_user: User) -> None:
        inspection = await self.get_inspection(inspection_id, current_user)
        item = await self.inspection_repo.get_item(item_id)
        if not item or item.inspection_id != inspection.id:
            raise NotFoundError("Inspection item", str(item_id))
        await self.inspection_repo.remove_item(inspection, item)
        logger.info(f"Item {item_id} removed from inspection {inspection_id}")

    async def complete_inspection(
        self,
        inspection_id: uuid.UUID,
        complete_data: InspectionComplete,
        current_user: User
    ) -> Inspection:
        """
        Finish an inspection and total its repair costs.

        Raises:
            InvalidStatusTransitionError: If the inspection was cancelled
        """
        inspection = await self.get_inspection(inspection_id, current_user)
        if inspection.status == InspectionStatus.CANCELLED:
            raise InvalidStatusTransitionError("inspection", inspection.status.value, InspectionStatus.COMPLETED.value)

        inspection.status = InspectionStatus.COMPLETED
        inspection.completed_date = datetime.now(timezone.utc)
        inspection.total_repair_cost = sum(
            (Decimal(str(item.estimated_repair_cost or 0)) for item in inspection.items),
            Decimal("0")
        )
        if complete_data.overall_condition:
            inspection.overall_condition = complete_data.overall_condition
        if complete_data.notes:
            inspection.notes = complete_data.notes

        inspection = await self.inspection_repo.save(inspection)
        logger.info(f"Inspection {inspection_id} completed, repair cost {inspection.total_repair_cost}")
        return inspection

    async def get_inspection_counts(self, current_user: User) -> Dict[str, int]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage inspections")
        property_ids = await self.property_service.managed_property_ids(current_user)
        if property_ids is not None and not property_ids:
            return {}
        filters = {"property_id": property_ids} if property_ids is not None else None
        return await self.inspection_repo.count_by("status", filters)

    async def get_tenant_charges(self, current_user: User) -> Dict[str, Any]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage inspections")
        property_ids = await self.property_service.managed_property_ids(current_user)
        if property_ids is not None and not property_ids:
            return {"total": 0.0, "inspections": []}
        return await self.inspection_repo.tenant_charges(property_ids)
