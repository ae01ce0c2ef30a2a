"""
Applicant service: the rental application pipeline from invitation to tenancy.

invited -> started -> submitted -> screening -> approved | rejected -> converted
Any open application can be withdrawn.
"""

from typing import Optional, List, Dict, Tuple
from datetime import date, datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.applicant import ApplicantRepository
from app.models.applicant import Applicant, ApplicantStatus
from app.models.property import TenantUnit
from app.models.user import User
from app.schemas.applicant import ApplicantCreate, ApplicantUpdate, ApplicantDecision, ApplicantConvert
from app.schemas.property import TenantAssignmentCreate
from app.services.email import EmailService
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ValidationError,
    BadRequestError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError
)
from app.utils.security import resolve_origin
from app.utils.validators import ValidationUtils
import uuid
import logging

logger = logging.getLogger(__name__)

DECIDABLE_STATUSES = (ApplicantStatus.SUBMITTED, ApplicantStatus.SCREENING)
CLOSED_STATUSES = (ApplicantStatus.REJECTED, ApplicantStatus.CONVERTED, ApplicantStatus.WITHDRAWN)
FORM_STATUSES = (ApplicantStatus.INVITED, ApplicantStatus.STARTED, ApplicantStatus.SUBMITTED)


class ApplicantService:

    def __init__(
        self,
        db_session: AsyncSession,
        property_service: Optional[PropertyService] = None,
        email_service: Optional[EmailService] = None
    ):
        self.db = db_session
        self.applicant_repo = ApplicantRepository(db_session)
        self.email_service = email_service or EmailService()
        self.property_service = property_service or PropertyService(db_session, self.email_service)

    async def get_applicant(self, applicant_id: uuid.UUID, current_user: User) -> Applicant:
        """
        Raises:
            NotFoundError: If the applicant doesn't exist
            ForbiddenError: If the caller doesn't manage the applicant's property
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage applicants")
        applicant = await self.applicant_repo.get_by_id(applicant_id)
        if not applicant:
            raise NotFoundError("Applicant", str(applicant_id))
        await self.property_service.get_managed_property(applicant.property_id, current_user)
        return applicant

    async def create_applicant(
        self,
        applicant_data: ApplicantCreate,
        current_user: User,
        origin: Optional[str] = None
    ) -> Applicant:
        """
        Create an applicant. New applicants in 'invited' status get an invitation email.
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage applicants")

        property_id = ValidationUtils.validate_uuid(applicant_data.property_id, "property_id")
        unit_id = ValidationUtils.validate_optional_uuid(applicant_data.unit_id, "unit_id")

        try:
            property_obj = await self.property_service.get_managed_property(property_id, current_user)

            unit = None
            if unit_id:
                unit = await self.property_service.property_repo.get_unit(unit_id)
                if not unit or unit.property_id != property_id:
                    raise ValidationError("Unit does not belong to this property")

            create_data = applicant_data.model_dump()
            create_data.update({"property_id": property_id, "unit_id": unit_id})
            applicant = await self.applicant_repo.create(create_data)
            logger.info(f"Applicant {applicant.email} added to property {property_obj.name} by {current_user.email}")
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create applicant: {e}")
            raise BadRequestError(f"Failed to create applicant: {str(e)}")

        if applicant.status == ApplicantStatus.INVITED:
            await self.email_service.send_template(applicant.email, "applicant_invited", {
                "propertyName": property_obj.name,
                "propertyAddress": f"{property_obj.address}, {property_obj.city}, {property_obj.state} {property_obj.zip_code}",
                "unitNumber": unit.unit_number if unit else None,
                "applicationUrl": f"{resolve_origin(origin)}/apply/{applicant.id}",
            })

        return applicant

    async def list_applicants(
        self,
        current_user: User,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ApplicantStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Applicant], int]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage applicants")
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.applicant_repo.search_applicants(property_ids, property_id, status, search, skip, limit)

    async def get_applicant_counts(self, current_user: User) -> Dict[str, int]:
        if current_user.is_tenant:
            raise InsufficientPermissionsError("manage applicants")
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.applicant_repo.status_counts(property_ids)

    async def update_applicant(
        self,
        applicant_id: uuid.UUID,
        applicant_data: ApplicantUpdate,
        current_user: User
    ) -> Applicant:
        try:
            applicant = await self.get_applicant(applicant_id, current_user)
            update_data = applicant_data.model_dump(exclude_unset=True)

            if "unit_id" in update_data:
                unit_id = ValidationUtils.validate_optional_uuid(update_data["unit_id"], "unit_id")
                if unit_id:
                    unit = await self.property_service.property_repo.get_unit(unit_id)
                    if not unit or unit.property_id != applicant.property_id:
                        raise ValidationError("Unit does not belong to this property")
                update_data["unit_id"] = unit_id

            new_status = update_data.pop("status", None)
            if new_status:
                target = ApplicantStatus(new_status)
                if applicant.status not in FORM_STATUSES:
                    raise InvalidStatusTransitionError("applicant", applicant.status.value, target.value)
                applicant.status = target

            for field, value in update_data.items():
                if value is not None or field == "unit_id":
                    setattr(applicant, field, value)

            applicant = await self.applicant_repo.save(applicant)
            logger.info(f"Applicant {applicant_id} updated by {current_user.email}")
            return applicant
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update applicant {applicant_id}: {e}")
            raise BadRequestError(f"Failed to update applicant: {str(e)}")

    async def decide(self, applicant_id: uuid.UUID, decision: ApplicantDecision, current_user: User) -> Applicant:
        """
        Approve or reject a submitted (or screened) application.

        Raises:
            InvalidStatusTransitionError: If the applicant isn't awaiting a decision
        """
        applicant = await self.get_applicant(applicant_id, current_user)
        target = ApplicantStatus.APPROVED if decision.decision == "approve" else ApplicantStatus.REJECTED
        if applicant.status not in DECIDABLE_STATUSES:
            raise InvalidStatusTransitionError("applicant", applicant.status.value, target.value)

        applicant.status = target
        applicant.decided_by = current_user.id
        applicant.decided_at = datetime.now(timezone.utc)
        if decision.notes:
            applicant.notes = decision.notes

        applicant = await self.applicant_repo.save(applicant)
        logger.info(f"Applicant {applicant_id} {target.value} by {current_user.email}")
        return applicant

    async def withdraw(self, applicant_id: uuid.UUID, current_user: User) -> Applicant:
        applicant = await self.get_applicant(applicant_id, current_user)
        if applicant.status in CLOSED_STATUSES:
            raise InvalidStatusTransitionError("applicant", applicant.status.value, ApplicantStatus.WITHDRAWN.value)

        applicant.status = ApplicantStatus.WITHDRAWN
        applicant = await self.applicant_repo.save(applicant)
        logger.info(f"Applicant {applicant_id} withdrawn")
        return applicant

    async def convert_to_tenant(
        self,
        applicant_id: uuid.UUID,
        convert_data: ApplicantConvert,
        current_user: User
    ) -> Tuple[Applicant, Optional[TenantUnit]]:
        """
        Mark an approved applicant converted. When a tenant account and a unit
        are known, the tenant is assigned to the unit as well.

        Returns:
            Tuple of (applicant, assignment or None)
        """
        applicant = await self.get_applicant(applicant_id, current_user)
        if applicant.status != ApplicantStatus.APPROVED:
            raise InvalidStatusTransitionError("applicant", applicant.status.value, ApplicantStatus.CONVERTED.value)

        assignment = None
        unit_id = convert_data.unit_id or (str(applicant.unit_id) if applicant.unit_id else None)
        if convert_data.tenant_id and unit_id:
            assignment = await self.property_service.assign_tenant(
                TenantAssignmentCreate(
                    tenant_id=convert_data.tenant_id,
                    unit_id=unit_id,
                    lease_start=convert_data.lease_start or applicant.desired_move_in or date.today(),
                    lease_end=convert_data.lease_end,
                    rent_amount=convert_data.rent_amount,
                ),
                current_user,
            )

        applicant.status = ApplicantStatus.CONVERTED
        applicant = await self.applicant_repo.save(applicant)
        logger.info(f"Applicant {applicant_id} converted to tenant by {current_user.email}")
        return applicant, assignment
