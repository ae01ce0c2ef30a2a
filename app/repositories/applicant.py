"""
Applicant and screening report repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func
from app.repositories.base import BaseRepository
from app.models.applicant import Applicant, ApplicantStatus, ScreeningReport
from typing import Optional, List, Dict, Any, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class ApplicantRepository(BaseRepository[Applicant]):

    def __init__(self, db: AsyncSession):
        super().__init__(Applicant, db)

    async def search_applicants(
        self,
        property_ids: Optional[List[uuid.UUID]] = None,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ApplicantStatus] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Applicant], int]:
        """
        Applicants filtered by property and status, with a case-insensitive
        search over first name, last name and email.
        """
        conditions = []
        if property_ids is not None:
            conditions.append(Applicant.property_id.in_(property_ids))
        if property_id:
            conditions.append(Applicant.property_id == property_id)
        if status:
            conditions.append(Applicant.status == status)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            conditions.append(or_(
                func.lower(Applicant.first_name).like(pattern),
                func.lower(Applicant.last_name).like(pattern),
                func.lower(Applicant.email).like(pattern)
            ))

        query = select(Applicant).where(*conditions).order_by(Applicant.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        total = (await self.db.execute(select(func.count(Applicant.id)).where(*conditions))).scalar() or 0
        return list(result.scalars().all()), total

    async def status_counts(self, property_ids: Optional[List[uuid.UUID]] = None) -> Dict[str, int]:
        filters = {"property_id": property_ids} if property_ids is not None else None
        if property_ids is not None and not property_ids:
            return {}
        return await self.count_by("status", filters)

    async def create_screening_report(self, report_data: Dict[str, Any]) -> ScreeningReport:
        try:
            report = ScreeningReport(**report_data)
            self.db.add(report)
            await self.db.commit()
            await self.db.refresh(report)
            return report
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to store screening report: {e}")
            raise

    async def list_screening_reports(self, applicant_id: uuid.UUID) -> List[ScreeningReport]:
        result = await self.db.execute(
            select(ScreeningReport)
            .where(ScreeningReport.applicant_id == applicant_id)
            .order_by(ScreeningReport.created_at.desc())
        )
        return list(result.scalars().all())
