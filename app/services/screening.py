"""
Tenant screening against a mock provider.

Credit, background, eviction and income checks are simulated. Reports are
stored per requested screening type and the property manager is notified
with the resulting recommendation.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.applicant import ApplicantRepository
from app.models.applicant import Applicant, ApplicantStatus, ScreeningReport, ScreeningType, ScreeningRecommendation
from app.models.user import User
from app.schemas.applicant import ScreeningRequest
from app.services.applicant import ApplicantService
from app.services.notification import NotificationService
from app.utils.exceptions import APIException, BadRequestError, InvalidStatusTransitionError
import random
import uuid
import logging

logger = logging.getLogger(__name__)

SCREENING_PROVIDER = "mock"
DEFAULT_MONTHLY_RENT = Decimal("1500")
LOW_CREDIT_SCORE = 600
MIN_INCOME_RATIO = Decimal("3")

SCREENABLE_STATUSES = (
    ApplicantStatus.INVITED,
    ApplicantStatus.STARTED,
    ApplicantStatus.SUBMITTED,
    ApplicantStatus.SCREENING,
)

SECTIONS_BY_TYPE = {
    ScreeningType.CREDIT: ("credit_report",),
    ScreeningType.BACKGROUND: ("background_check",),
    ScreeningType.EVICTION: ("eviction_history",),
    ScreeningType.INCOME: ("income_verification",),
    ScreeningType.FULL: ("credit_report", "background_check", "eviction_history", "income_verification"),
}


def perform_mock_screening(
    applicant: Applicant,
    rent_amount: Optional[Decimal],
    rng: random.Random
) -> Dict[str, Any]:
    """
    Simulate a provider run.

    Returns:
        Dict with credit_score, income_ratio, recommendation, flags and the
        report sections keyed by name
    """
    flags: List[str] = []
    recommendation = ScreeningRecommendation.APPROVE

    credit_score = rng.randint(550, 849)
    if credit_score < LOW_CREDIT_SCORE:
        flags.append("Low credit score")
        recommendation = ScreeningRecommendation.REVIEW

    rent = Decimal(str(rent_amount)) if rent_amount else DEFAULT_MONTHLY_RENT
    if applicant.monthly_income is not None:
        income = Decimal(str(applicant.monthly_income))
    else:
        income = (rent * Decimal(str(rng.uniform(2.5, 4.5)))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    income_ratio = (income / rent).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    if income_ratio < MIN_INCOME_RATIO:
        flags.append("Income below 3x rent")
        recommendation = ScreeningRecommendation.REVIEW

    sections = {
        "credit_report": {
            "score": credit_score,
            "score_date": datetime.now(timezone.utc).isoformat(),
            "inquiries_last_6_months": rng.randint(0, 4),
            "collections": 0,
            "bankruptcies": 0,
            "public_records": [],
        },
        "background_check": {
            "criminal_records": [],
            "sex_offender_registry": False,
            "global_sanctions": False,
            "identity_verified": True,
            "status": "clear",
        },
        "eviction_history": {
            "records": [],
            "status": "clear",
        },
        "income_verification": {
            "reported_income": float(income),
            "monthly_rent": float(rent),
            "employer": applicant.employer,
            "employment_status": applicant.employment_status,
            "income_to_rent_ratio": float(income_ratio),
        },
    }

    return {
        "credit_score": credit_score,
        "income_ratio": income_ratio,
        "recommendation": recommendation,
        "flags": flags,
        "sections": sections,
    }


class ScreeningService:

    def __init__(
        self,
        db_session: AsyncSession,
        applicant_service: Optional[ApplicantService] = None,
        rng: Optional[random.Random] = None
    ):
        self.db = db_session
        self.applicant_repo = ApplicantRepository(db_session)
        self.applicant_service = applicant_service or ApplicantService(db_session)
        self.notification_service = NotificationService(db_session)
        self.rng = rng or random.Random()

    async def run_screening(
        self,
        applicant_id: uuid.UUID,
        request: ScreeningRequest,
        current_user: User
    ) -> List[ScreeningReport]:
        """
        Screen an applicant and store one report per requested type.

        Raises:
            NotFoundError: If the applicant doesn't exist
            ForbiddenError: If the caller doesn't manage the applicant's property
            InvalidStatusTransitionError: If the application is already decided or closed
        """
        applicant = await self.applicant_service.get_applicant(applicant_id, current_user)
        if applicant.status not in SCREENABLE_STATUSES:
            raise InvalidStatusTransitionError("applicant", applicant.status.value, ApplicantStatus.SCREENING.value)

        property_obj = await self.applicant_service.property_service.property_repo.get_by_id(applicant.property_id)

        try:
            applicant.status = ApplicantStatus.SCREENING
            applicant = await self.applicant_repo.save(applicant)

            rent_amount = request.rent_amount
            if rent_amount is None and applicant.unit_id:
                unit = await self.applicant_service.property_service.property_repo.get_unit(applicant.unit_id)
                rent_amount = unit.rent_amount if unit else None

            outcome = perform_mock_screening(applicant, rent_amount, self.rng)
            completed_at = datetime.now(timezone.utc)

            reports = []
            for screening_type in dict.fromkeys(request.screening_types):
                results = {name: outcome["sections"][name] for name in SECTIONS_BY_TYPE[screening_type]}
                report = await self.applicant_repo.create_screening_report({
                    "applicant_id": applicant.id,
                    "requested_by": current_user.id,
                    "screening_type": screening_type,
                    "status": "completed",
                    "provider": SCREENING_PROVIDER,
                    "credit_score": outcome["credit_score"],
                    "income_ratio": outcome["income_ratio"],
                    "recommendation": outcome["recommendation"],
                    "flags": outcome["flags"],
                    "results": results,
                    "completed_at": completed_at,
                })
                reports.append(report)
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Screening failed for applicant {applicant_id}: {e}")
            raise BadRequestError(f"Screening failed: {str(e)}")

        recommendation = outcome["recommendation"].value
        await self.notification_service.notify(
            property_obj.property_manager_id,
            "Screening Complete",
            f"Screening for {applicant.first_name} {applicant.last_name} is complete. "
            f"Recommendation: {recommendation.upper()}",
            notification_type="screening",
            data={
                "applicant_id": str(applicant.id),
                "report_id": str(reports[0].id),
                "recommendation": recommendation,
            },
            related_entity_type="applicant",
            related_entity_id=applicant.id,
        )

        logger.info(f"Screening completed for applicant {applicant_id}: {recommendation}, flags={outcome['flags']}")
        return reports

    async def list_reports(self, applicant_id: uuid.UUID, current_user: User) -> List[ScreeningReport]:
        await self.applicant_service.get_applicant(applicant_id, current_user)
        return await self.applicant_repo.list_screening_reports(applicant_id)
