"""
Late fee calculation and per-property payment configuration.
"""

from typing import Any, Dict, Optional
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.ext.asyncio import AsyncSession
from app.repositories.payment import PaymentConfigRepository
from app.models.payment import PaymentConfig
from app.models.user import User
from app.schemas.payment import PaymentConfigUpdate
from app.services.property import PropertyService
from app.utils.exceptions import APIException, BadRequestError
import uuid
import logging

logger = logging.getLogger(__name__)

DEFAULT_LATE_FEE_PERCENTAGE = Decimal("5")
DEFAULT_GRACE_PERIOD_DAYS = 5

DEFAULT_PAYMENT_CONFIG = {
    "late_fee_percentage": float(DEFAULT_LATE_FEE_PERCENTAGE),
    "grace_period_days": DEFAULT_GRACE_PERIOD_DAYS,
    "rent_due_day": 1,
    "allow_partial_payments": False,
    "minimum_payment_percentage": 100.0,
    "automatic_late_fees": True,
    "payment_methods": ["card", "ach"],
}


def calculate_late_fee_for_days(
    rent_amount: Any,
    days_late: int,
    late_fee_percentage: Any = DEFAULT_LATE_FEE_PERCENTAGE,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> Decimal:
    """
    Late fee owed after days_late days.
    Nothing is owed inside the grace period; after it the fee is a percentage of the rent.
    """
    if days_late <= grace_period_days:
        return Decimal("0.00")
    fee = Decimal(str(rent_amount)) * Decimal(str(late_fee_percentage)) / Decimal("100")
    return fee.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class LateFeeService:

    def __init__(self, db_session: AsyncSession, property_service: Optional[PropertyService] = None):
        self.db = db_session
        self.config_repo = PaymentConfigRepository(db_session)
        self.property_service = property_service or PropertyService(db_session)

    async def get_config_values(self, property_id: uuid.UUID) -> Dict[str, Any]:
        """Stored config for the property, or the defaults when it has none."""
        config = await self.config_repo.get_for_property(property_id)
        if not config:
            return {"property_id": str(property_id), **DEFAULT_PAYMENT_CONFIG}
        return config.to_dict()

    async def calculate_late_fee(
        self,
        payment_amount: Any,
        due_date: date,
        property_id: uuid.UUID,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Returns:
            Dict with late_fee, days_late, grace_period_days, late_fee_percentage and total_due
        """
        config = await self.get_config_values(property_id)
        today = today or date.today()
        days_late = (today - due_date).days

        fee = calculate_late_fee_for_days(
            payment_amount,
            days_late,
            config["late_fee_percentage"],
            config["grace_period_days"],
        )
        amount = Decimal(str(payment_amount))
        return {
            "late_fee": float(fee),
            "days_late": max(days_late, 0),
            "grace_period_days": config["grace_period_days"],
            "late_fee_percentage": float(config["late_fee_percentage"]),
            "total_due": float((amount + fee).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        }

    async def get_payment_config(self, property_id: uuid.UUID, current_user: User) -> Dict[str, Any]:
        await self.property_service.get_property(property_id, current_user)
        return await self.get_config_values(property_id)

    async def update_payment_config(
        self,
        property_id: uuid.UUID,
        config_data: PaymentConfigUpdate,
        current_user: User
    ) -> PaymentConfig:
        """Create or update the property's config. Only its manager (or an admin) may."""
        try:
            await self.property_service.get_managed_property(property_id, current_user)
            update_data = {k: v for k, v in config_data.model_dump(exclude_unset=True).items() if v is not None}

            config = await self.config_repo.get_for_property(property_id)
            if config:
                for field, value in update_data.items():
                    setattr(config, field, value)
                config = await self.config_repo.save(config)
            else:
                config = await self.config_repo.create({"property_id": property_id, **update_data})

            logger.info(f"Payment config updated for property {property_id} by {current_user.email}")
            return config
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to update payment config for {property_id}: {e}")
            raise BadRequestError(f"Failed to update payment config: {str(e)}")
