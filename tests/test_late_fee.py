"""
Tests for late fee calculation and per-property payment configuration.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.schemas.payment import PaymentConfigUpdate
from app.services.late_fee import LateFeeService, calculate_late_fee_for_days, DEFAULT_PAYMENT_CONFIG
from app.utils.exceptions import ForbiddenError


class TestCalculateLateFeeForDays:
    """Test the pure late fee rule."""

    def test_no_fee_inside_grace_period(self):
        assert calculate_late_fee_for_days(1500, 0) == Decimal("0.00")
        assert calculate_late_fee_for_days(1500, 5) == Decimal("0.00")

    def test_no_fee_when_paid_early(self):
        assert calculate_late_fee_for_days(1500, -3) == Decimal("0.00")

    def test_percentage_fee_after_grace_period(self):
        assert calculate_late_fee_for_days(1500, 6) == Decimal("75.00")

    def test_fee_does_not_grow_with_days(self):
        assert calculate_late_fee_for_days(1500, 6) == calculate_late_fee_for_days(1500, 40)

    def test_custom_percentage_and_grace(self):
        assert calculate_late_fee_for_days(1000, 3, late_fee_percentage=10, grace_period_days=2) == Decimal("100.00")
        assert calculate_late_fee_for_days(1000, 2, late_fee_percentage=10, grace_period_days=2) == Decimal("0.00")

    def test_rounds_half_up_to_cents(self):
        # 1234.50 * 3.5% = 43.2075
        assert calculate_late_fee_for_days("1234.50", 10, late_fee_percentage="3.5") == Decimal("43.21")


class TestLateFeeService:
    """Test late fee calculation against stored configuration."""

    @pytest.fixture
    def late_fee_service(self, db_session, property_service) -> LateFeeService:
        return LateFeeService(db_session, property_service)

    async def test_defaults_when_unconfigured(self, late_fee_service, test_property):
        result = await late_fee_service.calculate_late_fee(
            Decimal("1500.00"),
            date(2024, 3, 1),
            test_property.id,
            today=date(2024, 3, 10)
        )

        assert result == {
            "late_fee": 75.0,
            "days_late": 9,
            "grace_period_days": 5,
            "late_fee_percentage": 5.0,
            "total_due": 1575.0,
        }

    async def test_not_late_yet(self, late_fee_service, test_property):
        result = await late_fee_service.calculate_late_fee(
            Decimal("1500.00"),
            date(2024, 3, 10),
            test_property.id,
            today=date(2024, 3, 1)
        )

        assert result["late_fee"] == 0.0
        assert result["days_late"] == 0
        assert result["total_due"] == 1500.0

    async def test_uses_stored_config(self, late_fee_service, test_property, test_manager):
        await late_fee_service.update_payment_config(
            test_property.id,
            PaymentConfigUpdate(late_fee_percentage=Decimal("10"), grace_period_days=3),
            test_manager
        )

        result = await late_fee_service.calculate_late_fee(
            Decimal("1000.00"),
            date(2024, 3, 1),
            test_property.id,
            today=date(2024, 3, 5)
        )

        assert result["late_fee"] == 100.0
        assert result["grace_period_days"] == 3
        assert result["total_due"] == 1100.0

    async def test_get_config_returns_defaults(self, late_fee_service, test_property, test_manager):
        config = await late_fee_service.get_payment_config(test_property.id, test_manager)

        assert config["property_id"] == str(test_property.id)
        for key, value in DEFAULT_PAYMENT_CONFIG.items():
            assert config[key] == value

    async def test_update_is_partial(self, late_fee_service, test_property, test_manager):
        await late_fee_service.update_payment_config(
            test_property.id, PaymentConfigUpdate(grace_period_days=7), test_manager
        )
        await late_fee_service.update_payment_config(
            test_property.id, PaymentConfigUpdate(rent_due_day=15), test_manager
        )

        config = await late_fee_service.get_payment_config(test_property.id, test_manager)
        assert config["grace_period_days"] == 7
        assert config["rent_due_day"] == 15

    async def test_other_manager_cannot_update(self, late_fee_service, test_property, other_manager):
        with pytest.raises(ForbiddenError):
            await late_fee_service.update_payment_config(
                test_property.id, PaymentConfigUpdate(grace_period_days=7), other_manager
            )
