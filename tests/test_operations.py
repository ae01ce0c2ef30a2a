"""
Tests for day-to-day property operations: inspections, expenses,
maintenance requests and notifications.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.models.inspection import InspectionStatus, InspectionType, ConditionRating
from app.models.expense import ExpenseCategory
from app.models.maintenance import MaintenanceStatus, MaintenancePriority
from app.repositories.expense import ExpenseFilters
from app.schemas.inspection import InspectionCreate, InspectionItemCreate, InspectionComplete, InspectionUpdate
from app.schemas.expense import ExpenseCreate, ExpenseUpdate
from app.schemas.maintenance import MaintenanceRequestCreate, MaintenanceRequestUpdate
from app.services.inspection import InspectionService
from app.services.expense import ExpenseService
from app.services.maintenance import MaintenanceService
from app.services.notification import NotificationService
from app.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    InsufficientPermissionsError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import PropertyFactory, UserFactory
from tests.test_applicants import RecordingEmailService


def _item(room="Kitchen", item="Countertop", cost="0", charge=False) -> InspectionItemCreate:
    return InspectionItemCreate(
        room=room,
        item=item,
        condition=ConditionRating.GOOD if cost == "0" else ConditionRating.DAMAGED,
        estimated_repair_cost=Decimal(cost),
        charge_to_tenant=charge
    )


class TestInspectionService:
    """Test inspections and their checklist items."""

    @pytest.fixture
    def inspection_service(self, db_session, property_service) -> InspectionService:
        return InspectionService(db_session, property_service)

    async def _create(self, service, property_obj, manager, items=None, unit=None):
        return await service.create_inspection(
            InspectionCreate(
                property_id=str(property_obj.id),
                unit_id=str(unit.id) if unit else None,
                inspection_type=InspectionType.MOVE_OUT,
                scheduled_date=date(2024, 6, 1),
                items=items or []
            ),
            manager
        )

    async def test_create_with_items(self, inspection_service, test_property, test_unit, test_manager):
        inspection = await self._create(
            inspection_service, test_property, test_manager,
            items=[_item(), _item("Bedroom", "Carpet", "250.00", charge=True)],
            unit=test_unit
        )

        inspection = await inspection_service.get_inspection(inspection.id, test_manager)
        assert inspection.status == InspectionStatus.SCHEDULED
        assert inspection.inspector_id == test_manager.id
        assert len(inspection.items) == 2

    async def test_complete_totals_repair_costs(self, inspection_service, test_property, test_manager):
        inspection = await self._create(
            inspection_service, test_property, test_manager,
            items=[_item("Bedroom", "Carpet", "250.00", charge=True), _item("Bath", "Mirror", "40.50")]
        )

        inspection = await inspection_service.complete_inspection(
            inspection.id, InspectionComplete(overall_condition=ConditionRating.FAIR), test_manager
        )

        assert inspection.status == InspectionStatus.COMPLETED
        assert inspection.completed_date is not None
        assert inspection.total_repair_cost == Decimal("290.50")
        assert inspection.overall_condition == ConditionRating.FAIR

    async def test_no_items_after_completion(self, inspection_service, test_property, test_manager):
        inspection = await self._create(inspection_service, test_property, test_manager)
        await inspection_service.complete_inspection(inspection.id, InspectionComplete(), test_manager)

        with pytest.raises(BadRequestError):
            await inspection_service.add_item(inspection.id, _item(), test_manager)

    async def test_cancelled_cannot_complete(self, inspection_service, test_property, test_manager):
        inspection = await self._create(inspection_service, test_property, test_manager)
        await inspection_service.update_inspection(
            inspection.id, InspectionUpdate(status=InspectionStatus.CANCELLED), test_manager
        )

        with pytest.raises(InvalidStatusTransitionError):
            await inspection_service.complete_inspection(inspection.id, InspectionComplete(), test_manager)

    async def test_remove_item(self, inspection_service, test_property, test_manager):
        inspection = await self._create(inspection_service, test_property, test_manager)
        item = await inspection_service.add_item(inspection.id, _item(), test_manager)

        await inspection_service.remove_item(inspection.id, item.id, test_manager)

        inspection = await inspection_service.get_inspection(inspection.id, test_manager)
        assert inspection.items == []

    async def test_tenant_charges(self, inspection_service, test_property, test_manager):
        inspection = await self._create(
            inspection_service, test_property, test_manager,
            items=[
                _item("Bedroom", "Carpet", "250.00", charge=True),
                _item("Bath", "Mirror", "40.50", charge=True),
                _item("Hall", "Paint", "99.00"),
            ]
        )

        charges = await inspection_service.get_tenant_charges(test_manager)

        assert charges["total"] == 290.5
        assert charges["inspections"] == [
            {"inspection_id": str(inspection.id), "item_count": 2, "amount": 290.5}
        ]

    async def test_counts(self, inspection_service, test_property, test_manager):
        await self._create(inspection_service, test_property, test_manager)
        done = await self._create(inspection_service, test_property, test_manager)
        await inspection_service.complete_inspection(done.id, InspectionComplete(), test_manager)

        counts = await inspection_service.get_inspection_counts(test_manager)

        assert counts == {"scheduled": 1, "completed": 1}

    async def test_unit_must_belong_to_property(
        self, inspection_service, property_repository, test_property, test_manager
    ):
        other = await PropertyFactory.create_property(property_repository, test_manager.id, name="Birch House")
        other_unit = await PropertyFactory.create_unit(property_repository, other.id)

        with pytest.raises(ValidationError):
            await self._create(inspection_service, test_property, test_manager, unit=other_unit)

    async def test_tenant_is_rejected(self, inspection_service, test_tenant):
        with pytest.raises(InsufficientPermissionsError):
            await inspection_service.get_inspection_counts(test_tenant)

    async def test_other_manager_cannot_view(self, inspection_service, test_property, test_manager, other_manager):
        inspection = await self._create(inspection_service, test_property, test_manager)

        with pytest.raises(ForbiddenError):
            await inspection_service.get_inspection(inspection.id, other_manager)


class TestExpenseService:
    """Test expense tracking and yearly summaries."""

    @pytest.fixture
    def expense_service(self, db_session, property_service) -> ExpenseService:
        return ExpenseService(db_session, property_service)

    async def _create(self, service, property_obj, manager, category, amount, expense_date, vendor=None):
        return await service.create_expense(
            ExpenseCreate(
                property_id=str(property_obj.id),
                category=category,
                amount=Decimal(amount),
                expense_date=expense_date,
                vendor=vendor
            ),
            manager
        )

    async def test_create_and_update(self, expense_service, test_property, test_manager):
        expense = await self._create(
            expense_service, test_property, test_manager, ExpenseCategory.REPAIRS, "125.50", date(2024, 2, 1)
        )

        expense = await expense_service.update_expense(
            expense.id, ExpenseUpdate(amount=Decimal("130.00"), vendor="Ace Plumbing"), test_manager
        )

        assert expense.amount == Decimal("130.00")
        assert expense.vendor == "Ace Plumbing"
        assert expense.created_by == test_manager.id

    async def test_summary_by_year(self, expense_service, test_property, test_manager):
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.REPAIRS, "100.00", date(2024, 1, 5))
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.REPAIRS, "50.25", date(2024, 7, 9))
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.TAXES, "900.00", date(2024, 4, 15))
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.TAXES, "850.00", date(2023, 4, 15))

        summary = await expense_service.get_summary(test_manager, year=2024)

        assert summary["year"] == 2024
        assert summary["by_category"] == {"repairs": 150.25, "taxes": 900.0}
        assert summary["total"] == 1050.25

    async def test_summary_is_scoped_to_manager(self, expense_service, test_property, test_manager, other_manager):
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.HOA, "75.00", date(2024, 3, 1))

        summary = await expense_service.get_summary(other_manager, year=2024)

        assert summary == {"year": 2024, "by_category": {}, "total": 0.0}

    async def test_filters(self, expense_service, test_property, test_manager):
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.REPAIRS, "100.00",
                           date(2024, 1, 5), vendor="Ace Plumbing")
        await self._create(expense_service, test_property, test_manager, ExpenseCategory.UTILITIES, "60.00",
                           date(2024, 2, 5), vendor="City Water")

        expenses, total = await expense_service.list_expenses(
            test_manager, ExpenseFilters(category=ExpenseCategory.UTILITIES)
        )
        assert total == 1
        assert expenses[0].vendor == "City Water"

        expenses, total = await expense_service.list_expenses(
            test_manager, ExpenseFilters(search="ace")
        )
        assert total == 1
        assert expenses[0].category == ExpenseCategory.REPAIRS

    async def test_delete(self, expense_service, test_property, test_manager):
        expense = await self._create(
            expense_service, test_property, test_manager, ExpenseCategory.OTHER, "10.00", date(2024, 1, 1)
        )

        assert await expense_service.delete_expense(expense.id, test_manager) is True
        with pytest.raises(NotFoundError):
            await expense_service.get_expense(expense.id, test_manager)


class TestMaintenanceService:
    """Test maintenance requests and their notifications."""

    @pytest.fixture
    def email_service(self) -> RecordingEmailService:
        return RecordingEmailService()

    @pytest.fixture
    def maintenance_service(self, db_session, email_service) -> MaintenanceService:
        return MaintenanceService(db_session, email_service=email_service)

    async def test_tenant_files_request(
        self, db_session, maintenance_service, email_service, test_unit, test_assignment, test_tenant, test_manager
    ):
        request = await maintenance_service.create_request(
            MaintenanceRequestCreate(
                unit_id=str(test_unit.id),
                title="Leaking faucet",
                description="Kitchen tap drips",
                priority=MaintenancePriority.HIGH
            ),
            test_tenant
        )

        assert request.status == MaintenanceStatus.PENDING
        assert email_service.sent[0][0] == test_manager.email
        assert email_service.sent[0][1] == "maintenance_created"

        notifications = await NotificationService(db_session).list_notifications(test_manager)
        assert [n.title for n in notifications] == ["New Maintenance Request"]

    async def test_only_assigned_tenant(self, maintenance_service, test_unit, user_repository):
        stranger = await UserFactory.create_user(user_repository, email="stranger@test.com")

        with pytest.raises(ForbiddenError):
            await maintenance_service.create_request(
                MaintenanceRequestCreate(unit_id=str(test_unit.id), title="Noise", description="Loud"),
                stranger
            )

    async def test_managers_cannot_file(self, maintenance_service, test_unit, test_manager):
        with pytest.raises(InsufficientPermissionsError):
            await maintenance_service.create_request(
                MaintenanceRequestCreate(unit_id=str(test_unit.id), title="Noise", description="Loud"),
                test_manager
            )

    async def test_status_change_notifies_tenant(
        self, db_session, maintenance_service, email_service, test_unit, test_assignment, test_tenant, test_manager
    ):
        request = await maintenance_service.create_request(
            MaintenanceRequestCreate(unit_id=str(test_unit.id), title="Leaking faucet", description="Drips"),
            test_tenant
        )

        request = await maintenance_service.update_request(
            request.id, MaintenanceRequestUpdate(status=MaintenanceStatus.COMPLETED), test_manager
        )

        assert request.completed_at is not None
        assert email_service.sent[-1][1] == "maintenance_status_changed"
        notifications = await NotificationService(db_session).list_notifications(test_tenant)
        assert notifications[0].message == "\"Leaking faucet\" is now Completed."

    async def test_tenant_sees_only_own_requests(
        self, maintenance_service, test_unit, test_assignment, test_tenant, test_manager
    ):
        await maintenance_service.create_request(
            MaintenanceRequestCreate(unit_id=str(test_unit.id), title="Leaking faucet", description="Drips"),
            test_tenant
        )

        requests, total = await maintenance_service.list_requests(test_tenant)
        assert total == 1
        requests, total = await maintenance_service.list_requests(test_manager)
        assert total == 1


class TestNotificationService:
    """Test in-app notifications."""

    async def test_mark_read(self, db_session, test_tenant):
        service = NotificationService(db_session)
        first = await service.notify(test_tenant.id, "Hello", "First")
        await service.notify(test_tenant.id, "Hello again", "Second")

        assert await service.get_unread_count(test_tenant) == 2

        notification = await service.mark_read(first.id, test_tenant)
        assert notification.read_at is not None
        assert await service.get_unread_count(test_tenant) == 1

        assert await service.mark_all_read(test_tenant) == 1
        assert await service.get_unread_count(test_tenant) == 0

    async def test_cannot_read_others(self, db_session, test_tenant, test_manager):
        service = NotificationService(db_session)
        notification = await service.notify(test_manager.id, "Private", "For the manager")

        with pytest.raises((NotFoundError, ForbiddenError)):
            await service.mark_read(notification.id, test_tenant)
