"""
Tests for landlord/tenant messaging.
"""

import pytest

from app.models.user import UserRole
from app.schemas.messaging import ConversationCreate, MessageCreate
from app.services.messaging import MessagingService
from app.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from tests.conftest import UserFactory


@pytest.fixture
def messaging_service(db_session) -> MessagingService:
    return MessagingService(db_session)


class TestStartConversation:
    """Test opening conversations and participant rules."""

    async def test_manager_starts_with_tenant(self, messaging_service, test_manager, test_tenant, test_property):
        conversation = await messaging_service.start_conversation(
            ConversationCreate(participant_id=str(test_tenant.id), property_id=str(test_property.id), subject="Welcome"),
            test_manager
        )

        assert conversation.landlord_id == test_manager.id
        assert conversation.tenant_id == test_tenant.id
        assert conversation.subject == "Welcome"
        assert conversation.is_archived is False

    async def test_tenant_starts_with_manager(self, messaging_service, test_manager, test_tenant):
        conversation = await messaging_service.start_conversation(
            ConversationCreate(participant_id=str(test_manager.id)), test_tenant
        )

        assert conversation.landlord_id == test_manager.id
        assert conversation.tenant_id == test_tenant.id

    async def test_existing_conversation_is_reused(self, messaging_service, test_manager, test_tenant, test_property):
        data = ConversationCreate(participant_id=str(test_tenant.id), property_id=str(test_property.id))
        first = await messaging_service.start_conversation(data, test_manager)
        await messaging_service.archive_conversation(first.id, test_manager)

        second = await messaging_service.start_conversation(
            ConversationCreate(participant_id=str(test_manager.id), property_id=str(test_property.id)),
            test_tenant
        )

        assert second.id == first.id
        assert second.is_archived is False

    async def test_tenants_cannot_message_tenants(self, messaging_service, test_tenant, user_repository):
        other_tenant = await UserFactory.create_user(user_repository, email="neighbour@test.com")

        with pytest.raises(ValidationError) as exc_info:
            await messaging_service.start_conversation(
                ConversationCreate(participant_id=str(other_tenant.id)), test_tenant
            )
        assert exc_info.value.detail == "Tenants can only message landlords"

    async def test_landlords_cannot_message_landlords(self, messaging_service, test_manager, other_manager):
        with pytest.raises(ValidationError) as exc_info:
            await messaging_service.start_conversation(
                ConversationCreate(participant_id=str(other_manager.id)), test_manager
            )
        assert exc_info.value.detail == "Landlords can only message tenants"

    async def test_cannot_message_yourself(self, messaging_service, test_manager):
        with pytest.raises(ValidationError):
            await messaging_service.start_conversation(
                ConversationCreate(participant_id=str(test_manager.id)), test_manager
            )

    async def test_inactive_participant(self, messaging_service, test_manager, user_repository):
        inactive = await UserFactory.create_user(user_repository, email="gone@test.com", is_active=False)

        with pytest.raises(NotFoundError):
            await messaging_service.start_conversation(
                ConversationCreate(participant_id=str(inactive.id)), test_manager
            )


class TestMessages:
    """Test sending, reading and unread counters."""

    @pytest.fixture
    async def conversation(self, messaging_service, test_manager, test_tenant):
        return await messaging_service.start_conversation(
            ConversationCreate(participant_id=str(test_tenant.id)), test_manager
        )

    async def test_send_updates_preview_and_unread(self, messaging_service, conversation, test_manager, test_tenant):
        await messaging_service.send_message(conversation.id, MessageCreate(content="Rent is due Friday"), test_manager)
        await messaging_service.send_message(conversation.id, MessageCreate(content="Thanks!"), test_manager)

        conversation = await messaging_service.get_conversation(conversation.id, test_tenant)
        assert conversation.tenant_unread_count == 2
        assert conversation.landlord_unread_count == 0
        assert conversation.last_message_preview == "Thanks!"
        assert await messaging_service.get_unread_count(test_tenant) == 2
        assert await messaging_service.get_unread_count(test_manager) == 0

    async def test_preview_is_truncated(self, messaging_service, conversation, test_tenant):
        await messaging_service.send_message(conversation.id, MessageCreate(content="x" * 250), test_tenant)

        conversation = await messaging_service.get_conversation(conversation.id, test_tenant)
        assert len(conversation.last_message_preview) == 100

    async def test_mark_read(self, messaging_service, conversation, test_manager, test_tenant):
        await messaging_service.send_message(conversation.id, MessageCreate(content="Hello"), test_manager)
        await messaging_service.send_message(conversation.id, MessageCreate(content="Hi back"), test_tenant)

        marked = await messaging_service.mark_messages_read(conversation.id, test_tenant)

        assert marked == 1
        assert await messaging_service.get_unread_count(test_tenant) == 0
        assert await messaging_service.get_unread_count(test_manager) == 1

        messages = await messaging_service.list_messages(conversation.id, test_tenant)
        by_content = {m.content: m for m in messages}
        assert by_content["Hello"].read_at is not None
        assert by_content["Hi back"].read_at is None

    async def test_archived_conversations_are_hidden(self, messaging_service, conversation, test_manager):
        await messaging_service.archive_conversation(conversation.id, test_manager)

        assert await messaging_service.list_conversations(test_manager) == []
        archived = await messaging_service.list_conversations(test_manager, include_archived=True)
        assert [c.id for c in archived] == [conversation.id]

    async def test_outsiders_cannot_read(self, messaging_service, conversation, other_manager):
        with pytest.raises(ForbiddenError):
            await messaging_service.list_messages(conversation.id, other_manager)

    async def test_empty_message_rejected(self):
        with pytest.raises(ValueError):
            MessageCreate(content="   ")

    async def test_admin_counts_as_landlord(self, messaging_service, test_admin, test_tenant):
        assert test_admin.role == UserRole.ADMIN
        conversation = await messaging_service.start_conversation(
            ConversationCreate(participant_id=str(test_tenant.id)), test_admin
        )
        assert conversation.landlord_id == test_admin.id
