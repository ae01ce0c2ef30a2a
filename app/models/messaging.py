"""
Landlord/tenant conversation and message models.
"""

from sqlalchemy import String, Text, Integer, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import datetime
import enum
import uuid
from typing import Optional


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class Conversation(Base):
    """
    Thread between one landlord and one tenant, optionally about a property/unit.
    Each side keeps its own unread counter.
    """

    __tablename__ = "conversations"

    landlord_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    property_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="SET NULL"),
        nullable=True
    )
    unit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="SET NULL"),
        nullable=True
    )

    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    last_message_preview: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    landlord_unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tenant_unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def is_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.landlord_id, self.tenant_id)

    def unread_count_for(self, user_id: uuid.UUID) -> int:
        if user_id == self.landlord_id:
            return self.landlord_unread_count
        if user_id == self.tenant_id:
            return self.tenant_unread_count
        return 0

    def to_dict(self, viewer_id: Optional[uuid.UUID] = None) -> dict:
        result = {
            "id": str(self.id),
            "landlord_id": str(self.landlord_id),
            "tenant_id": str(self.tenant_id),
            "property_id": str(self.property_id) if self.property_id else None,
            "unit_id": str(self.unit_id) if self.unit_id else None,
            "subject": self.subject,
            "last_message_at": isoformat(self.last_message_at),
            "last_message_preview": self.last_message_preview,
            "landlord_unread_count": self.landlord_unread_count,
            "tenant_unread_count": self.tenant_unread_count,
            "is_archived": self.is_archived,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if viewer_id is not None:
            result["unread_count"] = self.unread_count_for(viewer_id)
        return result


class Message(Base):
    __tablename__ = "messages"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(SQLEnum(MessageType), nullable=False, default=MessageType.TEXT)
    attachment_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    attachment_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "conversation_id": str(self.conversation_id),
            "sender_id": str(self.sender_id),
            "content": self.content,
            "message_type": self.message_type.value,
            "attachment_url": self.attachment_url,
            "attachment_name": self.attachment_name,
            "read_at": isoformat(self.read_at),
            "created_at": self.created_at.isoformat(),
        }
