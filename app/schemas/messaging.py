"""
Pydantic schemas for landlord/tenant conversations.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from app.models.messaging import MessageType


class ConversationCreate(BaseModel):
    """
    Open (or reuse) a conversation. A landlord names the tenant; a tenant
    names the landlord.
    """

    participant_id: str = Field(..., description="The other party's user id")
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=255)


class ConversationResponse(BaseModel):
    id: str
    landlord_id: str
    tenant_id: str
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    subject: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    landlord_unread_count: int
    tenant_unread_count: int
    unread_count: Optional[int] = Field(None, description="Unread messages for the caller")
    is_archived: bool
    created_at: datetime
    updated_at: datetime


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
    message_type: MessageType = MessageType.TEXT
    attachment_url: Optional[str] = Field(None, max_length=500)
    attachment_name: Optional[str] = Field(None, max_length=255)

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    message_type: MessageType
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime


class MarkReadResponse(BaseModel):
    conversation_id: str
    marked_read: int


class UnreadCountResponse(BaseModel):
    unread_count: int
