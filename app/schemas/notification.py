"""
Pydantic schemas for in-app notifications and templated email.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    marked_read: int


class EmailSendRequest(BaseModel):
    """Send one templated email through Resend."""

    to: EmailStr
    template: str = Field(..., examples=["maintenance_created"])
    data: Dict[str, Any] = Field(default_factory=dict, description="Template variables")


class EmailSendResponse(BaseModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
