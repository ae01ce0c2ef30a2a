"""
Inbound webhook event store shared by the Stripe, Dwolla and Dropbox Sign receivers.
"""

from sqlalchemy import String, Text, Boolean, DateTime, JSON, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base, isoformat
from datetime import datetime
import enum
from typing import Any, Dict, Optional


class WebhookProvider(str, enum.Enum):
    STRIPE = "stripe"
    DWOLLA = "dwolla"
    DROPBOX_SIGN = "dropbox_sign"


class WebhookEvent(Base):
    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_webhook_events_provider_event"),
    )

    provider: Mapped[WebhookProvider] = mapped_column(SQLEnum(WebhookProvider), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "provider": self.provider.value,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "resource_id": self.resource_id,
            "processed": self.processed,
            "processed_at": isoformat(self.processed_at),
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }
