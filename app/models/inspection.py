"""
Property inspection models: the inspection visit and its room-by-room checklist items.
"""

from sqlalchemy import String, Text, Numeric, Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base, isoformat
from datetime import date, datetime
from decimal import Decimal
import enum
import uuid
from typing import List, Optional


class InspectionType(str, enum.Enum):
    MOVE_IN = "move_in"
    MOVE_OUT = "move_out"
    ROUTINE = "routine"
    MAINTENANCE = "maintenance"
    ANNUAL = "annual"


class InspectionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConditionRating(str, enum.Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"
    MISSING = "missing"


class Inspection(Base):
    __tablename__ = "inspections"

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    unit_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="SET NULL"),
        nullable=True
    )
    lease_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("leases.id", ondelete="SET NULL"),
        nullable=True
    )
    inspector_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    inspection_type: Mapped[InspectionType] = mapped_column(SQLEnum(InspectionType), nullable=False)
    status: Mapped[InspectionStatus] = mapped_column(
        SQLEnum(InspectionStatus),
        nullable=False,
        default=InspectionStatus.SCHEDULED,
        index=True
    )
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    overall_condition: Mapped[Optional[ConditionRating]] = mapped_column(SQLEnum(ConditionRating), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_repair_cost: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("0"))

    items: Mapped[List["InspectionItem"]] = relationship(
        "InspectionItem",
        back_populates="inspection",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="InspectionItem.created_at"
    )

    def to_dict(self, include_items: bool = False) -> dict:
        result = {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "unit_id": str(self.unit_id) if self.unit_id else None,
            "lease_id": str(self.lease_id) if self.lease_id else None,
            "inspector_id": str(self.inspector_id),
            "inspection_type": self.inspection_type.value,
            "status": self.status.value,
            "scheduled_date": isoformat(self.scheduled_date),
            "completed_date": isoformat(self.completed_date),
            "overall_condition": self.overall_condition.value if self.overall_condition else None,
            "notes": self.notes,
            "total_repair_cost": float(self.total_repair_cost),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_items:
            result["items"] = [item.to_dict() for item in self.items]
        return result


class InspectionItem(Base):
    __tablename__ = "inspection_items"

    inspection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room: Mapped[str] = mapped_column(String(100), nullable=False)
    item: Mapped[str] = mapped_column(String(100), nullable=False)
    condition: Mapped[ConditionRating] = mapped_column(SQLEnum(ConditionRating), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_repair_cost: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, default=Decimal("0"))
    charge_to_tenant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    inspection: Mapped["Inspection"] = relationship("Inspection", back_populates="items", lazy="noload")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "inspection_id": str(self.inspection_id),
            "room": self.room,
            "item": self.item,
            "condition": self.condition.value,
            "notes": self.notes,
            "estimated_repair_cost": float(self.estimated_repair_cost),
            "charge_to_tenant": self.charge_to_tenant,
        }
