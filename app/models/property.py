"""
Property, unit and tenant-assignment models.
A property belongs to a property manager and contains units; tenants are assigned to units.
"""

from sqlalchemy import String, Integer, Numeric, Date, Enum as SQLEnum, Index, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base, isoformat
from datetime import date
from decimal import Decimal
import enum
import uuid
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.user import User


class PropertyType(str, enum.Enum):
    """Kind of building."""
    APARTMENT = "apartment"
    HOUSE = "house"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"
    COMMERCIAL = "commercial"
    OTHER = "other"


class UnitStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class AssignmentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Property(Base):
    """
    Rental property managed by a property manager.
    """

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)

    property_type: Mapped[PropertyType] = mapped_column(
        SQLEnum(PropertyType),
        nullable=False,
        default=PropertyType.APARTMENT
    )

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User who created the property"
    )

    property_manager_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Property manager who owns this property"
    )

    manager: Mapped["User"] = relationship(
        "User",
        back_populates="properties",
        foreign_keys=[property_manager_id],
        lazy="noload"
    )

    units: Mapped[List["Unit"]] = relationship(
        "Unit",
        back_populates="property_rel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="noload",
        order_by="Unit.unit_number"
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name})>"

    def to_dict(self, unit_count: Optional[int] = None) -> dict:
        """
        Convert property to dictionary.

        Args:
            unit_count: Optional precomputed number of units

        Returns:
            Dictionary representation of property
        """
        result = {
            "id": str(self.id),
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "property_type": self.property_type.value,
            "created_by": str(self.created_by),
            "property_manager_id": str(self.property_manager_id),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if unit_count is not None:
            result["unit_count"] = unit_count
        return result


class Unit(Base):
    """Rentable unit inside a property."""

    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("property_id", "unit_number", name="uq_units_property_unit_number"),
    )

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    unit_number: Mapped[str] = mapped_column(String(50), nullable=False)
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bathrooms: Mapped[Decimal] = mapped_column(Numeric(precision=3, scale=1), nullable=False, default=Decimal("1"))
    square_feet: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)

    status: Mapped[UnitStatus] = mapped_column(
        SQLEnum(UnitStatus),
        nullable=False,
        default=UnitStatus.AVAILABLE,
        index=True
    )

    property_rel: Mapped["Property"] = relationship("Property", back_populates="units", lazy="noload")

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, unit_number={self.unit_number}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "property_id": str(self.property_id),
            "unit_number": self.unit_number,
            "bedrooms": self.bedrooms,
            "bathrooms": float(self.bathrooms),
            "square_feet": self.square_feet,
            "rent_amount": float(self.rent_amount),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class TenantUnit(Base):
    """Assignment of a tenant to a unit for a lease period."""

    __tablename__ = "tenant_units"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    lease_start: Mapped[date] = mapped_column(Date, nullable=False)
    lease_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)

    status: Mapped[AssignmentStatus] = mapped_column(
        SQLEnum(AssignmentStatus),
        nullable=False,
        default=AssignmentStatus.ACTIVE
    )

    tenant: Mapped["User"] = relationship("User", foreign_keys=[tenant_id], lazy="noload")
    unit: Mapped["Unit"] = relationship("Unit", lazy="noload")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "unit_id": str(self.unit_id),
            "lease_start": isoformat(self.lease_start),
            "lease_end": isoformat(self.lease_end),
            "rent_amount": float(self.rent_amount),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# Lookup of a unit's current tenant, used by checkout and maintenance flows
tenant_units_active_index = Index(
    "idx_tenant_units_unit_status",
    TenantUnit.unit_id,
    TenantUnit.status
)
