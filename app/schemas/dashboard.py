"""
Pydantic schema for the role-aware dashboard summary.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict


class DashboardResponse(BaseModel):
    role: str

    # Managers and admins
    property_count: Optional[int] = None
    unit_count: Optional[int] = None
    occupied_units: Optional[int] = None
    active_tenants: Optional[int] = None
    lease_counts: Optional[Dict[str, int]] = None
    expenses_this_year: Optional[float] = None

    # Tenants
    units: Optional[int] = None
    unread_messages: Optional[int] = None

    # Everyone
    open_maintenance: int = 0
    pending_payments: int = 0
    unread_notifications: int = Field(0, description="Unread in-app notifications")
