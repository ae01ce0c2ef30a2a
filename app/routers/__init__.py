"""
API route handlers for the TenantMate API.
Provides organized routing for different API endpoints.
"""

from .auth import router as auth_router
from .properties import router as properties_router, units_router, tenants_router
from .leases import router as leases_router
from .applicants import router as applicants_router
from .inspections import router as inspections_router
from .expenses import router as expenses_router
from .messaging import router as messaging_router
from .maintenance import router as maintenance_router
from .notifications import router as notifications_router
from .payments import router as payments_router
from .connect import router as connect_router
from .ach import router as ach_router
from .webhooks import router as webhooks_router
from .dashboard import router as dashboard_router

api_routers = [
    auth_router,
    properties_router,
    units_router,
    tenants_router,
    leases_router,
    applicants_router,
    inspections_router,
    expenses_router,
    messaging_router,
    maintenance_router,
    notifications_router,
    payments_router,
    connect_router,
    ach_router,
    webhooks_router,
    dashboard_router,
]

__all__ = [
    "api_routers",
    "auth_router",
    "properties_router",
    "units_router",
    "tenants_router",
    "leases_router",
    "applicants_router",
    "inspections_router",
    "expenses_router",
    "messaging_router",
    "maintenance_router",
    "notifications_router",
    "payments_router",
    "connect_router",
    "ach_router",
    "webhooks_router",
    "dashboard_router",
]
