"""
Role-aware dashboard summary.
"""

from fastapi import APIRouter, Depends

from app.models.user import User
from app.services.dashboard import DashboardService
from app.schemas.dashboard import DashboardResponse
from app.schemas.error import get_auth_error_responses
from app.utils.dependencies import get_current_active_user, get_dashboard_service


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "",
    response_model=DashboardResponse,
    response_model_exclude_none=True,
    summary="Dashboard summary",
    description="Portfolio counts for managers and admins, personal counts for tenants",
    responses=get_auth_error_responses()
)
async def get_dashboard(
    current_user: User = Depends(get_current_active_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
) -> DashboardResponse:
    summary = await dashboard_service.get_summary(current_user)
    return DashboardResponse(**summary)
