"""
Dashboard and health endpoints for API v1.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.services.dashboard_service import DashboardService


router = APIRouter()


@router.get("/dashboard/overview")
async def portal_overview(
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    """Statistics of every department gathered concurrently.

    A department whose statistics fail is reported with zeroed counts
    and ``down`` in ``system_health``.
    """
    return await DashboardService.portal_overview()


@router.get("/dashboard/cemetery")
async def cemetery_dashboard(
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    return await DashboardService.cemetery_dashboard()


@router.get("/health")
async def health() -> JSONResponse:
    """Database reachability; 503 when the database cannot be queried."""
    result = await DashboardService.health()
    return JSONResponse(status_code=200 if result["status"] == "healthy" else 503, content=result)
