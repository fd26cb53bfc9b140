"""
Audit log endpoints for API v1.

Administrators can review who created, changed or overrode records
(permit overrides, burial assignments, cascade deletes and so on).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.services.audit_service import AuditService

router = APIRouter()


@router.get("/logs")
async def list_audit_logs(
    user_id: Optional[int] = Query(None, description="Filter by acting user ID"),
    object_type: Optional[str] = Query(None, description="permit, plot, amenity_reservation, facility_request, ..."),
    object_id: Optional[int] = Query(None, description="Filter by the affected record's ID"),
    action: Optional[str] = Query(None, description="Filter by action (create, update, PERMIT_OVERRIDE_APPROVE, ...)"),
    start_date: Optional[str] = Query(None, description="Start date (ISO format) for filtering"),
    end_date: Optional[str] = Query(None, description="End date (ISO format) for filtering"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of logs to return"),
    offset: int = Query(0, ge=0, description="Number of logs to skip"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> List[dict]:
    """Audit records, newest first (administrators only)."""
    try:
        return await AuditService.list_logs(
            user_id=user_id,
            object_type=object_type,
            object_id=object_id,
            action=action,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/logs/{object_type}/{object_id}")
async def record_trail(
    object_type: str,
    object_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> List[dict]:
    """History of one record, oldest first."""
    try:
        return await AuditService.trail(object_type, object_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
