"""
Permit endpoints for API v1.

Citizens apply for burial, exhumation and cremation permits and follow
their own applications.  Staff review and advance permits through the
workflow; administrators may override it.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import get_current_user, require_roles
from civic_portal_api.app.schemas.permit import PermitCreate, PermitOverride, PermitRead, PermitStatusUpdate
from civic_portal_api.app.services.permit_service import PermitService


router = APIRouter()


@router.post("/", response_model=PermitRead, status_code=status.HTTP_201_CREATED)
async def create_permit(
    permit: PermitCreate,
    current_user: dict = Depends(get_current_user),
) -> PermitRead:
    """Submit a permit application for an existing deceased record."""
    try:
        return await PermitService.create_permit(permit, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=List[PermitRead])
async def list_permits(
    permit_type: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    deceased_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> List[PermitRead]:
    return await PermitService.list_permits(
        permit_type=permit_type,
        status=status_filter,
        deceased_id=deceased_id,
        limit=limit,
        offset=offset,
    )


@router.get("/mine", response_model=List[PermitRead])
async def list_my_permits(current_user: dict = Depends(get_current_user)) -> List[PermitRead]:
    """Applications submitted by the authenticated user."""
    if current_user.get("user_id") is None:
        return []
    return await PermitService.list_permits(applicant_id=current_user["user_id"])


@router.get("/statistics")
async def permit_statistics(
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    return await PermitService.statistics()


@router.get("/{permit_id}", response_model=PermitRead)
async def get_permit(permit_id: int, current_user: dict = Depends(get_current_user)) -> PermitRead:
    """A permit; citizens may only read their own applications."""
    try:
        permit = await PermitService.get_permit(permit_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    is_staff = current_user.get("role_id") in (ROLE_ADMIN, ROLE_EMPLOYEE)
    if not is_staff and permit.applicant_id != current_user.get("user_id"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return permit


@router.put("/{permit_id}/status", response_model=PermitRead)
async def update_permit_status(
    permit_id: int,
    update: PermitStatusUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PermitRead:
    try:
        return await PermitService.update_status(permit_id, update, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/{permit_id}/override", response_model=PermitRead)
async def override_permit(
    permit_id: int,
    override: PermitOverride,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> PermitRead:
    """Administrator override; the reason is stored in the audit log."""
    try:
        return await PermitService.override(permit_id, override, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
