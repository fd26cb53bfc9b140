"""
Cemetery endpoints for API v1.

Public clients may read cemeteries, their nested structure, statistics
and map layers.  Creating, editing and deleting cemeteries requires the
staff roles; the cascading delete is reserved for administrators.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.cemetery import (
    CemeteryCreate,
    CemeteryRead,
    CemeteryStatistics,
    CemeteryUpdate,
)
from civic_portal_api.app.services.cemetery_service import CemeteryService


router = APIRouter()


@router.post("/", response_model=CemeteryRead, status_code=status.HTTP_201_CREATED)
async def create_cemetery(
    cemetery: CemeteryCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> CemeteryRead:
    """Register a cemetery.

    When ``total_area`` is omitted it is estimated from the boundary
    polygon.
    """
    try:
        return await CemeteryService.create_cemetery(cemetery, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=List[CemeteryRead])
async def list_cemeteries(include_inactive: bool = Query(False)) -> List[CemeteryRead]:
    return await CemeteryService.list_cemeteries(include_inactive=include_inactive)


@router.get("/{cemetery_id}", response_model=CemeteryRead)
async def get_cemetery(cemetery_id: int) -> CemeteryRead:
    try:
        return await CemeteryService.get_cemetery(cemetery_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/{cemetery_id}/structure")
async def get_cemetery_structure(cemetery_id: int) -> Dict[str, Any]:
    """Sections with their blocks and plots, plus plots outside any block."""
    try:
        return await CemeteryService.structure(cemetery_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/{cemetery_id}/statistics", response_model=CemeteryStatistics)
async def get_cemetery_statistics(cemetery_id: int) -> CemeteryStatistics:
    try:
        return await CemeteryService.statistics(cemetery_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/{cemetery_id}/map")
async def get_cemetery_map(cemetery_id: int) -> Dict[str, Any]:
    """Map layers: cemetery outline, colored sections and status-colored plots."""
    try:
        return await CemeteryService.map_layers(cemetery_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{cemetery_id}", response_model=CemeteryRead)
async def update_cemetery(
    cemetery_id: int,
    updates: CemeteryUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> CemeteryRead:
    update_dict = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
    try:
        return await CemeteryService.update_cemetery(cemetery_id, update_dict, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{cemetery_id}")
async def delete_cemetery(
    cemetery_id: int,
    cascade: bool = Query(False, description="Also delete sections, blocks, plots and burial records"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> Dict[str, Any]:
    """Delete a cemetery (administrators only).

    Without ``cascade`` the cemetery must be empty.  Returns the number
    of deleted records per kind.
    """
    try:
        deleted = await CemeteryService.delete_cemetery(cemetery_id, cascade=cascade, current_user=current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return {"message": "Cemetery deleted", "deleted": deleted}
