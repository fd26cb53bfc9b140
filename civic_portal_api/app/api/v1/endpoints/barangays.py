"""
Barangay endpoints for API v1.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.water import BarangayCreate, BarangayRead, BarangayUpdate
from civic_portal_api.app.services.water_service import BarangayService


router = APIRouter()


@router.get("/", response_model=List[BarangayRead])
async def list_barangays(
    district: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
) -> List[BarangayRead]:
    return await BarangayService.list_barangays(district=district, search=search)


@router.post("/", response_model=BarangayRead, status_code=status.HTTP_201_CREATED)
async def create_barangay(
    barangay: BarangayCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BarangayRead:
    try:
        return await BarangayService.create_barangay(barangay)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/{barangay_id}", response_model=BarangayRead)
async def get_barangay(barangay_id: int) -> BarangayRead:
    try:
        return await BarangayService.get_barangay(barangay_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{barangay_id}", response_model=BarangayRead)
async def update_barangay(
    barangay_id: int,
    updates: BarangayUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BarangayRead:
    try:
        return await BarangayService.update_barangay(barangay_id, updates)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{barangay_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_barangay(
    barangay_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> None:
    try:
        await BarangayService.delete_barangay(barangay_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return None
