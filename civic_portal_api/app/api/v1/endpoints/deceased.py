"""
Deceased record endpoints for API v1.

Records are created by staff, usually together with the burial through
``POST /deceased/burial-assignment`` which registers the person and
places them in a plot layer in one transaction.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.deceased import (
    BurialAssignmentCreate,
    BurialAssignmentRead,
    DeceasedCreate,
    DeceasedRead,
    DeceasedUpdate,
)
from civic_portal_api.app.services.deceased_service import DeceasedService
from civic_portal_api.app.services.plot_service import PlotService


router = APIRouter()


@router.post("/", response_model=DeceasedRead, status_code=status.HTTP_201_CREATED)
async def create_deceased(
    record: DeceasedCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> DeceasedRead:
    try:
        return await DeceasedService.create_deceased(record, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/burial-assignment", response_model=BurialAssignmentRead, status_code=status.HTTP_201_CREATED)
async def create_burial_assignment(
    burial: BurialAssignmentCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BurialAssignmentRead:
    """Register a deceased person and assign them to a plot layer.

    Nothing is written when the plot is blocked, the layer is taken or
    the referenced permit does not exist.
    """
    try:
        return await PlotService.burial_assignment(burial, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=List[DeceasedRead])
async def list_deceased(
    name: Optional[str] = Query(None, description="Substring of first, middle or last name"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> List[DeceasedRead]:
    return await DeceasedService.list_deceased(name=name, limit=limit, offset=offset)


@router.get("/{deceased_id}", response_model=DeceasedRead)
async def get_deceased(deceased_id: int) -> DeceasedRead:
    try:
        return await DeceasedService.get_deceased(deceased_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{deceased_id}", response_model=DeceasedRead)
async def update_deceased(
    deceased_id: int,
    updates: DeceasedUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> DeceasedRead:
    try:
        return await DeceasedService.update_deceased(deceased_id, updates.model_dump(exclude_unset=True, exclude_none=True), current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{deceased_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deceased(
    deceased_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> None:
    try:
        await DeceasedService.delete_deceased(deceased_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return None
