"""
Cemetery section endpoints for API v1.

Sections divide a cemetery; names are unique within their cemetery
regardless of case.  A section can only be deleted once it holds no
blocks or plots.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.cemetery import SectionCreate, SectionRead, SectionUpdate
from civic_portal_api.app.services.cemetery_service import SectionService


router = APIRouter()


@router.post("/", response_model=SectionRead, status_code=status.HTTP_201_CREATED)
async def create_section(
    section: SectionCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> SectionRead:
    try:
        return await SectionService.create_section(section, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=List[SectionRead])
async def list_sections(cemetery_id: Optional[int] = Query(None)) -> List[SectionRead]:
    return await SectionService.list_sections(cemetery_id=cemetery_id)


@router.get("/{section_id}", response_model=SectionRead)
async def get_section(section_id: int) -> SectionRead:
    try:
        return await SectionService.get_section(section_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{section_id}", response_model=SectionRead)
async def update_section(
    section_id: int,
    updates: SectionUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> SectionRead:
    try:
        return await SectionService.update_section(section_id, updates.model_dump(exclude_unset=True, exclude_none=True), current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{section_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_section(
    section_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> None:
    try:
        await SectionService.delete_section(section_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return None
