"""
Cemetery block endpoints for API v1.

Blocks subdivide a section.  ``generate-plots`` fills a block boundary
with a grid of rectangular plots named ``<section>-<block>-NNN``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.cemetery import BlockCreate, BlockRead, BlockUpdate, PlotGeneration
from civic_portal_api.app.services.cemetery_service import BlockService


router = APIRouter()


@router.post("/", response_model=BlockRead, status_code=status.HTTP_201_CREATED)
async def create_block(
    block: BlockCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BlockRead:
    try:
        return await BlockService.create_block(block, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=List[BlockRead])
async def list_blocks(
    section_id: Optional[int] = Query(None),
    cemetery_id: Optional[int] = Query(None),
) -> List[BlockRead]:
    return await BlockService.list_blocks(section_id=section_id, cemetery_id=cemetery_id)


@router.get("/{block_id}", response_model=BlockRead)
async def get_block(block_id: int) -> BlockRead:
    try:
        return await BlockService.get_block(block_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{block_id}", response_model=BlockRead)
async def update_block(
    block_id: int,
    updates: BlockUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BlockRead:
    try:
        return await BlockService.update_block(block_id, updates.model_dump(exclude_unset=True, exclude_none=True), current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> None:
    try:
        await BlockService.delete_block(block_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return None


@router.post("/{block_id}/generate-plots", status_code=status.HTTP_201_CREATED)
async def generate_plots(
    block_id: int,
    params: Optional[PlotGeneration] = None,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    """Create a grid of plots covering the block boundary.

    Plot numbers that already exist in the cemetery are skipped.
    """
    try:
        return await BlockService.generate_plots(block_id, params or PlotGeneration(), current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
