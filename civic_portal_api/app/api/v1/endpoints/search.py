"""
Burial search endpoints for API v1.

Public: anyone may look up where a person is buried.
"""

from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from civic_portal_api.app.schemas.search import AreaOccupant, SearchResponse
from civic_portal_api.app.services.search_service import SearchService


router = APIRouter()


@router.get("/", response_model=SearchResponse)
async def search_burials(query: str = Query("", description="Name of the deceased (at least 2 characters)")) -> SearchResponse:
    """Case-insensitive name search across every cemetery."""
    try:
        return await SearchService.search(query)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/occupants/{area_type}/{area_id}", response_model=List[AreaOccupant])
async def area_occupants(area_type: str, area_id: int) -> List[AreaOccupant]:
    """Active burials in a plot, block or section, newest first."""
    try:
        return await SearchService.area_occupants(area_type, area_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
