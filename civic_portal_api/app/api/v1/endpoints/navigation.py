"""
Navigation endpoints for API v1.

``GET /navigation/plots/{plot_id}`` returns the plot position and, when
the visitor's ``lat``/``lng`` are given, the straight-line distance and
walking time.  ``POST /navigation/route`` asks the routing provider for
directions and falls back to a straight line with Google Maps links.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from civic_portal_api.app.schemas.navigation import PlotNavigation, RouteRequest, RouteResponse
from civic_portal_api.app.services.navigation_service import NavigationService


router = APIRouter()


@router.get("/plots/{plot_id}", response_model=PlotNavigation)
async def plot_navigation(
    plot_id: int,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
) -> PlotNavigation:
    try:
        return await NavigationService.plot_navigation(plot_id, lat=lat, lng=lng)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/route", response_model=RouteResponse)
async def route(request: RouteRequest) -> RouteResponse:
    """Route between two ``[lng, lat]`` points."""
    return await NavigationService.route(request.start, request.end, request.profile)
