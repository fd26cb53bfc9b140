"""
Cemetery plot endpoints for API v1.

Plots can be read by anyone; staff create, edit, reserve and assign
them.  Assigning a deceased person to a layer marks the plot occupied,
vacating the last active burial frees it again.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.deceased import AssignmentCreate, GravestoneCreate, GravestoneRead
from civic_portal_api.app.schemas.plot import (
    PlotCreate,
    PlotPage,
    PlotRead,
    PlotReservation,
    PlotStatistics,
    PlotUpdate,
)
from civic_portal_api.app.services.plot_service import PlotService


router = APIRouter()


@router.post("/", response_model=PlotRead, status_code=status.HTTP_201_CREATED)
async def create_plot(
    plot: PlotCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PlotRead:
    """Create a plot.

    ``coordinates`` may be a single ``[lat, lng]`` center or a polygon;
    a centered rectangle of the plot's length and width is derived from
    a single point.  Fees default to the cemetery's price for the size.
    """
    try:
        return await PlotService.create_plot(plot, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/", response_model=PlotPage)
async def list_plots(
    cemetery_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    block_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Plot number, code or buried person's name"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
) -> PlotPage:
    try:
        return await PlotService.list_plots(
            cemetery_id=cemetery_id,
            section_id=section_id,
            block_id=block_id,
            status=status_filter,
            search=search,
            page=page,
            limit=limit,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/statistics", response_model=PlotStatistics)
async def plot_statistics(cemetery_id: Optional[int] = Query(None)) -> PlotStatistics:
    return await PlotService.statistics(cemetery_id)


@router.get("/{plot_id}", response_model=PlotRead)
async def get_plot(plot_id: int) -> PlotRead:
    try:
        return await PlotService.get_plot(plot_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{plot_id}", response_model=PlotRead)
async def update_plot(
    plot_id: int,
    updates: PlotUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PlotRead:
    try:
        return await PlotService.update_plot(plot_id, updates.model_dump(exclude_unset=True, exclude_none=True), current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/{plot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plot(
    plot_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> None:
    try:
        await PlotService.delete_plot(plot_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return None


@router.post("/{plot_id}/reserve", response_model=PlotRead)
async def reserve_plot(
    plot_id: int,
    reservation: PlotReservation,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PlotRead:
    try:
        return await PlotService.reserve_plot(plot_id, reservation, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/{plot_id}/assign", response_model=PlotRead)
async def assign_plot(
    plot_id: int,
    assignment: AssignmentCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PlotRead:
    """Bury an existing deceased record in a layer of the plot."""
    try:
        return await PlotService.assign(plot_id, assignment, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/{plot_id}/assignments/{assignment_id}/vacate", response_model=PlotRead)
async def vacate_assignment(
    plot_id: int,
    assignment_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> PlotRead:
    try:
        return await PlotService.vacate(plot_id, assignment_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/{plot_id}/gravestones", response_model=List[GravestoneRead])
async def list_gravestones(plot_id: int) -> List[GravestoneRead]:
    try:
        return await PlotService.list_gravestones(plot_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/{plot_id}/gravestones", response_model=GravestoneRead, status_code=status.HTTP_201_CREATED)
async def add_gravestone(
    plot_id: int,
    gravestone: GravestoneCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> GravestoneRead:
    try:
        return await PlotService.add_gravestone(plot_id, gravestone, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/{plot_id}/gravestones/{gravestone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_gravestone(
    plot_id: int,
    gravestone_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> None:
    try:
        await PlotService.delete_gravestone(plot_id, gravestone_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return None
