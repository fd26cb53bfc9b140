"""
Facility management endpoints for API v1.

Citizens check availability, submit reservation requests, look up
their requests and cancel them; staff manage facilities, blackout
periods and the review workflow.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.facility import (
    AvailabilityRead,
    BlackoutCreate,
    BlackoutRead,
    FacilityCreate,
    FacilityRead,
    FacilityRequestCancel,
    FacilityRequestCreate,
    FacilityRequestRead,
    FacilityRequestStatusUpdate,
    FacilityUpdate,
    StatusHistoryRead,
)
from civic_portal_api.app.services.facility_service import FacilityRequestService, FacilityService


router = APIRouter()


@router.get("/", response_model=List[FacilityRead])
async def list_facilities(include_inactive: bool = Query(False)) -> List[FacilityRead]:
    return await FacilityService.list_facilities(include_inactive=include_inactive)


@router.post("/", response_model=FacilityRead, status_code=status.HTTP_201_CREATED)
async def create_facility(
    facility: FacilityCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> FacilityRead:
    return await FacilityService.create_facility(facility)


@router.get("/availability", response_model=AvailabilityRead)
async def check_availability(
    facility_id: int = Query(...),
    start_at: datetime = Query(...),
    end_at: datetime = Query(...),
    exclude_id: Optional[int] = Query(None),
) -> AvailabilityRead:
    """Active requests and blackouts touching the range (boundaries inclusive)."""
    try:
        await FacilityService.get_facility(facility_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return await FacilityService.check_availability(facility_id, start_at, end_at, exclude_id)


@router.get("/requests", response_model=List[FacilityRequestRead])
async def list_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    facility_id: Optional[int] = Query(None),
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> List[FacilityRequestRead]:
    return await FacilityRequestService.list_requests(status=status_filter, facility_id=facility_id)


@router.post("/requests", response_model=FacilityRequestRead, status_code=status.HTTP_201_CREATED)
async def create_request(request: FacilityRequestCreate) -> FacilityRequestRead:
    try:
        return await FacilityRequestService.create_request(request)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/requests/mine", response_model=List[FacilityRequestRead])
async def my_requests(
    email: Optional[str] = Query(None),
    contact_number: Optional[str] = Query(None),
) -> List[FacilityRequestRead]:
    try:
        return await FacilityRequestService.my_requests(email=email, contact_number=contact_number)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/requests/stats")
async def request_stats(
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    return await FacilityRequestService.dashboard_stats()


@router.get("/requests/by-number/{request_number}", response_model=FacilityRequestRead)
async def get_request_by_number(request_number: str) -> FacilityRequestRead:
    try:
        return await FacilityRequestService.get_by_number(request_number)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/requests/{request_id}", response_model=FacilityRequestRead)
async def get_request(request_id: int) -> FacilityRequestRead:
    try:
        return await FacilityRequestService.get_request(request_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/requests/{request_id}/history", response_model=List[StatusHistoryRead])
async def request_history(request_id: int) -> List[StatusHistoryRead]:
    try:
        return await FacilityRequestService.history(request_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/requests/{request_id}/status", response_model=FacilityRequestRead)
async def update_request_status(
    request_id: int,
    update: FacilityRequestStatusUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> FacilityRequestRead:
    try:
        return await FacilityRequestService.update_status(request_id, update, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.put("/requests/{request_id}/cancel", response_model=FacilityRequestRead)
async def cancel_request(request_id: int, cancellation: FacilityRequestCancel) -> FacilityRequestRead:
    """Applicant cancellation; the contact number must match the request."""
    try:
        return await FacilityRequestService.cancel(request_id, cancellation)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/{facility_id}", response_model=FacilityRead)
async def get_facility(facility_id: int) -> FacilityRead:
    try:
        return await FacilityService.get_facility(facility_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/{facility_id}", response_model=FacilityRead)
async def update_facility(
    facility_id: int,
    updates: FacilityUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> FacilityRead:
    try:
        return await FacilityService.update_facility(facility_id, updates)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/{facility_id}/blackouts", response_model=List[BlackoutRead])
async def list_blackouts(facility_id: int) -> List[BlackoutRead]:
    return await FacilityService.list_blackouts(facility_id)


@router.post("/{facility_id}/blackouts", response_model=BlackoutRead, status_code=status.HTTP_201_CREATED)
async def add_blackout(
    facility_id: int,
    blackout: BlackoutCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> BlackoutRead:
    try:
        return await FacilityService.add_blackout(facility_id, blackout)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.delete("/blackouts/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blackout(
    blackout_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> None:
    try:
        await FacilityService.delete_blackout(blackout_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return None
