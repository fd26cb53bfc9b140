"""
Parks and recreation endpoints for API v1.

Amenities and reservation requests are public; reviewing, payment
recording and check-in at the gate are staff operations.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from civic_portal_api.app.core.db import ROLE_ADMIN, ROLE_EMPLOYEE
from civic_portal_api.app.core.security import require_roles
from civic_portal_api.app.schemas.parks import (
    AmenityAvailability,
    AmenityAvailabilityCheck,
    AmenityCreate,
    AmenityRead,
    AmenityUpdate,
    ReservationCreate,
    ReservationPaymentUpdate,
    ReservationRead,
    ReservationStatusUpdate,
)
from civic_portal_api.app.services.parks_service import AmenityService, ReservationService


router = APIRouter()


@router.get("/amenities", response_model=List[AmenityRead])
async def list_amenities(
    amenity_type: Optional[str] = Query(None, alias="type"),
    is_active: Optional[bool] = Query(None),
) -> List[AmenityRead]:
    return await AmenityService.list_amenities(amenity_type=amenity_type, is_active=is_active)


@router.post("/amenities", response_model=AmenityRead, status_code=status.HTTP_201_CREATED)
async def create_amenity(
    amenity: AmenityCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> AmenityRead:
    return await AmenityService.create_amenity(amenity)


@router.get("/amenities/{amenity_id}", response_model=AmenityRead)
async def get_amenity(amenity_id: int) -> AmenityRead:
    """Amenity with its upcoming approved and checked-in reservations."""
    try:
        return await AmenityService.get_amenity(amenity_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/amenities/{amenity_id}", response_model=AmenityRead)
async def update_amenity(
    amenity_id: int,
    updates: AmenityUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> AmenityRead:
    try:
        return await AmenityService.update_amenity(amenity_id, updates)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/amenities/{amenity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_amenity(
    amenity_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> None:
    """Remove an amenity; refused while reservations still hold its slots."""
    try:
        await AmenityService.delete_amenity(amenity_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return None


@router.post("/amenities/{amenity_id}/check-availability", response_model=AmenityAvailability)
async def check_amenity_availability(amenity_id: int, slot: AmenityAvailabilityCheck) -> AmenityAvailability:
    try:
        return await AmenityService.check_availability(amenity_id, slot)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/reservations", response_model=List[ReservationRead])
async def list_reservations(
    status_filter: Optional[str] = Query(None, alias="status"),
    reservation_date: Optional[date] = Query(None, alias="date"),
    amenity_id: Optional[int] = Query(None),
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> List[ReservationRead]:
    return await ReservationService.list_reservations(
        status=status_filter, reservation_date=reservation_date, amenity_id=amenity_id
    )


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(reservation: ReservationCreate) -> ReservationRead:
    """Request a time slot; overlapping an active booking returns 400."""
    try:
        return await ReservationService.create_reservation(reservation)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.get("/reservations/stats")
async def reservation_stats(
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> Dict[str, Any]:
    return await ReservationService.dashboard_stats()


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(reservation_id: int) -> ReservationRead:
    try:
        return await ReservationService.get_reservation(reservation_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/reservations/{reservation_id}/status", response_model=ReservationRead)
async def update_reservation_status(
    reservation_id: int,
    update: ReservationStatusUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> ReservationRead:
    try:
        return await ReservationService.update_status(reservation_id, update, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.put("/reservations/{reservation_id}/payment", response_model=ReservationRead)
async def update_reservation_payment(
    reservation_id: int,
    update: ReservationPaymentUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> ReservationRead:
    try:
        return await ReservationService.update_payment(reservation_id, update)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/reservations/{reservation_id}/check-in", response_model=ReservationRead)
async def check_in_reservation(
    reservation_id: int,
    current_user: dict = Depends(require_roles(ROLE_ADMIN, ROLE_EMPLOYEE)),
) -> ReservationRead:
    """Admit an approved reservation; a QR code works only once."""
    try:
        return await ReservationService.check_in(reservation_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(reservation_id: int) -> ReservationRead:
    try:
        return await ReservationService.cancel(reservation_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
