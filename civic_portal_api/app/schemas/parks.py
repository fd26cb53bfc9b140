"""
Pydantic models for park amenities and their reservations.
"""

from datetime import date, time
from typing import List, Optional

from pydantic import BaseModel, Field


class AmenityBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Pavilion 1"])
    amenity_type: str = Field(..., examples=["PAVILION", "COTTAGE", "COURT"])
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    hourly_rate: float = Field(0, ge=0)
    daily_rate: float = Field(0, ge=0)


class AmenityCreate(AmenityBase):
    pass


class AmenityUpdate(BaseModel):
    name: Optional[str] = None
    amenity_type: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)
    daily_rate: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ReservationCreate(BaseModel):
    amenity_id: int
    requester_name: str = Field(..., min_length=1)
    requester_email: Optional[str] = None
    requester_contact: Optional[str] = None
    reservation_date: date
    start_time: time = Field(..., examples=["09:00"])
    end_time: time = Field(..., examples=["17:00"])
    guest_count: Optional[int] = Field(None, ge=1)
    purpose: Optional[str] = None


class ReservationRead(BaseModel):
    id: int
    booking_code: str
    amenity_id: int
    amenity_name: Optional[str] = None
    requester_name: str
    requester_email: Optional[str] = None
    requester_contact: Optional[str] = None
    reservation_date: date
    start_time: str
    end_time: str
    guest_count: Optional[int] = None
    purpose: Optional[str] = None
    status: str
    total_amount: float
    payment_status: str
    hold_expires_at: Optional[str] = None
    payment_due_at: Optional[str] = None
    paid_at: Optional[str] = None
    qr_payload: Optional[dict] = None
    qr_used_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[str] = None
    approved_at: Optional[str] = None
    checked_in_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    created_at: Optional[str] = None


class AmenityRead(AmenityBase):
    id: int
    is_active: bool = True
    upcoming_reservations: List[ReservationRead] = []
    created_at: Optional[str] = None


class ReservationStatusUpdate(BaseModel):
    status: str = Field(..., examples=["AWAITING_PAYMENT", "APPROVED", "REJECTED"])
    rejection_reason: Optional[str] = None


class ReservationPaymentUpdate(BaseModel):
    payment_status: str = Field(..., examples=["PAID", "EXEMPTED"])


class AmenityAvailabilityCheck(BaseModel):
    reservation_date: date
    start_time: time = Field(..., examples=["09:00"])
    end_time: time = Field(..., examples=["12:00"])


class AmenityAvailability(BaseModel):
    available: bool
    conflicts: List[ReservationRead] = []
