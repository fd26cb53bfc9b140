"""
Pydantic models for municipal facilities and their reservation requests.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FacilityBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["City Hall Auditorium"])
    facility_type: str = Field(..., examples=["AUDITORIUM", "GYMNASIUM"])
    capacity: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    location: Optional[str] = None
    hourly_rate: float = Field(0, ge=0)


class FacilityCreate(FacilityBase):
    pass


class FacilityUpdate(BaseModel):
    name: Optional[str] = None
    facility_type: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    location: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class FacilityRead(FacilityBase):
    id: int
    is_active: bool = True
    created_at: Optional[str] = None


class BlackoutCreate(BaseModel):
    start_at: datetime
    end_at: datetime
    reason: Optional[str] = None


class BlackoutRead(BaseModel):
    id: int
    facility_id: int
    start_at: str
    end_at: str
    reason: Optional[str] = None


class AvailabilityQuery(BaseModel):
    facility_id: int
    start_at: datetime
    end_at: datetime


class FacilityRequestCreate(BaseModel):
    facility_id: int
    applicant_name: str = Field(..., min_length=1)
    applicant_email: Optional[str] = None
    contact_number: str = Field(..., min_length=1)
    organization: Optional[str] = None
    event_type: str = Field("PRIVATE", examples=["PRIVATE", "GOVERNMENT", "COMMUNITY"])
    event_title: str = Field(..., min_length=1)
    purpose: Optional[str] = None
    expected_attendees: Optional[int] = Field(None, ge=1)
    start_at: datetime
    end_at: datetime


class FacilityRequestRead(BaseModel):
    id: int
    request_number: str
    facility_id: int
    facility_name: Optional[str] = None
    applicant_name: str
    applicant_email: Optional[str] = None
    contact_number: str
    organization: Optional[str] = None
    event_type: str
    event_title: str
    purpose: Optional[str] = None
    expected_attendees: Optional[int] = None
    start_at: str
    end_at: str
    status: str
    event_status: Optional[str] = None
    payment_amount: float
    payment_status: str
    admin_notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class StatusHistoryRead(BaseModel):
    id: int
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[str] = None
    remarks: Optional[str] = None
    changed_at: Optional[str] = None


class AvailabilityRead(BaseModel):
    available: bool
    conflicts: List[FacilityRequestRead] = []
    blackouts: List[BlackoutRead] = []


class FacilityRequestStatusUpdate(BaseModel):
    status: str = Field(..., examples=["AWAITING_PAYMENT", "APPROVED", "REJECTED"])
    remarks: Optional[str] = None
    payment_status: Optional[str] = None


class FacilityRequestCancel(BaseModel):
    contact_number: str = Field(..., min_length=1)
    reason: Optional[str] = None
