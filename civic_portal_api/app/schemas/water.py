"""
Pydantic models for barangays and water / drainage service requests.

Water issues and drainage requests share the same shape; ticket
prefixes and the completion timestamps differ per service.
"""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class BarangayBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Bagbag"])
    district: Optional[str] = Field(None, examples=["District 5"])
    population: Optional[int] = Field(None, ge=0)


class BarangayCreate(BarangayBase):
    pass


class BarangayUpdate(BaseModel):
    name: Optional[str] = None
    district: Optional[str] = None
    population: Optional[int] = Field(None, ge=0)


class BarangayRead(BarangayBase):
    id: int
    created_at: Optional[str] = None


class ServiceRequestCreate(BaseModel):
    reporter_name: str = Field(..., min_length=1)
    contact_number: Optional[str] = None
    email: Optional[str] = None
    account_number: Optional[str] = None
    issue_type: str = Field(..., examples=["no-water", "clogged-drain"])
    description: str = Field(..., min_length=1)
    location: Optional[str] = None
    barangay: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    priority: Optional[str] = Field(None, examples=["LOW", "MEDIUM", "HIGH", "URGENT"])
    photos: List[str] = []


class ServiceRequestUpdate(BaseModel):
    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_staff_id: Optional[int] = None
    assigned_staff_name: Optional[str] = None
    scheduled_date: Optional[date] = None
    resolution_notes: Optional[str] = None
    admin_notes: Optional[str] = None


class StatusUpdateCreate(BaseModel):
    status: str
    description: Optional[str] = None
    photos: List[str] = []
    updated_by: Optional[str] = None
    updated_by_role: str = "staff"


class StatusUpdateRead(StatusUpdateCreate):
    id: int
    request_id: int
    created_at: Optional[str] = None


class ServiceRequestRead(BaseModel):
    id: int
    ticket_number: str
    reporter_name: str
    contact_number: Optional[str] = None
    email: Optional[str] = None
    account_number: Optional[str] = None
    issue_type: str
    description: str
    location: Optional[str] = None
    barangay: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    priority: str
    status: str
    photos: List[str] = []
    assigned_staff_id: Optional[int] = None
    assigned_staff_name: Optional[str] = None
    assigned_at: Optional[str] = None
    scheduled_date: Optional[str] = None
    resolution_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    resolved_at: Optional[str] = None
    closed_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    updates: List[StatusUpdateRead] = []


class ServiceRequestPage(BaseModel):
    items: List[ServiceRequestRead]
    total: int
    page: int
    limit: int
    pages: int


class DrainageSummary(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_issue_type: Dict[str, int]
    by_barangay: Dict[str, int]
    by_priority: Dict[str, int]
