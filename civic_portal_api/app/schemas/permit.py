"""
Pydantic models for burial, exhumation and cremation permits.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class PermitCreate(BaseModel):
    """Citizen application for a permit tied to a deceased record.

    The scheduling details (requested date/time, plot preference,
    special requests, contact person) are kept in the permit remarks.
    """

    permit_type: str = Field(..., examples=["BURIAL", "EXHUMATION", "CREMATION"])
    deceased_id: int
    plot_id: Optional[int] = None
    applicant_name: str = Field(..., min_length=1, examples=["Maria Dela Cruz"])
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    relationship_to_deceased: Optional[str] = Field(None, examples=["Daughter"])
    requested_date: Optional[date] = None
    requested_time: Optional[str] = Field(None, examples=["09:00"])
    plot_preference: Optional[str] = None
    special_requests: Optional[str] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None
    remarks: Optional[str] = None


class PermitRead(BaseModel):
    id: int
    permit_number: str
    permit_type: str
    deceased_id: int
    deceased_name: Optional[str] = None
    plot_id: Optional[int] = None
    applicant_id: Optional[int] = None
    applicant_name: str
    applicant_email: Optional[str] = None
    applicant_phone: Optional[str] = None
    relationship_to_deceased: Optional[str] = None
    status: str
    fee_amount: float
    fee_waived: bool = False
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    pickup_status: Optional[str] = None
    issued_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PermitStatusUpdate(BaseModel):
    status: str = Field(..., examples=["FOR_PAYMENT"])
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None


class PermitOverride(BaseModel):
    """Administrative override of the normal permit workflow."""

    action: str = Field(..., examples=["approve", "reject", "waive_fee", "adjust_fee", "reset_status"])
    reason: str = Field(..., min_length=1)
    new_fee: Optional[float] = Field(None, ge=0)
