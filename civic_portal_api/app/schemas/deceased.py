"""
Pydantic models for deceased records, burial assignments and gravestones.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class DeceasedBase(BaseModel):
    first_name: str = Field(..., min_length=1, examples=["Juan"])
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1, examples=["Dela Cruz"])
    suffix: Optional[str] = None
    sex: Optional[str] = Field(None, examples=["MALE"])
    date_of_birth: Optional[date] = None
    date_of_death: date
    age: Optional[int] = Field(None, ge=0, description="Derived from the dates when omitted")
    place_of_death: Optional[str] = None
    residence_address: Optional[str] = None
    citizenship: str = "Filipino"
    civil_status: Optional[str] = None
    occupation: Optional[str] = None
    cause_of_death: Optional[str] = None
    burial_date: Optional[date] = None


class DeceasedCreate(DeceasedBase):
    """Schema for registering a deceased person."""
    pass


class DeceasedUpdate(BaseModel):
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    sex: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None
    age: Optional[int] = Field(None, ge=0)
    place_of_death: Optional[str] = None
    residence_address: Optional[str] = None
    citizenship: Optional[str] = None
    civil_status: Optional[str] = None
    occupation: Optional[str] = None
    cause_of_death: Optional[str] = None
    burial_date: Optional[date] = None


class DeceasedRead(DeceasedBase):
    id: int
    full_name: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class AssignmentCreate(BaseModel):
    """Assign an existing deceased record to a plot layer."""

    deceased_id: int
    layer: int = Field(1, ge=1)
    permit_id: Optional[int] = None
    notes: Optional[str] = None


class AssignmentRead(BaseModel):
    id: int
    plot_id: int
    deceased_id: int
    permit_id: Optional[int] = None
    layer: int
    status: str
    notes: Optional[str] = None
    assigned_at: Optional[str] = None
    vacated_at: Optional[str] = None
    deceased: Optional[DeceasedRead] = None


class BurialAssignmentCreate(BaseModel):
    """Register a deceased person and place them in a plot in one step."""

    plot_id: int
    layer: int = Field(1, ge=1)
    permit_id: Optional[int] = None
    notes: Optional[str] = None
    deceased: DeceasedCreate


class BurialAssignmentRead(BaseModel):
    deceased: DeceasedRead
    assignment: AssignmentRead


class GravestoneCreate(BaseModel):
    material: Optional[str] = Field(None, examples=["Granite"])
    inscription: Optional[str] = None
    condition: str = Field("GOOD", examples=["GOOD", "FAIR", "POOR"])
    installed_date: Optional[date] = None


class GravestoneRead(GravestoneCreate):
    id: int
    plot_id: int
    created_at: Optional[str] = None
