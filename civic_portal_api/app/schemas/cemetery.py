"""
Pydantic models for cemeteries, sections and blocks.

Boundaries are polygons expressed as lists of ``[lat, lng]`` pairs.
Prices on the cemetery are the defaults copied onto newly created plots.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


Polygon = List[List[float]]


class CemeteryBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Bagbag Public Cemetery"])
    description: Optional[str] = None
    address: Optional[str] = Field(None, examples=["Quirino Highway, Novaliches"])
    city: Optional[str] = Field(None, examples=["Quezon City"])
    postal_code: Optional[str] = None
    established_date: Optional[date] = None
    total_area: Optional[float] = Field(None, ge=0, description="Area in square metres")
    boundary: Optional[Polygon] = None
    standard_price: float = Field(5000, ge=0)
    large_price: float = Field(8000, ge=0)
    family_price: float = Field(15000, ge=0)
    niche_price: float = Field(3000, ge=0)
    maintenance_fee: float = Field(500, ge=0)


class CemeteryCreate(CemeteryBase):
    """Schema for creating a cemetery."""
    pass


class CemeteryUpdate(BaseModel):
    """All fields optional; only provided fields are updated."""

    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    established_date: Optional[date] = None
    total_area: Optional[float] = None
    boundary: Optional[Polygon] = None
    standard_price: Optional[float] = None
    large_price: Optional[float] = None
    family_price: Optional[float] = None
    niche_price: Optional[float] = None
    maintenance_fee: Optional[float] = None
    is_active: Optional[bool] = None


class CemeteryRead(CemeteryBase):
    id: int
    is_active: bool = True
    center: Optional[List[float]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class CemeteryStatistics(BaseModel):
    cemetery_id: int
    total_plots: int
    vacant_plots: int
    reserved_plots: int
    occupied_plots: int
    blocked_plots: int
    total_sections: int
    total_blocks: int
    total_burials: int
    occupancy_rate: float


class SectionBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Section A"])
    description: Optional[str] = None
    capacity: int = Field(100, ge=0)
    boundary: Optional[Polygon] = None


class SectionCreate(SectionBase):
    cemetery_id: int


class SectionUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    boundary: Optional[Polygon] = None


class SectionRead(SectionBase):
    id: int
    cemetery_id: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BlockBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Block 1"])
    block_type: str = Field("STANDARD", examples=["STANDARD", "PREMIUM", "FAMILY", "NICHE"])
    capacity: int = Field(50, ge=0)
    boundary: Optional[Polygon] = None


class BlockCreate(BlockBase):
    section_id: int


class BlockUpdate(BaseModel):
    name: Optional[str] = None
    block_type: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=0)
    boundary: Optional[Polygon] = None


class BlockRead(BlockBase):
    id: int
    section_id: int
    cemetery_id: Optional[int] = None
    section_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PlotGeneration(BaseModel):
    """Grid parameters for generating plots inside a block boundary (metres)."""

    length: float = Field(2, gt=0)
    width: float = Field(1, gt=0)
    spacing: float = Field(0.5, ge=0)
