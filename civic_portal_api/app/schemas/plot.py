"""
Pydantic models for cemetery plots.

``coordinates`` on input may be a polygon (list of ``[lat, lng]``) or a
single ``[lat, lng]`` center; the service derives both the center and
the boundary from it.
"""

from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .deceased import AssignmentRead, GravestoneRead


class PlotBase(BaseModel):
    plot_number: str = Field(..., min_length=1, examples=["A-1-001"])
    plot_code: Optional[str] = None
    section_id: Optional[int] = None
    block_id: Optional[int] = None
    size: str = Field("STANDARD", examples=["STANDARD", "LARGE", "FAMILY", "NICHE"])
    length: float = Field(2.0, gt=0)
    width: float = Field(1.0, gt=0)
    depth: float = Field(1.5, gt=0)
    base_fee: Optional[float] = Field(None, ge=0, description="Defaults to the cemetery price for the size")
    maintenance_fee: Optional[float] = Field(None, ge=0)
    orientation: str = "NORTH"
    accessibility: bool = True
    status: str = "VACANT"
    max_layers: int = Field(3, ge=1, le=10)
    notes: Optional[str] = None


class PlotCreate(PlotBase):
    cemetery_id: int
    coordinates: Optional[List[Any]] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class PlotUpdate(BaseModel):
    plot_number: Optional[str] = None
    plot_code: Optional[str] = None
    section_id: Optional[int] = None
    block_id: Optional[int] = None
    size: Optional[str] = None
    length: Optional[float] = Field(None, gt=0)
    width: Optional[float] = Field(None, gt=0)
    depth: Optional[float] = Field(None, gt=0)
    base_fee: Optional[float] = Field(None, ge=0)
    maintenance_fee: Optional[float] = Field(None, ge=0)
    orientation: Optional[str] = None
    accessibility: Optional[bool] = None
    status: Optional[str] = None
    max_layers: Optional[int] = Field(None, ge=1, le=10)
    notes: Optional[str] = None
    coordinates: Optional[List[Any]] = None


class PlotRead(PlotBase):
    id: int
    cemetery_id: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    boundary: Optional[List[List[float]]] = None
    reserved_by: Optional[str] = None
    reservation_expiry: Optional[str] = None
    color: str
    fill_opacity: float
    occupied_layers: int = 0
    assignments: List[AssignmentRead] = []
    gravestones: List[GravestoneRead] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class PlotPage(BaseModel):
    items: List[PlotRead]
    total: int
    page: int
    limit: int
    pages: int


class PlotReservation(BaseModel):
    reserved_by: str = Field(..., min_length=1)
    reservation_expiry: Optional[date] = None
    notes: Optional[str] = None


class PlotStatistics(BaseModel):
    total_plots: int
    vacant_plots: int
    reserved_plots: int
    occupied_plots: int
    blocked_plots: int
    total_assignments: int
    occupancy_rate: float
    total_sections: int
    total_blocks: int
